"""
reconciliation - Match discovered test nodes to runner results.

One pass per run: every leaf node is matched against the results of its
file that no earlier node has consumed, and gets an Outcome. When the
runner output is not a result document, raw output lines are scanned for
failure markers instead.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from parsers.nodes import TestNode
from results import AssertionResult, ResultsDocument, is_results_data, parse_results_document
from testlens_base import Settings

PASSED = 'passed'
FAILED = 'failed'
SKIPPED = 'skipped'

STATUS_MAP = {
    'passed': PASSED,
    'failed': FAILED,
    'skipped': SKIPPED,
    'pending': SKIPPED,
    'todo': SKIPPED,
}

# Interpolation left in a name: `${a.b}`, `$a.b`, printf specifiers, `%#`
TOKEN_RE = re.compile(r'\$\{[^}]*\}|\$[A-Za-z_]\w*(?:\.\w+)*|%[sdifjoOcp#]')
DUPLICATE_SUFFIX_RE = re.compile(r' \(\d+\)')

IndexedResult = Tuple[int, AssertionResult]


@dataclass
class Outcome:
    """Final status of one node, with failure text for failed nodes."""
    status: str
    failure_text: Optional[str] = None
    duration: Optional[float] = None

    def to_dict(self) -> Dict:
        data: Dict[str, Any] = {'status': self.status}
        if self.failure_text is not None:
            data['failureText'] = self.failure_text
        if self.duration is not None:
            data['duration'] = self.duration
        return data


class MatchRecord:
    """Result indices consumed during one reconciliation pass."""

    def __init__(self):
        self._consumed: Set[int] = set()

    def consume(self, index: int) -> None:
        self._consumed.add(index)

    def __contains__(self, index: int) -> bool:
        return index in self._consumed

    def __len__(self) -> int:
        return len(self._consumed)


def has_tokens(name: Optional[str]) -> bool:
    return bool(name) and TOKEN_RE.search(name) is not None


def is_only_token(name: str) -> bool:
    match = TOKEN_RE.fullmatch(name.strip())
    return match is not None


def last_segment(name: str) -> str:
    """Last space-separated word of a name."""
    parts = name.split(' ')
    return parts[-1] or name


class NamePattern:
    """
    Comparison against one name.

    Plain names compare by equality. Names holding interpolation tokens
    compare as anchored regexes where each token is a `(.*?)` wildcard.
    """

    def __init__(self, name: str):
        self.name = name
        self.regex = None
        if has_tokens(name):
            pieces = []
            last = 0
            for match in TOKEN_RE.finditer(name):
                pieces.append(re.escape(name[last:match.start()]))
                pieces.append('(.*?)')
                last = match.end()
            pieces.append(re.escape(name[last:]))
            self.regex = re.compile(''.join(pieces), re.DOTALL)

    def matches(self, text: Optional[str]) -> bool:
        if text is None:
            return False
        if self.regex is None:
            return text == self.name
        return self.regex.fullmatch(text) is not None

    def matches_with_suffix(self, text: Optional[str]) -> bool:
        """Runner duplicate titles: `name (2)`."""
        if text is None or not text.startswith(self.name):
            return False
        return DUPLICATE_SUFFIX_RE.fullmatch(text[len(self.name):]) is not None


def _result_path(result: AssertionResult) -> str:
    return ' '.join(result.ancestor_titles + [result.title])


def matches_by_ancestors(result: AssertionResult, node: TestNode) -> bool:
    """Enclosing suite titles of the node end the result's ancestor titles."""
    wanted = node.ancestor_titles()
    have = result.ancestor_titles
    if not wanted:
        return not have
    if len(have) < len(wanted):
        return False
    return have[len(have) - len(wanted):] == wanted


def _tiers(node: TestNode) -> List[Callable[[AssertionResult], bool]]:
    name = node.display_name
    pattern = NamePattern(name)
    tiers = [
        lambda r: pattern.matches(r.title) or pattern.matches_with_suffix(r.title),
    ]

    last = last_segment(name)
    if last != name and not is_only_token(last):
        last_pattern = NamePattern(last)
        tiers.append(lambda r: last_pattern.matches(r.title))

    tiers.append(lambda r: pattern.matches(r.full_name))
    tiers.append(lambda r: pattern.matches(_result_path(r)) or pattern.matches_with_suffix(_result_path(r)))

    if node.raw_template and node.raw_template != name and has_tokens(node.raw_template):
        template = NamePattern(node.raw_template)
        tiers.append(lambda r: template.matches(r.title) or template.matches(_result_path(r)))
    return tiers


def find_matches(node: TestNode, candidates: List[IndexedResult]) -> List[IndexedResult]:
    """Candidates matching the node, from the first matching tier only."""
    if is_only_token(node.display_name):
        return [(i, r) for i, r in candidates if matches_by_ancestors(r, node)]

    for tier in _tiers(node):
        found = [(i, r) for i, r in candidates if tier(r)]
        if found:
            return found
    return []


def best_match(node: TestNode, matches: List[IndexedResult]) -> IndexedResult:
    """Prefer the result reported one line after the node's start line."""
    if node.span is not None:
        expected = node.span.start_line + 1
        for indexed in matches:
            location = indexed[1].location
            if location is not None and location.line == expected:
                return indexed
    return matches[0]


def outcome_for(result: AssertionResult) -> Outcome:
    status = STATUS_MAP.get(result.status, SKIPPED)
    text = None
    if status == FAILED:
        text = '\n'.join(result.failure_messages) or 'Test failed'
    return Outcome(status, text, result.duration)


def aggregate_outcome(results: List[AssertionResult]) -> Outcome:
    """
    One outcome for the several runtime results of a parameterized node.

    Failure text holds one `[title]: message` block per failure message.
    """
    statuses = [STATUS_MAP.get(r.status, SKIPPED) for r in results]
    durations = [r.duration for r in results if r.duration is not None]
    duration = sum(durations) if durations else None

    if FAILED in statuses:
        blocks = []
        for position, result in enumerate(results):
            if STATUS_MAP.get(result.status) != FAILED:
                continue
            label = result.title or str(position + 1)
            for message in result.failure_messages or ['Test failed']:
                blocks.append(f"[{label}]: {message}")
        return Outcome(FAILED, '\n\n'.join(blocks), duration)
    if PASSED in statuses:
        return Outcome(PASSED, None, duration)
    return Outcome(SKIPPED)


def _same_file(name: str, file_path: str) -> bool:
    if name == file_path:
        return True
    try:
        return Path(name).resolve() == Path(file_path).resolve()
    except (OSError, RuntimeError, ValueError):
        return False


def results_for_file(document: ResultsDocument, file_path: Optional[str]) -> List[AssertionResult]:
    """Results of the file's entry, or of every entry when none matches."""
    if file_path is not None:
        for file_result in document.test_results:
            if file_result.name and _same_file(file_result.name, str(file_path)):
                return list(file_result.assertion_results)
    return document.all_assertions()


def reconcile_text(nodes: Iterable[TestNode], output: str, markers: List[str]) -> Dict[TestNode, Outcome]:
    """
    Degraded matching against raw runner output.

    A node fails when a line holding a failure marker mentions its display
    name or the last segment of it; every other node passes.
    """
    logging.warning("Failed to parse test results, falling back to text parsing")
    marker_lines = [line for line in output.split('\n') if any(m in line for m in markers)]

    outcomes = {}
    for node in nodes:
        name = node.display_name
        short = last_segment(name) if name else ''
        hits = [line for line in marker_lines if name and (name in line or short in line)]
        if hits:
            outcomes[node] = Outcome(FAILED, '\n'.join(hits))
        else:
            outcomes[node] = Outcome(PASSED)
    return outcomes


def reconcile(
    leaves: Iterable[TestNode],
    document: Union[ResultsDocument, Mapping, str],
    file_path: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> Dict[TestNode, Outcome]:
    """
    Give every leaf node an Outcome from one test run.

    `document` is a ResultsDocument, its JSON mapping, or raw runner output.
    Raw output that holds no result document is scanned for failure
    markers. A node no result matches is skipped. Each call starts from a
    fresh MatchRecord, so reconciling twice gives the same outcomes.
    """
    settings = settings or Settings()
    leaves = list(leaves)

    if isinstance(document, str):
        parsed = parse_results_document(document)
        if parsed is None:
            return reconcile_text(leaves, document, settings.failure_markers)
        document = parsed
    elif not isinstance(document, ResultsDocument):
        if not is_results_data(document):
            logging.warning("No assertion results found in test output")
            return {leaf: Outcome(SKIPPED) for leaf in leaves}
        document = ResultsDocument.from_dict(dict(document))

    results = results_for_file(document, file_path)
    record = MatchRecord()
    outcomes: Dict[TestNode, Outcome] = {}

    for leaf in leaves:
        candidates = [(i, r) for i, r in enumerate(results) if i not in record]
        matches = find_matches(leaf, candidates)

        if not matches:
            logging.debug(f"No result for {leaf.full_name()!r}")
            outcomes[leaf] = Outcome(SKIPPED)
            continue

        if has_tokens(leaf.display_name) and len(matches) > 1:
            for index, _ in matches:
                record.consume(index)
            outcomes[leaf] = aggregate_outcome([r for _, r in matches])
            continue

        index, result = best_match(leaf, matches)
        record.consume(index)
        outcomes[leaf] = outcome_for(result)

    return outcomes
