"""
results - Test runner result documents.

Everything the reconciliation engine consumes is normalised into a
ResultsDocument shaped like Jest's `--json` output:

    { testResults: [ { name, assertionResults: [AssertionResult, ...] } ] }

Readers provided here:
- parse_results_document: Jest/Vitest JSON, alone or buried in mixed output
- convert_vitest_results: fill in the summary counters Vitest leaves out
- parse_tap_output: TAP from the Node.js test runner
- parse_junit_xml: JUnit XML reports
"""

import json
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

STATUSES = ('passed', 'failed', 'skipped', 'pending', 'todo')

SUMMARY_KEYS = (
    'numFailedTestSuites', 'numFailedTests', 'numPassedTestSuites', 'numPassedTests',
    'numPendingTestSuites', 'numPendingTests', 'numTotalTestSuites', 'numTotalTests',
)

# Runner JSON always opens with one of these keys
JSON_START_PATTERNS = (
    '{"numFailedTestSuites"',
    '{"testResults"',
    '{"numTotalTestSuites"',
)

TAP_TEST_RE = re.compile(
    r'^(not )?ok\s+(\d+)\s*(?:-\s*(.+?))?(?:\s+#\s*(SKIP|TODO)(?:\s+(.*))?)?$',
    re.IGNORECASE,
)
TAP_DIAGNOSTIC_KEY_RE = re.compile(r'^\s{2}(\w+):\s*(.*)$')


def _text(value: Any) -> str:
    """JSON scalar as text; null and missing values are empty."""
    return '' if value is None else str(value)


@dataclass
class Location:
    line: int
    column: int = 0

    def to_dict(self) -> Dict:
        return {'line': self.line, 'column': self.column}


@dataclass
class AssertionResult:
    """One outcome reported by a test runner."""
    title: str
    status: str
    ancestor_titles: List[str] = field(default_factory=list)
    full_name: Optional[str] = None
    failure_messages: List[str] = field(default_factory=list)
    location: Optional[Location] = None
    duration: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict) -> 'AssertionResult':
        location = data.get('location')
        if isinstance(location, dict) and isinstance(location.get('line'), int):
            location = Location(location['line'], location.get('column') or 0)
        else:
            location = None
        ancestors = data.get('ancestorTitles') or []
        messages = data.get('failureMessages') or []
        duration = data.get('duration')
        return cls(
            title=_text(data.get('title')),
            status=_text(data.get('status')),
            ancestor_titles=[str(a) for a in ancestors] if isinstance(ancestors, list) else [],
            full_name=data.get('fullName') if isinstance(data.get('fullName'), str) else None,
            failure_messages=[str(m) for m in messages] if isinstance(messages, list) else [],
            location=location,
            duration=duration if isinstance(duration, (int, float)) and not isinstance(duration, bool) else None,
        )

    def to_dict(self) -> Dict:
        data = {
            'ancestorTitles': self.ancestor_titles,
            'title': self.title,
            'status': self.status,
        }
        if self.full_name is not None:
            data['fullName'] = self.full_name
        if self.failure_messages:
            data['failureMessages'] = self.failure_messages
        if self.location is not None:
            data['location'] = self.location.to_dict()
        if self.duration is not None:
            data['duration'] = self.duration
        return data


@dataclass
class FileResult:
    """The results of one test file."""
    name: str
    assertion_results: List[AssertionResult] = field(default_factory=list)
    status: Optional[str] = None
    message: str = ''

    @classmethod
    def from_dict(cls, data: Dict) -> 'FileResult':
        raw = data.get('assertionResults') or []
        assertions = [AssertionResult.from_dict(r) for r in raw if isinstance(r, dict)] if isinstance(raw, list) else []
        return cls(
            name=_text(data.get('name')),
            assertion_results=assertions,
            status=data.get('status') if isinstance(data.get('status'), str) else None,
            message=data.get('message') if isinstance(data.get('message'), str) else '',
        )

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'status': self.status,
            'message': self.message,
            'assertionResults': [r.to_dict() for r in self.assertion_results],
        }


@dataclass
class ResultsDocument:
    """A complete run: per-file results plus the runner's summary counters."""
    test_results: List[FileResult] = field(default_factory=list)
    success: Optional[bool] = None
    summary: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict) -> 'ResultsDocument':
        raw = data.get('testResults') or []
        files = [FileResult.from_dict(f) for f in raw if isinstance(f, dict)] if isinstance(raw, list) else []
        summary = {k: data[k] for k in SUMMARY_KEYS if isinstance(data.get(k), int)}
        success = data.get('success') if isinstance(data.get('success'), bool) else None
        return cls(test_results=files, success=success, summary=summary)

    def to_dict(self) -> Dict:
        data: Dict[str, Any] = dict(self.summary)
        if self.success is not None:
            data['success'] = self.success
        data['testResults'] = [f.to_dict() for f in self.test_results]
        return data

    def all_assertions(self) -> List[AssertionResult]:
        return [r for f in self.test_results for r in f.assertion_results]


def is_results_data(data: Any) -> bool:
    """True when `data` has the `testResults: [...]` shape."""
    return isinstance(data, dict) and isinstance(data.get('testResults'), list)


def extract_json_from_output(output: str) -> Optional[str]:
    """
    Find the runner's JSON object inside mixed stdout.

    Monorepo wrappers often print log lines before the JSON. Braces inside
    JSON strings are not counted.
    """
    for pattern in JSON_START_PATTERNS:
        start = output.find(pattern)
        if start == -1:
            continue

        depth = 0
        in_string = False
        escape_next = False
        for i in range(start, len(output)):
            char = output[i]
            if escape_next:
                escape_next = False
                continue
            if char == '\\' and in_string:
                escape_next = True
                continue
            if char == '"':
                in_string = not in_string
                continue
            if not in_string:
                if char == '{':
                    depth += 1
                elif char == '}':
                    depth -= 1
                    if depth == 0:
                        return output[start:i + 1]
    return None


def parse_results_document(output: str, vitest: bool = False) -> Optional[ResultsDocument]:
    """
    Parse runner JSON output into a ResultsDocument.

    Tries the whole text first, then a JSON object extracted from mixed
    output. Returns None (never raises) when no result document is found.
    """
    candidates = [(output.strip(), False), (extract_json_from_output(output), True)]
    for candidate, extracted in candidates:
        if not candidate:
            continue
        try:
            data = json.loads(candidate)
        except ValueError as e:
            if extracted:
                logging.warning(f"Failed to parse extracted runner JSON: {e}")
            continue
        if vitest and isinstance(data, dict):
            data = convert_vitest_results(data)
        if is_results_data(data):
            return ResultsDocument.from_dict(data)

    logging.warning("Could not find valid test results JSON in output")
    return None


def convert_vitest_results(data: Dict) -> Dict:
    """Give Vitest JSON the summary counters of Jest's format."""
    if data.get('numFailedTestSuites') is not None:
        return data

    converted = {key: data.get(key) or 0 for key in SUMMARY_KEYS}
    success = data.get('success')
    converted['success'] = success if success is not None else converted['numFailedTests'] == 0
    converted['testResults'] = data.get('testResults') or []
    return converted


# =============================================================================
# TAP
# =============================================================================

def _parse_yaml_diagnostic(lines: List[str]) -> Dict[str, str]:
    """Key/value pairs of a TAP YAML block; `|` values span indented lines."""
    result: Dict[str, str] = {}
    key = None
    value: List[str] = []

    for line in lines:
        match = TAP_DIAGNOSTIC_KEY_RE.match(line)
        if match:
            if key is not None:
                result[key] = '\n'.join(value).strip()
            key, raw = match.group(1), match.group(2)
            if raw in ('|', '|-'):
                value = []
            else:
                value = [re.sub(r"^['\"]|['\"]$", '', raw)]
            continue
        if key is not None and line.startswith('    '):
            value.append(line[4:])

    if key is not None:
        result[key] = '\n'.join(value).strip()
    return result


def _int_prefix(text: str) -> Optional[int]:
    match = re.match(r'\s*([+-]?\d+)', text or '')
    return int(match.group(1)) if match else None


def parse_tap_output(output: str, file_path: str) -> ResultsDocument:
    """
    Read TAP output of the Node.js test runner.

    Names like `suite > case` become ancestor titles plus a title; YAML
    diagnostics give failure messages, duration and location.
    """
    tests: List[Dict[str, Any]] = []
    diagnostic: List[str] = []
    in_diagnostic = False

    def close_diagnostic():
        if tests and diagnostic:
            tests[-1]['diagnostic'] = _parse_yaml_diagnostic(diagnostic)

    for line in output.split('\n'):
        match = TAP_TEST_RE.match(line)
        if match:
            if in_diagnostic:
                close_diagnostic()
                diagnostic = []
                in_diagnostic = False
            not_ok, number, name, directive, _reason = match.groups()
            tests.append({
                'ok': not not_ok,
                'name': (name or '').strip() or f"Test {number}",
                'directive': directive.lower() if directive else None,
                'diagnostic': {},
            })
            continue

        stripped = line.strip()
        if stripped == '---':
            in_diagnostic = True
            continue
        if stripped == '...':
            if in_diagnostic:
                close_diagnostic()
                diagnostic = []
            in_diagnostic = False
            continue
        if in_diagnostic:
            diagnostic.append(line)

    if in_diagnostic:
        close_diagnostic()

    assertions = []
    for test in tests:
        diag = test['diagnostic']
        if test['directive'] == 'skip':
            status = 'skipped'
        elif test['directive'] == 'todo':
            status = 'todo'
        else:
            status = 'passed' if test['ok'] else 'failed'

        messages = []
        if not test['ok'] and diag:
            messages = [diag[k] for k in ('error', 'message', 'stack') if diag.get(k)]
            if not messages:
                messages = ['\n'.join(f"{k}: {v}" for k, v in diag.items())]

        parts = test['name'].split(' > ')
        line_number = _int_prefix(diag.get('line', ''))
        duration = None
        if diag.get('duration_ms'):
            try:
                duration = float(diag['duration_ms'])
            except ValueError:
                duration = None

        assertions.append(AssertionResult(
            title=parts[-1],
            status=status,
            ancestor_titles=parts[:-1],
            full_name=test['name'],
            failure_messages=messages,
            location=Location(line_number, _int_prefix(diag.get('column', '')) or 0) if line_number is not None else None,
            duration=duration,
        ))

    return _document_from_files({file_path: assertions})


# =============================================================================
# JUnit XML
# =============================================================================

def parse_junit_xml(xml: str) -> Optional[ResultsDocument]:
    """
    Read a JUnit XML report, grouping test cases by their `file` attribute.

    Returns None when the text is not a JUnit report.
    """
    if '<testsuite' not in xml:
        return None
    try:
        root = ET.fromstring(xml.strip())
    except ET.ParseError as e:
        logging.warning(f"Could not parse JUnit XML: {e}")
        return None

    by_file: Dict[str, List[AssertionResult]] = {}
    for case in root.iter('testcase'):
        name = case.get('name')
        if not name:
            continue

        status = 'passed'
        messages = []
        problem = case.find('failure')
        if problem is None:
            problem = case.find('error')
        if problem is not None:
            status = 'failed'
            message = problem.get('message', '')
            text = (problem.text or '').strip()
            messages.append(message + ('\n' + text if text else ''))
        elif case.find('skipped') is not None:
            status = 'skipped'

        try:
            duration = float(case.get('time') or 0) * 1000
        except ValueError:
            duration = None
        line = _int_prefix(case.get('line', ''))

        by_file.setdefault(case.get('file') or 'unknown', []).append(AssertionResult(
            title=name,
            status=status,
            full_name=name,
            failure_messages=messages,
            location=Location(line, 0) if line is not None else None,
            duration=duration,
        ))

    return _document_from_files(by_file)


def _document_from_files(by_file: Dict[str, List[AssertionResult]]) -> ResultsDocument:
    files = []
    counts = {'passed': 0, 'failed': 0, 'pending': 0}
    for name, assertions in by_file.items():
        failed = any(a.status == 'failed' for a in assertions)
        files.append(FileResult(name=name, assertion_results=assertions, status='failed' if failed else 'passed'))
        for a in assertions:
            if a.status in ('passed', 'failed'):
                counts[a.status] += 1
            else:
                counts['pending'] += 1

    failed_files = sum(1 for f in files if f.status == 'failed')
    summary = {
        'numFailedTestSuites': failed_files,
        'numFailedTests': counts['failed'],
        'numPassedTestSuites': len(files) - failed_files,
        'numPassedTests': counts['passed'],
        'numPendingTestSuites': 0,
        'numPendingTests': counts['pending'],
        'numTotalTestSuites': len(files),
        'numTotalTests': sum(counts.values()),
    }
    return ResultsDocument(test_results=files, success=counts['failed'] == 0, summary=summary)
