"""
naming - Test names as runner filter patterns.

Hosts pass these patterns to `-t` / `--testNamePattern` style options, so
interpolation tokens left in a name become `(.*?)` wildcards and everything
else is regex-escaped.
"""

import re
from typing import List, Optional

from parsers.nodes import NodeKind, TestNode

# `$x`, `${x}` and printf specifiers left in a display name
INTERPOLATION_RE = re.compile(r'(\$\{?[A-Za-z0-9_]+\}?|%[psdifjo#%])', re.IGNORECASE)
WILDCARD = '(.*?)'

_SPECIAL_RE = re.compile(r'[.*+?^${}<>()|\[\]\\]')
_ESCAPED_WILDCARD = re.escape(_SPECIAL_RE.sub(lambda m: '\\' + m.group(0), WILDCARD))


def escape_regexp(text: str) -> str:
    """Escape regex syntax, keeping `(.*?)` wildcards usable."""
    escaped = _SPECIAL_RE.sub(lambda m: '\\' + m.group(0), text)
    return re.sub(_ESCAPED_WILDCARD, lambda m: WILDCARD, escaped)


def resolve_test_name_interpolation(name: str) -> str:
    """Replace interpolation tokens with `(.*?)`."""
    return INTERPOLATION_RE.sub(lambda m: WILDCARD, name)


def strip_property_access(name: Optional[str]) -> Optional[str]:
    """
    Drop `.name` and `X.prototype.` left by source-text fallbacks.

    `MyClass.name` in a title is printed by the runner as `MyClass`.
    """
    if name is None:
        return None
    name = re.sub(r'(?<=\S)\.name\b', '', name)
    return re.sub(r'\w*\.prototype\.', '', name)


def _clean(name: str) -> str:
    return strip_property_access(resolve_test_name_interpolation(name))


def _find_name_parts(line: int, children: List[TestNode]) -> Optional[List[str]]:
    for node in children:
        if node.kind == NodeKind.ASSERTION or node.span is None:
            continue
        if node.kind == NodeKind.SUITE and line == node.span.start_line:
            return [_clean(node.display_name)]
        if node.kind == NodeKind.CASE and node.span.start_line <= line <= node.span.end_line:
            return [_clean(node.display_name)]

    for node in children:
        if node.kind != NodeKind.SUITE:
            continue
        parts = _find_name_parts(line, node.children)
        if parts:
            return [_clean(node.display_name)] + parts
    return None


def find_full_test_name(line: int, root: TestNode) -> Optional[str]:
    """
    Regex-ready full name of the declaration at a one-based line.

    A suite matches on its first line only; a case matches anywhere in its
    span. Suite names are prefixed, joined by spaces.
    """
    parts = _find_name_parts(line, root.children)
    if not parts:
        return None
    return escape_regexp(' '.join(parts))


def node_name_pattern(node: TestNode) -> str:
    """Anchored pattern for one node, built from its template when it has one."""
    own = node.raw_template if node.raw_template is not None else node.display_name
    parts = [_clean(t) for t in node.ancestor_titles()] + [_clean(own)]
    return '^' + escape_regexp(' '.join(parts)) + '$'
