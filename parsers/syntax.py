"""Helpers for reading tree-sitter JavaScript/TypeScript syntax nodes."""

import re
from typing import List, Optional, Tuple

from parsers.nodes import Span

FUNCTION_TYPES = frozenset({
    'arrow_function', 'function_expression', 'function', 'generator_function',
})

# Wrappers that do not change the value of the wrapped expression
TRANSPARENT_TYPES = frozenset({
    'parenthesized_expression', 'as_expression', 'satisfies_expression',
    'non_null_expression', 'type_assertion',
})

_ESCAPE_RE = re.compile(
    r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|[\s\S])"
)

_SIMPLE_ESCAPES = {
    'n': '\n', 't': '\t', 'r': '\r', 'b': '\b', 'f': '\f', 'v': '\v', '0': '\0',
    '\n': '', '\r\n': '', '\u2028': '', '\u2029': '',
}


def unescape_js(raw: str) -> str:
    """Decode the escape sequences of a JS string or template segment."""
    def replace(match):
        seq = match.group(1)
        if seq in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[seq]
        if seq.startswith('u{'):
            return chr(int(seq[2:-1], 16))
        if seq[0] in 'ux' and len(seq) > 1:
            return chr(int(seq[1:], 16))
        return seq

    return _ESCAPE_RE.sub(replace, raw)


def node_text(node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode('utf-8', errors='replace')


def named_children(node) -> List:
    """Named children without comments (comments are extras in tree-sitter)."""
    return [c for c in node.named_children if c.type != 'comment']


def first_named_child(node):
    children = named_children(node)
    return children[0] if children else None


def unwrap(node):
    """Strip parentheses and TypeScript type wrappers."""
    while node is not None and node.type in TRANSPARENT_TYPES:
        children = named_children(node)
        if not children:
            return None
        # `<T>expr` keeps the expression last; the other wrappers keep it first
        node = children[-1] if node.type == 'type_assertion' else children[0]
    return node


def is_function(node) -> bool:
    node = unwrap(node)
    return node is not None and node.type in FUNCTION_TYPES


def function_body(node):
    node = unwrap(node)
    if node is None:
        return None
    return node.child_by_field_name('body')


def function_params(node) -> List:
    """Parameter patterns of a function node, TS wrappers removed."""
    node = unwrap(node)
    if node is None:
        return []
    single = node.child_by_field_name('parameter')
    if single is not None:
        return [single]
    params = node.child_by_field_name('parameters')
    if params is None:
        return []
    patterns = []
    for param in named_children(params):
        if param.type in ('required_parameter', 'optional_parameter'):
            pattern = param.child_by_field_name('pattern')
            if pattern is not None:
                patterns.append(pattern)
        else:
            patterns.append(param)
    return patterns


def string_value(node, source: bytes) -> str:
    """Cooked value of a `string` literal node."""
    return unescape_js(node_text(node, source)[1:-1])


def template_parts(node, source: bytes) -> Tuple[List[str], List]:
    """Split a template_string into raw quasi texts and substitution expressions.

    There is always one more quasi than there are expressions.
    """
    quasis = []
    expressions = []
    cursor = node.start_byte + 1
    for child in node.named_children:
        if child.type != 'template_substitution':
            continue
        quasis.append(source[cursor:child.start_byte].decode('utf-8', errors='replace'))
        expressions.append(first_named_child(child))
        cursor = child.end_byte
    quasis.append(source[cursor:node.end_byte - 1].decode('utf-8', errors='replace'))
    return quasis, expressions


def template_inner_text(node, source: bytes) -> str:
    """Template literal source without its backtick delimiters."""
    return node_text(node, source)[1:-1]


def call_arguments(call) -> List:
    """Argument nodes of a call_expression (empty for tagged templates)."""
    args = call.child_by_field_name('arguments')
    if args is None or args.type != 'arguments':
        return []
    return named_children(args)


def statement_call(statement):
    """Head call expression of a statement, looking through `await`."""
    node = statement
    if node.type == 'expression_statement':
        node = first_named_child(node)
    while node is not None and node.type in ('await_expression', 'parenthesized_expression'):
        node = first_named_child(node)
    if node is not None and node.type == 'call_expression':
        return node
    return None


def node_span(node, lines: List[bytes]) -> Span:
    """One-based span of a node; tree-sitter columns are byte offsets."""
    start_row, start_col = node.start_point[0], node.start_point[1]
    end_row, end_col = node.end_point[0], node.end_point[1]
    return Span(
        start_row + 1,
        _char_column(lines, start_row, start_col) + 1,
        end_row + 1,
        _char_column(lines, end_row, end_col),
    )


def _char_column(lines: List[bytes], row: int, byte_col: int) -> int:
    if row >= len(lines):
        return byte_col
    return len(lines[row][:byte_col].decode('utf-8', errors='replace'))


def find_error(node) -> Optional[object]:
    """First ERROR or MISSING node in the tree, depth first."""
    if node.type == 'ERROR' or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = find_error(child)
        if found is not None:
            return found
    return node
