"""Expansion of table-driven declarations (`it.each`, `describe.each`)."""

import json
import logging
import re
from typing import Any, List, Optional

from parsers.callee import CallKind
from parsers.nodes import NodeKind, TestNode
from parsers.resolver import UNRESOLVABLE, ClassRef, Scope, parse_number, to_js_string
from parsers.syntax import (
    call_arguments,
    function_params,
    is_function,
    string_value,
    template_parts,
    unescape_js,
    unwrap,
)

_PRINTF_RE = re.compile(r'%([sdifjoOcp%])')
_INDEX_RE = re.compile(r'%([#$])')
_VARIABLE_RE = re.compile(
    r'\$\{([A-Za-z_$][\w$]*(?:\.[\w$]+)*)\}'
    r'|\$([A-Za-z_][\w]*(?:\.[\w]+)*)'
    r'|\$#'
)
_IDENTIFIER_RE = re.compile(r'^[A-Za-z_$][\w$]*$')
_INT_PREFIX_RE = re.compile(r'^\s*[+-]?\d+')
_FLOAT_PREFIX_RE = re.compile(r'^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')


def format_title(template: str, row: Any, index: int) -> str:
    """Build the concrete title of one table row.

    printf specifiers are filled positionally from the row (or from the row
    itself when it is not a list), then `%#` becomes the row index, then
    `$name` / `${a.b}` placeholders are looked up on object rows.
    Placeholders with nothing to fill stay as written.
    """
    title = template
    if re.search(r'%[sdifjoOcp]', title):
        args = row if isinstance(row, list) else [row]
        title = _apply_printf(title, args)

    title = _INDEX_RE.sub(lambda m: str(index) if m.group(1) == '#' else str(index + 1), title)

    def substitute(match):
        if match.group(0) == '$#':
            return str(index)
        if not isinstance(row, dict):
            return match.group(0)
        if match.group(1) is not None:
            value = _lookup_path(row, match.group(1).split('.'))
            return match.group(0) if value is UNRESOLVABLE else _pretty(value, top_level=True)
        parts = match.group(2).split('.')
        # `$file.js` reads `file` and keeps `.js` when the longer path is absent
        for end in range(len(parts), 0, -1):
            value = _lookup_path(row, parts[:end])
            if value is not UNRESOLVABLE:
                rest = ''.join('.' + p for p in parts[end:])
                return _pretty(value, top_level=True) + rest
        return match.group(0)

    return _VARIABLE_RE.sub(substitute, title)


def _apply_printf(title: str, args: List[Any]) -> str:
    remaining = list(args)

    def replace(match):
        spec = match.group(1)
        if spec == '%':
            return '%'
        if not remaining:
            return match.group(0)
        value = remaining.pop(0)
        return _format_spec(spec, value)

    return _PRINTF_RE.sub(replace, title)


def _format_spec(spec: str, value: Any) -> str:
    if spec == 's':
        if isinstance(value, (dict, list)):
            return _inspect(value)
        text = to_js_string(value)
        return _inspect(value) if text is UNRESOLVABLE else text
    if spec == 'd':
        return _number_text(_to_number(value))
    if spec == 'i':
        match = _INT_PREFIX_RE.match(_string_or_empty(value))
        return str(int(match.group(0))) if match else 'NaN'
    if spec == 'f':
        match = _FLOAT_PREFIX_RE.match(_string_or_empty(value))
        return _number_text(float(match.group(0))) if match else 'NaN'
    if spec == 'j':
        return _json(value)
    if spec == 'c':
        return ''
    if spec == 'p':
        return _pretty(value)
    return _inspect(value)


def _string_or_empty(value: Any) -> str:
    text = to_js_string(value)
    return '' if text is UNRESOLVABLE else text


def _to_number(value: Any) -> float:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0.0
        number = parse_number(stripped)
        return float('nan') if number is UNRESOLVABLE else float(number)
    if isinstance(value, list) and len(value) <= 1:
        return _to_number(value[0]) if value else 0.0
    return float('nan')


def _number_text(number: float) -> str:
    return to_js_string(number)


def _json_ready(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, list):
        return [_json_ready(v) for v in value]
    if isinstance(value, dict):
        return {k: _json_ready(v) for k, v in value.items()}
    if isinstance(value, ClassRef):
        return None
    return value


def _json(value: Any) -> str:
    return json.dumps(_json_ready(value), separators=(',', ':'), ensure_ascii=False)


def _key_text(key: str) -> str:
    return key if _IDENTIFIER_RE.match(key) else "'" + key.replace("'", "\\'") + "'"


def _inspect(value: Any) -> str:
    """Rough Node `util.inspect` rendering used by `%o` and `%s` on objects."""
    if isinstance(value, str):
        return "'" + value.replace("'", "\\'") + "'"
    if isinstance(value, list):
        if not value:
            return '[]'
        return '[ ' + ', '.join(_inspect(v) for v in value) + ' ]'
    if isinstance(value, dict):
        if not value:
            return '{}'
        return '{ ' + ', '.join(f"{_key_text(k)}: {_inspect(v)}" for k, v in value.items()) + ' }'
    if isinstance(value, ClassRef):
        return f"[class {value.name}]"
    text = to_js_string(value)
    return 'undefined' if text is UNRESOLVABLE else text


def _pretty(value: Any, top_level: bool = False) -> str:
    """Compact pretty-format rendering used by `%p` and `$variable`."""
    if isinstance(value, str):
        return value if top_level else json.dumps(value, ensure_ascii=False)
    if isinstance(value, list):
        return '[' + ', '.join(_pretty(v) for v in value) + ']'
    if isinstance(value, dict):
        return '{' + ', '.join(f'{json.dumps(k)}: {_pretty(v)}' for k, v in value.items()) + '}'
    if isinstance(value, ClassRef):
        return f"[class {value.name}]"
    text = to_js_string(value)
    return 'undefined' if text is UNRESOLVABLE else text


def _lookup_path(row: Any, path: List[str]) -> Any:
    current = row
    for part in path:
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        elif isinstance(current, (list, str)) and part == 'length':
            current = len(current)
        else:
            return UNRESOLVABLE
    return current


class EachExpander:
    """Materialize one TestNode per row of a statically known `.each` table.

    Works on behalf of the walker: nodes are registered through it and
    suite rows are walked with it.
    """

    def __init__(self, walker):
        self.walker = walker
        self.resolver = walker.resolver
        self.source = walker.source

    def resolve_table(self, call, scope: Scope) -> Any:
        """Resolved `.each(...)` table, or UNRESOLVABLE when it is not a list."""
        each_call = call.child_by_field_name('function')
        if each_call is None or each_call.type != 'call_expression':
            return UNRESOLVABLE
        args = each_call.child_by_field_name('arguments')
        if args is None:
            return UNRESOLVABLE
        if args.type == 'template_string':
            table = self._tagged_table(args, scope)
        else:
            table_args = call_arguments(each_call)
            if not table_args:
                return UNRESOLVABLE
            table = self.resolver.resolve(table_args[0], scope)
        return table if isinstance(table, list) else UNRESOLVABLE

    def _tagged_table(self, template, scope: Scope) -> Any:
        """Rows of a tagged-template table: a `a | b` heading then `${x} | ${y}` cells."""
        quasis, expressions = template_parts(template, self.source)
        headings = [h.strip() for h in quasis[0].strip().split('|')]
        if not headings or not all(headings):
            return UNRESOLVABLE
        if any(q.strip() not in ('', '|') for q in quasis[1:]):
            return UNRESOLVABLE
        if len(expressions) % len(headings) != 0:
            return UNRESOLVABLE
        rows = []
        for start in range(0, len(expressions), len(headings)):
            row = {}
            for heading, expr in zip(headings, expressions[start:start + len(headings)]):
                value = self.resolver.resolve(expr, scope)
                if value is UNRESOLVABLE:
                    return UNRESOLVABLE
                row[heading] = value
            rows.append(row)
        return rows

    def title_template(self, title_node) -> Optional[str]:
        """Title usable as a template: a string or a template without `${}`."""
        node = unwrap(title_node)
        if node is None:
            return None
        if node.type == 'string':
            return string_value(node, self.source)
        if node.type == 'template_string':
            quasis, expressions = template_parts(node, self.source)
            if not expressions:
                return unescape_js(quasis[0])
        return None

    def expand(self, shape, call, statement, parent: TestNode, scope: Scope) -> Optional[List[TestNode]]:
        """Expand an `.each` declaration, or return None to decline.

        An empty table expands to an empty list.
        """
        args = call_arguments(call)
        table = self.resolve_table(call, scope)
        template = self.title_template(args[0]) if args else None
        if table is UNRESOLVABLE or template is None:
            logging.debug(
                f"{self.walker.file_path}:{statement.start_point[0] + 1}: "
                f"{shape.root}.each table or title not static, not expanded"
            )
            return None

        callback = args[1] if len(args) > 1 and is_function(args[1]) else None
        is_suite = shape.kind == CallKind.SUITE_EACH
        if is_suite and callback is None:
            return None

        kind = NodeKind.SUITE if is_suite else NodeKind.CASE
        nodes = []
        for index, row in enumerate(table):
            node = self.walker.add_node(kind, parent, statement, shape.last_property)
            node.display_name = format_title(template, row, index)
            node.raw_template = template
            node.name_type = args[0].type
            nodes.append(node)

            if is_suite:
                row_scope = self.row_scope(callback, row, scope)
                self.walker.walk_function(callback, node, row_scope, bind_params=False)
        return nodes

    def row_scope(self, callback, row: Any, scope: Scope) -> Scope:
        """Scope binding the callback parameters of one row."""
        row_scope = scope.child(in_each_row=True)
        params = function_params(callback)
        if len(params) == 1:
            self.resolver.bind_pattern(params[0], row, row_scope)
        elif params:
            values = row if isinstance(row, list) else []
            for position, param in enumerate(params):
                value = values[position] if position < len(values) else UNRESOLVABLE
                self.resolver.bind_pattern(param, value, row_scope)
        return row_scope
