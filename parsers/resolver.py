"""Scoped constant resolver for JavaScript/TypeScript expressions.

A deliberately small partial evaluator: it turns literal-ish expressions into
Python values (str, int, float, bool, None for `null`, list, dict) using the
constants bound in the enclosing scopes. Anything that needs execution
(calls, conditionals, arithmetic other than string concatenation) yields
UNRESOLVABLE. A wrong value is worse than no value, so every uncertain case
gives up.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from parsers.syntax import (
    first_named_child,
    named_children,
    node_text,
    string_value,
    template_parts,
    unescape_js,
    unwrap,
)


class _Unresolvable:
    """Sentinel type for "no statically known value"."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNRESOLVABLE"

    def __bool__(self) -> bool:
        return False


UNRESOLVABLE = _Unresolvable()


@dataclass(frozen=True)
class ClassRef:
    """A class declared in the file; only its `.name` is known."""

    name: str


class Scope:
    """Binding frame with a parent pointer.

    Lookups walk outwards; bindings always land in this frame, so a child
    scope never changes what its parent or siblings see.
    """

    def __init__(self, parent: Optional['Scope'] = None, in_each_row: bool = False):
        self._parent = parent
        self._frame: Dict[str, Any] = {}
        self.in_each_row = in_each_row or (parent.in_each_row if parent else False)

    def child(self, in_each_row: bool = False) -> 'Scope':
        return Scope(self, in_each_row)

    def bind(self, name: str, value: Any) -> None:
        self._frame[name] = value

    def lookup(self, name: str) -> Any:
        scope = self
        while scope is not None:
            if name in scope._frame:
                return scope._frame[name]
            scope = scope._parent
        return UNRESOLVABLE

    def __contains__(self, name: str) -> bool:
        return self.lookup(name) is not UNRESOLVABLE


def to_js_string(value: Any) -> Any:
    """JavaScript String() of a resolved value, or UNRESOLVABLE."""
    if value is UNRESOLVABLE or isinstance(value, ClassRef):
        return UNRESOLVABLE
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if value is None:
        return 'null'
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _js_number(value)
    if isinstance(value, list):
        parts = []
        for item in value:
            if item is None:
                parts.append('')
                continue
            text = to_js_string(item)
            if text is UNRESOLVABLE:
                return UNRESOLVABLE
            parts.append(text)
        return ','.join(parts)
    if isinstance(value, dict):
        return '[object Object]'
    return UNRESOLVABLE


def _js_number(value: float) -> str:
    if math.isnan(value):
        return 'NaN'
    if math.isinf(value):
        return 'Infinity' if value > 0 else '-Infinity'
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if 'e' in text:
        mantissa, exponent = text.split('e')
        exp = int(exponent)
        text = f"{mantissa}e{'+' if exp > 0 else '-'}{abs(exp)}"
    return text


LEGACY_OCTAL_RE = re.compile(r'^0\d')


def _has_hole(array) -> bool:
    """True when an array literal has an elided element such as `[1, , 2]`."""
    after_element = False
    for child in array.children:
        if child.type == ',':
            if not after_element:
                return True
            after_element = False
        elif child.is_named and child.type != 'comment':
            after_element = True
    return False


def parse_number(text: str) -> Any:
    text = text.replace('_', '')
    if text.endswith('n'):
        text = text[:-1]
    lowered = text.lower()
    try:
        if lowered.startswith('0x'):
            return int(lowered[2:], 16)
        if lowered.startswith('0o'):
            return int(lowered[2:], 8)
        if lowered.startswith('0b'):
            return int(lowered[2:], 2)
        if LEGACY_OCTAL_RE.match(lowered):
            # `010` is 8 in sloppy-mode JavaScript
            return UNRESOLVABLE
        if any(c in lowered for c in '.e'):
            return float(lowered)
        return int(lowered, 10)
    except ValueError:
        return UNRESOLVABLE


class ConstantResolver:
    """Resolve expression nodes of one source file against a Scope."""

    def __init__(self, source: bytes):
        self.source = source

    def resolve(self, node, scope: Scope) -> Any:
        node = unwrap(node)
        if node is None:
            return UNRESOLVABLE
        handler = getattr(self, f"_resolve_{node.type}", None)
        if handler is None:
            return UNRESOLVABLE
        return handler(node, scope)

    def _resolve_string(self, node, scope):
        return string_value(node, self.source)

    def _resolve_number(self, node, scope):
        return parse_number(node_text(node, self.source))

    def _resolve_true(self, node, scope):
        return True

    def _resolve_false(self, node, scope):
        return False

    def _resolve_null(self, node, scope):
        return None

    def _resolve_identifier(self, node, scope):
        name = node_text(node, self.source)
        if name == 'undefined':
            return UNRESOLVABLE
        return scope.lookup(name)

    def _resolve_template_string(self, node, scope):
        quasis, expressions = template_parts(node, self.source)
        pieces = [unescape_js(quasis[0])]
        for expr, quasi in zip(expressions, quasis[1:]):
            text = to_js_string(self.resolve(expr, scope))
            if text is UNRESOLVABLE:
                return UNRESOLVABLE
            pieces.append(text)
            pieces.append(unescape_js(quasi))
        return ''.join(pieces)

    def resolve_partial_template(self, node, scope: Scope) -> str:
        """Substitute what resolves in a template literal, keep the rest raw."""
        quasis, expressions = template_parts(node, self.source)
        pieces = [unescape_js(quasis[0])]
        for expr, quasi in zip(expressions, quasis[1:]):
            text = to_js_string(self.resolve(expr, scope)) if expr is not None else UNRESOLVABLE
            if text is UNRESOLVABLE:
                pieces.append('${' + (node_text(expr, self.source) if expr is not None else '') + '}')
            else:
                pieces.append(text)
            pieces.append(unescape_js(quasi))
        return ''.join(pieces)

    def _resolve_array(self, node, scope):
        if _has_hole(node):
            return UNRESOLVABLE
        values = []
        for element in named_children(node):
            if element.type == 'spread_element':
                spread = self.resolve(first_named_child(element), scope)
                if not isinstance(spread, list):
                    return UNRESOLVABLE
                values.extend(spread)
                continue
            value = self.resolve(element, scope)
            if value is UNRESOLVABLE:
                return UNRESOLVABLE
            values.append(value)
        return values

    def _resolve_object(self, node, scope):
        result = {}
        for prop in named_children(node):
            if prop.type == 'pair':
                key = self._property_key(prop.child_by_field_name('key'))
                if key is UNRESOLVABLE:
                    continue
                value = self.resolve(prop.child_by_field_name('value'), scope)
                if value is not UNRESOLVABLE:
                    result[key] = value
            elif prop.type == 'shorthand_property_identifier':
                name = node_text(prop, self.source)
                value = scope.lookup(name)
                if value is not UNRESOLVABLE:
                    result[name] = value
            elif prop.type == 'spread_element':
                spread = self.resolve(first_named_child(prop), scope)
                if isinstance(spread, dict):
                    result.update(spread)
        return result

    def _property_key(self, key_node) -> Any:
        if key_node is None:
            return UNRESOLVABLE
        if key_node.type in ('property_identifier', 'identifier'):
            return node_text(key_node, self.source)
        if key_node.type == 'string':
            return string_value(key_node, self.source)
        if key_node.type == 'number':
            value = parse_number(node_text(key_node, self.source))
            return UNRESOLVABLE if value is UNRESOLVABLE else to_js_string(value)
        # computed_property_name and private names
        return UNRESOLVABLE

    def _resolve_binary_expression(self, node, scope):
        operator = node.child_by_field_name('operator')
        if operator is None or node_text(operator, self.source) != '+':
            return UNRESOLVABLE
        left = self.resolve(node.child_by_field_name('left'), scope)
        right = self.resolve(node.child_by_field_name('right'), scope)
        if not (isinstance(left, str) or isinstance(right, str)):
            return UNRESOLVABLE
        left_text, right_text = to_js_string(left), to_js_string(right)
        if left_text is UNRESOLVABLE or right_text is UNRESOLVABLE:
            return UNRESOLVABLE
        return left_text + right_text

    def _resolve_member_expression(self, node, scope):
        obj = self.resolve(node.child_by_field_name('object'), scope)
        prop = node.child_by_field_name('property')
        if obj is UNRESOLVABLE or prop is None or prop.type != 'property_identifier':
            return UNRESOLVABLE
        return self._get_property(obj, node_text(prop, self.source))

    def _resolve_subscript_expression(self, node, scope):
        obj = self.resolve(node.child_by_field_name('object'), scope)
        if obj is UNRESOLVABLE:
            return UNRESOLVABLE
        index = self.resolve(node.child_by_field_name('index'), scope)
        if isinstance(index, bool) or index is UNRESOLVABLE:
            return UNRESOLVABLE
        if isinstance(obj, (list, str)) and isinstance(index, (int, float)):
            if isinstance(index, float):
                if not index.is_integer():
                    return UNRESOLVABLE
                index = int(index)
            if 0 <= index < len(obj):
                return obj[index]
            return UNRESOLVABLE
        if isinstance(index, (int, float)):
            index = to_js_string(index)
        if isinstance(index, str):
            return self._get_property(obj, index)
        return UNRESOLVABLE

    def _get_property(self, obj: Any, name: str) -> Any:
        if isinstance(obj, ClassRef):
            return obj.name if name == 'name' else UNRESOLVABLE
        if isinstance(obj, dict):
            return obj.get(name, UNRESOLVABLE)
        if isinstance(obj, (list, str)):
            if name == 'length':
                return len(obj)
            if name.isdigit() and int(name) < len(obj):
                return obj[int(name)]
        return UNRESOLVABLE

    # --- destructuring -------------------------------------------------

    def bind_pattern(self, pattern, value: Any, scope: Scope) -> None:
        """Bind the names of a declaration/parameter pattern against a value.

        Names whose value is unknown are bound to UNRESOLVABLE so they shadow
        any outer binding of the same name.
        """
        if pattern is None:
            return
        if pattern.type in ('identifier', 'shorthand_property_identifier_pattern'):
            scope.bind(node_text(pattern, self.source), value)
        elif pattern.type == 'assignment_pattern':
            if value is UNRESOLVABLE:
                value = self.resolve(pattern.child_by_field_name('right'), scope)
            self.bind_pattern(pattern.child_by_field_name('left'), value, scope)
        elif pattern.type == 'object_pattern':
            self._bind_object_pattern(pattern, value, scope)
        elif pattern.type == 'array_pattern':
            self._bind_array_pattern(pattern, value, scope)
        elif pattern.type == 'rest_pattern':
            self.bind_pattern(first_named_child(pattern), value, scope)
        elif pattern.type in ('required_parameter', 'optional_parameter'):
            self.bind_pattern(pattern.child_by_field_name('pattern'), value, scope)

    def _bind_object_pattern(self, pattern, value, scope):
        source = value if isinstance(value, dict) else None
        used = set()
        for prop in named_children(pattern):
            if prop.type == 'shorthand_property_identifier_pattern':
                name = node_text(prop, self.source)
                used.add(name)
                scope.bind(name, source.get(name, UNRESOLVABLE) if source is not None else UNRESOLVABLE)
            elif prop.type == 'pair_pattern':
                key = self._property_key(prop.child_by_field_name('key'))
                if key is not UNRESOLVABLE:
                    used.add(key)
                prop_value = UNRESOLVABLE
                if source is not None and key is not UNRESOLVABLE:
                    prop_value = source.get(key, UNRESOLVABLE)
                self.bind_pattern(prop.child_by_field_name('value'), prop_value, scope)
            elif prop.type == 'object_assignment_pattern':
                left = prop.child_by_field_name('left')
                name = node_text(left, self.source)
                used.add(name)
                prop_value = source.get(name, UNRESOLVABLE) if source is not None else UNRESOLVABLE
                if prop_value is UNRESOLVABLE and source is not None:
                    prop_value = self.resolve(prop.child_by_field_name('right'), scope)
                self.bind_pattern(left, prop_value, scope)
            elif prop.type == 'rest_pattern':
                rest = UNRESOLVABLE
                if source is not None:
                    rest = {k: v for k, v in source.items() if k not in used}
                self.bind_pattern(first_named_child(prop), rest, scope)

    def _bind_array_pattern(self, pattern, value, scope):
        items = value if isinstance(value, list) else None
        index = 0
        for child in pattern.children:
            if child.type == ',':
                index += 1
                continue
            if not child.is_named or child.type == 'comment':
                continue
            if child.type == 'rest_pattern':
                rest = items[index:] if items is not None else UNRESOLVABLE
                self.bind_pattern(first_named_child(child), rest, scope)
                continue
            item = UNRESOLVABLE
            if items is not None and index < len(items):
                item = items[index]
            self.bind_pattern(child, item, scope)

    def pattern_names(self, pattern) -> List[str]:
        """All local names introduced by a pattern."""
        if pattern is None:
            return []
        if pattern.type in ('identifier', 'shorthand_property_identifier_pattern'):
            return [node_text(pattern, self.source)]
        if pattern.type == 'pair_pattern':
            return self.pattern_names(pattern.child_by_field_name('value'))
        if pattern.type in ('assignment_pattern', 'object_assignment_pattern'):
            return self.pattern_names(pattern.child_by_field_name('left'))
        if pattern.type in ('required_parameter', 'optional_parameter'):
            return self.pattern_names(pattern.child_by_field_name('pattern'))
        names = []
        for child in named_children(pattern):
            names.extend(self.pattern_names(child))
        return names
