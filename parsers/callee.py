"""Classification of test-framework call shapes.

Every statement call is mapped onto one closed set of variants so a new
runner-specific shape is one more entry in the tables below.
"""

from enum import Enum
from typing import List, NamedTuple, Optional, Tuple

from parsers.syntax import call_arguments, node_text

SUITE_ROOTS = frozenset({'describe', 'fdescribe', 'xdescribe', 'suite'})
CASE_ROOTS = frozenset({'it', 'test', 'fit', 'xit', 'xtest'})

# Trailing properties that still declare a suite or a case
SUITE_MODIFIERS = frozenset({
    'describe', 'only', 'skip', 'todo', 'each', 'concurrent', 'sequential',
    'shuffle', 'skipIf', 'runIf', 'parallel', 'serial', 'fixme',
})
CASE_MODIFIERS = frozenset({
    'only', 'skip', 'todo', 'each', 'concurrent', 'sequential', 'fails',
    'failing', 'fail', 'fixme', 'skipIf', 'runIf', 'serial', 'parallel', 'test',
})
IGNORED_MODIFIERS = frozenset({'step'})


class CallKind(Enum):
    SUITE = "suite"
    CASE = "case"
    SUITE_EACH = "suite_each"
    CASE_EACH = "case_each"
    ASSERTION = "assertion"
    IGNORED = "ignored"
    UNRECOGNIZED = "unrecognized"


class CallShape(NamedTuple):
    kind: CallKind
    root: Optional[str] = None
    last_property: Optional[str] = None
    modifiers: Tuple[str, ...] = ()


def innermost_callee(call):
    """Follow `f(a)(b)` chains down to the callee that is not itself a call."""
    callee = call.child_by_field_name('function')
    while callee is not None and callee.type == 'call_expression':
        callee = callee.child_by_field_name('function')
    return callee


def callee_chain(call, source: bytes) -> Tuple[Optional[str], List[str]]:
    """Root identifier and property names of the innermost callee.

    `test.describe.only(...)` gives ('test', ['describe', 'only']).
    """
    node = innermost_callee(call)
    properties: List[str] = []
    while node is not None and node.type == 'member_expression':
        prop = node.child_by_field_name('property')
        if prop is None:
            return None, properties
        properties.insert(0, node_text(prop, source))
        node = node.child_by_field_name('object')
    if node is not None and node.type == 'identifier':
        return node_text(node, source), properties
    return None, properties


def is_expect_chain(call, source: bytes) -> bool:
    """True for `expect(...)...` chains and `expect.*(...)` helpers."""
    node = call
    while node is not None:
        if node.type == 'identifier':
            return node_text(node, source) == 'expect'
        if node.type == 'call_expression':
            node = node.child_by_field_name('function')
        elif node.type == 'member_expression':
            node = node.child_by_field_name('object')
        elif node.type == 'await_expression':
            node = node.named_children[0] if node.named_children else None
        else:
            return False
    return False


def classify_call(call, source: bytes) -> CallShape:
    root, properties = callee_chain(call, source)
    last = properties[-1] if properties else None
    modifiers = tuple(properties)
    has_args = bool(call_arguments(call))

    if root in SUITE_ROOTS or (root in CASE_ROOTS and 'describe' in properties):
        if has_args and (last is None or last in SUITE_MODIFIERS):
            kind = CallKind.SUITE_EACH if last == 'each' else CallKind.SUITE
            return CallShape(kind, root, last, modifiers)
        return CallShape(CallKind.UNRECOGNIZED, root, last, modifiers)

    if root in CASE_ROOTS or (root == 'Deno' and properties[:1] == ['test']):
        if any(p in IGNORED_MODIFIERS for p in properties):
            return CallShape(CallKind.IGNORED, root, last, modifiers)
        if root == 'Deno':
            properties = properties[1:]
        if has_args and all(p in CASE_MODIFIERS for p in properties):
            kind = CallKind.CASE_EACH if last == 'each' else CallKind.CASE
            return CallShape(kind, root, last, modifiers)
        return CallShape(CallKind.UNRECOGNIZED, root, last, modifiers)

    if is_expect_chain(call, source):
        return CallShape(CallKind.ASSERTION, root, last, modifiers)

    return CallShape(CallKind.UNRECOGNIZED, root, last, modifiers)
