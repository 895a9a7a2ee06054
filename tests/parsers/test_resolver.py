"""Tests for the scoped constant resolver."""

import pytest

from parsers.resolver import UNRESOLVABLE, ClassRef, Scope, parse_number, to_js_string

pytest.importorskip("tree_sitter")
tsjs = pytest.importorskip("tree_sitter_javascript")

from tree_sitter import Language, Parser

from parsers.resolver import ConstantResolver


@pytest.fixture(scope="module")
def ts_parser():
    return Parser(Language(tsjs.language()))


def resolve(ts_parser, expression, scope=None):
    """Resolve `expression` as the initializer of a declaration."""
    source = f"const __value = {expression};".encode("utf-8")
    tree = ts_parser.parse(source)
    declarator = tree.root_node.named_children[0].named_children[0]
    value = declarator.child_by_field_name("value")
    return ConstantResolver(source).resolve(value, scope or Scope())


class TestScope:
    """Tests for binding frames."""

    def test_lookup_walks_outwards(self):
        outer = Scope()
        outer.bind("a", 1)
        inner = outer.child()
        inner.bind("b", 2)

        assert inner.lookup("a") == 1
        assert inner.lookup("b") == 2
        assert outer.lookup("b") is UNRESOLVABLE

    def test_child_bindings_do_not_leak(self):
        """Siblings and the parent never see a child's bindings."""
        parent = Scope()
        parent.bind("x", "parent")
        first = parent.child()
        second = parent.child()
        first.bind("x", "first")

        assert first.lookup("x") == "first"
        assert second.lookup("x") == "parent"
        assert parent.lookup("x") == "parent"

    def test_shadowing_with_unresolvable(self):
        """An unknown inner binding hides the outer value."""
        outer = Scope()
        outer.bind("x", "outer")
        inner = outer.child()
        inner.bind("x", UNRESOLVABLE)

        assert "x" not in inner
        assert "x" in outer

    def test_each_row_flag_is_inherited(self):
        row = Scope().child(in_each_row=True)

        assert row.child().in_each_row
        assert not Scope().child().in_each_row


class TestLiterals:
    """Tests for literal expressions."""

    def test_strings_and_numbers(self, ts_parser):
        assert resolve(ts_parser, "'single'") == "single"
        assert resolve(ts_parser, '"dou\\"ble"') == 'dou"ble'
        assert resolve(ts_parser, "42") == 42
        assert resolve(ts_parser, "1.5") == 1.5
        assert resolve(ts_parser, "0xff") == 255
        assert resolve(ts_parser, "1_000") == 1000

    def test_keywords(self, ts_parser):
        assert resolve(ts_parser, "true") is True
        assert resolve(ts_parser, "false") is False
        assert resolve(ts_parser, "null") is None
        assert resolve(ts_parser, "undefined") is UNRESOLVABLE

    def test_template_without_substitutions(self, ts_parser):
        assert resolve(ts_parser, "`plain text`") == "plain text"

    def test_arrays_and_objects(self, ts_parser):
        assert resolve(ts_parser, "[1, 'two', [3]]") == [1, "two", [3]]
        assert resolve(ts_parser, "{ a: 1, 'b-c': 'x', 3: true }") == {"a": 1, "b-c": "x", "3": True}

    def test_unresolvable_element_poisons_array(self, ts_parser):
        assert resolve(ts_parser, "[1, compute()]") is UNRESOLVABLE

    def test_object_skips_unknown_keys_and_values(self, ts_parser):
        """Computed keys and unknown values are left out of objects."""
        assert resolve(ts_parser, "{ [key]: 1, known: 2, later: call() }") == {"known": 2}

    def test_array_holes(self, ts_parser):
        """Elided elements are undefined, which has no value here."""
        assert resolve(ts_parser, "[1, , 2]") is UNRESOLVABLE
        assert resolve(ts_parser, "[, 1]") is UNRESOLVABLE
        assert resolve(ts_parser, "[1, 2,]") == [1, 2]
        assert resolve(ts_parser, "[]") == []

    def test_octal_concatenation(self, ts_parser):
        assert resolve(ts_parser, "'v' + 010") is UNRESOLVABLE

    def test_spread(self, ts_parser):
        scope = Scope()
        scope.bind("base", [1, 2])
        scope.bind("defaults", {"a": 1})

        assert resolve(ts_parser, "[...base, 3]", scope) == [1, 2, 3]
        assert resolve(ts_parser, "{ ...defaults, b: 2 }", scope) == {"a": 1, "b": 2}


class TestExpressions:
    """Tests for identifiers, member access and concatenation."""

    def test_identifier_lookup(self, ts_parser):
        scope = Scope()
        scope.bind("name", "value")

        assert resolve(ts_parser, "name", scope) == "value"
        assert resolve(ts_parser, "missing", scope) is UNRESOLVABLE

    def test_template_substitution(self, ts_parser):
        scope = Scope()
        scope.bind("row", {"id": 7, "tags": ["a", "b"]})

        assert resolve(ts_parser, "`id ${row.id}`", scope) == "id 7"
        assert resolve(ts_parser, "`tags ${row.tags}`", scope) == "tags a,b"
        assert resolve(ts_parser, "`id ${row.missing}`", scope) is UNRESOLVABLE

    def test_member_and_index_access(self, ts_parser):
        scope = Scope()
        scope.bind("data", {"items": ["x", "y"], "nested": {"key": "v"}})

        assert resolve(ts_parser, "data.items[1]", scope) == "y"
        assert resolve(ts_parser, "data['nested'].key", scope) == "v"
        assert resolve(ts_parser, "data.items.length", scope) == 2
        assert resolve(ts_parser, "data.items[5]", scope) is UNRESOLVABLE

    def test_class_name(self, ts_parser):
        scope = Scope()
        scope.bind("Widget", ClassRef("Widget"))

        assert resolve(ts_parser, "Widget.name", scope) == "Widget"
        assert resolve(ts_parser, "Widget.other", scope) is UNRESOLVABLE
        assert resolve(ts_parser, "`${Widget}`", scope) is UNRESOLVABLE

    def test_string_concatenation(self, ts_parser):
        scope = Scope()
        scope.bind("n", 2)

        assert resolve(ts_parser, "'a' + 'b'", scope) == "ab"
        assert resolve(ts_parser, "'n=' + n", scope) == "n=2"
        assert resolve(ts_parser, "n + 1", scope) is UNRESOLVABLE
        assert resolve(ts_parser, "'a' - 'b'", scope) is UNRESOLVABLE

    def test_execution_is_never_attempted(self, ts_parser):
        """Calls and conditionals stay unresolved."""
        assert resolve(ts_parser, "String(1)") is UNRESOLVABLE
        assert resolve(ts_parser, "true ? 'a' : 'b'") is UNRESOLVABLE
        assert resolve(ts_parser, "[1, 2].map((n) => n)") is UNRESOLVABLE

    def test_parentheses_are_transparent(self, ts_parser):
        assert resolve(ts_parser, "('wrapped')") == "wrapped"


class TestJsString:
    """Tests for JavaScript String() conversion."""

    def test_scalars(self):
        assert to_js_string(True) == "true"
        assert to_js_string(None) == "null"
        assert to_js_string(3) == "3"
        assert to_js_string(3.0) == "3"
        assert to_js_string(0.5) == "0.5"
        assert to_js_string(float("nan")) == "NaN"

    def test_containers(self):
        assert to_js_string([1, None, "x"]) == "1,,x"
        assert to_js_string({"a": 1}) == "[object Object]"

    def test_unresolvable(self):
        assert to_js_string(UNRESOLVABLE) is UNRESOLVABLE
        assert to_js_string(ClassRef("A")) is UNRESOLVABLE


class TestParseNumber:
    """Tests for numeric literal parsing."""

    def test_radix_prefixes(self):
        assert parse_number("0b101") == 5
        assert parse_number("0o17") == 15
        assert parse_number("10n") == 10

    def test_floats(self):
        assert parse_number("1e3") == 1000.0
        assert parse_number(".5") == 0.5

    def test_invalid(self):
        assert parse_number("0xZZ") is UNRESOLVABLE

    def test_legacy_octal(self):
        """Leading-zero literals are not read as decimal."""
        assert parse_number("010") is UNRESOLVABLE
        assert parse_number("08") is UNRESOLVABLE
        assert parse_number("0") == 0
        assert parse_number("0.5") == 0.5
        assert parse_number("0e2") == 0.0
