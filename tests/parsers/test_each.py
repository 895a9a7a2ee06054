"""Tests for table row title formatting."""

from parsers.each import format_title
from parsers.resolver import ClassRef


class TestPrintfSpecifiers:
    """Tests for printf-style substitution."""

    def test_string_and_numbers(self):
        assert format_title("test %s", 1, 0) == "test 1"
        assert format_title("%s + %d = %i", ["a", "2", 3.7], 0) == "a + 2 = 3"
        assert format_title("%f", [1.5], 0) == "1.5"

    def test_scalar_row_fills_first_specifier(self):
        """A non-list row is the single argument."""
        assert format_title("value %s and %s", "x", 0) == "value x and %s"

    def test_extra_row_values_are_ignored(self):
        assert format_title("only %s", ["a", "b"], 0) == "only a"

    def test_json_and_inspect(self):
        assert format_title("%j", [{"a": 1, "b": [1, 2]}], 0) == '{"a":1,"b":[1,2]}'
        assert format_title("%o", [{"a": "x"}], 0) == "{ a: 'x' }"
        assert format_title("%s", [[1, 2]], 0) == "[ 1, 2 ]"

    def test_pretty_format(self):
        assert format_title("%p", [{"a": "x"}], 0) == '{"a": "x"}'
        assert format_title("%p", ["text"], 0) == '"text"'

    def test_not_a_number(self):
        assert format_title("%d", ["abc"], 0) == "NaN"
        assert format_title("%i", ["12px"], 0) == "12"

    def test_literal_percent(self):
        assert format_title("100%% of %s", ["runs"], 0) == "100% of runs"

    def test_style_specifier_is_dropped(self):
        assert format_title("%c%s", ["color: red", "text"], 0) == "text"


class TestIndexAndVariables:
    """Tests for `%#`, `$variable` and `${path}` placeholders."""

    def test_row_index(self):
        assert format_title("test %#: %s", ["a"], 0) == "test 0: a"
        assert format_title("case %#", {"x": 1}, 4) == "case 4"
        assert format_title("case %$", {"x": 1}, 4) == "case 5"
        assert format_title("row $#", {"x": 1}, 2) == "row 2"

    def test_object_variables(self):
        row = {"a": 1, "b": 2, "expected": 3}
        assert format_title("add $a + $b = $expected", row, 0) == "add 1 + 2 = 3"

    def test_nested_paths(self):
        row = {"user": {"name": "ann", "roles": ["admin"]}}
        assert format_title("$user.name is ${user.roles}", row, 0) == 'ann is ["admin"]'

    def test_longest_known_prefix_keeps_the_rest(self):
        """`$file.js` reads `file` when `file.js` is not a path on the row."""
        assert format_title("loads $file.js", {"file": "main"}, 0) == "loads main.js"

    def test_unknown_variables_stay(self):
        assert format_title("$missing and $a", {"a": "x"}, 0) == "$missing and x"

    def test_variables_need_object_rows(self):
        assert format_title("value $a", [1], 0) == "value $a"

    def test_value_rendering(self):
        row = {"flag": True, "none": None, "text": "plain", "cls": ClassRef("Thing")}
        title = format_title("$flag $none $text $cls", row, 0)
        assert title == "true null plain [class Thing]"

    def test_empty_template(self):
        assert format_title("", [1], 0) == ""
