"""Tests for runner result documents."""

import json
from textwrap import dedent

import pytest

from results import (
    AssertionResult,
    FileResult,
    Location,
    ResultsDocument,
    convert_vitest_results,
    extract_json_from_output,
    parse_junit_xml,
    parse_results_document,
    parse_tap_output,
)

JEST_JSON = {
    "numFailedTestSuites": 1,
    "numFailedTests": 1,
    "numPassedTests": 1,
    "numTotalTests": 2,
    "success": False,
    "testResults": [{
        "name": "/repo/math.test.js",
        "status": "failed",
        "assertionResults": [
            {
                "ancestorTitles": ["math"],
                "title": "adds",
                "fullName": "math adds",
                "status": "passed",
                "duration": 4,
                "location": {"line": 3, "column": 5},
            },
            {
                "ancestorTitles": ["math"],
                "title": "divides {by} zero",
                "fullName": "math divides {by} zero",
                "status": "failed",
                "failureMessages": ["Error: expected \"}\""],
            },
        ],
    }],
}


class TestAssertionResult:
    """Tests for the result data model."""

    def test_from_dict(self):
        result = AssertionResult.from_dict(JEST_JSON["testResults"][0]["assertionResults"][0])

        assert result.title == "adds"
        assert result.ancestor_titles == ["math"]
        assert result.full_name == "math adds"
        assert result.location == Location(3, 5)
        assert result.duration == 4

    def test_from_dict_is_tolerant(self):
        """Missing or mistyped fields become defaults."""
        result = AssertionResult.from_dict({"title": "t", "status": "passed", "location": "here", "failureMessages": None})

        assert result.location is None
        assert result.failure_messages == []
        assert result.ancestor_titles == []

    def test_null_fields_are_empty(self):
        """JSON null never becomes the text "None"."""
        result = AssertionResult.from_dict({"title": None, "status": None})
        file_result = FileResult.from_dict({"name": None, "assertionResults": []})

        assert result.title == ""
        assert result.status == ""
        assert file_result.name == ""

    def test_document_round_trip(self):
        doc = ResultsDocument.from_dict(JEST_JSON)

        assert doc.success is False
        assert doc.summary["numTotalTests"] == 2
        assert len(doc.all_assertions()) == 2
        assert ResultsDocument.from_dict(doc.to_dict()) == doc


class TestParseResultsDocument:
    """Tests for JSON output parsing."""

    def test_clean_json(self):
        doc = parse_results_document(json.dumps(JEST_JSON))

        assert doc is not None
        assert [r.title for r in doc.all_assertions()] == ["adds", "divides {by} zero"]

    def test_json_after_log_lines(self):
        """Wrapper log lines before the JSON are skipped."""
        output = "> nx run app:test\nDetermining test suites...\n" + json.dumps(JEST_JSON) + "\nDone in 2.1s"

        doc = parse_results_document(output)

        assert doc is not None
        assert doc.all_assertions()[1].failure_messages == ['Error: expected "}"']

    def test_braces_inside_strings(self):
        text = 'noise {"testResults": [{"name": "a}", "assertionResults": []}]} trailing {'

        assert extract_json_from_output(text) == '{"testResults": [{"name": "a}", "assertionResults": []}]}'

    def test_not_results(self):
        assert parse_results_document("PASS src/math.test.js\n  ✓ adds (3 ms)") is None
        assert parse_results_document('{"other": 1}') is None
        assert parse_results_document("") is None

    def test_vitest_counters(self):
        data = {"testResults": [], "numFailedTests": 0}
        converted = convert_vitest_results(data)

        assert converted["numFailedTestSuites"] == 0
        assert converted["numTotalTests"] == 0
        assert converted["success"] is True

    def test_vitest_output(self):
        doc = parse_results_document(json.dumps({"testResults": [], "numFailedTests": 2}), vitest=True)

        assert doc.success is False
        assert doc.summary["numPassedTests"] == 0


class TestTapOutput:
    """Tests for TAP parsing."""

    TAP = dedent("""\
        TAP version 13
        # Subtest: math
        ok 1 - math > adds
          ---
          duration_ms: 1.25
          line: 4
          column: 3
          ...
        not ok 2 - math > divides
          ---
          duration_ms: 0.5
          error: |-
            Expected 1
            Received 2
          line: 8
          ...
        ok 3 - skipped one # SKIP not ready
        ok 4 - later # TODO
        ok 5
        1..5
        """)

    def test_statuses_and_names(self):
        doc = parse_tap_output(self.TAP, "math.test.js")
        results = doc.all_assertions()

        assert [r.status for r in results] == ["passed", "failed", "skipped", "todo", "passed"]
        assert [r.title for r in results] == ["adds", "divides", "skipped one", "later", "Test 5"]
        assert results[0].ancestor_titles == ["math"]
        assert results[0].full_name == "math > adds"

    def test_diagnostics(self):
        results = parse_tap_output(self.TAP, "math.test.js").all_assertions()

        assert results[0].duration == 1.25
        assert results[0].location == Location(4, 3)
        assert results[1].failure_messages == ["Expected 1\nReceived 2"]
        assert results[1].location == Location(8, 0)

    def test_document_shape(self):
        doc = parse_tap_output(self.TAP, "math.test.js")

        assert doc.test_results[0].name == "math.test.js"
        assert doc.test_results[0].status == "failed"
        assert doc.success is False
        assert doc.summary["numPendingTests"] == 2


class TestJUnitXml:
    """Tests for JUnit XML parsing."""

    XML = dedent("""\
        <?xml version="1.0" encoding="UTF-8"?>
        <testsuites>
          <testsuite name="math">
            <testcase name="adds" file="math.test.js" time="0.004" line="3"/>
            <testcase name="divides &amp; rounds" file="math.test.js" time="0.002">
              <failure message="expected 2">AssertionError: at line 9</failure>
            </testcase>
            <testcase name="later" file="other.test.js">
              <skipped/>
            </testcase>
          </testsuite>
        </testsuites>
        """)

    def test_cases_grouped_by_file(self):
        doc = parse_junit_xml(self.XML)

        assert [f.name for f in doc.test_results] == ["math.test.js", "other.test.js"]
        assert [r.status for r in doc.all_assertions()] == ["passed", "failed", "skipped"]

    def test_failure_details(self):
        failed = parse_junit_xml(self.XML).all_assertions()[1]

        assert failed.title == "divides & rounds"
        assert failed.failure_messages == ["expected 2\nAssertionError: at line 9"]

    def test_time_and_line(self):
        passed = parse_junit_xml(self.XML).all_assertions()[0]

        assert passed.duration == pytest.approx(4.0)
        assert passed.location == Location(3, 0)

    def test_not_junit(self):
        assert parse_junit_xml("plain text") is None
        assert parse_junit_xml("<testsuite><broken") is None
