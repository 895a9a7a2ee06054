#!/usr/bin/env python3
"""
testlens CLI - Command-line interface for test discovery and reconciliation.

Usage:
    testlens discover <file> [--json] [--strict]        # Print the Test Tree
    testlens reconcile <file> <output> [--format <fmt>]  # Outcomes of a run
    testlens name-at <file> <line>                       # Filter pattern for a line
"""

import argparse
import json
import re
import sys
from pathlib import Path

from naming import find_full_test_name
from parsers.nodes import NodeKind, TestNode
from parsers.registry import parse_test_file
from reconciliation import FAILED, reconcile
from results import parse_junit_xml, parse_results_document, parse_tap_output
from testlens_base import Settings, configure_logging, load_settings

KIND_LABELS = {
    NodeKind.SUITE: "describe",
    NodeKind.CASE: "it",
    NodeKind.ASSERTION: "expect",
}

STATUS_LABELS = {
    "passed": "PASS",
    "failed": "FAIL",
    "skipped": "SKIP",
}

TAP_LINE_RE = re.compile(r'^(not )?ok\s+\d+', re.MULTILINE)


def _parse(args, settings: Settings):
    """Parse the test file named by args.file; None after printing an error."""
    path = Path(args.file)
    if not path.exists():
        print(f"Error: Path does not exist: {path}", file=sys.stderr)
        return None

    strict = getattr(args, "strict", False) or settings.strict_mode
    try:
        result = parse_test_file(path, strict=strict)
    except TypeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return None

    if result.errors:
        for error in result.errors:
            print(f"Error: {error}", file=sys.stderr)
        return None
    return result


def _print_node(node: TestNode, depth: int, assertions: bool) -> None:
    label = KIND_LABELS.get(node.kind, node.kind.value)
    line = node.span.start_line if node.span else "?"
    if node.kind == NodeKind.ASSERTION:
        print(f"{'  ' * depth}[{label}] line {line}")
    else:
        suffix = f" .{node.last_property}" if node.last_property and node.last_property != "each" else ""
        print(f"{'  ' * depth}[{label}] {node.display_name}{suffix}  (line {line})")
    for child in node.children:
        if assertions or child.kind != NodeKind.ASSERTION:
            _print_node(child, depth + 1, assertions)


def cmd_discover(args, settings: Settings):
    """Print the tests declared in a file."""
    result = _parse(args, settings)
    if result is None:
        return 1

    if args.json:
        print(json.dumps({"file": result.file, "tree": result.root.to_dict()}, indent=2))
        return 0

    print(result.file)
    for child in result.root.children:
        if args.assertions or child.kind != NodeKind.ASSERTION:
            _print_node(child, 1, args.assertions)
    print(f"\n{len(result.suites)} suites, {len(result.cases)} tests")
    return 0


def _read_output(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8", errors="replace")


def _load_document(text: str, fmt: str, file_path: str):
    """Result document for the requested format, or the raw text to scan."""
    if fmt == "jest":
        return parse_results_document(text) or text
    if fmt == "vitest":
        return parse_results_document(text, vitest=True) or text
    if fmt == "tap":
        return parse_tap_output(text, file_path)
    if fmt == "junit":
        return parse_junit_xml(text) or text

    document = parse_results_document(text)
    if document is None:
        document = parse_junit_xml(text)
    if document is None and TAP_LINE_RE.search(text):
        document = parse_tap_output(text, file_path)
    return document if document is not None else text


def cmd_reconcile(args, settings: Settings):
    """Match the tests of a file against captured runner output."""
    result = _parse(args, settings)
    if result is None:
        return 1

    try:
        text = _read_output(args.output)
    except OSError as e:
        print(f"Error: Could not read {args.output}: {e}", file=sys.stderr)
        return 1

    document = _load_document(text, args.format, result.file)
    outcomes = reconcile(result.cases, document, file_path=result.file, settings=settings)

    failed = 0
    for node in result.cases:
        outcome = outcomes[node]
        print(f"{STATUS_LABELS[outcome.status]}  {node.full_name()}")
        if outcome.status == FAILED:
            failed += 1
            for line in (outcome.failure_text or "").splitlines():
                print(f"      {line}")

    counts = {status: sum(1 for o in outcomes.values() if o.status == status) for status in STATUS_LABELS}
    print(f"\n{counts['passed']} passed, {counts['failed']} failed, {counts['skipped']} skipped")
    return 1 if failed else 0


def cmd_name_at(args, settings: Settings):
    """Print the test name pattern of the declaration at a line."""
    result = _parse(args, settings)
    if result is None:
        return 1

    name = find_full_test_name(args.line, result.root)
    if name is None:
        print(f"Error: No test found at line {args.line}", file=sys.stderr)
        return 1
    print(name)
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="testlens",
        description="testlens - Static JS/TS test discovery and result reconciliation"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    strict_help = "Reject files whose extension has no matching grammar"

    # discover
    p_discover = subparsers.add_parser("discover", help="Print the tests declared in a file")
    p_discover.add_argument("file", help="Test file (.js, .jsx, .ts, .tsx, ...)")
    p_discover.add_argument("--json", action="store_true", help="Output the Test Tree as JSON")
    p_discover.add_argument("--assertions", action="store_true", help="Include expect() assertions")
    p_discover.add_argument("--strict", action="store_true", help=strict_help)

    # reconcile
    p_reconcile = subparsers.add_parser("reconcile", help="Match tests against runner output",
        description="""
Match the tests of a file against the output of a test run.

Formats:
  auto    Detect Jest/Vitest JSON, JUnit XML or TAP (default)
  jest    Jest --json output (may be mixed with log lines)
  vitest  Vitest --reporter=json output
  tap     TAP from the Node.js test runner
  junit   JUnit XML report

Output that is none of these is scanned for failure markers.

Examples:
  npx jest --json math.test.js > out.json
  testlens reconcile math.test.js out.json
  node --test --test-reporter=tap math.test.js | testlens reconcile math.test.js - --format tap
""",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    p_reconcile.add_argument("file", help="Test file")
    p_reconcile.add_argument("output", help="Captured runner output ('-' for stdin)")
    p_reconcile.add_argument("--format", choices=["auto", "jest", "vitest", "tap", "junit"], default="auto",
                             help="Runner output format (default: auto)")
    p_reconcile.add_argument("--strict", action="store_true", help=strict_help)

    # name-at
    p_name_at = subparsers.add_parser("name-at", help="Print the test name pattern for a line")
    p_name_at.add_argument("file", help="Test file")
    p_name_at.add_argument("line", type=int, help="One-based line number")
    p_name_at.add_argument("--strict", action="store_true", help=strict_help)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    settings = load_settings()
    configure_logging(settings)

    commands = {
        "discover": cmd_discover,
        "reconcile": cmd_reconcile,
        "name-at": cmd_name_at,
    }

    return commands[args.command](args, settings)


if __name__ == "__main__":
    sys.exit(main())
