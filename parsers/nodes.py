"""Test Tree data model shared by the walker and the reconciliation engine."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional


class NodeKind(str, Enum):
    ROOT = "root"
    SUITE = "suite"
    CASE = "case"
    ASSERTION = "assertion"


@dataclass(frozen=True)
class Span:
    """One-based source range (columns are one-based and inclusive)."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "startLine": self.start_line,
            "startColumn": self.start_column,
            "endLine": self.end_line,
            "endColumn": self.end_column,
        }


class TestNode:
    """One declaration found in source.

    Nodes compare and hash by identity so they can key outcome maps.
    """

    __test__ = False  # keep pytest from collecting this class

    def __init__(
        self,
        kind: NodeKind,
        file: str,
        display_name: str = "",
        span: Optional[Span] = None,
        parent: Optional['TestNode'] = None,
    ):
        self.kind = kind
        self.file = file
        self.display_name = display_name
        self.span = span
        self.parent = parent
        self.children: List['TestNode'] = []
        self.raw_template: Optional[str] = None
        self.name_span: Optional[Span] = None
        self.last_property: Optional[str] = None
        self.name_type: Optional[str] = None

    def __repr__(self) -> str:
        line = self.span.start_line if self.span else None
        return f"TestNode({self.kind.value}, {self.display_name!r}, line={line})"

    def add_child(self, kind: NodeKind) -> 'TestNode':
        if kind == NodeKind.ROOT:
            raise TypeError(f"unexpected child node type: {kind.value}")
        child = TestNode(kind, self.file, parent=self)
        self.children.append(child)
        return child

    def filter(self, predicate: Callable[['TestNode'], bool], include_self: bool = False) -> List['TestNode']:
        """Depth-first, source-ordered list of descendants matching predicate."""
        found = []
        if include_self and predicate(self):
            found.append(self)
        for child in self.children:
            found.extend(child.filter(predicate, include_self=True))
        return found

    def iter_cases(self) -> Iterator['TestNode']:
        for child in self.children:
            if child.kind == NodeKind.CASE:
                yield child
            yield from child.iter_cases()

    def ancestor_titles(self) -> List[str]:
        """Display names of the enclosing suites, outermost first."""
        titles = []
        current = self.parent
        while current is not None and current.kind != NodeKind.ROOT:
            if current.kind == NodeKind.SUITE:
                titles.insert(0, current.display_name)
            current = current.parent
        return titles

    def full_name(self) -> str:
        return " ".join(self.ancestor_titles() + [self.display_name])

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value, "name": self.display_name}
        if self.span is not None:
            data["span"] = self.span.to_dict()
        if self.raw_template is not None:
            data["rawTemplate"] = self.raw_template
        if self.last_property:
            data["lastProperty"] = self.last_property
        if self.children:
            data["children"] = [c.to_dict() for c in self.children]
        return data


class ParseResult:
    """Result of discovering tests in a single file."""

    def __init__(self, file: str):
        self.file = file
        self.root = TestNode(NodeKind.ROOT, file)
        self.suites: List[TestNode] = []
        self.cases: List[TestNode] = []
        self.assertions: List[TestNode] = []
        self.errors: List[str] = []

    def add_node(self, node: TestNode) -> None:
        if node.kind == NodeKind.SUITE:
            self.suites.append(node)
        elif node.kind == NodeKind.CASE:
            self.cases.append(node)
        elif node.kind == NodeKind.ASSERTION:
            self.assertions.append(node)
        else:
            raise TypeError(f"unexpected node kind '{node.kind.value}'")

    @property
    def ok(self) -> bool:
        return not self.errors
