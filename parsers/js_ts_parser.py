"""JavaScript and TypeScript test discovery using tree-sitter."""

import logging
from pathlib import Path
from typing import List, Optional

try:
    import tree_sitter_javascript as tsjs
    import tree_sitter_typescript as tsts
    from tree_sitter import Language, Parser, Node
    TREE_SITTER_AVAILABLE = True
except ImportError:
    TREE_SITTER_AVAILABLE = False

from parsers.base import BaseParser
from parsers.callee import CallKind, CallShape, classify_call
from parsers.each import EachExpander
from parsers.nodes import NodeKind, ParseResult, Span, TestNode
from parsers.resolver import UNRESOLVABLE, ClassRef, ConstantResolver, Scope
from parsers.syntax import (
    call_arguments,
    find_error,
    first_named_child,
    function_body,
    function_params,
    is_function,
    named_children,
    node_span,
    node_text,
    statement_call,
    template_inner_text,
    template_parts,
    unwrap,
)

BLOCK_TYPES = ('program', 'statement_block')
DECLARATION_TYPES = ('lexical_declaration', 'variable_declaration')
CLASS_TYPES = ('class_declaration', 'abstract_class_declaration')
FUNCTION_DECLARATION_TYPES = ('function_declaration', 'generator_function_declaration')


class TestWalker:
    """Builds the Test Tree of one source file.

    One walker per parse; it holds the file's source, resolver and result.
    """

    __test__ = False  # keep pytest from collecting this class

    def __init__(self, source: bytes, file_path: str, result: ParseResult):
        self.source = source
        self.file_path = file_path
        self.result = result
        self.lines = source.split(b'\n')
        self.resolver = ConstantResolver(source)
        self.expander = EachExpander(self)

    def walk(self, block: 'Node', parent: TestNode, inherited: Scope) -> None:
        """Visit the direct statements of a block in source order.

        Expression-bodied arrow functions are walked as one-statement blocks.
        """
        if block is None:
            return
        if block.type in BLOCK_TYPES:
            statements = named_children(block)
        else:
            statements = [block]

        scope = inherited.child()
        for statement in statements:
            self.update_bindings(statement, scope)
            self._visit(statement, parent, scope)

    def walk_function(self, fn: 'Node', parent: TestNode, scope: Scope, bind_params: bool = True) -> None:
        """Walk a function body; its parameters shadow outer constants."""
        body = function_body(fn)
        if body is None:
            return
        if bind_params:
            scope = scope.child()
            for param in function_params(fn):
                for name in self.resolver.pattern_names(param):
                    scope.bind(name, UNRESOLVABLE)
        self.walk(body, parent, scope)

    def update_bindings(self, statement: 'Node', scope: Scope) -> None:
        if statement.type == 'export_statement':
            statement = statement.child_by_field_name('declaration')
            if statement is None:
                return

        if statement.type in CLASS_TYPES:
            name = statement.child_by_field_name('name')
            if name is not None:
                class_name = node_text(name, self.source)
                scope.bind(class_name, ClassRef(class_name))
        elif statement.type in FUNCTION_DECLARATION_TYPES:
            name = statement.child_by_field_name('name')
            if name is not None:
                scope.bind(node_text(name, self.source), UNRESOLVABLE)
        elif statement.type in DECLARATION_TYPES:
            for declarator in named_children(statement):
                if declarator.type != 'variable_declarator':
                    continue
                target = declarator.child_by_field_name('name')
                init = declarator.child_by_field_name('value')
                value = self.resolver.resolve(init, scope) if init is not None else UNRESOLVABLE
                self.resolver.bind_pattern(target, value, scope)

    def _visit(self, statement: 'Node', parent: TestNode, scope: Scope) -> None:
        call = statement_call(statement)
        if call is None:
            self._walk_nested(statement, parent, scope)
            return

        shape = classify_call(call, self.source)
        child: Optional[TestNode] = None
        walk_arguments = True

        if shape.kind in (CallKind.SUITE_EACH, CallKind.CASE_EACH):
            nodes = self.expander.expand(shape, call, statement, parent, scope)
            if nodes is None:
                child = self._add_unexpanded(shape, call, statement, parent, scope)
            else:
                child = nodes[0] if nodes else None
                # suite rows were walked per row; an empty table runs nothing
                walk_arguments = shape.kind == CallKind.CASE_EACH and bool(nodes)
        elif shape.kind == CallKind.SUITE:
            child = self.add_named_node(NodeKind.SUITE, parent, statement, call, scope, shape)
        elif shape.kind == CallKind.CASE:
            child = self.add_named_node(NodeKind.CASE, parent, statement, call, scope, shape)
        elif shape.kind == CallKind.ASSERTION:
            child = self.add_node(NodeKind.ASSERTION, parent, statement)
        elif shape.kind == CallKind.IGNORED:
            return

        if walk_arguments:
            for argument in call_arguments(call):
                if is_function(argument):
                    self.walk_function(argument, child or parent, scope)

    def _walk_nested(self, statement: 'Node', parent: TestNode, scope: Scope) -> None:
        """Follow function bodies that may hold declarations, keeping the parent."""
        if statement.type == 'export_statement':
            declaration = statement.child_by_field_name('declaration')
            if declaration is not None:
                self._walk_nested(declaration, parent, scope)
        elif statement.type in DECLARATION_TYPES:
            for declarator in named_children(statement):
                init = declarator.child_by_field_name('value') if declarator.type == 'variable_declarator' else None
                if init is not None and is_function(init):
                    self.walk_function(init, parent, scope)
        elif statement.type in FUNCTION_DECLARATION_TYPES:
            self.walk_function(statement, parent, scope)
        elif statement.type == 'expression_statement':
            expression = unwrap(first_named_child(statement))
            if expression is not None and expression.type == 'assignment_expression':
                right = expression.child_by_field_name('right')
                if right is not None and is_function(right):
                    self.walk_function(right, parent, scope)
        elif statement.type == 'return_statement':
            returned = unwrap(first_named_child(statement))
            while returned is not None and returned.type == 'await_expression':
                returned = unwrap(first_named_child(returned))
            if returned is not None and returned.type == 'call_expression':
                for argument in call_arguments(returned):
                    if is_function(argument):
                        self.walk_function(argument, parent, scope)

    def add_node(self, kind: NodeKind, parent: TestNode, statement: 'Node', last_property: str = None) -> TestNode:
        node = parent.add_child(kind)
        node.span = node_span(statement, self.lines)
        node.last_property = last_property
        self.result.add_node(node)
        return node

    def add_named_node(
        self,
        kind: NodeKind,
        parent: TestNode,
        statement: 'Node',
        call: 'Node',
        scope: Scope,
        shape: CallShape,
    ) -> TestNode:
        node = self.add_node(kind, parent, statement, shape.last_property)
        self.apply_name(node, call, scope)
        return node

    def _add_unexpanded(self, shape: CallShape, call: 'Node', statement: 'Node', parent: TestNode, scope: Scope) -> TestNode:
        kind = NodeKind.SUITE if shape.kind == CallKind.SUITE_EACH else NodeKind.CASE
        node = self.add_node(kind, parent, statement, shape.last_property)
        self.apply_name(node, call, scope, partial=True)
        return node

    def apply_name(self, node: TestNode, call: 'Node', scope: Scope, partial: bool = False) -> None:
        """Resolve the display name from the first argument.

        Falls back to the argument's source text (template literals without
        their backticks). With `partial`, template literals keep only the
        interpolations that do not resolve.
        """
        args = call_arguments(call)
        if not args:
            node.display_name = ''
            return

        arg = args[0]
        inner = unwrap(arg)
        node.name_type = arg.type
        node.name_span = self._name_span(arg)

        value = self.resolver.resolve(arg, scope)
        if isinstance(value, str):
            name = value
        elif isinstance(value, dict) and isinstance(value.get('name'), str):
            # Deno.test({ name: '...', fn })
            name = value['name']
        elif inner is not None and inner.type == 'template_string':
            if partial:
                name = self.resolver.resolve_partial_template(inner, scope)
            else:
                name = template_inner_text(inner, self.source)
        else:
            name = node_text(arg, self.source)
        node.display_name = name

        if scope.in_each_row and inner is not None and inner.type == 'template_string':
            _, expressions = template_parts(inner, self.source)
            if expressions:
                node.raw_template = template_inner_text(inner, self.source)

    def _name_span(self, arg: 'Node') -> Span:
        span = node_span(arg, self.lines)
        if arg.type in ('string', 'template_string'):
            return Span(span.start_line, span.start_column + 1, span.end_line, span.end_column - 1)
        return span


class JavaScriptParser(BaseParser):
    """Test discovery for JavaScript source files using tree-sitter."""

    def __init__(self):
        if not TREE_SITTER_AVAILABLE:
            raise ImportError(
                "tree-sitter and tree-sitter-javascript are required. "
                "Install with: pip install tree-sitter tree-sitter-javascript"
            )
        self._language = Language(tsjs.language())
        self._parser = Parser(self._language)

    @property
    def language(self) -> str:
        return "javascript"

    @property
    def file_extensions(self) -> List[str]:
        return [".js", ".mjs", ".cjs", ".jsx"]

    def can_parse(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self.file_extensions

    def parse_file(self, file_path: Path, source: str = None) -> ParseResult:
        """Discover the tests declared in a file.

        A syntax error stops the walk for this file: the error is recorded in
        `ParseResult.errors` and the root is left without children.
        """
        result = ParseResult(str(file_path))

        if source is None:
            try:
                source = self._read_file(file_path)
            except OSError as e:
                result.errors.append(f"Failed to read {file_path}: {e}")
                logging.warning(result.errors[-1])
                return result

        data = source.encode('utf-8')
        tree = self._parser.parse(data)

        error_node = find_error(tree.root_node)
        if error_node is not None:
            line, column = error_node.start_point[0] + 1, error_node.start_point[1] + 1
            result.errors.append(f"Syntax error in {file_path} at line {line}, column {column}")
            logging.warning(result.errors[-1])
            return result

        walker = TestWalker(data, str(file_path), result)
        walker.walk(tree.root_node, result.root, Scope())
        return result

    def _read_file(self, file_path: Path) -> str:
        """Read file with encoding handling."""
        encodings = ["utf-8", "utf-8-sig", "latin-1"]
        for encoding in encodings:
            try:
                return file_path.read_text(encoding=encoding)
            except UnicodeDecodeError:
                continue
        return file_path.read_text(encoding="utf-8", errors="ignore")


class TypeScriptParser(JavaScriptParser):
    """Test discovery for TypeScript source files using tree-sitter."""

    def __init__(self):
        if not TREE_SITTER_AVAILABLE:
            raise ImportError(
                "tree-sitter and tree-sitter-typescript are required. "
                "Install with: pip install tree-sitter tree-sitter-typescript"
            )
        self._language = Language(tsts.language_typescript())
        self._parser = Parser(self._language)

    @property
    def language(self) -> str:
        return "typescript"

    @property
    def file_extensions(self) -> List[str]:
        return [".ts", ".mts", ".cts"]


class TsxParser(JavaScriptParser):
    """Test discovery for TSX files (TypeScript with JSX)."""

    def __init__(self):
        if not TREE_SITTER_AVAILABLE:
            raise ImportError(
                "tree-sitter and tree-sitter-typescript are required. "
                "Install with: pip install tree-sitter tree-sitter-typescript"
            )
        self._language = Language(tsts.language_tsx())
        self._parser = Parser(self._language)

    @property
    def language(self) -> str:
        return "tsx"

    @property
    def file_extensions(self) -> List[str]:
        return [".tsx"]
