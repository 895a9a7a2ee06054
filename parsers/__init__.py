"""Static discovery of JavaScript and TypeScript test declarations."""

from .base import BaseParser
from .nodes import NodeKind, ParseResult, Span, TestNode
from .js_ts_parser import JavaScriptParser, TypeScriptParser, TsxParser
from .registry import ParserRegistry, default_registry, parse_test_file

__all__ = [
    'BaseParser', 'NodeKind', 'ParseResult', 'Span', 'TestNode',
    'JavaScriptParser', 'TypeScriptParser', 'TsxParser',
    'ParserRegistry', 'default_registry', 'parse_test_file',
]
