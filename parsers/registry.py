"""Parser registry for selecting a grammar by file extension."""

from pathlib import Path
from typing import List, Optional, Union

from .base import BaseParser
from .nodes import ParseResult


class ParserRegistry:
    """Registry for grammar-specific parsers."""

    def __init__(self):
        self._parsers: List[BaseParser] = []

    def register(self, parser: BaseParser) -> None:
        """Register a parser instance."""
        self._parsers.append(parser)

    def get_parser(self, file_path: Path) -> Optional[BaseParser]:
        """Get a parser that can handle the given file."""
        for parser in self._parsers:
            if parser.can_parse(file_path):
                return parser
        return None

    def supported_extensions(self) -> List[str]:
        """Return all file extensions supported by registered parsers."""
        exts = []
        for p in self._parsers:
            exts.extend(p.file_extensions)
        return exts


_default_registry: Optional[ParserRegistry] = None


def default_registry() -> ParserRegistry:
    """Registry with the JavaScript, TypeScript and TSX parsers, built once."""
    global _default_registry
    if _default_registry is None:
        from .js_ts_parser import JavaScriptParser, TypeScriptParser, TsxParser

        registry = ParserRegistry()
        registry.register(JavaScriptParser())
        registry.register(TypeScriptParser())
        registry.register(TsxParser())
        _default_registry = registry
    return _default_registry


def parse_test_file(path: Union[str, Path], source: str = None, strict: bool = False) -> ParseResult:
    """Discover the tests of one file with the parser matching its extension.

    Unknown extensions fall back to the JavaScript grammar, or raise
    TypeError when `strict` is set.
    """
    path = Path(path)
    registry = default_registry()
    parser = registry.get_parser(path)
    if parser is None:
        if strict:
            raise TypeError(f"unrecognized file type: {path.suffix or path.name}")
        parser = registry.get_parser(Path("fallback.js"))
    return parser.parse_file(path, source)
