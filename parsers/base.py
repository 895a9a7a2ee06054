"""Abstract base interface for test discovery parsers."""

from abc import ABC, abstractmethod
from typing import List
from pathlib import Path

from .nodes import ParseResult


class BaseParser(ABC):
    """Abstract base for grammar-specific test discovery parsers."""

    @property
    @abstractmethod
    def language(self) -> str:
        """Return grammar identifier, e.g. 'javascript', 'typescript', 'tsx'"""
        pass

    @property
    @abstractmethod
    def file_extensions(self) -> List[str]:
        """Return list of extensions this parser handles, e.g. ['.ts', '.mts']"""
        pass

    @abstractmethod
    def can_parse(self, file_path: Path) -> bool:
        """Return True if this parser can handle the given file."""
        pass

    @abstractmethod
    def parse_file(self, file_path: Path, source: str = None) -> ParseResult:
        """Discover the test declarations of a file.

        Args:
            file_path: Path to the file
            source: Optional source code (if already read)

        Returns:
            ParseResult with the Test Tree and any errors
        """
        pass
