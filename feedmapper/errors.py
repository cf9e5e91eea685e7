"""
Error taxonomy for feed conversion.
Structural failures are raised; per-field failures are recorded, not raised.
"""

from dataclasses import dataclass
from typing import Optional


class FeedMapperError(Exception):
    """Base class for all feedmapper errors."""


class PathSyntaxError(FeedMapperError, ValueError):
    """A path expression could not be parsed."""

    def __init__(self, path: str, message: str, position: Optional[int] = None):
        self.path = path
        self.position = position
        self.reason = message
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid path '{path}'{where}: {message}")


class XmlParseError(FeedMapperError):
    """The input document is not well-formed XML."""

    def __init__(self, message: str, excerpt: str = ""):
        self.excerpt = excerpt
        details = f" (near: {excerpt})" if excerpt else ""
        super().__init__(f"{message}{details}")


class ProfileError(FeedMapperError):
    """A mapping profile is incomplete or inconsistent."""


class UnsupportedFormatError(FeedMapperError):
    """A file format cannot be converted."""


@dataclass
class FieldResolutionFailure:
    """A single mapping that failed for a single item; absorbed during extraction."""
    header: str
    source_path: str
    message: str
    item_index: Optional[int] = None
