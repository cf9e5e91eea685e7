"""
Detect input format using extension and content inspection.
"""

import logging
from pathlib import Path

from .errors import UnsupportedFormatError
from .models import FileType

logger = logging.getLogger(__name__)


class FormatDetector:
    """Detect file format deterministically."""

    EXTENSION_MAP = {
        '.csv': FileType.CSV,
        '.tsv': FileType.CSV,
        '.txt': FileType.CSV,
        '.xml': FileType.XML,
    }

    DELIMITERS = (',', ';', '\t', '|')

    @staticmethod
    def detect(file_path: Path) -> FileType:
        """
        Detect file format using multiple methods.

        Args:
            file_path: Path to file

        Returns:
            FileType.CSV or FileType.XML

        Raises:
            UnsupportedFormatError: If neither format fits
        """
        file_path = Path(file_path)

        # Method 1: Extension-based detection
        ext = file_path.suffix.lower()
        if ext in FormatDetector.EXTENSION_MAP:
            detected = FormatDetector.EXTENSION_MAP[ext]
            logger.debug(f"Detected format by extension: {detected.value}")
            return detected

        # Method 2: Content inspection
        try:
            with open(file_path, 'r', encoding='utf-8', errors='ignore') as f:
                head = f.read(1024)
        except OSError as e:
            raise UnsupportedFormatError(f"Could not read {file_path.name}: {e}") from e

        return FormatDetector.detect_text(head, file_path.name)

    @staticmethod
    def detect_text(text: str, label: str = '<text>') -> FileType:
        """Detect format from the beginning of the content."""
        stripped = text.lstrip("\ufeff \t\r\n")
        if stripped.startswith('<'):
            logger.debug("Detected format by content: xml")
            return FileType.XML

        first_line = stripped.splitlines()[0] if stripped else ''
        if any(d in first_line for d in FormatDetector.DELIMITERS):
            logger.debug("Detected format by content: csv")
            return FileType.CSV

        raise UnsupportedFormatError(f"Could not determine format for {label}")
