"""
Utility functions for feed file IO, hashing and string handling.
"""

import copy
import hashlib
import logging
from pathlib import Path
from typing import Union


logger = logging.getLogger(__name__)


def compute_bytes_hash(data: Union[bytes, str], algorithm: str = 'sha256') -> str:
    """Compute hash of bytes (str is UTF-8 encoded first)."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    hash_func = hashlib.new(algorithm)
    hash_func.update(data)
    return hash_func.hexdigest()


def ensure_directory(dir_path: Path) -> Path:
    """Ensure directory exists, create if not."""
    dir_path = Path(dir_path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def safe_read_file(file_path: Path) -> str:
    """
    Read a feed file as text.

    UTF-8 (with or without BOM) is tried first; vendor exports that are
    not valid UTF-8 are read as latin-1.
    """
    raw = Path(file_path).read_bytes()
    try:
        return raw.decode('utf-8-sig')
    except UnicodeDecodeError:
        logger.warning(f"Failed to read {file_path} as UTF-8, trying latin-1")
        return raw.decode('latin-1')


def merge_dicts(base: dict, override: dict) -> dict:
    """Deep merge override dict into base dict."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def truncate_string(s: str, max_length: int = 100) -> str:
    """Truncate string for logging/display."""
    if len(s) <= max_length:
        return s
    return s[:max_length - 3] + "..."
