"""
Normalization of structure suggestions.
Accepts loosely-shaped payloads from any suggestion source (heuristic
detector, language model, hand-written JSON) and produces a canonical
item root path plus root-relative mappings.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .errors import ProfileError
from .models import DynamicBlockDefinition, NormalizedSuggestion, SuggestedMapping
from .utils import truncate_string

logger = logging.getLogger(__name__)

_NAME_KEYS = ('fieldName', 'field', 'name', 'header')
_PATH_KEYS = ('path', 'xpath', 'sourcePath', 'source_path')
_MAPPING_LIST_KEYS = ('mappings', 'suggestedMappings', 'fieldMappings', 'field_mappings')
_ROOT_KEYS = ('itemRootPath', 'item_root_path', 'rootPath')


def split_path_segments(path: str) -> List[str]:
    """Split on '/' outside predicates and quoted literals: '/a/b[c/d='x']' -> ['', 'a', "b[c/d='x']"]."""
    segments, current = [], []
    depth, quote = 0, None
    for char in path:
        if quote:
            if char == quote:
                quote = None
        elif char in ('"', "'"):
            quote = char
        elif char == '[':
            depth += 1
        elif char == ']':
            depth = max(0, depth - 1)
        elif char == '/' and depth == 0:
            segments.append(''.join(current))
            current = []
            continue
        current.append(char)
    segments.append(''.join(current))
    return segments


def infer_common_root(paths: List[str]) -> Optional[str]:
    """
    Longest common segment prefix of absolute paths.

    Each path's selected node (its last segment, plus a trailing text())
    is excluded, and growth stops before any attribute segment. Returns
    None unless the prefix is longer than '/'.
    """
    if not paths or not all(p.startswith('/') for p in paths):
        return None

    containers = []
    for path in paths:
        segments = split_path_segments(path)
        if segments and segments[-1] == 'text()':
            segments = segments[:-1]
        containers.append(segments[:-1])

    prefix: List[str] = []
    for parts in zip(*containers):
        if len(set(parts)) != 1:
            break
        candidate = '/'.join(prefix + [parts[0]])
        if '/@' in candidate or parts[0].startswith('@'):
            break
        prefix.append(parts[0])

    root = '/'.join(prefix)
    if len(root) <= 1 or not root.strip('/'):
        return None
    return root


def relativize(path: str, root: str) -> str:
    """Rewrite a path under root as root-relative; other paths are returned unchanged."""
    if path == root:
        return '.'
    if path.startswith(root + '//'):
        return '.' + path[len(root):]
    if path.startswith(root + '/'):
        return path[len(root) + 1:] or '.'
    if path.startswith(root + '@'):
        return path[len(root):]
    return path


class SuggestionNormalizer:
    """Turns raw suggestion payloads into NormalizedSuggestion objects."""

    def normalize(self, raw: Any) -> NormalizedSuggestion:
        """
        Normalize a suggestion payload. Never raises.

        Accepted shapes:
            - list of {fieldName, path|xpath} dicts
            - {itemRootPath, mappings, dynamicBlockMapping?}
            - a JSON string of either

        Args:
            raw: Payload from any suggestion source

        Returns:
            NormalizedSuggestion; empty mappings for unrecognized input
        """
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except (ValueError, RecursionError) as e:
                logger.warning(f"Suggestion is not valid JSON ({e}): {truncate_string(str(raw))}")
                return NormalizedSuggestion()

        root: Optional[str] = None
        dynamic_raw = None
        if isinstance(raw, list):
            entries = raw
        elif isinstance(raw, dict):
            root = next((raw[k] for k in _ROOT_KEYS if isinstance(raw.get(k), str)), None)
            entries = next((raw[k] for k in _MAPPING_LIST_KEYS if isinstance(raw.get(k), list)), [])
            dynamic_raw = raw.get('dynamicBlockMapping')
        else:
            logger.warning(f"Unrecognized suggestion payload of type {type(raw).__name__}")
            return NormalizedSuggestion()

        mappings = self._coerce_mappings(entries)
        dynamic_block = self._coerce_dynamic_block(dynamic_raw)

        root = root.strip() if root else ''
        if len(root) > 1:
            root = root.rstrip('/')
        if not root:
            paths = [m.path for m in mappings]
            if dynamic_block:
                paths.append(dynamic_block.repeating_element_path)
            root = infer_common_root(paths) or ''
            if root:
                logger.info(f"Inferred item root path from suggestions: {root}")

        if root:
            for m in mappings:
                m.path = relativize(m.path, root)
            if dynamic_block:
                dynamic_block = DynamicBlockDefinition(
                    relativize(dynamic_block.repeating_element_path, root),
                    dynamic_block.key_source,
                    dynamic_block.value_source,
                )

        logger.debug(f"Normalized suggestion: root={root or None}, {len(mappings)} mappings")
        return NormalizedSuggestion(item_root_path=root or None, mappings=mappings, dynamic_block=dynamic_block)

    @staticmethod
    def _coerce_mappings(entries: list) -> List[SuggestedMapping]:
        mappings = []
        for entry in entries:
            if not isinstance(entry, dict):
                logger.debug(f"Dropping non-object suggestion entry: {entry!r}")
                continue
            is_dynamic = bool(entry.get('isDynamicAttributeMapping', False))
            name = next((entry[k] for k in _NAME_KEYS if isinstance(entry.get(k), str) and entry[k].strip()), None)
            path = next((entry[k] for k in _PATH_KEYS if isinstance(entry.get(k), str) and entry[k].strip()), None)
            # Dynamic mappings carry an optional prefix instead of a name
            if is_dynamic and name is None:
                name = ''
            if name is None or path is None:
                logger.debug(f"Dropping incomplete suggestion entry: {entry!r}")
                continue
            mappings.append(SuggestedMapping(
                field_name=name if is_dynamic else name.strip(),
                path=path.strip(),
                is_dynamic=is_dynamic,
            ))
        return mappings

    @staticmethod
    def _coerce_dynamic_block(data: Any) -> Optional[DynamicBlockDefinition]:
        if not isinstance(data, dict):
            return None
        try:
            return DynamicBlockDefinition.from_dict(data)
        except ProfileError as e:
            logger.warning(f"Ignoring dynamic block suggestion: {e}")
            return None


def normalize_suggestion(raw: Any) -> NormalizedSuggestion:
    return SuggestionNormalizer().normalize(raw)
