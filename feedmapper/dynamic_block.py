"""
Dynamic key/value block extraction.
Handles holders where the column name is data: <feature name="Material">Cotton</feature>
or <attribute><name>Color</name><value>Red</value></attribute>.
"""

import logging
from typing import Dict, List, Optional

from .errors import FieldResolutionFailure
from .models import DynamicBlockDefinition, DynamicBlockMapping, KeySourceKind, ValueSourceKind
from .vocabulary import DYNAMIC_KEY_NAME, DYNAMIC_VALUE_NAMES
from .xml_document import (
    direct_text,
    first_child_named,
    is_ancestor_or_self,
    owner_document,
    preferred_text,
)
from .xpath import PathEvaluator, ResultKind, parse_path

logger = logging.getLogger(__name__)


class DynamicBlockExtractor:
    """Enumerates key/value pairs under one item element."""

    def __init__(self, evaluator: Optional[PathEvaluator] = None):
        self.evaluator = evaluator or PathEvaluator()

    def extract_pairs(self, item, source_path: str, header_prefix: str = '') -> Dict[str, str]:
        """
        Collect pairs using the implicit holder conventions.

        Key: the holder's `name` attribute, else the text of a `name` child.
        Value: with a `name` attribute, the holder's own text; otherwise the
        first `value`/`label` child, else the holder's own text. Holders
        without a key are skipped. A repeated key overwrites the earlier one.

        Args:
            item: Item element
            source_path: Path to the holders, relative to the item
            header_prefix: Prepended to each discovered key

        Returns:
            Dict of prefixed key -> trimmed value

        Raises:
            PathSyntaxError: If source_path is malformed
        """
        pairs: Dict[str, str] = {}
        prefix = header_prefix or ''

        for result in self.evaluator.evaluate(None, item, source_path):
            if result.kind == ResultKind.ATTRIBUTE:
                # '@*' style: each attribute is its own pair
                pairs[prefix + result.node.name] = result.value.strip()
                continue
            if result.kind != ResultKind.ELEMENT:
                continue

            holder = result.node
            key, value = self._implicit_pair(holder)
            if not key:
                logger.debug(f"Skipping <{holder.tagName}> without a key under {source_path}")
                continue
            pairs[prefix + key] = value.strip()

        return pairs

    @staticmethod
    def _implicit_pair(holder):
        if holder.hasAttribute(DYNAMIC_KEY_NAME):
            return holder.getAttribute(DYNAMIC_KEY_NAME).strip(), preferred_text(holder)

        key_element = first_child_named(holder, DYNAMIC_KEY_NAME)
        if key_element is None:
            return None, ''
        key = preferred_text(key_element).strip()

        for value_name in DYNAMIC_VALUE_NAMES:
            value_element = first_child_named(holder, value_name)
            if value_element is not None:
                return key, preferred_text(value_element)
        return key, direct_text(holder) or ''

    def extract_with_definition(self, item, definition: DynamicBlockDefinition,
                                header_prefix: str = '') -> Dict[str, str]:
        """
        Collect pairs using an explicit block definition.

        An absolute repeating path is evaluated against the whole document
        and only holders inside this item are kept.

        Raises:
            PathSyntaxError: If the repeating element path is malformed
        """
        path = definition.repeating_element_path
        if parse_path(path).absolute:
            holders = [
                h for h in self.evaluator.select_elements(owner_document(item), None, path)
                if is_ancestor_or_self(item, h)
            ]
        else:
            holders = self.evaluator.select_elements(None, item, path)

        pairs: Dict[str, str] = {}
        prefix = header_prefix or ''
        for holder in holders:
            key = self._read_key(holder, definition)
            if not key:
                continue
            pairs[prefix + key] = self._read_value(holder, definition).strip()
        return pairs

    @staticmethod
    def _read_key(holder, definition: DynamicBlockDefinition) -> str:
        source = definition.key_source
        identifier = source.identifier or DYNAMIC_KEY_NAME
        if source.kind == KeySourceKind.ATTRIBUTE:
            return holder.getAttribute(identifier).strip()
        if source.kind == KeySourceKind.CHILD_ELEMENT_TEXT:
            child = first_child_named(holder, identifier)
            return preferred_text(child).strip() if child is not None else ''
        return (direct_text(holder) or '').strip()

    @staticmethod
    def _read_value(holder, definition: DynamicBlockDefinition) -> str:
        source = definition.value_source
        if source.kind == ValueSourceKind.ATTRIBUTE:
            return holder.getAttribute(source.identifier or 'value')
        if source.kind == ValueSourceKind.CHILD_ELEMENT_TEXT:
            names = (source.identifier,) if source.identifier else DYNAMIC_VALUE_NAMES
            for name in names:
                child = first_child_named(holder, name)
                if child is not None:
                    return preferred_text(child)
            return ''
        if source.kind == ValueSourceKind.TEXT:
            return direct_text(holder) or ''
        return preferred_text(holder)

    def extract(self, item, mapping: DynamicBlockMapping,
                failures: Optional[List[FieldResolutionFailure]] = None,
                item_index: Optional[int] = None) -> Dict[str, str]:
        """Apply a dynamic mapping, degrading any failure to no pairs."""
        try:
            if mapping.definition is not None:
                return self.extract_with_definition(item, mapping.definition, mapping.header_prefix)
            return self.extract_pairs(item, mapping.source_path, mapping.header_prefix)
        except Exception as e:
            logger.debug(f"Dynamic mapping {mapping.source_path} failed: {e}")
            if failures is not None:
                failures.append(FieldResolutionFailure(
                    header=mapping.header_prefix,
                    source_path=mapping.source_path,
                    message=str(e),
                    item_index=item_index,
                ))
            return {}
