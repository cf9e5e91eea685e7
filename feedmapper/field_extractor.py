"""
Field extraction for regular (one path, one column) mappings.
"""

import logging
from typing import List, Optional

from .errors import FieldResolutionFailure
from .models import RegularFieldMapping
from .xpath import PathEvaluator

logger = logging.getLogger(__name__)


class FieldExtractor:
    """Resolves a regular mapping against one item element."""

    def __init__(self, evaluator: Optional[PathEvaluator] = None):
        self.evaluator = evaluator or PathEvaluator()

    def extract_strict(self, item, mapping: RegularFieldMapping) -> str:
        """
        Resolve a mapping to a single string.

        Attribute matches are joined with newlines, element matches use their
        CDATA content when present (text content otherwise) and are joined
        with newlines. The result is trimmed; no match gives "".

        Raises:
            PathSyntaxError: If the mapping's path is malformed
        """
        # Element values already prefer CDATA; attribute and text() values are used as-is
        results = self.evaluator.evaluate(None, item, mapping.source_path)
        return '\n'.join(r.value for r in results).strip()

    def extract(self, item, mapping: RegularFieldMapping,
                failures: Optional[List[FieldResolutionFailure]] = None,
                item_index: Optional[int] = None) -> str:
        """
        Resolve a mapping, degrading any failure to "".

        Args:
            item: Item element
            mapping: Regular mapping
            failures: Optional list collecting failures for reporting
            item_index: Position of the item, recorded with failures

        Returns:
            Field value, "" when unresolved or failed
        """
        try:
            return self.extract_strict(item, mapping)
        except Exception as e:
            logger.debug(f"Mapping '{mapping.header}' ({mapping.source_path}) failed: {e}")
            if failures is not None:
                failures.append(FieldResolutionFailure(
                    header=mapping.header,
                    source_path=mapping.source_path,
                    message=str(e),
                    item_index=item_index,
                ))
            return ''
