"""
Record extraction orchestrator.
Walks the items selected by a profile and applies every mapping to each.
"""

import logging
from typing import Dict, List, Optional

from .dynamic_block import DynamicBlockExtractor
from .field_extractor import FieldExtractor
from .models import DynamicBlockMapping, ExtractionReport, MappingProfile
from .xpath import PathEvaluator

logger = logging.getLogger(__name__)


class RecordExtractor:
    """Turns a document plus a mapping profile into flat records."""

    def __init__(self, evaluator: Optional[PathEvaluator] = None):
        self.evaluator = evaluator or PathEvaluator()
        self.field_extractor = FieldExtractor(self.evaluator)
        self.dynamic_extractor = DynamicBlockExtractor(self.evaluator)

    def extract_records(self, doc, profile: MappingProfile) -> List[Dict[str, str]]:
        """
        Extract one record per item element.

        Args:
            doc: Parsed DOM document
            profile: Mapping profile (root path + ordered mappings)

        Returns:
            Records in document order; empty when no item matches

        Raises:
            PathSyntaxError: If the item root path is malformed
        """
        return self.extract_with_report(doc, profile).records

    def extract_with_report(self, doc, profile: MappingProfile) -> ExtractionReport:
        """Extract records and report which fields resolved empty or failed."""
        report = ExtractionReport()
        items = self.evaluator.select_elements(doc, None, profile.item_root_path)
        report.item_count = len(items)

        if not items:
            logger.info(f"No item elements found for '{profile.item_root_path}'")
            return report

        for index, item in enumerate(items):
            record, empty = self._build_record(item, profile, report, index)
            report.records.append(record)
            report.empty_fields.append(empty)

        self._log_summary(profile, report)
        return report

    def _build_record(self, item, profile: MappingProfile, report: ExtractionReport, index: int):
        record: Dict[str, str] = {}
        empty: List[str] = []

        for mapping in profile.field_mappings:
            if isinstance(mapping, DynamicBlockMapping):
                record.update(self.dynamic_extractor.extract(item, mapping, report.failures, index))
            else:
                value = self.field_extractor.extract(item, mapping, report.failures, index)
                record[mapping.header] = value
                if not value:
                    empty.append(mapping.header)

        return record, empty

    @staticmethod
    def _log_summary(profile: MappingProfile, report: ExtractionReport) -> None:
        failed = {}
        for failure in report.failures:
            failed.setdefault(failure.source_path, failure.message)
        for path, message in failed.items():
            logger.warning(f"Mapping '{path}' failed and was left empty: {message}")

        logger.info(
            f"Extracted {len(report.records)} records from '{profile.item_root_path}'; "
            f"empty fields: {report.empty_field_counts or 'none'}"
        )


def extract_records(doc, profile: MappingProfile) -> List[Dict[str, str]]:
    return RecordExtractor().extract_records(doc, profile)
