"""
CSV exporter for extracted records.
Reconciles differing record key sets into one column list.
"""

import csv
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .utils import ensure_directory

logger = logging.getLogger(__name__)


def collect_headers(records: List[Dict[str, Any]]) -> List[str]:
    """Union of record keys in first-seen order."""
    headers: Dict[str, None] = {}
    for record in records:
        for key in record:
            headers.setdefault(key, None)
    return list(headers)


class CSVExporter:
    """Export records to CSV format."""

    DELIMITERS = (',', ';')

    def __init__(self, output_dir: Path):
        """
        Initialize exporter.

        Args:
            output_dir: Directory for export files
        """
        self.output_dir = ensure_directory(output_dir)

    def export(self, records: List[Dict[str, Any]], filename: str, **options) -> Optional[Path]:
        """
        Export records to CSV.

        Args:
            records: Flat string-keyed records
            filename: Output filename
            **options:
                - headers: Explicit column list (default: union of record keys)
                - delimiter: ',' or ';'

        Returns:
            Path to exported CSV file, or None when there is nothing to export
        """
        headers = options.get('headers')
        delimiter = options.get('delimiter', ',')

        if delimiter not in self.DELIMITERS:
            raise ValueError(f"Unsupported CSV delimiter: {delimiter!r}")

        if not records:
            logger.warning(f"No records to export to {filename}")
            return None

        field_list = list(headers) if headers else collect_headers(records)
        output_path = self.output_dir / filename

        try:
            with open(output_path, 'w', newline='', encoding='utf-8') as f:
                writer = csv.DictWriter(f, fieldnames=field_list, delimiter=delimiter,
                                        restval='', extrasaction='ignore',
                                        lineterminator='\r\n')
                writer.writeheader()
                for record in records:
                    writer.writerow({k: '' if v is None else v for k, v in record.items()})

            logger.info(f"Exported {len(records)} rows ({len(field_list)} columns) to {filename}")
            return output_path

        except OSError as e:
            logger.error(f"Error exporting CSV: {e}")
            raise
