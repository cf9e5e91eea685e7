"""
Conversion pipeline orchestrator.
Reads a feed, detects its format, applies the profile and exports CSV.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from .csv_exporter import CSVExporter
from .csv_parser import CSVParser, apply_header_mappings
from .errors import FeedMapperError, ProfileError
from .format_detector import FormatDetector
from .models import ConversionResult, ConversionStatus, CsvProfile, FileType, MappingProfile
from .record_extractor import RecordExtractor
from .utils import safe_read_file
from .xml_document import parse_xml

logger = logging.getLogger(__name__)

Profile = Union[MappingProfile, CsvProfile]


class ConversionPipeline:
    """Orchestrates reading, extraction and export for feed files."""

    def __init__(self, output_dir: Optional[Path] = None, csv_delimiter: str = ',',
                 require_confirmed: bool = False):
        """
        Initialize conversion pipeline.

        Args:
            output_dir: Directory for CSV output (no export if None)
            csv_delimiter: Output delimiter (',' or ';')
            require_confirmed: Refuse heuristic XML profiles that were never reviewed
        """
        self.exporter = CSVExporter(output_dir) if output_dir is not None else None
        self.csv_delimiter = csv_delimiter
        self.require_confirmed = require_confirmed
        self.extractor = RecordExtractor()

    def convert_file(self, file_path: Path, profile: Profile,
                     output_filename: Optional[str] = None) -> ConversionResult:
        """
        Convert a single file.

        Args:
            file_path: CSV or XML input
            profile: Profile matching the input format
            output_filename: CSV filename (default: <input stem>.csv)

        Returns:
            ConversionResult with records, report and output path

        Raises:
            FeedMapperError: On unparseable documents, bad paths or profile mismatch
        """
        file_path = Path(file_path)
        logger.info(f"Converting file: {file_path.name}")

        file_type = FormatDetector.detect(file_path)
        result = ConversionResult(source_path=str(file_path), file_type=file_type)

        if file_type == FileType.XML:
            if not isinstance(profile, MappingProfile):
                raise ProfileError(f"{file_path.name} is XML but profile '{profile.name}' is a CSV profile")
            profile.validate()
            if self.require_confirmed:
                profile.require_confirmed()

            doc = parse_xml(safe_read_file(file_path))
            report = self.extractor.extract_with_report(doc, profile)
            result.records = report.records
            result.report = report
            if report.failures:
                result.status = ConversionStatus.PARTIAL_SUCCESS
                result.errors.extend(f"{path}: {msg}" for path, msg in report.failed_paths.items())
        else:
            if not isinstance(profile, CsvProfile):
                raise ProfileError(f"{file_path.name} is CSV but profile '{profile.name}' is an XML profile")
            profile.validate()
            rows = CSVParser.from_profile(profile).parse_all(file_path)
            result.records = apply_header_mappings(rows, profile.header_mappings)

        logger.info(f"{file_path.name}: {len(result.records)} records ({result.status.value})")

        if self.exporter is not None:
            filename = output_filename or f"{file_path.stem}.csv"
            output_path = self.exporter.export(result.records, filename, delimiter=self.csv_delimiter)
            result.output_path = str(output_path) if output_path else None

        return result

    def convert_directory(self, input_dir: Path, profile: Profile) -> List[ConversionResult]:
        """
        Convert every file in a directory; one failing file does not stop the rest.

        Args:
            input_dir: Directory containing input files
            profile: Profile applied to every file

        Returns:
            One ConversionResult per file
        """
        input_dir = Path(input_dir)
        results = []

        files = sorted(p for p in input_dir.glob('*.*') if p.is_file())
        if not files:
            logger.warning(f"No files found in {input_dir}")
            return results

        for file_path in files:
            try:
                results.append(self.convert_file(file_path, profile))
            except (FeedMapperError, OSError) as e:
                logger.error(f"Failed to convert {file_path.name}: {e}")
                results.append(ConversionResult(
                    source_path=str(file_path),
                    status=ConversionStatus.FAILED,
                    errors=[str(e)],
                ))

        succeeded = sum(1 for r in results if r.status != ConversionStatus.FAILED)
        logger.info(f"Converted {succeeded}/{len(results)} files from {input_dir}")
        return results
