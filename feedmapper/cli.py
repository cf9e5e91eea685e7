"""
CLI interface for user interactions.
Provides commands for detecting structure, reviewing profiles and converting feeds.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tabulate import tabulate

from .ai_suggester import DETECTION_MODES, AISuggester
from .config_loader import ConfigLoader
from .conversion_pipeline import ConversionPipeline
from .errors import FeedMapperError, PathSyntaxError, ProfileError
from .field_extractor import FieldExtractor
from .logging_setup import setup_logging
from .models import ConversionResult, DynamicBlockMapping, MappingProfile
from .structure_detector import FieldMappingInferencer, ItemRootInferencer, StructureDetector
from .suggestion_normalizer import SuggestionNormalizer
from .utils import safe_read_file, truncate_string
from .xml_document import parse_xml
from .xpath import PathEvaluator, parse_path

logger = logging.getLogger(__name__)


class CLI:
    """Command-line interface for profile management and conversion."""

    def __init__(self, config_dir: Path):
        """
        Initialize CLI.

        Args:
            config_dir: Directory holding global_config.yaml and profiles/
        """
        self.config_loader = ConfigLoader(config_dir)
        self.config = self.config_loader.load_global_config()

    def _detector(self, expand_pairs: bool = False) -> StructureDetector:
        item_tags, container_tags = self.config_loader.load_vocabulary()
        return StructureDetector(
            ItemRootInferencer(item_tags=item_tags),
            FieldMappingInferencer(container_tags=container_tags, expand_key_value_children=expand_pairs),
        )

    @staticmethod
    def _print_mappings(profile: MappingProfile) -> None:
        table_data = []
        for mapping in profile.field_mappings:
            if isinstance(mapping, DynamicBlockMapping):
                table_data.append([mapping.header_prefix or '(keys)', mapping.source_path, 'dynamic'])
            else:
                table_data.append([mapping.header, mapping.source_path, 'field'])
        print(tabulate(table_data, headers=['Header', 'Source Path', 'Kind'], tablefmt='grid'))

    def detect(self, xml_path: Path, output: Optional[Path] = None, expand_pairs: bool = False) -> MappingProfile:
        """
        Infer item root and field mappings for an XML file.

        Args:
            xml_path: XML feed
            output: Optional YAML path for the detected profile
            expand_pairs: Also emit one predicate mapping per name/value child
        """
        doc = parse_xml(safe_read_file(xml_path))
        result = self._detector(expand_pairs).detect(doc, name=Path(xml_path).stem)
        item_root = result.item_root

        confidence = 'low' if item_root.low_confidence else 'normal'
        print(f"\nItem root: {item_root.path} ({item_root.strategy.value}, confidence: {confidence})\n")
        self._print_mappings(result.profile)

        if output:
            self.config_loader.save_profile(result.profile, output)
            print(f"\n✓ Saved heuristic profile to {output} (review, then run 'validate --confirm')")
        return result.profile

    def convert(self, input_path: Path, profile_name: str, output: Optional[Path] = None,
                delimiter: Optional[str] = None, require_confirmed: bool = False) -> List[ConversionResult]:
        """
        Convert a file or every file in a directory.

        Args:
            input_path: Feed file or directory
            profile_name: Profile name under profiles/ or YAML path
            output: Output CSV file (file input) or directory (directory input)
            delimiter: Output delimiter (default from config)
            require_confirmed: Refuse profiles that were never confirmed
        """
        profile = self.config_loader.load_profile(profile_name)
        input_path = Path(input_path)
        delimiter = delimiter or self.config['csv_delimiter']

        if input_path.is_dir():
            output_dir = Path(output) if output else Path(self.config['output_dir'])
            pipeline = ConversionPipeline(output_dir, delimiter, require_confirmed)
            results = pipeline.convert_directory(input_path, profile)
        else:
            if output:
                output_dir, filename = Path(output).parent, Path(output).name
            else:
                output_dir, filename = Path(self.config['output_dir']), None
            pipeline = ConversionPipeline(output_dir, delimiter, require_confirmed)
            results = [pipeline.convert_file(input_path, profile, filename)]

        self._print_results(results)
        return results

    @staticmethod
    def _print_results(results: List[ConversionResult]) -> None:
        table_data = []
        for result in results:
            table_data.append([
                Path(result.source_path).name,
                result.status.value,
                len(result.records),
                result.output_path or '-',
            ])
        print(tabulate(table_data, headers=['File', 'Status', 'Records', 'Output'], tablefmt='grid'))

        for result in results:
            if result.report and result.report.empty_field_counts:
                print(f"\nEmpty fields in {Path(result.source_path).name}:")
                print(tabulate(sorted(result.report.empty_field_counts.items()),
                               headers=['Header', 'Empty Records'], tablefmt='simple'))
            for error in result.errors:
                print(f"  ! {truncate_string(error, 160)}")

    def normalize(self, suggestion_path: Path) -> dict:
        """Print the normalized form of a suggestion JSON file."""
        normalized = SuggestionNormalizer().normalize(safe_read_file(suggestion_path))
        payload = normalized.to_dict()
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return payload

    def suggest(self, xml_path: Path, mode: str = 'detailedFields', output: Optional[Path] = None) -> dict:
        """
        Ask the configured suggester for a structure, normalize and print it.

        Args:
            xml_path: XML sample
            mode: 'detailedFields' or 'dynamicBlock'
            output: Optional YAML path for the suggested profile
        """
        suggester = AISuggester(self.config['ai'], detector=self._detector())
        raw = suggester.suggest_structure(safe_read_file(xml_path), mode)
        if not raw:
            raise FeedMapperError(f"No suggestion could be produced for {Path(xml_path).name}")

        normalized = SuggestionNormalizer().normalize(raw)
        payload = normalized.to_dict()
        print(json.dumps(payload, indent=2, ensure_ascii=False))

        if output:
            profile = normalized.to_profile(name=Path(output).stem)
            self.config_loader.save_profile(profile, output)
            print(f"\n✓ Saved suggested profile to {output}")
        return payload

    def validate(self, profile_name: str, confirm: bool = False, sample: Optional[Path] = None) -> bool:
        """
        Parse every path of a profile and report the ones that are malformed.

        Args:
            profile_name: Profile name under profiles/ or YAML path
            confirm: Write the profile back as user-confirmed when all paths parse
            sample: Optional XML feed; regular mappings are resolved strictly
                against its first item and the values are shown

        Raises:
            ProfileError: If any path is malformed or the sample has no item
        """
        profile = self.config_loader.load_profile(profile_name)
        if not isinstance(profile, MappingProfile):
            print(f"✓ CSV profile '{profile.name}' is valid ({len(profile.header_mappings)} header mappings)")
            return True

        rows = [('(item root)', profile.item_root_path, None)]
        for mapping in profile.field_mappings:
            if isinstance(mapping, DynamicBlockMapping):
                rows.append((mapping.header_prefix or '(keys)', mapping.source_path, None))
                if mapping.definition:
                    rows.append((mapping.header_prefix or '(keys)', mapping.definition.repeating_element_path, None))
            else:
                rows.append((mapping.header, mapping.source_path, mapping))

        table_data = []
        invalid = 0
        for header, path, _ in rows:
            try:
                parse_path(path)
                table_data.append([header, path, 'ok'])
            except PathSyntaxError as e:
                invalid += 1
                table_data.append([header, path, e.reason])

        headers = ['Header', 'Path', 'Result']
        if sample is not None and not invalid:
            item = self._first_item(sample, profile)
            extractor = FieldExtractor()
            for row, (_, _, mapping) in zip(table_data, rows):
                value = extractor.extract_strict(item, mapping) if mapping is not None else ''
                row.append(truncate_string(value, 40))
            headers.append('Sample')

        print(tabulate(table_data, headers=headers, tablefmt='grid'))

        if invalid:
            raise ProfileError(f"Profile '{profile.name}' has {invalid} invalid path(s)")

        if confirm:
            confirmed = profile.confirm()
            path = self.config_loader.resolve_profile_path(profile_name)
            self.config_loader.save_profile(confirmed, path)
            print(f"✓ Profile '{profile.name}' confirmed")
        else:
            print(f"✓ Profile '{profile.name}' is valid (status: {profile.status.value})")
        return True

    @staticmethod
    def _first_item(sample: Path, profile: MappingProfile):
        doc = parse_xml(safe_read_file(sample))
        items = PathEvaluator().select_elements(doc, None, profile.item_root_path)
        if not items:
            raise ProfileError(f"Item root {profile.item_root_path} matches nothing in {sample}")
        return items[0]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Feed structure detection and CSV conversion")

    parser.add_argument('--config-dir', type=Path, default=Path('./config'),
                        help='Directory with global_config.yaml and profiles/')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # detect command
    detect_parser = subparsers.add_parser('detect', help='Infer item root and field mappings')
    detect_parser.add_argument('xml', type=Path, help='XML feed')
    detect_parser.add_argument('--output', type=Path, help='Write detected profile to YAML')
    detect_parser.add_argument('--expand-pairs', action='store_true',
                               help='One mapping per name/value child instead of a dynamic block')

    # convert command
    convert_parser = subparsers.add_parser('convert', help='Convert a feed file or directory to CSV')
    convert_parser.add_argument('input', type=Path, help='Feed file or directory')
    convert_parser.add_argument('--profile', type=str, required=True, help='Profile name or YAML path')
    convert_parser.add_argument('--output', type=Path, help='Output CSV (or directory for directory input)')
    convert_parser.add_argument('--delimiter', type=str, choices=[',', ';'], help='Output delimiter')
    convert_parser.add_argument('--require-confirmed', action='store_true',
                                help='Refuse profiles that were never confirmed')

    # normalize command
    normalize_parser = subparsers.add_parser('normalize', help='Normalize a suggestion JSON file')
    normalize_parser.add_argument('suggestion', type=Path, help='Suggestion JSON file')

    # suggest command
    suggest_parser = subparsers.add_parser('suggest', help='Suggest a structure for an XML sample')
    suggest_parser.add_argument('xml', type=Path, help='XML sample')
    suggest_parser.add_argument('--mode', choices=DETECTION_MODES, default='detailedFields')
    suggest_parser.add_argument('--output', type=Path, help='Write suggested profile to YAML')

    # validate command
    validate_parser = subparsers.add_parser('validate', help='Check every path of a profile')
    validate_parser.add_argument('--profile', type=str, required=True, help='Profile name or YAML path')
    validate_parser.add_argument('--confirm', action='store_true', help='Mark the profile as user-confirmed')
    validate_parser.add_argument('--sample', type=Path, help='XML feed to resolve the mappings against')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    cli = CLI(args.config_dir)
    setup_logging(
        log_dir=cli.config.get('log_dir'),
        log_level=cli.config.get('log_level', 'INFO'),
        json_format=cli.config.get('json_logs', True),
    )

    try:
        if args.command == 'detect':
            cli.detect(args.xml, args.output, args.expand_pairs)
        elif args.command == 'convert':
            cli.convert(args.input, args.profile, args.output, args.delimiter, args.require_confirmed)
        elif args.command == 'normalize':
            cli.normalize(args.suggestion)
        elif args.command == 'suggest':
            cli.suggest(args.xml, args.mode, args.output)
        elif args.command == 'validate':
            cli.validate(args.profile, args.confirm, args.sample)
    except (FeedMapperError, FileNotFoundError) as e:
        logger.error(str(e))
        print(f"✗ {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
