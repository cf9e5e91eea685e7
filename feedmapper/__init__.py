"""
Feed mapper package.
Infers the structure of XML/CSV product feeds and extracts flat records.
"""

__version__ = "0.1.0"
__author__ = "Automation Team"

from .models import (
    FileType,
    ProfileStatus,
    RegularFieldMapping,
    DynamicBlockMapping,
    DynamicBlockDefinition,
    MappingProfile,
    CsvProfile,
    ItemRootResult,
    NormalizedSuggestion,
    ExtractionReport,
    ConversionResult,
)
from .errors import (
    FeedMapperError,
    PathSyntaxError,
    XmlParseError,
    ProfileError,
    UnsupportedFormatError,
)
from .config_loader import ConfigLoader
from .logging_setup import setup_logging, get_logger
from .xml_document import parse_xml
from .xpath import evaluate, parse_path
from .structure_detector import detect_structure, infer_field_mappings, infer_item_root
from .suggestion_normalizer import normalize_suggestion
from .record_extractor import extract_records
from .conversion_pipeline import ConversionPipeline

__all__ = [
    'FileType',
    'ProfileStatus',
    'RegularFieldMapping',
    'DynamicBlockMapping',
    'DynamicBlockDefinition',
    'MappingProfile',
    'CsvProfile',
    'ItemRootResult',
    'NormalizedSuggestion',
    'ExtractionReport',
    'ConversionResult',
    'FeedMapperError',
    'PathSyntaxError',
    'XmlParseError',
    'ProfileError',
    'UnsupportedFormatError',
    'ConfigLoader',
    'setup_logging',
    'get_logger',
    'parse_xml',
    'evaluate',
    'parse_path',
    'detect_structure',
    'infer_field_mappings',
    'infer_item_root',
    'normalize_suggestion',
    'extract_records',
    'ConversionPipeline',
]
