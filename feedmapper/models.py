"""
Data models for feed conversion.
Mapping profiles, field mapping variants and inference/extraction results.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import FieldResolutionFailure, ProfileError


class FileType(str, Enum):
    """Supported input formats."""
    CSV = "csv"
    XML = "xml"


class ProfileStatus(str, Enum):
    """Provenance of a mapping profile."""
    HEURISTIC = "heuristic"  # inferred or suggested, needs review
    USER_CONFIRMED = "user_confirmed"


class KeySourceKind(str, Enum):
    """Where the key of a dynamic key/value pair is read from."""
    ATTRIBUTE = "attribute"
    CHILD_ELEMENT_TEXT = "childElementText"
    REPEATING_ELEMENT_TEXT = "repeatingElementText"


class ValueSourceKind(str, Enum):
    """Where the value of a dynamic key/value pair is read from."""
    ATTRIBUTE = "attribute"
    CHILD_ELEMENT_TEXT = "childElementText"
    REPEATING_ELEMENT_TEXT = "repeatingElementText"
    TEXT = "text"


class InferenceStrategy(str, Enum):
    """Which heuristic located the item element."""
    VOCABULARY = "vocabulary"
    RICHEST_ELEMENT = "richest_element"
    DOCUMENT_ROOT = "document_root"


class ConversionStatus(str, Enum):
    """Outcome of converting one file."""
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


@dataclass(frozen=True)
class KeySource:
    kind: KeySourceKind
    identifier: Optional[str] = None


@dataclass(frozen=True)
class ValueSource:
    kind: ValueSourceKind
    identifier: Optional[str] = None


@dataclass(frozen=True)
class DynamicBlockDefinition:
    """Explicit description of a repeating key/value structure."""
    repeating_element_path: str
    key_source: KeySource
    value_source: ValueSource

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DynamicBlockDefinition':
        """
        Build a definition from the camelCase suggestion shape.

        Raises:
            ProfileError: If the path is missing or a source kind is unknown
        """
        path = data.get('repeatingElementXPath') or data.get('repeating_element_path')
        if not isinstance(path, str) or not path.strip():
            raise ProfileError("Dynamic block requires a repeating element path")

        key_data = data.get('keySource') or data.get('key_source') or {}
        value_data = data.get('valueSource') or data.get('value_source') or {}
        try:
            key_source = KeySource(KeySourceKind(key_data.get('from')), key_data.get('identifier'))
            value_source = ValueSource(ValueSourceKind(value_data.get('from')), value_data.get('identifier'))
        except (ValueError, AttributeError) as e:
            raise ProfileError(f"Invalid dynamic block source: {e}") from e

        return cls(path.strip(), key_source, value_source)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'repeatingElementXPath': self.repeating_element_path,
            'keySource': {'from': self.key_source.kind.value, 'identifier': self.key_source.identifier},
            'valueSource': {'from': self.value_source.kind.value, 'identifier': self.value_source.identifier},
        }


@dataclass(frozen=True)
class RegularFieldMapping:
    """One path, one output column."""
    source_path: str
    header: str

    def validate(self) -> None:
        if not self.source_path.strip():
            raise ProfileError(f"Mapping '{self.header}' has an empty source path")
        if not self.header.strip():
            raise ProfileError(f"Mapping for '{self.source_path}' has an empty header")

    def to_dict(self) -> Dict[str, Any]:
        return {'sourcePath': self.source_path, 'header': self.header, 'isDynamicAttributeMapping': False}


@dataclass(frozen=True)
class DynamicBlockMapping:
    """
    Repeating key/value holders; each discovered key becomes a column.

    header_prefix is prepended to every discovered key. Without an explicit
    definition the name/value(label) and name-attribute conventions apply.
    """
    source_path: str
    header_prefix: str = ""
    definition: Optional[DynamicBlockDefinition] = None

    def validate(self) -> None:
        if not self.source_path.strip():
            raise ProfileError("Dynamic mapping has an empty source path")

    def to_dict(self) -> Dict[str, Any]:
        d = {'sourcePath': self.source_path, 'header': self.header_prefix, 'isDynamicAttributeMapping': True}
        if self.definition:
            d['dynamicBlock'] = self.definition.to_dict()
        return d


FieldMapping = Union[RegularFieldMapping, DynamicBlockMapping]


def field_mapping_from_dict(data: Dict[str, Any]) -> FieldMapping:
    """Build the right mapping variant from a camelCase or snake_case dict."""
    # YAML turns bare numbers and dates into non-strings
    source_path = str(data.get('sourcePath', data.get('source_path', '')) or '')
    header = str(data.get('header', '') or '')
    is_dynamic = data.get('isDynamicAttributeMapping', data.get('is_dynamic', False))

    if is_dynamic:
        block = data.get('dynamicBlock') or data.get('dynamic_block')
        definition = DynamicBlockDefinition.from_dict(block) if block else None
        return DynamicBlockMapping(source_path=source_path, header_prefix=header, definition=definition)
    return RegularFieldMapping(source_path=source_path, header=header)


@dataclass(frozen=True)
class MappingProfile:
    """How to find items in an XML shape and which fields to pull out of them."""
    item_root_path: str
    field_mappings: List[FieldMapping] = field(default_factory=list)
    name: str = ""
    status: ProfileStatus = ProfileStatus.HEURISTIC

    def validate(self) -> None:
        """
        Check the profile is usable for extraction.

        Raises:
            ProfileError: On empty root path, no mappings, or an invalid mapping
        """
        if not self.item_root_path or not self.item_root_path.strip():
            raise ProfileError(f"Profile '{self.name}' has no item root path")
        if not self.field_mappings:
            raise ProfileError(f"Profile '{self.name}' has no field mappings")
        for mapping in self.field_mappings:
            mapping.validate()

    def confirm(self) -> 'MappingProfile':
        """Return a copy promoted to user-confirmed."""
        self.validate()
        return replace(self, status=ProfileStatus.USER_CONFIRMED)

    def require_confirmed(self) -> None:
        if self.status != ProfileStatus.USER_CONFIRMED:
            raise ProfileError(
                f"Profile '{self.name}' was inferred heuristically and must be reviewed before use"
            )

    @property
    def is_confirmed(self) -> bool:
        return self.status == ProfileStatus.USER_CONFIRMED

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MappingProfile':
        mappings = data.get('fieldMappings', data.get('field_mappings')) or []
        status = data.get('status', ProfileStatus.HEURISTIC.value)
        return cls(
            item_root_path=str(data.get('itemRootPath', data.get('item_root_path', '')) or ''),
            field_mappings=[field_mapping_from_dict(m) for m in mappings],
            name=str(data.get('name', '') or ''),
            status=ProfileStatus(status),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': FileType.XML.value,
            'name': self.name,
            'itemRootPath': self.item_root_path,
            'status': self.status.value,
            'fieldMappings': [m.to_dict() for m in self.field_mappings],
        }


@dataclass(frozen=True)
class CsvProfile:
    """Header re-mapping for delimited files."""
    header_mappings: Dict[str, str] = field(default_factory=dict)
    delimiter: str = ','
    has_header_row: bool = True
    name: str = ""

    ALLOWED_DELIMITERS = (',', ';', '\t', '|')

    def validate(self) -> None:
        if self.delimiter not in self.ALLOWED_DELIMITERS:
            raise ProfileError(f"Unsupported CSV delimiter: {self.delimiter!r}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CsvProfile':
        return cls(
            header_mappings=dict(data.get('headerMappings', data.get('header_mappings')) or {}),
            delimiter=data.get('delimiter', ','),
            has_header_row=bool(data.get('hasHeaderRow', data.get('has_header_row', True))),
            name=data.get('name', '') or '',
        )


@dataclass
class ItemRootResult:
    """Best-effort guess at the repeating item element."""
    path: str
    element: Any  # xml.dom.minidom.Element or None
    strategy: InferenceStrategy
    low_confidence: bool = False
    status: ProfileStatus = ProfileStatus.HEURISTIC


@dataclass
class SuggestedMapping:
    field_name: str
    path: str
    is_dynamic: bool = False


@dataclass
class NormalizedSuggestion:
    """Canonical form of a structure suggestion, whatever produced it."""
    item_root_path: Optional[str] = None
    mappings: List[SuggestedMapping] = field(default_factory=list)
    dynamic_block: Optional[DynamicBlockDefinition] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            'mappings': [{'fieldName': m.field_name, 'path': m.path} for m in self.mappings],
        }
        if self.item_root_path:
            d['itemRootPath'] = self.item_root_path
        if self.dynamic_block:
            d['dynamicBlockMapping'] = self.dynamic_block.to_dict()
        return d

    def to_profile(self, name: str = "") -> MappingProfile:
        """
        Turn the suggestion into a heuristic profile awaiting review.

        Raises:
            ProfileError: If no item root path could be established
        """
        if not self.item_root_path:
            raise ProfileError("Suggestion has no item root path")

        mappings: List[FieldMapping] = []
        for m in self.mappings:
            if m.is_dynamic:
                mappings.append(DynamicBlockMapping(source_path=m.path, header_prefix=m.field_name))
            else:
                mappings.append(RegularFieldMapping(source_path=m.path, header=m.field_name))
        if self.dynamic_block:
            mappings.append(DynamicBlockMapping(
                source_path=self.dynamic_block.repeating_element_path,
                definition=self.dynamic_block,
            ))

        return MappingProfile(
            item_root_path=self.item_root_path,
            field_mappings=mappings,
            name=name,
            status=ProfileStatus.HEURISTIC,
        )


@dataclass
class ExtractionReport:
    """Records produced from one document plus what resolved to nothing."""
    item_count: int = 0
    records: List[Dict[str, str]] = field(default_factory=list)
    empty_fields: List[List[str]] = field(default_factory=list)  # per record
    failures: List[FieldResolutionFailure] = field(default_factory=list)

    @property
    def empty_field_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for headers in self.empty_fields:
            for header in headers:
                counts[header] = counts.get(header, 0) + 1
        return counts

    @property
    def failed_paths(self) -> Dict[str, str]:
        return {f.source_path: f.message for f in self.failures}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'item_count': self.item_count,
            'record_count': len(self.records),
            'empty_field_counts': self.empty_field_counts,
            'failed_paths': self.failed_paths,
        }


@dataclass
class ConversionResult:
    """Result of converting a single file."""
    source_path: str
    file_type: Optional[FileType] = None
    records: List[Dict[str, Any]] = field(default_factory=list)
    report: Optional[ExtractionReport] = None
    output_path: Optional[str] = None
    status: ConversionStatus = ConversionStatus.SUCCESS
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'source_path': self.source_path,
            'file_type': self.file_type.value if self.file_type else None,
            'record_count': len(self.records),
            'output_path': self.output_path,
            'status': self.status.value,
            'errors': self.errors,
            'report': self.report.to_dict() if self.report else None,
        }
