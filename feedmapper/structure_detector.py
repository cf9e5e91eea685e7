"""
Heuristic XML structure detection.
Guesses the repeating item element and proposes field mappings for it.
Results are suggestions for review, never confirmed profiles.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Set

from .models import (
    DynamicBlockMapping,
    FieldMapping,
    InferenceStrategy,
    ItemRootResult,
    MappingProfile,
    ProfileStatus,
    RegularFieldMapping,
)
from .vocabulary import (
    CONTAINER_TAG_VOCABULARY,
    DYNAMIC_ATTRIBUTE_THRESHOLD,
    DYNAMIC_KEY_NAME,
    DYNAMIC_VALUE_NAMES,
    HOLDER_ID_ATTRIBUTES,
    ITEM_TAG_VOCABULARY,
    MAX_CONTAINER_DEPTH,
    MIN_RICH_ELEMENT_FIELDS,
)
from .xml_document import (
    attribute_items,
    element_children,
    first_child_named,
    iter_descendants,
    local_name,
    preferred_text,
    tag_chain,
)

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])')
_WORD_SEPARATORS = re.compile(r'[\s_\-]+')


def _words(name: str) -> List[str]:
    clean = local_name(name.strip())
    clean = _CAMEL_BOUNDARY.sub(' ', clean)
    return [w for w in _WORD_SEPARATORS.split(clean) if w]


def format_header_name(name: str) -> str:
    """'ns:productName' / 'product_name' / 'product-name' -> 'Product Name'."""
    return ' '.join(w[:1].upper() + w[1:].lower() for w in _words(name))


def format_compound_name(name: str) -> str:
    """Same word split as format_header_name, joined without separator: 'ProductName'."""
    return ''.join(w[:1].upper() + w[1:].lower() for w in _words(name))


def _absolute_path(elements: Sequence) -> str:
    """Shared absolute tag chain of the elements, or //tag when they differ."""
    chains = {tuple(tag_chain(e)) for e in elements}
    if len(chains) == 1:
        return '/' + '/'.join(chains.pop())
    return '//' + elements[0].tagName


def _has_same_named_sibling(element) -> bool:
    parent = element.parentNode
    return sum(1 for c in element_children(parent) if c.tagName == element.tagName) > 1


class ItemRootInferencer:
    """Finds the element most likely to represent one record."""

    def __init__(self,
                 item_tags: Iterable[str] = ITEM_TAG_VOCABULARY,
                 min_fields: int = MIN_RICH_ELEMENT_FIELDS):
        self.item_tags = tuple(t.lower() for t in item_tags)
        self.min_fields = min_fields

    def infer(self, doc) -> ItemRootResult:
        """
        Guess the item element of a document.

        Order: known item tag names (repeating occurrences first), then the
        element with most child elements + attributes (at least min_fields),
        then the document element itself (low confidence).

        Args:
            doc: Parsed DOM document

        Returns:
            ItemRootResult with an absolute path
        """
        root = doc.documentElement
        elements = [root] + list(iter_descendants(root))

        result = self._by_vocabulary(elements)
        if result is None:
            result = self._by_richness(elements[1:])
        if result is None:
            logger.info(f"No item candidate found, falling back to document root <{root.tagName}>")
            result = ItemRootResult(
                path='/' + root.tagName,
                element=root,
                strategy=InferenceStrategy.DOCUMENT_ROOT,
                low_confidence=True,
            )
        logger.info(f"Inferred item root {result.path} ({result.strategy.value})")
        return result

    def _by_vocabulary(self, elements: list) -> Optional[ItemRootResult]:
        matches_by_tag = []
        for tag in self.item_tags:
            matches = [e for e in elements if local_name(e.tagName).lower() == tag]
            if matches:
                matches_by_tag.append(matches)

        # A repeating tag wins over a single occurrence of a higher-priority tag
        for matches in matches_by_tag:
            if any(_has_same_named_sibling(e) for e in matches):
                return self._result(matches, InferenceStrategy.VOCABULARY)
        if matches_by_tag:
            return self._result(matches_by_tag[0], InferenceStrategy.VOCABULARY)
        return None

    def _by_richness(self, elements: list) -> Optional[ItemRootResult]:
        best, best_score = None, 0
        for element in elements:
            score = len(element_children(element)) + len(attribute_items(element))
            if score > best_score:
                best, best_score = element, score
        if best is None or best_score < self.min_fields:
            return None

        same_chain = [e for e in elements if tag_chain(e) == tag_chain(best)]
        return self._result(same_chain, InferenceStrategy.RICHEST_ELEMENT)

    @staticmethod
    def _result(matches: list, strategy: InferenceStrategy) -> ItemRootResult:
        # Only one tag spelling per path; keep elements matching the first occurrence
        tag = matches[0].tagName
        same_tag = [e for e in matches if e.tagName == tag]
        return ItemRootResult(path=_absolute_path(same_tag), element=same_tag[0], strategy=strategy)


class FieldMappingInferencer:
    """Proposes mappings for the fields of an item element."""

    def __init__(self,
                 container_tags: Iterable[str] = CONTAINER_TAG_VOCABULARY,
                 max_depth: int = MAX_CONTAINER_DEPTH,
                 expand_key_value_children: bool = False):
        self.container_tags = tuple(t.lower() for t in container_tags)
        self.max_depth = max_depth
        self.expand_key_value_children = expand_key_value_children

    def infer(self, item) -> List[FieldMapping]:
        """
        Propose mappings for an item element.

        1. one text mapping per distinct direct child tag (repeated tags
           collapse into their first occurrence);
        2. item attributes: one dynamic '@*' mapping when there are 3 or
           more, otherwise one mapping each;
        3. one dynamic mapping per known container tag (up to max_depth
           below the item) that has child elements.

        With expand_key_value_children, name/value holders among the item's
        children and inside each container also get one predicate mapping
        per key, plus @id / @attributeId columns when the holder has them.
        """
        mappings: List[FieldMapping] = []
        seen_tags: Set[str] = set()

        for child in element_children(item):
            tag = child.tagName
            if tag in seen_tags:
                continue
            seen_tags.add(tag)
            mappings.append(RegularFieldMapping(f"{tag}/text()", format_header_name(tag)))
            if self.expand_key_value_children:
                mappings.extend(self._key_value_mappings(item, tag))

        attributes = attribute_items(item)
        if len(attributes) >= DYNAMIC_ATTRIBUTE_THRESHOLD:
            mappings.append(DynamicBlockMapping(source_path='@*'))
        else:
            for name, _ in attributes:
                mappings.append(RegularFieldMapping(f"@{name}", format_header_name(name)))

        mappings.extend(self._container_mappings(item))

        logger.info(f"Inferred {len(mappings)} field mappings for <{item.tagName}>")
        return mappings

    def _container_mappings(self, item) -> List[FieldMapping]:
        mappings: List[FieldMapping] = []
        seen_paths: Set[str] = set()
        frontier = [(child, [child.tagName]) for child in element_children(item)]
        depth = 1
        while frontier and depth <= self.max_depth:
            next_frontier = []
            for element, chain in frontier:
                children = element_children(element)
                if local_name(element.tagName).lower() in self.container_tags and children:
                    prefix = '/'.join(chain)
                    path = prefix + '/*'
                    if path not in seen_paths:
                        seen_paths.add(path)
                        mappings.append(DynamicBlockMapping(source_path=path))
                        if self.expand_key_value_children:
                            for tag in dict.fromkeys(c.tagName for c in children):
                                mappings.extend(self._key_value_mappings(element, tag, prefix))
                next_frontier.extend((c, chain + [c.tagName]) for c in children)
            frontier = next_frontier
            depth += 1
        return mappings

    @staticmethod
    def _key_value_mappings(parent, tag: str, prefix: str = '') -> List[RegularFieldMapping]:
        """Predicate mappings for <tag><name>K</name><value>V</value></tag> children of parent."""
        mappings = []
        seen_keys: Set[str] = set()
        holder_path = f"{prefix}/{tag}" if prefix else tag
        for child in element_children(parent):
            if child.tagName != tag:
                continue
            key_element = first_child_named(child, DYNAMIC_KEY_NAME)
            if key_element is None:
                continue
            value_name = next((n for n in DYNAMIC_VALUE_NAMES if first_child_named(child, n) is not None), None)
            key = preferred_text(key_element).strip()
            if value_name is None or not key or key in seen_keys or "'" in key:
                continue
            seen_keys.add(key)
            selector = f"{holder_path}[{DYNAMIC_KEY_NAME}/text()='{key}']"
            header = format_compound_name(tag) + format_compound_name(key)
            mappings.append(RegularFieldMapping(f"{selector}/{value_name}/text()", header))
            # Holder ids become their own columns
            for attr_name in HOLDER_ID_ATTRIBUTES:
                if child.hasAttribute(attr_name):
                    mappings.append(RegularFieldMapping(
                        f"{selector}/@{attr_name}",
                        header + format_compound_name(attr_name),
                    ))
        return mappings


@dataclass
class DetectionResult:
    profile: MappingProfile
    item_root: ItemRootResult


class StructureDetector:
    """Runs item root and field inference to produce a heuristic profile."""

    def __init__(self,
                 root_inferencer: Optional[ItemRootInferencer] = None,
                 field_inferencer: Optional[FieldMappingInferencer] = None):
        self.root_inferencer = root_inferencer or ItemRootInferencer()
        self.field_inferencer = field_inferencer or FieldMappingInferencer()

    def detect(self, doc, name: str = '') -> DetectionResult:
        item_root = self.root_inferencer.infer(doc)
        mappings = self.field_inferencer.infer(item_root.element) if item_root.element is not None else []
        profile = MappingProfile(
            item_root_path=item_root.path,
            field_mappings=mappings,
            name=name,
            status=ProfileStatus.HEURISTIC,
        )
        return DetectionResult(profile=profile, item_root=item_root)


def infer_item_root(doc) -> ItemRootResult:
    return ItemRootInferencer().infer(doc)


def infer_field_mappings(item) -> List[FieldMapping]:
    return FieldMappingInferencer().infer(item)


def detect_structure(doc, name: str = '') -> DetectionResult:
    return StructureDetector().detect(doc, name)
