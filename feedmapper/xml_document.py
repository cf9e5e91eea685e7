"""
XML document adapter.
Parses feeds into a DOM that keeps CDATA sections distinct from plain text.
"""

import logging
from typing import Iterator, List, Optional, Tuple, Union

from xml.dom import Node
from xml.parsers.expat import ExpatError
from defusedxml import minidom as safe_minidom
from defusedxml.common import DefusedXmlException

from .errors import XmlParseError
from .utils import truncate_string

logger = logging.getLogger(__name__)


def parse_xml(xml_text: Union[str, bytes]):
    """
    Parse XML text into a DOM document.

    Entity declarations and external references are rejected.

    Args:
        xml_text: Raw XML as str or bytes

    Returns:
        xml.dom.minidom.Document

    Raises:
        XmlParseError: If the text is empty or not well-formed
    """
    if xml_text is None or not xml_text.strip():
        raise XmlParseError("XML document is empty")
    if isinstance(xml_text, str):
        xml_text = xml_text.lstrip("\ufeff")

    try:
        doc = safe_minidom.parseString(xml_text)
    except ExpatError as e:
        excerpt = _excerpt_at(xml_text, getattr(e, 'lineno', None))
        raise XmlParseError(f"Failed to parse XML: {e}", excerpt=excerpt) from e
    except DefusedXmlException as e:
        raise XmlParseError(f"Refusing unsafe XML: {e}") from e

    logger.debug(f"Parsed XML document with root <{doc.documentElement.tagName}>")
    return doc


def _excerpt_at(xml_text: Union[str, bytes], lineno: Optional[int]) -> str:
    if isinstance(xml_text, bytes):
        xml_text = xml_text.decode('utf-8', errors='replace')
    lines = xml_text.splitlines()
    if lineno and 0 < lineno <= len(lines):
        return truncate_string(lines[lineno - 1].strip(), 120)
    return truncate_string(xml_text.strip(), 120)


def is_element(node) -> bool:
    return node is not None and node.nodeType == Node.ELEMENT_NODE


def is_document(node) -> bool:
    return node is not None and node.nodeType == Node.DOCUMENT_NODE


def owner_document(node):
    return node if is_document(node) else node.ownerDocument


def element_children(node) -> List:
    """Direct child elements, in document order."""
    return [child for child in node.childNodes if child.nodeType == Node.ELEMENT_NODE]


def iter_descendants(node) -> Iterator:
    """Descendant elements of node (excluding node) in document order."""
    for child in node.childNodes:
        if child.nodeType == Node.ELEMENT_NODE:
            yield child
            yield from iter_descendants(child)


def local_name(tag: str) -> str:
    """Strip a namespace prefix: 'g:price' -> 'price'."""
    return tag.split(':', 1)[1] if ':' in tag else tag


def attribute_items(element) -> List[Tuple[str, str]]:
    """Attributes in document order, namespace declarations excluded."""
    if element.attributes is None:
        return []
    return [
        (name, value)
        for name, value in element.attributes.items()
        if name != 'xmlns' and not name.startswith('xmlns:')
    ]


def text_content(node) -> str:
    """Concatenated text and CDATA of node and all descendants."""
    parts = []
    for child in node.childNodes:
        if child.nodeType in (Node.TEXT_NODE, Node.CDATA_SECTION_NODE):
            parts.append(child.data)
        elif child.nodeType == Node.ELEMENT_NODE:
            parts.append(text_content(child))
    return ''.join(parts)


def cdata_text(element) -> Optional[str]:
    """Content of the direct CDATA children, or None when there are none."""
    sections = [c.data for c in element.childNodes if c.nodeType == Node.CDATA_SECTION_NODE]
    if not sections:
        return None
    return ''.join(sections)


def preferred_text(element) -> str:
    """CDATA content if the element has a CDATA child, otherwise its full text content."""
    cdata = cdata_text(element)
    if cdata is not None:
        return cdata
    return text_content(element)


def direct_text(element) -> Optional[str]:
    """
    Text held directly by the element (not by child elements).

    CDATA wins over plain text. Returns None when the element has no
    text or CDATA child at all.
    """
    cdata = cdata_text(element)
    if cdata is not None:
        return cdata
    texts = [c.data for c in element.childNodes if c.nodeType == Node.TEXT_NODE]
    if not texts:
        return None
    return ''.join(texts)


def first_child_named(element, tag: str):
    for child in element_children(element):
        if child.tagName == tag:
            return child
    return None


def tag_chain(element) -> List[str]:
    """Tag names from the document element down to element."""
    chain = []
    node = element
    while is_element(node):
        chain.append(node.tagName)
        node = node.parentNode
    chain.reverse()
    return chain


def is_ancestor_or_self(ancestor, node) -> bool:
    while node is not None:
        if node is ancestor:
            return True
        node = node.parentNode
    return False
