"""Thin lxml helpers shared by the document modules."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from lxml import etree

if TYPE_CHECKING:
    from collections.abc import Iterator

XML_ENCODING: Final[str] = "UTF-8"
EXC_C14N_ALGORITHM: Final[str] = "http://www.w3.org/2001/10/xml-exc-c14n#"

_DECLARATION_PATTERN: Final = re.compile(
    r"""^\s*<\?xml\s[^>]*?encoding\s*=\s*["'](?P<encoding>[A-Za-z0-9._-]+)["']"""
)


def secure_parser(*, remove_blank_text: bool = False) -> etree.XMLParser:
    """Parser that never resolves entities or touches the network."""

    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        huge_tree=False,
        remove_blank_text=remove_blank_text,
    )


def parse_xml(document: str | bytes, *, remove_blank_text: bool = False) -> etree._Element:
    """Parse a document; raises ``etree.XMLSyntaxError`` on malformed input."""

    data = document.encode(XML_ENCODING) if isinstance(document, str) else document
    return etree.fromstring(data, parser=secure_parser(remove_blank_text=remove_blank_text))


def declared_encoding(document: str) -> str | None:
    match = _DECLARATION_PATTERN.match(document)
    return match.group("encoding") if match else None


def serialize(root: etree._Element) -> str:
    return etree.tostring(
        root, xml_declaration=True, encoding=XML_ENCODING, pretty_print=True
    ).decode(XML_ENCODING)


def canonicalize(element: etree._Element) -> bytes:
    """Exclusive XML canonicalization, without comments."""

    return etree.tostring(element, method="c14n", exclusive=True, with_comments=False)


def qn(namespace: str | None, tag: str) -> str:
    return f"{{{namespace}}}{tag}" if namespace else tag


def namespace_of(element: etree._Element) -> str | None:
    return etree.QName(element).namespace


def local_name(element: etree._Element) -> str:
    return etree.QName(element).localname


def sub_element(
    parent: etree._Element,
    tag: str,
    text: str | None = None,
) -> etree._Element:
    """Append a child in the parent's namespace."""

    child = etree.SubElement(parent, qn(namespace_of(parent), tag))
    if text is not None:
        child.text = text
    return child


def find_child(parent: etree._Element, tag: str) -> etree._Element | None:
    return parent.find(qn(namespace_of(parent), tag))


def iter_children(parent: etree._Element, tag: str) -> Iterator[etree._Element]:
    return parent.iterfind(qn(namespace_of(parent), tag))


def child_text(parent: etree._Element | None, *path: str) -> str | None:
    """Stripped text of a nested child, or ``None`` when absent or blank."""

    node = parent
    for tag in path:
        if node is None:
            return None
        node = find_child(node, tag)
    if node is None or node.text is None:
        return None
    text = node.text.strip()
    return text or None
