# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Conversion between XML markup and a flat stream of structural events.

This is the only part of the package that deals with raw markup. Parsing,
escaping and well-formedness checks are delegated to lxml.
"""

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from lxml import etree

from .exceptions import MalformedXml

__all__ = 'ElementStart', 'ElementEnd', 'Text', 'Event', 'read_events', 'write_events', 'write_events_to_string', 'build_tree'


# noinspection PyProtectedMember
type ETreeElement = etree._Element  # noqa: SLF001


@dataclass(frozen=True, slots=True)
class ElementStart:
    tag: str
    attributes: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True, slots=True)
class ElementEnd:
    tag: str


@dataclass(frozen=True, slots=True)
class Text:
    content: str


type Event = ElementStart | ElementEnd | Text


def _make_parser() -> etree.XMLParser:
    return etree.XMLParser(remove_comments=True, remove_pis=True, resolve_entities=False, no_network=True)


_encoding_declaration = re.compile(r'\A(<\?xml\s[^>]*?)\s+encoding\s*=\s*(["\'])[^"\']*\2')


def read_events(data: str | bytes) -> Iterator[Event]:
    """
    Parse XML markup and return an iterator over its structural events.

    The whole document is parsed upfront, so any syntax error is reported
    as MalformedXml by this call, before a single event is produced.
    Strings are parsed as already decoded text, so an encoding named by
    their XML declaration is ignored. Entity references to entities
    declared in an internal DTD are not expanded and are reported as
    MalformedXml.
    """
    if isinstance(data, str):
        data = _encoding_declaration.sub(r'\1', data, count=1)  # lxml does not accept strings that declare an encoding
    try:
        root = etree.fromstring(data, _make_parser())
    except etree.XMLSyntaxError as exc:
        raise MalformedXml(exc.msg, line=exc.lineno, column=exc.offset) from exc
    for entity in root.iter(etree.Entity):
        raise MalformedXml(f'unsupported entity reference {entity.text}', line=entity.sourceline or entity.getparent().sourceline)
    return _element_events(root)


def _element_events(element: ETreeElement) -> Iterator[Event]:
    tag = element.tag
    yield ElementStart(tag, tuple(element.attrib.items()))
    if element.text is not None:
        yield Text(element.text)
    for child in element:
        yield from _element_events(child)
        if child.tail is not None:
            yield Text(child.tail)
    yield ElementEnd(tag)


def build_tree(events: Iterable[Event]) -> ETreeElement:
    """Build an element tree out of a balanced sequence of events"""
    root: ETreeElement | None = None
    stack: list[ETreeElement] = []
    try:
        for event in events:
            match event:
                case ElementStart(tag=tag, attributes=attributes):
                    if stack:
                        element = etree.SubElement(stack[-1], tag)
                    elif root is None:
                        element = root = etree.Element(tag)
                    else:
                        raise MalformedXml(f'extra root element {tag!r}')
                    for name, value in attributes:
                        element.set(name, value)
                    stack.append(element)
                case ElementEnd(tag=tag):
                    if not stack or stack[-1].tag != tag:
                        raise MalformedXml(f'unbalanced end tag {tag!r}')
                    stack.pop()
                case Text(content=content):
                    if not stack:
                        raise MalformedXml(f'text {content!r} outside of the root element')
                    parent = stack[-1]
                    if len(parent):
                        last_child = parent[-1]
                        last_child.tail = (last_child.tail or '') + content
                    else:
                        parent.text = (parent.text or '') + content
                case _:
                    raise TypeError(f'unknown event: {event!r}')
    except ValueError as exc:  # invalid names or characters that cannot be represented in XML
        raise MalformedXml(str(exc)) from exc
    if root is None:
        raise MalformedXml('no element found')
    if stack:
        raise MalformedXml(f'unclosed element {stack[-1].tag!r}')
    return root


def write_events(events: Iterable[Event], *, xml_declaration: bool = False, pretty_print: bool = False, encoding: str = 'utf-8') -> bytes:
    """Serialize a sequence of events to XML markup. Text and attribute values are escaped by lxml."""
    return etree.tostring(build_tree(events), xml_declaration=xml_declaration, pretty_print=pretty_print, encoding=encoding)


def write_events_to_string(events: Iterable[Event], *, xml_declaration: bool = False, pretty_print: bool = False) -> str:
    return write_events(events, xml_declaration=xml_declaration, pretty_print=pretty_print, encoding='utf-8').decode('utf-8')
