# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Event stream to record conversion.

The Decoder consumes events produced by recordxml.events and rebuilds the
record described by a schema descriptor. Each element is decoded by a small
state machine:

  EXPECT_ELEMENT_START -> IN_ELEMENT -> EXPECT_CHILD_OR_END -> DONE

Nested records are decoded by recursing into the same machine, on the part
of the stream bounded by the child element. Attribute order is irrelevant
and child elements may appear in any order; only the relative order of the
items of a repeated field is preserved.

The first error aborts decoding and no partial record is ever returned.
"""

import logging
from collections.abc import Iterable, Iterator
from enum import Enum, auto
from typing import Any

from .datamodel import from_text
from .events import ElementEnd, ElementStart, Event, Text
from .exceptions import CoercionError, InvalidValue, MalformedXml, MissingField, UnexpectedAttribute, UnexpectedElement, UnexpectedText
from .options import UnknownFieldPolicy
from .schema import FieldDescriptor, MappingKind, Nested, Repeated, ScalarValueKind, SchemaDescriptor, String, describe_kind

__all__ = 'Decoder', 'DecoderState', 'deserialize'


logger = logging.getLogger(__name__)


class DecoderState(Enum):
    EXPECT_ELEMENT_START = auto()
    IN_ELEMENT = auto()
    EXPECT_CHILD_OR_END = auto()
    DONE = auto()

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'


def _is_whitespace(text: str) -> bool:
    return not text.strip(' \t\r\n')


class Decoder:
    def __init__(self, events: Iterable[Event], *, unknown_fields: UnknownFieldPolicy = UnknownFieldPolicy.IGNORE) -> None:
        self.unknown_fields = unknown_fields
        self._events: Iterator[Event] = iter(events)
        self._pending: Event | None = None

    def decode(self, descriptor: SchemaDescriptor, *, tag: str | None = None) -> Any:
        """Decode one record element from the event stream"""
        return self._decode_record(descriptor, tag or descriptor.element_name, parent=None)

    def finish(self) -> None:
        """Check that nothing but whitespace follows the decoded element"""
        while (event := self._next_event(required=False)) is not None:
            match event:
                case Text(content=content) if _is_whitespace(content):
                    pass
                case _:
                    raise MalformedXml(f'unexpected content after the document element: {event!r}')

    # Event stream handling

    def _next_event(self, *, required: bool = True) -> Event | None:
        if self._pending is not None:
            event, self._pending = self._pending, None
            return event
        try:
            return next(self._events)
        except StopIteration:
            if required:
                raise MalformedXml('unexpected end of the event stream') from None
            return None

    def _push_back(self, event: Event) -> None:
        assert self._pending is None  # noqa: S101 (only one event of lookahead is ever needed)
        self._pending = event

    def _skip_element(self, start: ElementStart) -> None:
        """Skip the whole subtree of an element whose start event was already consumed"""
        depth = 1
        while depth:
            match self._next_event():
                case ElementStart():
                    depth += 1
                case ElementEnd():
                    depth -= 1
        logger.debug('Skipped element %r', start.tag)

    # Unknown field policy

    def _unknown_attribute(self, name: str, element: str) -> None:
        if self.unknown_fields is UnknownFieldPolicy.ERROR:
            raise UnexpectedAttribute(name, element=element)
        logger.debug('Ignoring unknown attribute %r in %r', name, element)

    def _unknown_element(self, start: ElementStart, element: str) -> None:
        if self.unknown_fields is UnknownFieldPolicy.ERROR:
            raise UnexpectedElement(start.tag, element=element)
        logger.debug('Ignoring unknown element %r in %r', start.tag, element)
        self._skip_element(start)

    # Records

    def _decode_record(self, descriptor: SchemaDescriptor, tag: str, parent: str | None) -> Any:
        state = DecoderState.EXPECT_ELEMENT_START
        start: ElementStart | None = None
        values: dict[str, Any] = {}
        text_field = descriptor.text_content_field()
        text_parts: list[str] = []
        has_children = False

        while state is not DecoderState.DONE:
            match state:
                case DecoderState.EXPECT_ELEMENT_START:
                    match self._next_event():
                        case ElementStart(tag=event_tag) as event if event_tag == tag:
                            start = event
                            state = DecoderState.IN_ELEMENT
                        case ElementStart(tag=event_tag):
                            raise UnexpectedElement(event_tag, expected=tag, element=parent)
                        case Text(content=content) if _is_whitespace(content):
                            pass
                        case event:
                            raise MalformedXml(f'expected the start of {tag!r}, got {event!r}')
                case DecoderState.IN_ELEMENT:
                    assert start is not None  # noqa: S101 (used by type checkers)
                    self._decode_attributes(descriptor, start, values)
                    state = DecoderState.EXPECT_CHILD_OR_END
                case DecoderState.EXPECT_CHILD_OR_END:
                    match self._next_event():
                        case Text(content=content):
                            if text_field is not None:
                                text_parts.append(content)
                            elif not _is_whitespace(content):
                                raise UnexpectedText(content, element=tag)
                        case ElementStart() as event:
                            has_children = True
                            self._decode_child(descriptor, event, values, tag)
                        case ElementEnd(tag=event_tag) if event_tag == tag:
                            state = DecoderState.DONE
                        case event:
                            raise MalformedXml(f'unbalanced event in {tag!r}: {event!r}')

        if text_field is not None:
            text = ''.join(text_parts)
            # whitespace only text next to child elements is indentation, not a value
            present = bool(text_parts) and not (has_children and _is_whitespace(text))
            self._decode_text_content(text_field, text, present, values, tag)
        self._complete(descriptor, values, tag)
        return values if descriptor.factory is None else descriptor.factory(values)

    def _decode_attributes(self, descriptor: SchemaDescriptor, start: ElementStart, values: dict[str, Any]) -> None:
        for name, text in start.attributes:
            field = descriptor.field_by_attribute_name(name)
            if field is None:
                self._unknown_attribute(name, start.tag)
            else:
                values[field.key] = self._coerce(field, field.item_kind, text, start.tag)  # type: ignore[arg-type]

    def _decode_text_content(self, field: FieldDescriptor, text: str, present: bool, values: dict[str, Any], element: str) -> None:  # noqa: FBT001
        kind = field.item_kind
        if not isinstance(kind, String) and _is_whitespace(text):
            return  # whitespace around child elements is not a value for non-string kinds
        if present:
            values[field.key] = self._coerce(field, kind, text, element)  # type: ignore[arg-type]

    def _decode_child(self, descriptor: SchemaDescriptor, start: ElementStart, values: dict[str, Any], element: str) -> None:
        field = descriptor.field_by_element_name(start.tag)
        if field is None:
            self._unknown_element(start, element)
            return
        if field.item_name is not None:
            if field.key in values:
                raise UnexpectedElement(start.tag, element=element)
            values[field.key] = self._decode_sequence(field, start)
            return
        value = self._decode_item(field, start, element)
        if field.repeated:
            values.setdefault(field.key, []).append(value)
        elif field.key in values:
            raise UnexpectedElement(start.tag, element=element)  # excess element for a single valued field
        else:
            values[field.key] = value

    def _decode_sequence(self, field: FieldDescriptor, start: ElementStart) -> list[Any]:
        """Decode a wrapped child sequence, whose wrapper start event was already consumed"""
        for name, _ in start.attributes:
            self._unknown_attribute(name, start.tag)
        items = []
        while True:
            match self._next_event():
                case Text(content=content):
                    if not _is_whitespace(content):
                        raise UnexpectedText(content, element=start.tag)
                case ElementStart(tag=field.item_name) as event:
                    items.append(self._decode_item(field, event, start.tag))
                case ElementStart() as event:
                    self._unknown_element(event, start.tag)
                case ElementEnd(tag=start.tag):
                    return items
                case event:
                    raise MalformedXml(f'unbalanced event in {start.tag!r}: {event!r}')

    def _decode_item(self, field: FieldDescriptor, start: ElementStart, element: str) -> Any:
        match field.item_kind:
            case Nested(descriptor=descriptor):
                self._push_back(start)
                value = self._decode_record(descriptor, start.tag, parent=element)
                self._validate(field, value, None, element)
                return value
            case kind:
                return self._coerce(field, kind, self._read_text(start), element)

    def _read_text(self, start: ElementStart) -> str:
        """Read the text content of a leaf element, whose start event was already consumed"""
        for name, _ in start.attributes:
            self._unknown_attribute(name, start.tag)
        text_parts = []
        while True:
            match self._next_event():
                case Text(content=content):
                    text_parts.append(content)
                case ElementStart() as event:
                    self._unknown_element(event, start.tag)
                case ElementEnd(tag=start.tag):
                    return ''.join(text_parts)
                case event:
                    raise MalformedXml(f'unbalanced event in {start.tag!r}: {event!r}')

    def _complete(self, descriptor: SchemaDescriptor, values: dict[str, Any], element: str) -> None:
        """Fill in the absent fields, or fail if any of them is mandatory"""
        for field in descriptor.fields:
            if isinstance(field.value_kind, Repeated):
                if not values.get(field.key) and not field.value_kind.optional:
                    raise MissingField(field.name, element=element)
                values.setdefault(field.key, [])
            elif field.key in values:
                continue
            elif field.has_default:
                values[field.key] = field.default
            elif not field.required:
                values[field.key] = None
            elif field.mapping_kind is MappingKind.TEXT_CONTENT and isinstance(field.item_kind, String):
                values[field.key] = ''  # an element without text has empty text
            else:
                raise MissingField(field.name, element=element)

    # Values

    def _coerce(self, field: FieldDescriptor, kind: ScalarValueKind, text: str, element: str) -> Any:
        try:
            value = from_text(text, kind)
        except CoercionError as exc:
            raise InvalidValue(field.name, text, expected=describe_kind(kind), reason=str(exc), element=element) from exc
        self._validate(field, value, text, element)
        return value

    @staticmethod
    def _validate(field: FieldDescriptor, value: Any, text: str | None, element: str) -> None:
        if field.validate is None:
            return
        try:
            field.validate(value)
        except ValueError as exc:
            raise InvalidValue(field.name, text, reason=str(exc) or 'validation failed', element=element) from exc


def deserialize(descriptor: SchemaDescriptor, events: Iterable[Event], *, unknown_fields: UnknownFieldPolicy = UnknownFieldPolicy.IGNORE) -> Any:
    """
    Deserialize a record from a stream of events.

    The stream must contain a single element matching the descriptor.
    Returns the record built by the descriptor's factory, or a dict mapping
    field keys to values when the descriptor has no factory.
    """
    decoder = Decoder(events, unknown_fields=unknown_fields)
    record = decoder.decode(descriptor)
    decoder.finish()
    return record
