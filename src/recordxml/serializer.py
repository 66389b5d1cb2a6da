# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Record to event stream conversion.

The serializer walks a record together with its schema descriptor and
produces the list of events describing the record's XML element. Writing
the events out as markup is the job of recordxml.events.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from .datamodel import to_text
from .events import ElementEnd, ElementStart, Event, Text
from .exceptions import CoercionError, InvalidValue, MissingField
from .schema import MISSING, FieldDescriptor, MappingKind, Nested, Repeated, ScalarValueKind, SchemaDescriptor, describe_kind

__all__ = 'serialize', 'field_value'


def serialize(descriptor: SchemaDescriptor, record: Any, *, tag: str | None = None) -> list[Event]:
    """
    Serialize a record into a list of events.

    The record is either a mapping keyed by the field keys or an object that
    has the field keys as attributes. The element is named after the
    descriptor, unless tag is given (used for nested records, which are
    named after the field that contains them).
    """
    events: list[Event] = []
    _serialize_record(descriptor, record, tag or descriptor.element_name, events)
    return events


def field_value(record: Any, key: str) -> Any:
    """Return the value stored under key in the record or MISSING. None is considered missing as well."""
    if isinstance(record, Mapping):
        value = record.get(key, MISSING)
    else:
        value = getattr(record, key, MISSING)
    return MISSING if value is None else value


def _serialize_record(descriptor: SchemaDescriptor, record: Any, tag: str, events: list[Event]) -> None:
    attributes = []
    for field in descriptor.attribute_fields:
        value = _output_value(field, record, tag)
        if value is not MISSING:
            attributes.append((field.name, _render(field, field.item_kind, value, tag)))  # type: ignore[arg-type]
    events.append(ElementStart(tag, tuple(attributes)))

    # text and children are written in declaration order
    for field in descriptor.content_fields:
        value = _output_value(field, record, tag)
        if value is MISSING:
            continue
        match field.mapping_kind:
            case MappingKind.TEXT_CONTENT:
                events.append(Text(_render(field, field.item_kind, value, tag)))  # type: ignore[arg-type]
            case MappingKind.CHILD_ELEMENT | MappingKind.CHILD_SEQUENCE if field.item_name is not None:
                events.append(ElementStart(field.name))
                for item in value:
                    _serialize_child(field, item, field.item_name, events, field.name)
                events.append(ElementEnd(field.name))
            case MappingKind.CHILD_ELEMENT | MappingKind.CHILD_SEQUENCE if field.repeated:
                for item in value:
                    _serialize_child(field, item, field.name, events, tag)
            case MappingKind.CHILD_ELEMENT:
                _serialize_child(field, value, field.name, events, tag)
            case _:
                raise TypeError(f'cannot serialize {field!r}')

    events.append(ElementEnd(tag))


def _serialize_child(field: FieldDescriptor, value: Any, tag: str, events: list[Event], parent: str) -> None:
    match field.item_kind:
        case Nested(descriptor=descriptor):
            if value is None or isinstance(value, str | bytes | int | float | list | tuple):
                raise InvalidValue(field.name, None, expected=describe_kind(field.item_kind), reason=f'got {type(value).__qualname__}', element=parent)
            _serialize_record(descriptor, value, tag, events)
        case kind:
            text = _render(field, kind, value, parent)
            events.append(ElementStart(tag))
            if text:
                events.append(Text(text))
            events.append(ElementEnd(tag))


def _output_value(field: FieldDescriptor, record: Any, element: str) -> Any:
    """Return the value that needs to be written for the field or MISSING if nothing is to be written"""
    value = field_value(record, field.key)

    if isinstance(field.value_kind, Repeated):
        if value is MISSING:
            items = []
        elif isinstance(value, str | bytes | Mapping) or not isinstance(value, Iterable):
            raise InvalidValue(field.name, None, expected=describe_kind(field.value_kind), reason=f'got {type(value).__qualname__}', element=element)
        else:
            items = list(value)
        if not items and not field.value_kind.optional:
            raise MissingField(field.name, element=element)
        # an empty wrapped sequence is written as an empty wrapper element
        return items if items or field.item_name is not None and value is not MISSING else MISSING

    if value is MISSING:
        if field.required and not field.has_default:
            raise MissingField(field.name, element=element)
        return MISSING
    if field.has_default and value == field.default:
        return MISSING
    return value


def _render(field: FieldDescriptor, kind: ScalarValueKind, value: Any, element: str) -> str:
    try:
        return to_text(value, kind)
    except CoercionError as exc:
        raise InvalidValue(field.name, None, expected=describe_kind(kind), reason=str(exc), element=element) from exc
