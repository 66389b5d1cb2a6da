# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from typing import Any

from .deserializer import deserialize
from .events import read_events, write_events
from .options import DEFAULT_OPTIONS, CodecOptions
from .schema import SchemaDescriptor
from .serializer import serialize

__all__ = 'write_to_string', 'write_to_bytes', 'from_str', 'from_bytes'


def _record_descriptor(record: Any, descriptor: SchemaDescriptor | None) -> SchemaDescriptor:
    if descriptor is not None:
        return descriptor
    descriptor = getattr(type(record), '_descriptor_', None)
    if not isinstance(descriptor, SchemaDescriptor):
        raise TypeError(f'a schema descriptor must be provided to serialize {type(record).__qualname__!r} objects')
    return descriptor


def _target_descriptor(target: SchemaDescriptor | type) -> SchemaDescriptor:
    descriptor = target if isinstance(target, SchemaDescriptor) else getattr(target, '_descriptor_', None)
    if not isinstance(descriptor, SchemaDescriptor):
        raise TypeError(f'cannot deserialize into {target!r}: expected a SchemaDescriptor or a record type')
    return descriptor


def write_to_bytes(record: Any, descriptor: SchemaDescriptor | None = None, *, options: CodecOptions | None = None) -> bytes:
    """Serialize a record to XML, encoded according to the options"""
    options = options or DEFAULT_OPTIONS
    events = serialize(_record_descriptor(record, descriptor), record)
    return write_events(events, xml_declaration=options.xml_declaration, pretty_print=options.pretty_print, encoding=options.encoding)


def write_to_string(record: Any, descriptor: SchemaDescriptor | None = None, *, options: CodecOptions | None = None) -> str:
    """
    Serialize a record to an XML string.

    The descriptor can be omitted for XMLRecord instances, which carry their
    own. Raises EncodeError if the record does not conform to the descriptor.
    """
    options = options or DEFAULT_OPTIONS
    events = serialize(_record_descriptor(record, descriptor), record)
    return write_events(events, xml_declaration=options.xml_declaration, pretty_print=options.pretty_print, encoding='utf-8').decode('utf-8')


def from_bytes(data: bytes, target: SchemaDescriptor | type, *, options: CodecOptions | None = None) -> Any:
    options = options or DEFAULT_OPTIONS
    return deserialize(_target_descriptor(target), read_events(data), unknown_fields=options.unknown_fields)


def from_str(text: str, target: SchemaDescriptor | type, *, options: CodecOptions | None = None) -> Any:
    """
    Deserialize a record from an XML string.

    The target is either a SchemaDescriptor, in which case the result is
    built by its factory (a dict when it has none), or an XMLRecord subclass.
    Raises DecodeError if the input is malformed or does not match the schema.
    """
    options = options or DEFAULT_OPTIONS
    return deserialize(_target_descriptor(target), read_events(text), unknown_fields=options.unknown_fields)
