# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .__info__ import __version__
from .codec import from_bytes, from_str, write_to_bytes, write_to_string
from .exceptions import (
    CodecError,
    DecodeError,
    EncodeError,
    InvalidValue,
    MalformedXml,
    MissingField,
    UnexpectedAttribute,
    UnexpectedElement,
    UnexpectedText,
)
from .options import CodecOptions, UnknownFieldPolicy
from .records import (
    AnnotatedXMLRecord,
    Attribute,
    DataElement,
    Element,
    MultiDataElement,
    MultiElement,
    OptionalAttribute,
    OptionalDataElement,
    OptionalElement,
    OptionalTextValue,
    TextValue,
    XMLRecord,
)
from .schema import (
    MISSING,
    Boolean,
    Enumeration,
    FieldDescriptor,
    Float,
    Integer,
    MappingKind,
    Nested,
    Optional,
    Repeated,
    SchemaDescriptor,
    String,
    Union,
)

__all__ = (  # noqa: RUF022
    '__version__',

    'write_to_string',
    'write_to_bytes',
    'from_str',
    'from_bytes',

    'CodecOptions',
    'UnknownFieldPolicy',

    'SchemaDescriptor',
    'FieldDescriptor',
    'MappingKind',
    'MISSING',
    'String',
    'Integer',
    'Float',
    'Boolean',
    'Enumeration',
    'Union',
    'Nested',
    'Optional',
    'Repeated',

    'XMLRecord',
    'AnnotatedXMLRecord',
    'Attribute',
    'OptionalAttribute',
    'DataElement',
    'OptionalDataElement',
    'MultiDataElement',
    'Element',
    'OptionalElement',
    'MultiElement',
    'TextValue',
    'OptionalTextValue',

    'CodecError',
    'EncodeError',
    'DecodeError',
    'MalformedXml',
    'UnexpectedElement',
    'UnexpectedAttribute',
    'UnexpectedText',
    'InvalidValue',
    'MissingField',
)
