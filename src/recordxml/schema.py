# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Schema descriptors: static metadata describing how a record maps to XML.

A SchemaDescriptor is built once per record type and never mutated after
that, which makes it safe to share between concurrent codec calls. Field
kinds are closed sets of tagged variants (MappingKind and the ValueKind
dataclasses), which the serializer and deserializer match on exhaustively.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

from .datamodel import BooleanAdapter, DataAdapter, EnumAdapter, FloatAdapter, Int64Adapter, StringAdapter, UnionAdapter

__all__ = (  # noqa: RUF022
    'MISSING',
    'MappingKind',

    'String',
    'Integer',
    'Float',
    'Boolean',
    'Enumeration',
    'Union',
    'Nested',
    'Optional',
    'Repeated',
    'ScalarValueKind',
    'ValueKind',
    'describe_kind',

    'FieldDescriptor',
    'SchemaDescriptor',
)


class Marker(Enum):
    MISSING = auto()

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'


MISSING = Marker.MISSING


class MappingKind(Enum):
    ATTRIBUTE = 'attribute'
    CHILD_ELEMENT = 'child element'
    TEXT_CONTENT = 'text content'
    CHILD_SEQUENCE = 'child sequence'

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'


# Scalar value kinds. The adapter does the actual conversion to and from text.

@dataclass(frozen=True, slots=True)
class String:
    adapter: type[DataAdapter[str]] = StringAdapter


@dataclass(frozen=True, slots=True)
class Integer:
    adapter: type[DataAdapter[int]] = Int64Adapter


@dataclass(frozen=True, slots=True)
class Float:
    adapter: type[DataAdapter[float]] = FloatAdapter


@dataclass(frozen=True, slots=True)
class Boolean:
    adapter: type[DataAdapter[bool]] = BooleanAdapter


@dataclass(frozen=True, slots=True)
class Enumeration:
    enum_type: type[Enum]
    adapter: type[DataAdapter[Enum]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'adapter', EnumAdapter.for_type(self.enum_type))


@dataclass(frozen=True, slots=True)
class Union:
    """A value that can be of any of the given scalar kinds, tried in order when parsing"""

    kinds: tuple['ScalarValueKind', ...]
    adapter: type[DataAdapter[Any]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.kinds:
            raise TypeError('Union needs at least one value kind')
        for kind in self.kinds:
            if not isinstance(kind, _scalar_kinds):
                raise TypeError(f'Union can only contain scalar value kinds, not {kind!r}')
        object.__setattr__(self, 'kinds', tuple(self.kinds))
        object.__setattr__(self, 'adapter', UnionAdapter.for_adapters(tuple(kind.adapter for kind in self.kinds)))


type ScalarValueKind = String | Integer | Float | Boolean | Enumeration | Union


# Composite value kinds

@dataclass(frozen=True, slots=True)
class Nested:
    descriptor: 'SchemaDescriptor'


@dataclass(frozen=True, slots=True)
class Optional:
    kind: ScalarValueKind | Nested

    def __post_init__(self) -> None:
        if isinstance(self.kind, Optional | Repeated):
            raise TypeError(f'{self.__class__.__name__} cannot wrap {self.kind!r}')


@dataclass(frozen=True, slots=True)
class Repeated:
    kind: ScalarValueKind | Nested
    optional: bool = True  # when False, at least one item must be present

    def __post_init__(self) -> None:
        if isinstance(self.kind, Optional | Repeated):
            raise TypeError(f'{self.__class__.__name__} cannot wrap {self.kind!r}')


type ValueKind = ScalarValueKind | Nested | Optional | Repeated

_scalar_kinds = (String, Integer, Float, Boolean, Enumeration, Union)
_value_kinds = (*_scalar_kinds, Nested, Optional, Repeated)


def describe_kind(kind: ValueKind) -> str:
    """Return a human readable description of a value kind, for use in error messages"""
    match kind:
        case Optional(kind=inner):
            return f'optional {describe_kind(inner)}'
        case Repeated(kind=inner):
            return f'sequence of {describe_kind(inner)}'
        case Nested(descriptor=descriptor):
            return f'{descriptor.element_name!r} record'
        case String() | Integer() | Float() | Boolean() | Enumeration() | Union():
            return kind.adapter.name
        case _:
            raise TypeError(f'unknown value kind: {kind!r}')


@dataclass(frozen=True, eq=False)
class FieldDescriptor:
    name: str
    mapping_kind: MappingKind
    value_kind: ValueKind
    key: str = None  # type: ignore[assignment]  # defaults to name
    default: Any = MISSING
    validate: Callable[[Any], None] | None = None
    item_name: str | None = None  # only for wrapped child sequences

    def __post_init__(self) -> None:
        if self.key is None:
            object.__setattr__(self, 'key', self.name)
        if not isinstance(self.mapping_kind, MappingKind):
            raise TypeError(f'invalid mapping kind for field {self.name!r}: {self.mapping_kind!r}')
        if not isinstance(self.value_kind, _value_kinds):
            raise TypeError(f'invalid value kind for field {self.name!r}: {self.value_kind!r}')

        item_kind = self.item_kind
        match self.mapping_kind:
            case MappingKind.ATTRIBUTE | MappingKind.TEXT_CONTENT:
                if self.repeated:
                    raise TypeError(f'{self.mapping_kind.value} field {self.name!r} cannot be repeated')
                if not isinstance(item_kind, _scalar_kinds):
                    raise TypeError(f'{self.mapping_kind.value} field {self.name!r} must have a scalar value, not {item_kind!r}')
            case MappingKind.CHILD_SEQUENCE:
                if not self.repeated:
                    raise TypeError(f'child sequence field {self.name!r} must be repeated')
            case MappingKind.CHILD_ELEMENT:
                pass

        if self.item_name is not None and self.mapping_kind is not MappingKind.CHILD_SEQUENCE:
            raise TypeError(f'item_name can only be used with child sequences (field {self.name!r})')
        if self.repeated and self.default is not MISSING:
            raise TypeError(f'repeated field {self.name!r} cannot have a default value')
        if isinstance(self.value_kind, Optional) and self.default is not MISSING:
            raise TypeError(f'optional field {self.name!r} cannot have a default value')

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.name!r}, {self.mapping_kind!r}, {self.value_kind!r}, key={self.key!r})'

    @property
    def required(self) -> bool:
        return not isinstance(self.value_kind, Optional)

    @property
    def repeated(self) -> bool:
        return isinstance(self.value_kind, Repeated)

    @property
    def item_kind(self) -> ScalarValueKind | Nested:
        """The value kind with the Optional/Repeated wrapper removed"""
        match self.value_kind:
            case Optional(kind=kind) | Repeated(kind=kind):
                return kind
            case kind:
                return kind

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    @property
    def element_tag(self) -> str:
        """The tag used by a single item of this field when it is written as a child element"""
        return self.item_name if self.item_name is not None else self.name


@dataclass(frozen=True, eq=False)
class SchemaDescriptor:
    element_name: str
    fields: tuple[FieldDescriptor, ...] = ()
    factory: Callable[[dict[str, Any]], Any] | None = None

    attribute_fields: tuple[FieldDescriptor, ...] = field(init=False, repr=False)
    content_fields: tuple[FieldDescriptor, ...] = field(init=False, repr=False)

    _attributes: dict[str, FieldDescriptor] = field(init=False, repr=False)
    _elements: dict[str, FieldDescriptor] = field(init=False, repr=False)
    _text_content: FieldDescriptor | None = field(init=False, repr=False)

    def __post_init__(self) -> None:
        fields = tuple(self.fields)

        keys: set[str] = set()
        attributes: dict[str, FieldDescriptor] = {}
        elements: dict[str, FieldDescriptor] = {}
        text_content: FieldDescriptor | None = None

        for descriptor in fields:
            if not isinstance(descriptor, FieldDescriptor):
                raise TypeError(f'fields must be FieldDescriptor instances, not {type(descriptor).__qualname__}')
            if descriptor.key in keys:
                raise ValueError(f'duplicate record key {descriptor.key!r} in {self.element_name!r}')
            keys.add(descriptor.key)
            match descriptor.mapping_kind:
                case MappingKind.ATTRIBUTE:
                    if descriptor.name in attributes:
                        raise ValueError(f'duplicate attribute {descriptor.name!r} in {self.element_name!r}')
                    attributes[descriptor.name] = descriptor
                case MappingKind.CHILD_ELEMENT | MappingKind.CHILD_SEQUENCE:
                    if descriptor.name in elements:
                        raise ValueError(f'duplicate child element {descriptor.name!r} in {self.element_name!r}')
                    elements[descriptor.name] = descriptor
                case MappingKind.TEXT_CONTENT:
                    if text_content is not None:
                        raise ValueError(f'{self.element_name!r} can have only one text content field ({text_content.name!r} and {descriptor.name!r})')
                    text_content = descriptor

        object.__setattr__(self, 'fields', fields)
        object.__setattr__(self, 'attribute_fields', tuple(attributes.values()))
        object.__setattr__(self, 'content_fields', tuple(f for f in fields if f.mapping_kind is not MappingKind.ATTRIBUTE))
        object.__setattr__(self, '_attributes', attributes)
        object.__setattr__(self, '_elements', elements)
        object.__setattr__(self, '_text_content', text_content)

    def field_by_attribute_name(self, name: str) -> FieldDescriptor | None:
        return self._attributes.get(name)

    def field_by_element_name(self, name: str) -> FieldDescriptor | None:
        return self._elements.get(name)

    def text_content_field(self) -> FieldDescriptor | None:
        return self._text_content
