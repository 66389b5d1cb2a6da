# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Declarative record types.

Subclassing XMLRecord and declaring fields with the field specifiers in
this module is the way to generate a schema descriptor from a type
declaration. The descriptor is built once, when the class is created:

  class Rectangle(XMLRecord):
      width = Attribute(int)
      height = Attribute(int)

  Rectangle(width=13, height=42).to_string() == '<rectangle width="13" height="42"/>'

Element and field names default to the lower camel case form of the class
and attribute names. Use the name class parameter or the name argument of
the field specifiers to override them.
"""

import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from enum import Enum
from inspect import Parameter, Signature
from types import UnionType
from typing import Any, ClassVar, Self, dataclass_transform, overload

from .codec import from_str, write_to_string
from .datamodel import AdapterRegistry, DataAdapter, to_text
from .options import CodecOptions
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
    ScalarValueKind,
    SchemaDescriptor,
    String,
    Union,
)

__all__ = (  # noqa: RUF022
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

    'lower_camel_case',
)


type XMLData = str | int | float | bool | Enum
type Validator = Callable[[Any], None]


_word = re.compile(r'[A-Z]+(?![a-z])|[A-Z]?[a-z0-9]+')


def lower_camel_case(name: str) -> str:
    """Convert a python name to lower camel case: HelloWorld -> helloWorld, max_count -> maxCount"""
    words = _word.findall(name)
    if not words:
        return name
    return words[0].lower() + ''.join(word.capitalize() for word in words[1:])


def scalar_kind(data_type: type | UnionType, adapter: type[DataAdapter] | None = None) -> ScalarValueKind:
    """Return the scalar value kind for a python data type. A union of types like int | str maps to a Union tried in that order."""
    if isinstance(data_type, UnionType):
        if adapter is not None:
            raise TypeError('union types use the adapters of their members')
        return Union(tuple(scalar_kind(member) for member in data_type.__args__))
    if not isinstance(data_type, type):
        raise TypeError(f'data type must be a type, not {data_type!r}')
    if issubclass(data_type, Enum):
        if adapter is not None:
            raise TypeError('Enum types use their own adapter')
        return Enumeration(data_type)
    adapter = adapter or AdapterRegistry.get_adapter(data_type)
    if adapter is None:
        raise TypeError(f'unsupported data type: {data_type.__qualname__}')
    if issubclass(data_type, bool):  # must come before int
        return Boolean(adapter)
    if issubclass(data_type, str):
        return String(adapter)
    if issubclass(data_type, int):
        return Integer(adapter)
    if issubclass(data_type, float):
        return Float(adapter)
    raise TypeError(f'unsupported data type: {data_type.__qualname__}')


def _type_name(data_type: type | UnionType) -> str:
    return data_type.__qualname__ if isinstance(data_type, type) else repr(data_type)


class FieldSpec[F](ABC):
    """Base class for the descriptors that declare the fields of an XMLRecord"""

    name: str | None
    type: type[F]
    xml_name: str

    mapping_kind: ClassVar[MappingKind]
    element_kind: ClassVar[str] = 'attribute'

    def __set_name__(self, owner: type['XMLRecord'], name: str) -> None:
        if not issubclass(owner, XMLRecord):  # static type analysis does not catch this
            raise TypeError(f'Can only use {self.__class__.__qualname__} descriptors on XMLRecord objects')
        if self.name is None:
            self.name = name
            self.xml_name = self.xml_name or self._default_xml_name(name)
        elif name != self.name:
            raise TypeError(f'cannot assign the same {self.__class__.__name__} descriptor to two different names: {self.name} and {name}')

    def _default_xml_name(self, name: str) -> str:
        return lower_camel_case(name)

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=self.type)

    @property
    @abstractmethod
    def field_descriptor(self) -> FieldDescriptor:
        """The schema field descriptor corresponding to this field"""
        raise NotImplementedError

    @overload
    def __get__(self, instance: None, owner: type['XMLRecord']) -> Self: ...

    @overload
    def __get__(self, instance: 'XMLRecord', owner: type['XMLRecord'] | None = None) -> F: ...

    def __get__(self, instance: 'XMLRecord | None', owner: type['XMLRecord'] | None = None) -> Self | F:
        if instance is None:
            return self
        try:
            return instance._values_[self.name]
        except KeyError as exc:
            raise AttributeError(f'mandatory {self.element_kind} {self.name!r} is missing') from exc

    def __set__(self, instance: 'XMLRecord', value: F) -> None:
        instance._values_[self.name] = self.check(value)  # type: ignore[index]

    def __delete__(self, instance: 'XMLRecord') -> None:
        raise AttributeError(f'mandatory {self.element_kind} {self.name!r} cannot be deleted')

    @abstractmethod
    def check(self, value: Any) -> Any:
        """Check that value can be assigned to the field and return what will be stored"""
        raise NotImplementedError


class DataFieldSpec[D: XMLData](FieldSpec[D], ABC):
    kind: ScalarValueKind
    default: D | Any
    validate: Validator | None

    def __init__(self, data_type: type[D], /, *, name: str | None = None, default: D | Any = MISSING, adapter: type[DataAdapter[D]] | None = None, validate: Validator | None = None) -> None:
        self.name = None
        self.xml_name = name or ''
        self.type = data_type
        self.kind = scalar_kind(data_type, adapter)
        self.default = default
        self.validate = validate
        if default is not MISSING and default is not None:
            self.check(default)

    def __repr__(self) -> str:
        name = self.xml_name if self.xml_name != self.name else None
        default = self.default if self.default is not MISSING else None
        return f'{self.__class__.__name__}({_type_name(self.type)}, {name=}, {default=}, adapter={self.kind.adapter.__qualname__})'

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        if self.default is MISSING:
            return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=self.type)
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=self.type, default=self.default)

    @property
    def field_descriptor(self) -> FieldDescriptor:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        return FieldDescriptor(self.xml_name, self.mapping_kind, self.kind, key=self.name, default=self.default, validate=self.validate)

    def __get__(self, instance: 'XMLRecord | None', owner: type['XMLRecord'] | None = None) -> Any:
        if instance is None:
            return self
        try:
            return instance._values_[self.name]
        except KeyError:
            if self.default is not MISSING:
                return self.default
            raise AttributeError(f'mandatory {self.element_kind} {self.name!r} is missing') from None

    def check(self, value: Any) -> Any:
        if not isinstance(value, self.type):
            raise TypeError(f'the {self.name!r} {self.element_kind} must be of type {_type_name(self.type)}')
        to_text(value, self.kind)  # raises CoercionError (a ValueError) for values out of the adapter's range
        return value


class OptionalDataFieldSpec[D: XMLData](DataFieldSpec[D], ABC):
    def __init__(self, data_type: type[D], /, *, name: str | None = None, default: D | None = None, adapter: type[DataAdapter[D]] | None = None, validate: Validator | None = None) -> None:
        super().__init__(data_type, name=name, default=default, adapter=adapter, validate=validate)

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=self.type | None, default=self.default)

    @property
    def field_descriptor(self) -> FieldDescriptor:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        # with a default the field is never absent: a missing value reads back as the default
        if self.default is None:
            return FieldDescriptor(self.xml_name, self.mapping_kind, Optional(self.kind), key=self.name, validate=self.validate)
        return FieldDescriptor(self.xml_name, self.mapping_kind, self.kind, key=self.name, default=self.default, validate=self.validate)

    def __get__(self, instance: 'XMLRecord | None', owner: type['XMLRecord'] | None = None) -> Any:
        if instance is None:
            return self
        value = instance._values_.get(self.name)
        return self.default if value is None else value

    def __set__(self, instance: 'XMLRecord', value: D | None) -> None:
        if value is None:
            instance._values_.pop(self.name, None)  # type: ignore[arg-type]
        else:
            instance._values_[self.name] = self.check(value)  # type: ignore[index]

    def __delete__(self, instance: 'XMLRecord') -> None:
        instance._values_.pop(self.name, None)  # type: ignore[arg-type]


class Attribute[D: XMLData](DataFieldSpec[D]):
    mapping_kind = MappingKind.ATTRIBUTE


class OptionalAttribute[D: XMLData](OptionalDataFieldSpec[D]):
    mapping_kind = MappingKind.ATTRIBUTE


class DataElement[D: XMLData](DataFieldSpec[D]):
    mapping_kind = MappingKind.CHILD_ELEMENT
    element_kind = 'element'


class OptionalDataElement[D: XMLData](OptionalDataFieldSpec[D]):
    mapping_kind = MappingKind.CHILD_ELEMENT
    element_kind = 'element'


class TextValue[D: XMLData](DataFieldSpec[D]):
    """A record field stored as the text content of the record's own element"""

    mapping_kind = MappingKind.TEXT_CONTENT
    element_kind = 'text value'


class OptionalTextValue[D: XMLData](OptionalDataFieldSpec[D]):
    mapping_kind = MappingKind.TEXT_CONTENT
    element_kind = 'text value'


class MultiDataElement[D: XMLData](FieldSpec[list[D]]):
    """
    A record field stored as a sequence of child elements with text content.

    With wrapper set, the items are enclosed in a single element with that
    name and each item is an element named after the field.
    """

    mapping_kind = MappingKind.CHILD_SEQUENCE
    element_kind = 'element'

    def __init__(self, data_type: type[D], /, *, name: str | None = None, optional: bool = True, wrapper: str | None = None, adapter: type[DataAdapter[D]] | None = None, validate: Validator | None = None) -> None:
        self.name = None
        self.xml_name = name or ''
        self.type = data_type  # type: ignore[assignment]
        self.kind = scalar_kind(data_type, adapter)
        self.optional = optional
        self.wrapper = wrapper
        self.validate = validate

    def __repr__(self) -> str:
        name = self.xml_name if self.xml_name != self.name else None
        return f'{self.__class__.__name__}({_type_name(self.type)}, {name=}, optional={self.optional!r}, wrapper={self.wrapper!r}, adapter={self.kind.adapter.__qualname__})'

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=Iterable[self.type], default=() if self.optional else Parameter.empty)  # type: ignore[name-defined]

    @property
    def field_descriptor(self) -> FieldDescriptor:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        value_kind = Repeated(self.kind, optional=self.optional)
        if self.wrapper is not None:
            return FieldDescriptor(self.wrapper, MappingKind.CHILD_SEQUENCE, value_kind, key=self.name, validate=self.validate, item_name=self.xml_name)
        return FieldDescriptor(self.xml_name, MappingKind.CHILD_SEQUENCE, value_kind, key=self.name, validate=self.validate)

    def __get__(self, instance: 'XMLRecord | None', owner: type['XMLRecord'] | None = None) -> Any:
        if instance is None:
            return self
        values = instance._values_.setdefault(self.name, [])  # type: ignore[arg-type]
        if not values and not self.optional:
            raise AttributeError(f'mandatory element {self.name!r} is missing')
        return values

    def __delete__(self, instance: 'XMLRecord') -> None:
        if not self.optional:
            raise AttributeError(f'mandatory element {self.name!r} cannot be deleted')
        instance._values_.pop(self.name, None)  # type: ignore[arg-type]

    def check(self, value: Any) -> Any:
        values = list(value)
        if not values and not self.optional:
            raise ValueError(f'the {self.name!r} element must have at least one item')
        for item in values:
            if not isinstance(item, self.type):
                raise TypeError(f'the {self.name!r} element must be of type {_type_name(self.type)}')
            to_text(item, self.kind)
        return values


class ElementFieldSpec[R: 'XMLRecord'](FieldSpec[R], ABC):
    element_kind = 'element'
    mapping_kind = MappingKind.CHILD_ELEMENT

    def __init__(self, record_type: type[R], /, *, name: str | None = None) -> None:
        if not (isinstance(record_type, type) and issubclass(record_type, XMLRecord)):
            raise TypeError(f"element type must be a subclass of XMLRecord, not '{record_type!r}'")
        self.name = None
        self.xml_name = name or ''
        self.type = record_type

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.type.__name__})'

    def _default_xml_name(self, name: str) -> str:
        return self.type._descriptor_.element_name

    def check(self, value: Any) -> Any:
        if type(value) is not self.type:
            raise TypeError(f'the {self.name!r} element must be of type {_type_name(self.type)}')
        return value


class Element[R: 'XMLRecord'](ElementFieldSpec[R]):
    @property
    def field_descriptor(self) -> FieldDescriptor:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        return FieldDescriptor(self.xml_name, self.mapping_kind, Nested(self.type._descriptor_), key=self.name)


class OptionalElement[R: 'XMLRecord'](ElementFieldSpec[R]):
    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=self.type | None, default=None)

    @property
    def field_descriptor(self) -> FieldDescriptor:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        return FieldDescriptor(self.xml_name, self.mapping_kind, Optional(Nested(self.type._descriptor_)), key=self.name)

    def __get__(self, instance: 'XMLRecord | None', owner: type['XMLRecord'] | None = None) -> Any:
        if instance is None:
            return self
        return instance._values_.get(self.name)

    def __set__(self, instance: 'XMLRecord', value: R | None) -> None:
        if value is None:
            instance._values_.pop(self.name, None)  # type: ignore[arg-type]
        else:
            instance._values_[self.name] = self.check(value)  # type: ignore[index]

    def __delete__(self, instance: 'XMLRecord') -> None:
        instance._values_.pop(self.name, None)  # type: ignore[arg-type]


class MultiElement[R: 'XMLRecord'](ElementFieldSpec[R]):
    mapping_kind = MappingKind.CHILD_SEQUENCE

    def __init__(self, record_type: type[R], /, *, name: str | None = None, optional: bool = True, wrapper: str | None = None) -> None:
        super().__init__(record_type, name=name)
        self.optional = optional
        self.wrapper = wrapper

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.type.__name__}, optional={self.optional}, wrapper={self.wrapper!r})'

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=Iterable[self.type], default=() if self.optional else Parameter.empty)  # type: ignore[name-defined]

    @property
    def field_descriptor(self) -> FieldDescriptor:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        value_kind = Repeated(Nested(self.type._descriptor_), optional=self.optional)
        if self.wrapper is not None:
            return FieldDescriptor(self.wrapper, MappingKind.CHILD_SEQUENCE, value_kind, key=self.name, item_name=self.xml_name)
        return FieldDescriptor(self.xml_name, MappingKind.CHILD_SEQUENCE, value_kind, key=self.name)

    def __get__(self, instance: 'XMLRecord | None', owner: type['XMLRecord'] | None = None) -> Any:
        if instance is None:
            return self
        elements = instance._values_.setdefault(self.name, [])  # type: ignore[arg-type]
        if not elements and not self.optional:
            raise AttributeError(f'mandatory element {self.name!r} is missing')
        return elements

    def __delete__(self, instance: 'XMLRecord') -> None:
        if not self.optional:
            raise AttributeError(f'mandatory element {self.name!r} cannot be deleted')
        instance._values_.pop(self.name, None)  # type: ignore[arg-type]

    def check(self, value: Any) -> Any:
        elements = list(value)
        if not elements and not self.optional:
            raise ValueError(f'the {self.name!r} element must have at least one item')
        for element in elements:
            if type(element) is not self.type:
                raise TypeError(f'the {self.name!r} element must be of type {_type_name(self.type)}')
        return elements


class XMLRecord:
    # Public attributes. These can either be overwritten by subclasses, or preferably specified via class parameters:
    #
    # class MyRecord(XMLRecord, name=...):
    #     ...
    #
    # Note that class parameters use normal names, while class attributes use sunder names to avoid conflicts with
    # application defined XMLRecord attributes and elements.

    _name_: ClassVar[str | None] = None

    # Derived and internal attributes (these should not be overwritten in subclasses)

    _values_: dict[str, Any]

    _fields_: ClassVar[dict[str, FieldSpec]] = {}
    _descriptor_: ClassVar[SchemaDescriptor]

    __signature__: ClassVar[Signature] = Signature()

    _all_arguments: ClassVar[frozenset[str]] = frozenset()
    _mandatory_arguments: ClassVar[frozenset[str]] = frozenset()

    def __new__(cls, **kw: object) -> Self:
        if not cls._all_arguments.issuperset(kw):
            raise TypeError(f'got an unexpected keyword argument {next(iter(set(kw) - cls._all_arguments))!r}')
        if not cls._mandatory_arguments.issubset(kw):
            raise TypeError(f'missing a required keyword argument {next(iter(cls._mandatory_arguments - set(kw)))!r}')
        return super().__new__(cls)

    def __init__(self, **kw: object) -> None:
        self._values_ = {}
        for name, value in kw.items():
            setattr(self, name, value)

    def __init_subclass__(cls, name: str | None = None, **kw: object) -> None:
        super().__init_subclass__(**kw)

        if name is not None:
            if '_name_' in cls.__dict__ and cls._name_ != name:
                raise TypeError(f'The name specified via class parameter and the "_name_" class attribute are different ({name!r} != {cls._name_!r})')
            cls._name_ = name
        elif '_name_' not in cls.__dict__:
            cls._name_ = lower_camel_case(cls.__name__)

        # all the fields on this record (both inherited and locally defined)
        fields = cls._fields_ | {name: value for name, value in cls.__dict__.items() if isinstance(value, FieldSpec)}

        cls._fields_ = fields
        cls._descriptor_ = SchemaDescriptor(cls._name_, tuple(spec.field_descriptor for spec in fields.values()), factory=cls._from_fields_)  # type: ignore[arg-type]

        cls.__signature__ = Signature(parameters=[spec.signature_parameter for spec in fields.values()])
        cls._all_arguments = frozenset(cls.__signature__.parameters)
        cls._mandatory_arguments = frozenset(p.name for p in cls.__signature__.parameters.values() if p.default is Parameter.empty)

    def __repr__(self) -> str:
        values = ', '.join(f'{name}={value!r}' for name, value in self._field_values_().items() if value is not MISSING)
        return f'{self.__class__.__qualname__}({values})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, XMLRecord):
            return type(self) is type(other) and self._field_values_() == other._field_values_()
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def _field_values_(self) -> dict[str, Any]:
        return {name: getattr(self, name, MISSING) for name in self._fields_}

    @classmethod
    def _from_fields_(cls, values: dict[str, Any]) -> Self:
        instance = super().__new__(cls)
        instance._values_ = {name: value for name, value in values.items() if value is not None}
        return instance

    @classmethod
    def from_string(cls, text: str, *, options: CodecOptions | None = None) -> Self:
        return from_str(text, cls, options=options)

    def to_string(self, *, options: CodecOptions | None = None) -> str:
        return write_to_string(self, options=options)


field_specifiers = (Attribute, OptionalAttribute, DataElement, OptionalDataElement, MultiDataElement, Element, OptionalElement, MultiElement, TextValue, OptionalTextValue)


@dataclass_transform(kw_only_default=True, field_specifiers=field_specifiers)  # type: ignore[misc]
class AnnotatedXMLRecord(XMLRecord):
    """
    A static type checker friendly variant of XMLRecord.

    Subclassing AnnotatedXMLRecord allows static type checkers to identify the
    names and types of the arguments used to create instances, at the cost of
    being more verbose and redundant with the field definitions:

      width: Attribute[int] = Attribute(int, adapter=UInt32Adapter)
      points: MultiElement[Point] = MultiElement(Point, optional=True)
    """


del field_specifiers
