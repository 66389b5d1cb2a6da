# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import re
from enum import Enum
from math import inf, isinf, isnan
from typing import Protocol, runtime_checkable

from .exceptions import CoercionError

__all__ = (  # noqa: RUF022
    'DataAdapter',
    'AdapterRegistry',

    'StringAdapter',
    'BooleanAdapter',
    'FloatAdapter',
    'EnumAdapter',
    'UnionAdapter',

    'IntegerAdapter',
    'PositiveIntegerAdapter',
    'NegativeIntegerAdapter',
    'NonNegativeIntegerAdapter',
    'NonPositiveIntegerAdapter',
    'ByteAdapter',
    'ShortAdapter',
    'IntAdapter',
    'LongAdapter',
    'UnsignedByteAdapter',
    'UnsignedShortAdapter',
    'UnsignedIntAdapter',
    'UnsignedLongAdapter',
    'Int8Adapter',
    'Int16Adapter',
    'Int32Adapter',
    'Int64Adapter',
    'UInt8Adapter',
    'UInt16Adapter',
    'UInt32Adapter',
    'UInt64Adapter',

    'ScalarKind',
    'to_text',
    'from_text',
)


@runtime_checkable
class DataAdapter[T](Protocol):
    """A protocol that describes an adapter between a scalar data type T and its XML text"""

    name: str

    @staticmethod
    def xml_parse(value: str, /) -> T:
        """Parse XML text into the data type"""
        ...

    @staticmethod
    def xml_build(value: T, /) -> str:
        """Build XML text from the data type"""
        ...


class AdapterRegistry:
    _adapters: dict[type, type[DataAdapter]] = {}

    @classmethod
    def associate(cls, data_type: type, adapter: type[DataAdapter]) -> None:
        cls._adapters[data_type] = adapter

    @classmethod
    def get_adapter(cls, data_type: type) -> type[DataAdapter] | None:
        return cls._adapters.get(data_type, None)


class StringAdapter:
    name = 'string'
    data_type = str

    @staticmethod
    def xml_parse(value: str) -> str:
        return value

    @staticmethod
    def xml_build(value: str) -> str:
        if not isinstance(value, str):
            raise CoercionError(f'expected a string, got {type(value).__qualname__}')
        return value


class BooleanAdapter:
    name = 'boolean'
    data_type = bool

    @staticmethod
    def xml_parse(value: str) -> bool:
        match value:
            case 'true':
                return True
            case 'false':
                return False
            case _:
                raise CoercionError(f'invalid boolean value: {value!r}')

    @staticmethod
    def xml_build(value: bool) -> str:  # noqa: FBT001
        if not isinstance(value, bool):
            raise CoercionError(f'expected a boolean, got {type(value).__qualname__}')
        return 'true' if value else 'false'


class FloatAdapter:
    name = 'float'
    data_type = float

    _literal = re.compile(r'[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?', re.ASCII)
    _special_values = {'INF': inf, '+INF': inf, '-INF': -inf, 'inf': inf, '+inf': inf, '-inf': -inf, 'NaN': float('nan'), 'nan': float('nan')}

    @staticmethod
    def xml_parse(value: str) -> float:
        try:
            return FloatAdapter._special_values[value]
        except KeyError:
            pass
        if FloatAdapter._literal.fullmatch(value) is None:
            raise CoercionError(f'invalid float value: {value!r}')
        return float(value)

    @staticmethod
    def xml_build(value: float) -> str:
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise CoercionError(f'expected a float, got {type(value).__qualname__}')
        try:
            value = float(value)
        except OverflowError as exc:
            raise CoercionError('integer value is too large to be represented as a float') from exc
        if isnan(value):
            return 'NaN'
        if isinf(value):
            return 'INF' if value > 0 else '-INF'
        return repr(value)


class EnumAdapter[E: Enum]:
    """
    Adapter for Enum types, using the string form of the member values.

    Each enum type gets its own adapter subclass:

      class ColorAdapter(EnumAdapter, enum_type=Color):
          pass

    or, more conveniently, EnumAdapter.for_type(Color) which caches them.
    """

    name = 'enumeration'
    enum_type: type[Enum]
    data_type: type[Enum]

    _cache: dict[type[Enum], type['EnumAdapter']] = {}

    def __init_subclass__(cls, *, enum_type: type[Enum], **kw: object) -> None:
        super().__init_subclass__(**kw)

        members = {str(member.value): member for member in enum_type}
        name = f'one of {", ".join(map(repr, members))}'

        def xml_parse(value: str) -> Enum:
            try:
                return members[value]
            except KeyError:
                raise CoercionError(f'invalid value {value!r} for {enum_type.__qualname__}') from None

        def xml_build(value: Enum) -> str:
            if not isinstance(value, enum_type):
                raise CoercionError(f'expected a {enum_type.__qualname__} member, got {value!r}')
            return str(value.value)

        cls.enum_type = cls.data_type = enum_type
        cls.name = name
        cls.xml_parse = staticmethod(xml_parse)  # type: ignore[method-assign]
        cls.xml_build = staticmethod(xml_build)  # type: ignore[method-assign]

    @classmethod
    def for_type(cls, enum_type: type[E]) -> type['EnumAdapter[E]']:
        try:
            return cls._cache[enum_type]
        except KeyError:
            adapter = cls._cache[enum_type] = type(f'{enum_type.__name__}Adapter', (EnumAdapter,), {}, enum_type=enum_type)
            return adapter

    @staticmethod
    def xml_parse(value: str) -> E:
        raise NotImplementedError

    @staticmethod
    def xml_build(value: E) -> str:
        raise NotImplementedError


class UnionAdapter:
    """
    Adapter for values that can be of one of several scalar types.

    Parsing tries the member adapters in order and the first one that accepts
    the text wins, so more specific adapters should come first:

      class NumberOrNameAdapter(UnionAdapter, adapters=(Int64Adapter, StringAdapter)):
          pass

    Building uses the first member whose data type is the type of the value,
    then the first member whose data type the value is an instance of.
    UnionAdapter.for_adapters(...) creates and caches such adapters.
    """

    name = 'union'
    adapters: tuple[type[DataAdapter], ...] = ()

    _cache: dict[tuple[type[DataAdapter], ...], type['UnionAdapter']] = {}

    def __init_subclass__(cls, *, adapters: tuple[type[DataAdapter], ...], **kw: object) -> None:
        super().__init_subclass__(**kw)

        if not adapters:
            raise ValueError('a union needs at least one member adapter')

        name = ' or '.join(adapter.name for adapter in adapters)

        def xml_parse(value: str) -> object:
            for adapter in adapters:
                try:
                    return adapter.xml_parse(value)
                except (TypeError, ValueError, OverflowError):
                    continue
            raise CoercionError(f'invalid value {value!r} for {name}')

        def xml_build(value: object) -> str:
            exact = [adapter for adapter in adapters if getattr(adapter, 'data_type', None) is type(value)]
            compatible = [adapter for adapter in adapters if adapter not in exact and isinstance(value, getattr(adapter, 'data_type', object))]
            for adapter in exact + compatible:
                try:
                    return adapter.xml_build(value)
                except (TypeError, ValueError, OverflowError):
                    continue
            raise CoercionError(f'expected {name}, got {type(value).__qualname__}')

        cls.adapters = tuple(adapters)
        cls.name = name
        cls.xml_parse = staticmethod(xml_parse)  # type: ignore[method-assign]
        cls.xml_build = staticmethod(xml_build)  # type: ignore[method-assign]

    @classmethod
    def for_adapters(cls, adapters: tuple[type[DataAdapter], ...]) -> type['UnionAdapter']:
        try:
            return cls._cache[adapters]
        except KeyError:
            adapter = cls._cache[adapters] = type('UnionAdapter', (UnionAdapter,), {}, adapters=adapters)
            return adapter

    @staticmethod
    def xml_parse(value: str) -> object:
        raise NotImplementedError

    @staticmethod
    def xml_build(value: object) -> str:
        raise NotImplementedError


_integer_literal = re.compile(r'[+-]?[0-9]+', re.ASCII)


class IntegerAdapter:
    name = 'integer'
    data_type = int

    def __init_subclass__(cls, *, min_value: int | None = None, max_value: int | None = None, name: str = 'integer', bits: int | None = None, unsigned: bool = False, **kw: object) -> None:
        super().__init_subclass__(**kw)

        # Subclasses should specify either min_value/max_value/name or bits/unsigned.
        # When bits is specified it overwrites the name and boundaries with computed values.

        lower_bound: int | float
        upper_bound: int | float

        if bits is not None:
            if bits <= 0:
                raise ValueError('when specified, bits must be a positive integer')
            name = f'{"unsigned" if unsigned else "signed"} {bits}-bit integer'
            offset: int = 0 if unsigned else 2 ** (bits - 1)
            lower_bound = 0 - offset
            upper_bound = 2**bits - 1 - offset
        else:
            lower_bound = min_value if min_value is not None else -inf
            upper_bound = max_value if max_value is not None else +inf

        def xml_parse(value: str) -> int:
            if _integer_literal.fullmatch(value) is None:
                raise CoercionError(f'invalid value {value!r} for {name}')
            number = int(value)
            if lower_bound <= number <= upper_bound:
                return number
            raise CoercionError(f'value {value} is out of range for {name}')

        def xml_build(value: int) -> str:
            if isinstance(value, bool) or not isinstance(value, int):
                raise CoercionError(f'expected an integer, got {type(value).__qualname__}')
            if lower_bound <= value <= upper_bound:
                return str(value)
            raise CoercionError(f'value {value} is out of range for {name}')

        cls.name = name
        cls.xml_parse = staticmethod(xml_parse)  # type: ignore[method-assign]
        cls.xml_build = staticmethod(xml_build)  # type: ignore[method-assign]

    @staticmethod
    def xml_parse(value: str) -> int:
        if _integer_literal.fullmatch(value) is None:
            raise CoercionError(f'invalid value {value!r} for integer')
        return int(value)

    @staticmethod
    def xml_build(value: int) -> str:
        if isinstance(value, bool) or not isinstance(value, int):
            raise CoercionError(f'expected an integer, got {type(value).__qualname__}')
        return str(value)


class PositiveIntegerAdapter(IntegerAdapter, min_value=+1, name='positive integer'):
    pass


class NegativeIntegerAdapter(IntegerAdapter, max_value=-1, name='negative integer'):
    pass


class NonNegativeIntegerAdapter(IntegerAdapter, min_value=0, name='non-negative integer'):
    pass


class NonPositiveIntegerAdapter(IntegerAdapter, max_value=0, name='non-positive integer'):
    pass


class ByteAdapter(IntegerAdapter, bits=8):
    pass


class ShortAdapter(IntegerAdapter, bits=16):
    pass


class IntAdapter(IntegerAdapter, bits=32):
    pass


class LongAdapter(IntegerAdapter, bits=64):
    pass


class UnsignedByteAdapter(IntegerAdapter, bits=8, unsigned=True):
    pass


class UnsignedShortAdapter(IntegerAdapter, bits=16, unsigned=True):
    pass


class UnsignedIntAdapter(IntegerAdapter, bits=32, unsigned=True):
    pass


class UnsignedLongAdapter(IntegerAdapter, bits=64, unsigned=True):
    pass


# Alternative definitions with more descriptive names

class Int8Adapter(IntegerAdapter, bits=8):
    pass


class Int16Adapter(IntegerAdapter, bits=16):
    pass


class Int32Adapter(IntegerAdapter, bits=32):
    pass


class Int64Adapter(IntegerAdapter, bits=64):
    pass


class UInt8Adapter(IntegerAdapter, bits=8, unsigned=True):
    pass


class UInt16Adapter(IntegerAdapter, bits=16, unsigned=True):
    pass


class UInt32Adapter(IntegerAdapter, bits=32, unsigned=True):
    pass


class UInt64Adapter(IntegerAdapter, bits=64, unsigned=True):
    pass


AdapterRegistry.associate(str, StringAdapter)
AdapterRegistry.associate(bool, BooleanAdapter)
AdapterRegistry.associate(int, Int64Adapter)
AdapterRegistry.associate(float, FloatAdapter)


class ScalarKind(Protocol):
    adapter: type[DataAdapter]


def to_text(value: object, kind: ScalarKind) -> str:
    """Render a scalar value as text. Only fails for values that do not conform to the kind."""
    try:
        return kind.adapter.xml_build(value)
    except CoercionError:
        raise
    except (TypeError, ValueError, OverflowError) as exc:
        raise CoercionError(str(exc)) from exc


def from_text(text: str, kind: ScalarKind) -> object:
    """Convert text to a scalar value of the given kind. No implicit whitespace trimming is done."""
    try:
        return kind.adapter.xml_parse(text)
    except CoercionError:
        raise
    except (TypeError, ValueError, OverflowError) as exc:
        raise CoercionError(str(exc)) from exc
