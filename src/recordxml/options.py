# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from dataclasses import dataclass
from enum import Enum

__all__ = 'UnknownFieldPolicy', 'CodecOptions', 'DEFAULT_OPTIONS'


class UnknownFieldPolicy(Enum):
    """What the deserializer does with attributes and child elements that are not described by the schema"""

    IGNORE = 'ignore'
    ERROR = 'error'

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'


@dataclass(frozen=True, kw_only=True)
class CodecOptions:
    unknown_fields: UnknownFieldPolicy = UnknownFieldPolicy.IGNORE
    xml_declaration: bool = False
    pretty_print: bool = False
    encoding: str = 'utf-8'


DEFAULT_OPTIONS = CodecOptions()
