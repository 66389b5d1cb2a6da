# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = (  # noqa: RUF022
    'CodecError',
    'EncodeError',
    'DecodeError',
    'CoercionError',

    'MalformedXml',
    'UnexpectedElement',
    'UnexpectedAttribute',
    'UnexpectedText',
    'InvalidValue',
    'MissingField',
)


class CodecError(Exception):
    """Base class for all the errors reported by the codec."""

    element: str | None = None

    def _context(self) -> str:
        return f' in {self.element!r}' if self.element is not None else ''


class EncodeError(CodecError):
    """Raised when a record cannot be serialized."""


class DecodeError(CodecError):
    """Raised when XML input cannot be deserialized into a record."""


class CoercionError(ValueError):
    """Raised when text cannot be converted to a scalar value or the other way around."""


class MalformedXml(DecodeError, EncodeError):
    """
    Raised for markup that is not well-formed.

    When reading, this wraps the parser error and carries its position.
    When writing, it signals an unbalanced sequence of events.

    """

    def __init__(self, message: str, *, line: int | None = None, column: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line is not None and self.column is not None:
            return f'Malformed XML at line {self.line}, column {self.column}: {self.message}'
        if self.line is not None:
            return f'Malformed XML at line {self.line}: {self.message}'
        return f'Malformed XML: {self.message}'


class UnexpectedElement(DecodeError):
    def __init__(self, tag: str, *, expected: str | None = None, element: str | None = None) -> None:
        super().__init__(tag, expected, element)
        self.tag = tag
        self.expected = expected
        self.element = element

    def __str__(self) -> str:
        if self.expected is not None:
            return f'Unexpected element {self.tag!r}{self._context()}, expected {self.expected!r}'
        return f'Unexpected element {self.tag!r}{self._context()}'


class UnexpectedAttribute(DecodeError):
    def __init__(self, name: str, *, element: str | None = None) -> None:
        super().__init__(name, element)
        self.name = name
        self.element = element

    def __str__(self) -> str:
        return f'Unexpected attribute {self.name!r}{self._context()}'


class UnexpectedText(DecodeError):
    def __init__(self, text: str, *, element: str | None = None) -> None:
        super().__init__(text, element)
        self.text = text
        self.element = element

    def __str__(self) -> str:
        return f'Unexpected text {self.text!r}{self._context()}'


class InvalidValue(DecodeError, EncodeError):
    """
    Raised when a field value does not conform to the field's kind.

    On decode `raw_text` holds the offending text. On encode it is None,
    since the problem is with the in-memory value.

    """

    def __init__(self, field: str, raw_text: str | None, *, expected: str | None = None, reason: str | None = None, element: str | None = None) -> None:
        super().__init__(field, raw_text, expected, reason, element)
        self.field = field
        self.raw_text = raw_text
        self.expected = expected
        self.reason = reason
        self.element = element

    def __str__(self) -> str:
        message = f'Invalid value for {self.field!r}{self._context()}'
        if self.raw_text is not None:
            message += f': {self.raw_text!r}'
        if self.expected is not None:
            message += f' (expected {self.expected})'
        if self.reason is not None:
            message += f': {self.reason}'
        return message


class MissingField(DecodeError, EncodeError):
    def __init__(self, field: str, *, element: str | None = None) -> None:
        super().__init__(field, element)
        self.field = field
        self.element = element

    def __str__(self) -> str:
        return f'Missing mandatory field {self.field!r}{self._context()}'
