"""Error types for bencode_core."""

from __future__ import annotations

from enum import Enum
from typing import Iterable


class BencodeError(Exception):
    """Base class for every recoverable error raised by bencode_core."""


class InvariantViolation(AssertionError):
    """An internal contract was broken.

    Raised when a variant-specific unwrap is called on the wrong variant or
    when a map access is driven out of its key/value alternation. These
    signal a bug in the calling code, not bad input, and are not
    :class:`BencodeError` instances.
    """


# ---------------------------------------------------------------------------
# Parse errors
# ---------------------------------------------------------------------------

class ParseErrorKind(Enum):
    MALFORMED_LENGTH = "malformed length prefix"
    UNTERMINATED = "unterminated container"
    INVALID_DIGITS = "invalid digit run"
    NON_UTF8_KEY = "non-UTF-8 dictionary key"
    TRAILING_INPUT = "trailing input"
    INCOMPLETE = "incomplete input"
    UNEXPECTED_TOKEN = "unexpected token"
    NESTING_TOO_DEEP = "nesting too deep"


class ParseError(BencodeError):
    """Structural failure while decoding bencoded bytes.

    ``remainder`` is the input left at the point of failure; ``offset`` is
    filled in by the top-level drivers and counts from the start of the
    buffer they were given. ``needed`` is only set for ``INCOMPLETE``.
    """

    def __init__(
        self,
        kind: ParseErrorKind,
        remainder: memoryview,
        detail: str = "",
        needed: int | None = None,
    ) -> None:
        self.kind = kind
        self.remainder = remainder
        self.detail = detail
        self.needed = needed
        self.offset: int | None = None
        super().__init__(kind, detail)

    @property
    def is_incomplete(self) -> bool:
        return self.kind is ParseErrorKind.INCOMPLETE

    def locate(self, data: memoryview) -> "ParseError":
        """Record the offset of the failure relative to *data*."""
        self.offset = len(data) - len(self.remainder)
        return self

    def __str__(self) -> str:
        msg = self.kind.value
        if self.detail:
            msg = f"{msg}: {self.detail}"
        if self.offset is not None:
            msg = f"{msg} (at offset {self.offset})"
        if self.needed is not None:
            msg = f"{msg}, {self.needed} more byte(s) needed"
        return msg


class ParseMismatch(ParseError):
    """No alternative recognised the input at this position.

    Ordered alternation catches this and tries the next rule; every other
    ParseError is committed and propagates.
    """

    def __init__(self, remainder: memoryview, detail: str = "") -> None:
        super().__init__(ParseErrorKind.UNEXPECTED_TOKEN, remainder, detail)


# ---------------------------------------------------------------------------
# Conversion errors
# ---------------------------------------------------------------------------

class ConversionError(BencodeError):
    """A value could not be converted to or from the requested shape."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message

    @classmethod
    def custom(cls, message: str) -> "ConversionError":
        return cls(message)

    @classmethod
    def invalid_type(cls, unexpected: object, expected: str) -> "ConversionError":
        return cls(f"cannot convert from {unexpected!r} to {expected}")

    @classmethod
    def invalid_visit(cls, what: str, expected: str) -> "ConversionError":
        return cls(f"invalid type: {what}, expected {expected}")

    @classmethod
    def invalid_length(cls, length: int, expected: str) -> "ConversionError":
        return cls(f"invalid length {length}, expected {expected}")

    @classmethod
    def out_of_range(cls, value: object, target: str) -> "ConversionError":
        return cls(f"{value!r} is out of range for {target}")

    @classmethod
    def missing_field(cls, name: str) -> "ConversionError":
        return cls(f"missing field `{name}`")

    @classmethod
    def unknown_field(cls, name: str, expected: Iterable[str]) -> "ConversionError":
        names = ", ".join(f"`{n}`" for n in expected)
        return cls(f"unknown field `{name}`, expected one of {names}")
