"""Parser layer: decodes bencoded bytes into a Value tree.

Every parser takes a ``memoryview`` and returns ``(rest, result)`` where
``rest`` is the unconsumed tail of the same buffer, so nothing is copied
until a byte string is turned into ``bytes`` by the caller.

Small primitive parsers (length prefix, byte string, text, integer) are
combined with list and dictionary parsers by :func:`alt`, which tries each
rule in order. A rule that does not recognise its leading marker raises
:class:`ParseMismatch`; once a rule has recognised its marker any failure
is committed and propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, TypeVar

from .config import CodecConfig, DEFAULT_CONFIG
from .errors import ParseError, ParseErrorKind, ParseMismatch
from .values import (
    Binary,
    Dictionary,
    Empty,
    Integer,
    List,
    Text,
    Value,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MAX_DIGITS = 20
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1

_COLON = ord(":")
_MINUS = ord("-")
_INT_START = ord("i")
_LIST_START = ord("l")
_DICT_START = ord("d")
_END = ord("e")
_ZERO = ord("0")
_NINE = ord("9")


def _is_digit(byte: int) -> bool:
    return _ZERO <= byte <= _NINE


def _as_view(data) -> memoryview:
    view = data if isinstance(data, memoryview) else memoryview(data)
    if view.format != "B" or view.ndim != 1:
        view = view.cast("B")
    return view


@dataclass(slots=True, frozen=True)
class ParseContext:
    """Options and current nesting depth threaded through container parsers."""

    config: CodecConfig = DEFAULT_CONFIG
    depth: int = 0

    def descend(self, data: memoryview) -> ParseContext:
        depth = self.depth + 1
        if depth > self.config.max_depth:
            raise ParseError(
                ParseErrorKind.NESTING_TOO_DEEP,
                data,
                f"more than {self.config.max_depth} nested containers",
            )
        return ParseContext(self.config, depth)


Parser = Callable[[memoryview, ParseContext], "tuple[memoryview, Value]"]


# ---------------------------------------------------------------------------
# Primitive parsers
# ---------------------------------------------------------------------------

def _take_digits(data: memoryview, start: int) -> int:
    """Return the index just past the digit run starting at *start*.

    Scans at most one digit beyond the cap so callers can detect over-long
    runs. Raises INCOMPLETE when the input ends inside the run.
    """
    pos = start
    limit = min(len(data), start + _MAX_DIGITS + 1)
    while pos < limit and _is_digit(data[pos]):
        pos += 1
    if pos - start > _MAX_DIGITS:
        return pos
    if pos == len(data):
        raise ParseError(
            ParseErrorKind.INCOMPLETE, data[pos:], "input ends inside a number", needed=1
        )
    return pos


def parse_length(data: memoryview) -> tuple[memoryview, int]:
    """Parse the unsigned decimal length in front of a byte string."""
    if not data or not _is_digit(data[0]):
        raise ParseMismatch(data, "expected a length prefix")
    end = _take_digits(data, 0)
    if end > _MAX_DIGITS:
        raise ParseError(
            ParseErrorKind.MALFORMED_LENGTH, data, f"more than {_MAX_DIGITS} digits"
        )
    return data[end:], int(data[:end].tobytes())


def parse_bytes(data: memoryview) -> tuple[memoryview, memoryview]:
    """Parse ``<length>:<bytes>`` and return a view of the raw bytes."""
    rest, length = parse_length(data)
    # The separator counts towards what must be available, so a length that
    # runs past the end of the input is reported as incomplete, not malformed.
    if len(rest) < length + 1:
        raise ParseError(
            ParseErrorKind.INCOMPLETE,
            rest,
            f"byte string of length {length}",
            needed=length + 1 - len(rest),
        )
    if rest[0] != _COLON:
        raise ParseError(ParseErrorKind.MALFORMED_LENGTH, rest, "expected ':'")
    return rest[length + 1:], rest[1:length + 1]


def parse_string(data: memoryview) -> tuple[memoryview, str]:
    """Parse a byte string that must be valid UTF-8."""
    rest, raw = parse_bytes(data)
    try:
        return rest, str(raw, "utf-8")
    except UnicodeDecodeError:
        raise ParseMismatch(data, "byte string is not valid UTF-8") from None


def parse_int(data: memoryview) -> tuple[memoryview, int]:
    """Parse ``i<optional -><1-20 digits>e``."""
    if not data or data[0] != _INT_START:
        raise ParseMismatch(data, "expected 'i'")
    start = 1
    if len(data) > start and data[start] == _MINUS:
        start += 1
    if len(data) == start:
        raise ParseError(ParseErrorKind.INCOMPLETE, data[start:], "integer", needed=1)
    end = _take_digits(data, start)
    if end == start:
        raise ParseError(ParseErrorKind.INVALID_DIGITS, data, "no digits")
    if end - start > _MAX_DIGITS:
        raise ParseError(
            ParseErrorKind.INVALID_DIGITS, data, f"more than {_MAX_DIGITS} digits"
        )
    if data[end] != _END:
        raise ParseError(ParseErrorKind.INVALID_DIGITS, data[end:], "expected 'e'")
    value = int(data[1:end].tobytes())
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ParseError(
            ParseErrorKind.INVALID_DIGITS, data, f"{value} does not fit in 64 bits"
        )
    return data[end + 1:], value


# ---------------------------------------------------------------------------
# Combinators
# ---------------------------------------------------------------------------

def mapped(
    parser: Callable[[memoryview], tuple[memoryview, T]],
    variant: Callable[[T], Value],
) -> Parser:
    """Lift a primitive parser into a Value parser."""

    def parse_mapped(data: memoryview, ctx: ParseContext) -> tuple[memoryview, Value]:
        rest, out = parser(data)
        return rest, variant(out)

    return parse_mapped


def alt(*parsers: Parser) -> Parser:
    """Ordered alternation: the first rule that recognises the input wins."""

    def parse_alt(data: memoryview, ctx: ParseContext) -> tuple[memoryview, Value]:
        for parser in parsers:
            try:
                return parser(data, ctx)
            except ParseMismatch:
                continue
        raise ParseMismatch(data, f"no value starts with {bytes(data[:1])!r}")

    return parse_alt


# ---------------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------------

def parse_list(data: memoryview, ctx: ParseContext) -> tuple[memoryview, Value]:
    """Parse ``l<value>*e``."""
    if not data or data[0] != _LIST_START:
        raise ParseMismatch(data, "expected 'l'")
    inner = ctx.descend(data)
    items: list[Value] = []
    rest = data[1:]
    while True:
        if not rest:
            raise ParseError(ParseErrorKind.INCOMPLETE, rest, "list", needed=1)
        if rest[0] == _END:
            return rest[1:], List(items)
        try:
            rest, item = _parse_alternatives(rest, inner)
        except ParseMismatch as err:
            raise ParseError(
                ParseErrorKind.UNTERMINATED, rest, "expected a value or 'e' in list"
            ) from err
        items.append(item)


def parse_dictionary(data: memoryview, ctx: ParseContext) -> tuple[memoryview, Value]:
    """Parse ``d(<text key><value>)*e``; a repeated key keeps its last value."""
    if not data or data[0] != _DICT_START:
        raise ParseMismatch(data, "expected 'd'")
    inner = ctx.descend(data)
    entries: dict[str, Value] = {}
    rest = data[1:]
    while True:
        if not rest:
            raise ParseError(ParseErrorKind.INCOMPLETE, rest, "dictionary", needed=1)
        if rest[0] == _END:
            return rest[1:], Dictionary(entries)
        try:
            after_key, raw_key = parse_bytes(rest)
        except ParseMismatch as err:
            raise ParseError(
                ParseErrorKind.UNTERMINATED,
                rest,
                "expected a string key or 'e' in dictionary",
            ) from err
        try:
            key = str(raw_key, "utf-8")
        except UnicodeDecodeError:
            raise ParseError(ParseErrorKind.NON_UTF8_KEY, rest) from None
        if not after_key:
            raise ParseError(
                ParseErrorKind.INCOMPLETE, after_key, f"value for key {key!r}", needed=1
            )
        try:
            rest, entries[key] = _parse_alternatives(after_key, inner)
        except ParseMismatch as err:
            raise ParseError(
                ParseErrorKind.UNEXPECTED_TOKEN, after_key, f"no value for key {key!r}"
            ) from err


_parse_alternatives = alt(
    mapped(parse_string, Text),
    mapped(parse_bytes, Binary),
    mapped(parse_int, Integer),
    parse_list,
    parse_dictionary,
)


def _parse_value(data: memoryview, ctx: ParseContext) -> tuple[memoryview, Value]:
    if not data:
        raise ParseError(ParseErrorKind.INCOMPLETE, data, "expected a value", needed=1)
    return _parse_alternatives(data, ctx)


# ---------------------------------------------------------------------------
# Top-level drivers
# ---------------------------------------------------------------------------

def parse(data, config: CodecConfig | None = None) -> tuple[memoryview, Value]:
    """Parse one value from the front of *data* and return ``(rest, value)``.

    ``rest`` and every byte string in the result are views into *data*,
    which must therefore stay unmodified while they are in use.
    """
    view = _as_view(data)
    try:
        return _parse_value(view, ParseContext(config or DEFAULT_CONFIG))
    except ParseError as err:
        raise err.locate(view)


parse_one = parse


# Failures that say nothing about where the document ends; they always
# propagate out of the multi-value drivers.
_FATAL_KINDS = frozenset({ParseErrorKind.INCOMPLETE, ParseErrorKind.NESTING_TOO_DEEP})


def _parse_values(
    view: memoryview, config: CodecConfig | None
) -> tuple[memoryview, list[Value], ParseError | None]:
    ctx = ParseContext(config or DEFAULT_CONFIG)
    values: list[Value] = []
    rest = view
    while rest:
        try:
            rest, value = _parse_alternatives(rest, ctx)
        except ParseError as err:
            err.locate(view)
            if err.kind in _FATAL_KINDS:
                raise
            logger.debug(f"Stopped after {len(values)} value(s): {err}")
            return rest, values, err
        values.append(value)
    return rest, values, None


def parse_many(data, config: CodecConfig | None = None) -> tuple[memoryview, list[Value]]:
    """Parse back-to-back values until one cannot be parsed.

    Returns the values and the input left in front of the first value that
    failed. INCOMPLETE (and NESTING_TOO_DEEP) still raise, so stream callers
    can tell truncated input from a document boundary.
    """
    rest, values, _ = _parse_values(_as_view(data), config)
    return rest, values


def _group(values: list[Value]) -> Value:
    if not values:
        return Empty
    if len(values) == 1:
        return values[0]
    return List(values)


def parse_exact_allow_trailing(
    data, config: CodecConfig | None = None
) -> tuple[memoryview, Value]:
    """Parse every leading value and group them; return the unparsed rest.

    Zero values group to ``Empty``, one value to itself and several to a
    ``List``.
    """
    rest, values = parse_many(data, config)
    return rest, _group(values)


def parse_exact(data, config: CodecConfig | None = None) -> Value:
    """Parse the whole of *data*; fail if any byte is left over."""
    view = _as_view(data)
    rest, values, cause = _parse_values(view, config)
    if rest:
        err = ParseError(
            ParseErrorKind.TRAILING_INPUT,
            rest,
            f"{len(rest)} byte(s) do not form a value",
        ).locate(view)
        raise err from cause
    return _group(values)
