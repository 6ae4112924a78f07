"""Deserializer bridge: Value tree -> Python objects.

The :class:`Deserializer` wraps one Value. A target shape asks it for a
particular kind of data (``deserialize_str``, ``deserialize_seq``...) and
the deserializer answers by calling back the matching ``visit_*`` method
on that shape, or fails with a :class:`ConversionError` when the Value
cannot provide it. Lists and dictionaries are handed out through
:class:`SeqAccess` and :class:`MapAccess`, which build a fresh
Deserializer for each element.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Sequence

from .config import CodecConfig, DEFAULT_CONFIG
from .errors import ConversionError, InvariantViolation
from .parser import parse_exact
from .shapes import STR
from .typedef import resolve_shape
from .values import (
    Binary,
    BinaryOwned,
    Dictionary,
    DictionaryOwned,
    Empty,
    Integer,
    List,
    Text,
    TextOwned,
    Value,
    _EmptyType,
)

if TYPE_CHECKING:
    from .shapes import Shape
    from .visitor import Visitor

logger = logging.getLogger(__name__)

_INT32 = 1 << 32


def _wrap_int32(value: int) -> int:
    return (value + (1 << 31)) % _INT32 - (1 << 31)


def _narrow_f32(value: float) -> float:
    return struct.unpack("<f", struct.pack("<f", value))[0]


class Deserializer:
    """Feeds one Value to a visitor."""

    __slots__ = ("value", "config", "depth")

    def __init__(
        self, value: Value, config: CodecConfig | None = None, depth: int = 0
    ) -> None:
        self.value = value
        self.config = config or DEFAULT_CONFIG
        # containers entered above this value
        self.depth = depth

    def _descend(self) -> int:
        if self.depth >= self.config.max_depth:
            raise ConversionError(
                f"more than {self.config.max_depth} nested containers"
            )
        return self.depth + 1

    # ------------------------------------------------------------------
    # Primitive extraction
    # ------------------------------------------------------------------

    def parse_bool(self) -> bool:
        value = self.value
        if not isinstance(value, Integer):
            raise ConversionError.invalid_type(value, "bool")
        if value.value == 1:
            return True
        if value.value == 0:
            return False
        raise ConversionError("incorrect bool from int conversion")

    def parse_int(self, bits: int = 64) -> int:
        value = self.value
        if not isinstance(value, Integer):
            raise ConversionError.invalid_type(value, "int")
        number = value.value
        bound = 1 << (bits - 1)
        if not -bound <= number < bound:
            raise ConversionError.out_of_range(number, f"i{bits}")
        return number

    def parse_uint(self, bits: int = 64) -> int:
        number = self.parse_int()
        if number < 0:
            raise ConversionError("uint cannot be negative")
        if number >= 1 << bits:
            raise ConversionError.out_of_range(number, f"u{bits}")
        return number

    def parse_float(self) -> float:
        number = self.parse_int()
        if self.config.float_via_int32:
            wrapped = _wrap_int32(number)
            if wrapped != number:
                logger.debug(f"Integer {number} wrapped to {wrapped} through 32 bits")
            number = wrapped
        return float(number)

    def parse_char(self) -> str:
        value = self.value
        if not isinstance(value, (Text, TextOwned)):
            raise ConversionError.invalid_type(value, "char")
        if len(value.value) != 1:
            raise ConversionError("incorrect char from string conversion")
        return value.value

    def parse_str(self) -> str:
        value = self.value
        if not isinstance(value, (Text, TextOwned)):
            raise ConversionError.invalid_type(value, "str")
        return value.value

    def parse_bytes(self) -> memoryview | bytes:
        """Return the raw bytes, as a view when the Value borrows them."""
        value = self.value
        if isinstance(value, Binary):
            return value.data
        return self.parse_byte_buf()

    def parse_byte_buf(self) -> bytes:
        value = self.value
        if isinstance(value, (Binary, BinaryOwned)):
            return value.as_bytes()
        if self.config.bytes_from_text and isinstance(value, (Text, TextOwned)):
            return value.as_bytes()
        raise ConversionError.invalid_type(value, "bytes")

    # ------------------------------------------------------------------
    # Self-describing
    # ------------------------------------------------------------------

    def deserialize_any(self, visitor: Visitor) -> Any:
        value = self.value
        if isinstance(value, (Binary, BinaryOwned, List)):
            return self.deserialize_seq(visitor)
        if isinstance(value, (Text, TextOwned)):
            return self.deserialize_str(visitor)
        if isinstance(value, Integer):
            return self.deserialize_i64(visitor)
        if isinstance(value, (Dictionary, DictionaryOwned)):
            return self.deserialize_map(visitor)
        if isinstance(value, _EmptyType):
            return self.deserialize_option(visitor)
        raise ConversionError.invalid_type(value, "a bencode value")

    # ------------------------------------------------------------------
    # Scalars
    # ------------------------------------------------------------------

    def deserialize_bool(self, visitor: Visitor) -> Any:
        return visitor.visit_bool(self.parse_bool())

    def deserialize_i8(self, visitor: Visitor) -> Any:
        return visitor.visit_int(self.parse_int(8))

    def deserialize_i16(self, visitor: Visitor) -> Any:
        return visitor.visit_int(self.parse_int(16))

    def deserialize_i32(self, visitor: Visitor) -> Any:
        return visitor.visit_int(self.parse_int(32))

    def deserialize_i64(self, visitor: Visitor) -> Any:
        return visitor.visit_int(self.parse_int(64))

    def deserialize_u8(self, visitor: Visitor) -> Any:
        return visitor.visit_int(self.parse_uint(8))

    def deserialize_u16(self, visitor: Visitor) -> Any:
        return visitor.visit_int(self.parse_uint(16))

    def deserialize_u32(self, visitor: Visitor) -> Any:
        return visitor.visit_int(self.parse_uint(32))

    def deserialize_u64(self, visitor: Visitor) -> Any:
        return visitor.visit_int(self.parse_uint(64))

    def deserialize_f32(self, visitor: Visitor) -> Any:
        return visitor.visit_float(_narrow_f32(self.parse_float()))

    def deserialize_f64(self, visitor: Visitor) -> Any:
        return visitor.visit_float(self.parse_float())

    def deserialize_char(self, visitor: Visitor) -> Any:
        return visitor.visit_char(self.parse_char())

    def deserialize_str(self, visitor: Visitor) -> Any:
        text = self.parse_str()
        if self.value.is_owned():
            return visitor.visit_string(text)
        return visitor.visit_borrowed_str(text)

    def deserialize_string(self, visitor: Visitor) -> Any:
        return visitor.visit_string(self.parse_str())

    def deserialize_bytes(self, visitor: Visitor) -> Any:
        data = self.parse_bytes()
        if isinstance(data, memoryview):
            return visitor.visit_borrowed_bytes(data)
        return visitor.visit_byte_buf(data)

    def deserialize_byte_buf(self, visitor: Visitor) -> Any:
        return visitor.visit_byte_buf(self.parse_byte_buf())

    # ------------------------------------------------------------------
    # Option / unit / newtype
    # ------------------------------------------------------------------

    def deserialize_option(self, visitor: Visitor) -> Any:
        if self.value.is_empty():
            return visitor.visit_none()
        return visitor.visit_some(self)

    def deserialize_unit(self, visitor: Visitor) -> Any:
        raise ConversionError("cannot deserialize units")

    def deserialize_unit_struct(self, name: str, visitor: Visitor) -> Any:
        raise ConversionError("cannot deserialize units")

    def deserialize_newtype_struct(self, name: str, visitor: Visitor) -> Any:
        return visitor.visit_newtype_struct(self)

    # ------------------------------------------------------------------
    # Compounds
    # ------------------------------------------------------------------

    def deserialize_seq(self, visitor: Visitor) -> Any:
        value = self.value
        if isinstance(value, List):
            return visitor.visit_seq(
                SeqAccess(value.items, self.config, self._descend())
            )
        if isinstance(value, (Binary, BinaryOwned)):
            # Byte strings double as arrays of small integers.
            items = [Integer(byte) for byte in value.as_bytes()]
            return visitor.visit_seq(SeqAccess(items, self.config, self.depth + 1))
        raise ConversionError.invalid_type(value, "list")

    def deserialize_tuple(self, length: int, visitor: Visitor) -> Any:
        return self.deserialize_seq(visitor)

    def deserialize_tuple_struct(self, name: str, length: int, visitor: Visitor) -> Any:
        return self.deserialize_seq(visitor)

    def deserialize_map(self, visitor: Visitor) -> Any:
        value = self.value
        if isinstance(value, (Dictionary, DictionaryOwned)):
            return visitor.visit_map(
                MapAccess(value.entries, self.config, self._descend())
            )
        raise ConversionError.invalid_type(value, "dictionary")

    def deserialize_struct(
        self, name: str, fields: Sequence[str], visitor: Visitor
    ) -> Any:
        value = self.value
        if isinstance(value, List):
            return self.deserialize_seq(visitor)
        if isinstance(value, (Dictionary, DictionaryOwned)):
            return self.deserialize_map(visitor)
        raise ConversionError.invalid_type(value, f"list/dictionary for {name}")

    def deserialize_enum(
        self, name: str, variants: Sequence[str], visitor: Visitor
    ) -> Any:
        raise ConversionError("enums are not supported")

    def deserialize_identifier(self, visitor: Visitor) -> Any:
        return self.deserialize_str(visitor)

    def deserialize_ignored_any(self, visitor: Visitor) -> Any:
        self.value = Empty
        return visitor.visit_unit()


# ---------------------------------------------------------------------------
# Sequence and map access
# ---------------------------------------------------------------------------

class SeqAccess:
    """Hands out list elements in order, one Deserializer per element."""

    def __init__(
        self, items: Sequence[Value], config: CodecConfig, depth: int = 0
    ) -> None:
        self._items = items
        self._index = 0
        self._config = config
        self._depth = depth

    @property
    def remaining(self) -> int:
        return len(self._items) - self._index

    def next_element(self, shape: Shape) -> Any:
        if self._index >= len(self._items):
            raise InvariantViolation("sequence has no more elements")
        item = self._items[self._index]
        self._index += 1
        return shape.deserialize(Deserializer(item, self._config, self._depth))


@dataclass(slots=True)
class MapEntry:
    """One dictionary entry; its value can be taken exactly once."""

    key: Any
    _value: Value = field(repr=False)
    _config: CodecConfig = field(repr=False)
    _depth: int = field(default=0, repr=False)
    taken: bool = False

    def value(self, shape: Shape) -> Any:
        self._take()
        return shape.deserialize(Deserializer(self._value, self._config, self._depth))

    def ignore(self) -> None:
        self._take()

    def _take(self) -> None:
        if self.taken:
            raise InvariantViolation(f"value for key {self.key!r} was already taken")
        self.taken = True


class MapAccess:
    """Walks a dictionary strictly alternating key and value pulls.

    Keys are converted from ``TextOwned`` through the requested key shape.
    Iteration order is the dictionary's own order.
    """

    def __init__(
        self, entries: dict[str, Value], config: CodecConfig, depth: int = 0
    ) -> None:
        self._entries = list(entries.items())
        self._index = 0
        self._config = config
        self._depth = depth
        self._pending: MapEntry | None = None

    @property
    def remaining(self) -> int:
        return len(self._entries) - self._index

    def next_key(self, shape: Shape = STR) -> MapEntry:
        if self._pending is not None and not self._pending.taken:
            raise InvariantViolation(
                f"next key requested before the value of {self._pending.key!r}"
            )
        if self._index >= len(self._entries):
            raise InvariantViolation("map has no more entries")
        raw_key, value = self._entries[self._index]
        key = shape.deserialize(
            Deserializer(TextOwned(raw_key), self._config, self._depth)
        )
        # the entry stays unconsumed if its key fails to convert
        self._index += 1
        self._pending = MapEntry(key, value, self._config, self._depth)
        return self._pending


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def from_value(value: Value, shape=None, config: CodecConfig | None = None) -> Any:
    """Convert *value* into the target described by *shape*.

    *shape* may be a Shape, any type :func:`shape_of` understands, or
    ``None`` for plain Python containers. Input nested deeper than
    ``config.max_depth`` raises :class:`ConversionError`.
    """
    target = resolve_shape(shape)
    try:
        return target.deserialize(Deserializer(value, config))
    except RecursionError as err:
        # shapes that wrap every level (options, newtypes) use more frames
        raise ConversionError(f"{target!r} nests too deep for the stack") from err


def from_bytes(data, shape=None, config: CodecConfig | None = None) -> Any:
    """Parse the whole of *data* and convert it like :func:`from_value`."""
    return from_value(parse_exact(data, config), shape, config)
