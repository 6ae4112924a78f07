"""Serializer bridge: Python objects -> Value tree.

Shapes call the ``serialize_*`` methods of :class:`Serializer`, which
produce owned Values. Compound shapes get a builder (``SeqBuilder``,
``MapBuilder``, ``StructBuilder``), feed it elements and call ``end()``.

Bencode only has integers, byte strings, lists and dictionaries, so some
conversions lose information; each of those is logged at DEBUG.
"""

from __future__ import annotations

import logging
import math
import struct
from typing import TYPE_CHECKING, Any

from .config import CodecConfig
from .errors import ConversionError, InvariantViolation
from .shapes import STR
from .typedef import resolve_shape
from .values import (
    BinaryOwned,
    DictionaryOwned,
    Empty,
    Integer,
    List,
    TextOwned,
    Value,
)
from .writer import Sink, encode, write

if TYPE_CHECKING:
    from .shapes import Shape

logger = logging.getLogger(__name__)

_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1
_U64_MAX = (1 << 64) - 1


def _round_half_away(value: float) -> int:
    frac, whole = math.modf(value)
    number = int(whole)
    if abs(frac) >= 0.5:
        number += 1 if value > 0 else -1
    return number


class Serializer:
    """Produces one Value per call. Stateless."""

    # ------------------------------------------------------------------
    # Integers
    # ------------------------------------------------------------------

    def _signed(self, value: int, bits: int) -> Value:
        bound = 1 << (bits - 1)
        if not -bound <= value < bound:
            raise ConversionError.out_of_range(value, f"i{bits}")
        return Integer(int(value))

    def _unsigned(self, value: int, bits: int) -> Value:
        if not 0 <= value < 1 << bits:
            raise ConversionError.out_of_range(value, f"u{bits}")
        return Integer(int(value))

    def serialize_i8(self, value: int) -> Value:
        return self._signed(value, 8)

    def serialize_i16(self, value: int) -> Value:
        return self._signed(value, 16)

    def serialize_i32(self, value: int) -> Value:
        return self._signed(value, 32)

    def serialize_i64(self, value: int) -> Value:
        return self._signed(value, 64)

    def serialize_u8(self, value: int) -> Value:
        return self._unsigned(value, 8)

    def serialize_u16(self, value: int) -> Value:
        return self._unsigned(value, 16)

    def serialize_u32(self, value: int) -> Value:
        return self._unsigned(value, 32)

    def serialize_u64(self, value: int) -> Value:
        if not 0 <= value <= _U64_MAX:
            raise ConversionError.out_of_range(value, "u64")
        if value > _I64_MAX:
            wrapped = value - (1 << 64)
            logger.debug(f"Wrapping u64 {value} to {wrapped}")
            return Integer(wrapped)
        return Integer(int(value))

    # ------------------------------------------------------------------
    # Other scalars
    # ------------------------------------------------------------------

    def serialize_bool(self, value: bool) -> Value:
        logger.debug("Casting boolean to int (True => 1, False => 0)")
        return Integer(1 if value else 0)

    def _float(self, value: float, name: str) -> Value:
        if not math.isfinite(value):
            raise ConversionError.out_of_range(value, "i64")
        number = _round_half_away(value)
        if not _I64_MIN <= number <= _I64_MAX:
            raise ConversionError.out_of_range(value, "i64")
        if number != value:
            logger.debug(f"Rounding {name} {value} to {number}")
        return Integer(number)

    def serialize_f32(self, value: float) -> Value:
        try:
            narrowed = struct.unpack("<f", struct.pack("<f", value))[0]
        except OverflowError:
            raise ConversionError.out_of_range(value, "f32") from None
        return self._float(narrowed, "f32")

    def serialize_f64(self, value: float) -> Value:
        return self._float(value, "f64")

    def serialize_char(self, value: str) -> Value:
        if not isinstance(value, str) or len(value) != 1:
            raise ConversionError.invalid_type(value, "char")
        logger.debug("Casting char to string of length 1")
        return TextOwned(value)

    def serialize_str(self, value: str) -> Value:
        return TextOwned(value)

    def serialize_bytes(self, value: bytes | bytearray | memoryview) -> Value:
        return BinaryOwned(bytes(value))

    # ------------------------------------------------------------------
    # Option / unit / newtype / variants
    # ------------------------------------------------------------------

    def serialize_none(self) -> Value:
        return Empty

    def serialize_some(self, value: Any, shape: Shape) -> Value:
        return shape.serialize(value, self)

    def serialize_unit(self) -> Value:
        raise ConversionError("cannot serialize units")

    def serialize_unit_struct(self, name: str) -> Value:
        return self.serialize_unit()

    def serialize_unit_variant(self, name: str, index: int, variant: str) -> Value:
        return self.serialize_str(variant)

    def serialize_newtype_struct(self, name: str, value: Any, shape: Shape) -> Value:
        return shape.serialize(value, self)

    def serialize_newtype_variant(
        self, name: str, index: int, variant: str, value: Any, shape: Shape
    ) -> Value:
        return DictionaryOwned({variant: shape.serialize(value, self)})

    def serialize_tuple_variant(
        self, name: str, index: int, variant: str, length: int
    ) -> SeqBuilder:
        raise ConversionError(f"Enum variants are not supported ({name}::{variant})")

    def serialize_struct_variant(
        self, name: str, index: int, variant: str, length: int
    ) -> StructBuilder:
        raise ConversionError(f"Enum variants are not supported ({name}::{variant})")

    # ------------------------------------------------------------------
    # Compounds
    # ------------------------------------------------------------------

    def serialize_seq(self, length: int | None = None) -> SeqBuilder:
        return SeqBuilder(self)

    def serialize_tuple(self, length: int) -> SeqBuilder:
        return SeqBuilder(self, positional=True)

    def serialize_tuple_struct(self, name: str, length: int) -> SeqBuilder:
        return SeqBuilder(self, positional=True)

    def serialize_map(self, length: int | None = None) -> MapBuilder:
        return MapBuilder(self)

    def serialize_struct(self, name: str, length: int) -> StructBuilder:
        return StructBuilder(self, name)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

class SeqBuilder:
    """Collects list elements.

    A positional builder (tuples, tuple structs) refuses absent elements:
    Empty writes no bytes, so every later element would move up a slot.
    """

    def __init__(self, ser: Serializer, positional: bool = False) -> None:
        self._ser = ser
        self._positional = positional
        self._items: list[Value] = []

    def serialize_element(self, value: Any, shape: Shape) -> None:
        encoded = shape.serialize(value, self._ser)
        if self._positional and encoded.is_empty():
            raise ConversionError(
                f"element {len(self._items)} is absent; positions cannot be skipped"
            )
        self._items.append(encoded)

    def end(self) -> Value:
        return List(self._items)


class MapBuilder:
    """Collects entries; every key must serialize to text.

    ``serialize_key`` and ``serialize_value`` must alternate. Entries whose
    value is Empty are left out.
    """

    def __init__(self, ser: Serializer) -> None:
        self._ser = ser
        self._entries: dict[str, Value] = {}
        self._key: str | None = None

    def serialize_key(self, key: Any, shape: Shape = STR) -> None:
        if self._key is not None:
            raise InvariantViolation(f"key {self._key!r} has no value yet")
        encoded = shape.serialize(key, self._ser)
        if not encoded.is_text():
            raise ConversionError("Only string keys are supported in maps")
        self._key = encoded.unwrap_str()

    def serialize_value(self, value: Any, shape: Shape) -> None:
        if self._key is None:
            raise InvariantViolation("serialize_value called without a key")
        key, self._key = self._key, None
        encoded = shape.serialize(value, self._ser)
        if encoded.is_empty():
            logger.debug(f"Skipping key {key!r}: value is absent")
            return
        self._entries[key] = encoded

    def serialize_entry(
        self, key: Any, value: Any, key_shape: Shape, value_shape: Shape
    ) -> None:
        self.serialize_key(key, key_shape)
        self.serialize_value(value, value_shape)

    def end(self) -> Value:
        if self._key is not None:
            raise InvariantViolation(f"key {self._key!r} has no value")
        return DictionaryOwned(self._entries)


class StructBuilder:
    def __init__(self, ser: Serializer, name: str) -> None:
        self._ser = ser
        self._name = name
        self._entries: dict[str, Value] = {}

    def serialize_field(self, key: str, value: Any, shape: Shape) -> None:
        encoded = shape.serialize(value, self._ser)
        if encoded.is_empty():
            logger.debug(f"Skipping {self._name}.{key}: value is absent")
            return
        self._entries[key] = encoded

    def end(self) -> Value:
        return DictionaryOwned(self._entries)


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def to_value(obj: Any, shape=None) -> Value:
    """Convert *obj* into a Value tree.

    *shape* may be a Shape, any type :func:`shape_of` understands, or
    ``None`` to dispatch on the runtime type of *obj*.
    """
    return resolve_shape(shape).serialize(obj, Serializer())


def to_bytes(obj: Any, shape=None, config: CodecConfig | None = None) -> bytes:
    return encode(to_value(obj, shape), config)


def to_sink(obj: Any, sink: Sink, shape=None, config: CodecConfig | None = None) -> None:
    """Serialize *obj* and write it to *sink*; sink errors propagate."""
    write(to_value(obj, shape), sink, config)
