"""Shapes: one object per target kind, usable in both bridge directions.

``shape.serialize(obj, serializer)`` turns a Python object into a Value by
calling the serializer's ``serialize_*`` methods, and
``shape.deserialize(deserializer)`` asks the deserializer for the kind of
data the shape wants and receives it back through the ``visit_*``
callbacks inherited from :class:`Visitor`.

Shapes hold no per-call state, so the module-level instances are shared.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Sequence

from .errors import ConversionError
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
from .visitor import Visitor

if TYPE_CHECKING:
    from .de import Deserializer
    from .ser import Serializer
    from .typedef import TypeDef

_I64_MAX = (1 << 63) - 1
_U64_MAX = (1 << 64) - 1


class Shape(Visitor):
    """Base class; subclasses implement both directions."""

    def serialize(self, obj: Any, ser: Serializer) -> Value:
        raise NotImplementedError

    def deserialize(self, de: Deserializer) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------

class BoolShape(Shape):
    expecting = "a boolean"

    def serialize(self, obj, ser):
        if not isinstance(obj, bool):
            raise ConversionError.invalid_type(obj, "bool")
        return ser.serialize_bool(obj)

    def deserialize(self, de):
        return de.deserialize_bool(self)

    def visit_bool(self, value):
        return value


class IntShape(Shape):
    """Fixed-width integer, ``I8`` .. ``U64``."""

    def __init__(self, bits: int, signed: bool = True) -> None:
        self.bits = bits
        self.signed = signed
        self.name = f"{'i' if signed else 'u'}{bits}"
        self.expecting = f"an integer fitting {self.name}"
        self._serialize = f"serialize_{self.name}"
        self._deserialize = f"deserialize_{self.name}"

    def serialize(self, obj, ser):
        if not isinstance(obj, int):
            raise ConversionError.invalid_type(obj, self.name)
        return getattr(ser, self._serialize)(obj)

    def deserialize(self, de):
        return getattr(de, self._deserialize)(self)

    def visit_int(self, value):
        return value

    def __repr__(self) -> str:
        return self.name.upper()


class FloatShape(Shape):
    def __init__(self, bits: int) -> None:
        self.bits = bits
        self.expecting = f"a {bits}-bit float"

    def serialize(self, obj, ser):
        if not isinstance(obj, (int, float)):
            raise ConversionError.invalid_type(obj, f"f{self.bits}")
        try:
            value = float(obj)
        except OverflowError:
            raise ConversionError.out_of_range(obj, f"f{self.bits}") from None
        if self.bits == 32:
            return ser.serialize_f32(value)
        return ser.serialize_f64(value)

    def deserialize(self, de):
        if self.bits == 32:
            return de.deserialize_f32(self)
        return de.deserialize_f64(self)

    def visit_float(self, value):
        return value

    def __repr__(self) -> str:
        return f"F{self.bits}"


class CharShape(Shape):
    expecting = "a single character"

    def serialize(self, obj, ser):
        return ser.serialize_char(obj)

    def deserialize(self, de):
        return de.deserialize_char(self)

    def visit_str(self, value):
        if len(value) != 1:
            return self._reject(f"string {value!r}")
        return value


class StrShape(Shape):
    expecting = "a string"

    def serialize(self, obj, ser):
        if not isinstance(obj, str):
            raise ConversionError.invalid_type(obj, "str")
        return ser.serialize_str(obj)

    def deserialize(self, de):
        return de.deserialize_str(self)

    def visit_str(self, value):
        return value


class BytesShape(Shape):
    """Owned byte buffer; *factory* builds the result (``bytes``, ``bytearray``)."""

    expecting = "a byte string"

    def __init__(self, factory: Callable[[bytes], Any] = bytes) -> None:
        self.factory = factory

    def serialize(self, obj, ser):
        if not isinstance(obj, (bytes, bytearray, memoryview)):
            raise ConversionError.invalid_type(obj, "bytes")
        return ser.serialize_bytes(obj)

    def deserialize(self, de):
        return de.deserialize_byte_buf(self)

    def visit_bytes(self, value):
        return self.factory(value)

    def __repr__(self) -> str:
        return f"BytesShape({self.factory.__name__})"


class BytesViewShape(BytesShape):
    """Zero-copy bytes: a ``memoryview`` into the parse buffer when possible.

    Owned input has no buffer to point into and yields ``bytes``.
    """

    def deserialize(self, de):
        return de.deserialize_bytes(self)

    def visit_borrowed_bytes(self, value):
        return value

    def visit_byte_buf(self, value):
        return value

    def __repr__(self) -> str:
        return "BytesViewShape()"


# ---------------------------------------------------------------------------
# Option / unit / newtype
# ---------------------------------------------------------------------------

class OptionShape(Shape):
    """``T | None``: ``None`` maps to Empty and back."""

    def __init__(self, inner: Shape) -> None:
        self.inner = inner
        self.expecting = f"an optional {inner.expecting}"

    def serialize(self, obj, ser):
        if obj is None:
            return ser.serialize_none()
        return ser.serialize_some(obj, self.inner)

    def deserialize(self, de):
        return de.deserialize_option(self)

    def visit_none(self):
        return None

    def visit_some(self, de):
        return self.inner.deserialize(de)

    def __repr__(self) -> str:
        return f"OptionShape({self.inner!r})"


class UnitShape(Shape):
    """The ``None`` type on its own. Has no encoding."""

    expecting = "unit"

    def serialize(self, obj, ser):
        return ser.serialize_unit()

    def deserialize(self, de):
        return de.deserialize_unit(self)

    def visit_unit(self):
        return None


class UnitStructShape(Shape):
    """A record without fields. Like unit, it has no encoding."""

    def __init__(self, cls: type) -> None:
        self.cls = cls
        self.expecting = f"unit struct {cls.__name__}"

    def serialize(self, obj, ser):
        return ser.serialize_unit_struct(self.cls.__name__)

    def deserialize(self, de):
        return de.deserialize_unit_struct(self.cls.__name__, self)

    def visit_unit(self):
        return self.cls()

    def __repr__(self) -> str:
        return f"UnitStructShape({self.cls.__name__})"


class NewTypeShape(Shape):
    """Transparent wrapper (``typing.NewType``); encodes as its inner shape."""

    def __init__(self, name: str, inner: Shape, factory: Callable | None = None) -> None:
        self.name = name
        self.inner = inner
        self.factory = factory
        self.expecting = f"newtype {name}"

    def serialize(self, obj, ser):
        return ser.serialize_newtype_struct(self.name, obj, self.inner)

    def deserialize(self, de):
        return de.deserialize_newtype_struct(self.name, self)

    def visit_newtype_struct(self, de):
        value = self.inner.deserialize(de)
        return value if self.factory is None else self.factory(value)

    def __repr__(self) -> str:
        return f"NewTypeShape({self.name}, {self.inner!r})"


# ---------------------------------------------------------------------------
# Sequences
# ---------------------------------------------------------------------------

def _check_iterable(obj: Any, expected: str) -> None:
    if isinstance(obj, (str, bytes, bytearray, memoryview, Mapping)) or not isinstance(
        obj, Iterable
    ):
        raise ConversionError.invalid_type(obj, expected)


class SeqShape(Shape):
    """Homogeneous sequence; *factory* builds the result from a list."""

    def __init__(self, inner: Shape, factory: Callable[[list], Any] = list) -> None:
        self.inner = inner
        self.factory = factory
        self.expecting = f"a sequence of {inner.expecting}"

    def serialize(self, obj, ser):
        _check_iterable(obj, "sequence")
        builder = ser.serialize_seq()
        for item in obj:
            builder.serialize_element(item, self.inner)
        return builder.end()

    def deserialize(self, de):
        return de.deserialize_seq(self)

    def visit_seq(self, seq):
        items = []
        while seq.remaining:
            items.append(seq.next_element(self.inner))
        return self.factory(items)

    def __repr__(self) -> str:
        return f"SeqShape({self.inner!r}, {self.factory.__name__})"


class TupleShape(Shape):
    """Fixed-length heterogeneous tuple."""

    def __init__(self, items: Sequence[Shape]) -> None:
        self.items = tuple(items)
        self.expecting = f"a tuple of size {len(self.items)}"

    def serialize(self, obj, ser):
        _check_iterable(obj, "tuple")
        values = tuple(obj)
        if len(values) != len(self.items):
            raise ConversionError.invalid_length(len(values), self.expecting)
        builder = ser.serialize_tuple(len(values))
        for value, shape in zip(values, self.items):
            builder.serialize_element(value, shape)
        return builder.end()

    def deserialize(self, de):
        return de.deserialize_tuple(len(self.items), self)

    def visit_seq(self, seq):
        if seq.remaining != len(self.items):
            raise ConversionError.invalid_length(seq.remaining, self.expecting)
        return tuple(seq.next_element(shape) for shape in self.items)

    def __repr__(self) -> str:
        return f"TupleShape({list(self.items)!r})"


class TupleStructShape(Shape):
    """Named positional record (``typing.NamedTuple``), encoded as a list."""

    def __init__(self, cls: type, items: Sequence[Shape]) -> None:
        self.cls = cls
        self.items = tuple(items)
        self.expecting = f"tuple struct {cls.__name__} with {len(self.items)} elements"

    def serialize(self, obj, ser):
        if not isinstance(obj, self.cls):
            raise ConversionError.invalid_type(obj, self.cls.__name__)
        builder = ser.serialize_tuple_struct(self.cls.__name__, len(self.items))
        for value, shape in zip(obj, self.items):
            builder.serialize_element(value, shape)
        return builder.end()

    def deserialize(self, de):
        return de.deserialize_tuple_struct(self.cls.__name__, len(self.items), self)

    def visit_seq(self, seq):
        if seq.remaining != len(self.items):
            raise ConversionError.invalid_length(seq.remaining, self.expecting)
        return self.cls(*(seq.next_element(shape) for shape in self.items))

    def __repr__(self) -> str:
        return f"TupleStructShape({self.cls.__name__})"


# ---------------------------------------------------------------------------
# Maps and records
# ---------------------------------------------------------------------------

class MapShape(Shape):
    """Dictionary with keys of *key* shape (text by default)."""

    def __init__(self, value: Shape, key: Shape | None = None) -> None:
        self.key = key or STR
        self.value = value
        self.expecting = f"a dictionary of {value.expecting}"

    def serialize(self, obj, ser):
        if not isinstance(obj, Mapping):
            raise ConversionError.invalid_type(obj, "dictionary")
        builder = ser.serialize_map(len(obj))
        for key, value in obj.items():
            builder.serialize_entry(key, value, self.key, self.value)
        return builder.end()

    def deserialize(self, de):
        return de.deserialize_map(self)

    def visit_map(self, access):
        out = {}
        while access.remaining:
            entry = access.next_key(self.key)
            out[entry.key] = entry.value(self.value)
        return out

    def __repr__(self) -> str:
        return f"MapShape({self.value!r}, key={self.key!r})"


class StructShape(Shape):
    """Dataclass record described by a :class:`TypeDef`.

    Encodes as a dictionary keyed by member key, or as a list in member
    order when the record is positional. Decodes from either form.
    """

    def __init__(self, typedef: TypeDef) -> None:
        self.typedef = typedef

    @property
    def expecting(self) -> str:  # type: ignore[override]
        return f"struct {self.typedef.name}"

    def serialize(self, obj, ser):
        td = self.typedef
        if not isinstance(obj, td.cls):
            raise ConversionError.invalid_type(obj, td.name)
        if td.positional:
            builder = ser.serialize_tuple_struct(td.name, len(td.members))
            for m in td.members:
                builder.serialize_element(getattr(obj, m.name), m.shape)
        else:
            builder = ser.serialize_struct(td.name, len(td.members))
            for m in td.members:
                builder.serialize_field(m.key, getattr(obj, m.name), m.shape)
        return builder.end()

    def deserialize(self, de):
        return de.deserialize_struct(self.typedef.name, self.typedef.keys(), self)

    def visit_seq(self, seq):
        td = self.typedef
        if seq.remaining > len(td.members):
            raise ConversionError.invalid_length(
                seq.remaining, f"at most {len(td.members)} elements for {td.name}"
            )
        found = {}
        for m in td.members:
            if not seq.remaining:
                break
            found[m.name] = seq.next_element(m.shape)
        return td.construct(found)

    def visit_map(self, access):
        td = self.typedef
        found = {}
        while access.remaining:
            entry = access.next_key(STR)
            m = td.member_for_key(entry.key)
            if m is None:
                if td.deny_unknown:
                    raise ConversionError.unknown_field(entry.key, td.keys())
                entry.ignore()
                continue
            found[m.name] = entry.value(m.shape)
        return td.construct(found)

    def __repr__(self) -> str:
        return f"StructShape({self.typedef.name})"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class EnumShape(Shape):
    """Python ``Enum``: members encode as their name (unit variants).

    Decoding enums is not supported by the bridge; see :class:`TaggedShape`
    for how custom extraction is layered on top.
    """

    def __init__(self, cls: type[Enum]) -> None:
        self.cls = cls
        self.variants = [m.name for m in cls]
        self.expecting = f"enum {cls.__name__}"

    def serialize(self, obj, ser):
        if not isinstance(obj, self.cls):
            raise ConversionError.invalid_type(obj, self.cls.__name__)
        index = self.variants.index(obj.name)
        return ser.serialize_unit_variant(self.cls.__name__, index, obj.name)

    def deserialize(self, de):
        return de.deserialize_enum(self.cls.__name__, self.variants, self)

    def __repr__(self) -> str:
        return f"EnumShape({self.cls.__name__})"


@dataclass(slots=True, frozen=True)
class Tagged:
    """An explicit enum case: *variant* name plus its payload (or ``None``)."""

    variant: str
    value: Any = None


class TaggedShape(Shape):
    """Tagged union over named variants.

    Each variant maps to ``None`` (unit variant), a :class:`TupleShape`
    (tuple variant), a :class:`StructShape` (struct variant) or any other
    shape (newtype variant). Only unit and newtype variants can be encoded.
    """

    def __init__(self, name: str, variants: Mapping[str, Shape | None]) -> None:
        self.name = name
        self.variants = dict(variants)
        self._index = {variant: i for i, variant in enumerate(self.variants)}
        self.expecting = f"enum {name}"

    def serialize(self, obj, ser):
        if not isinstance(obj, Tagged) or obj.variant not in self.variants:
            raise ConversionError.invalid_type(obj, self.expecting)
        index = self._index[obj.variant]
        shape = self.variants[obj.variant]
        if shape is None:
            return ser.serialize_unit_variant(self.name, index, obj.variant)
        if isinstance(shape, TupleShape):
            return ser.serialize_tuple_variant(
                self.name, index, obj.variant, len(shape.items)
            )
        if isinstance(shape, StructShape):
            return ser.serialize_struct_variant(
                self.name, index, obj.variant, len(shape.typedef.members)
            )
        return ser.serialize_newtype_variant(self.name, index, obj.variant, obj.value, shape)

    def deserialize(self, de):
        return de.deserialize_enum(self.name, list(self.variants), self)

    def __repr__(self) -> str:
        return f"TaggedShape({self.name})"


# ---------------------------------------------------------------------------
# Untyped targets
# ---------------------------------------------------------------------------

class ValueShape(Shape):
    """The Value tree itself.

    Serializing copies the tree into owned variants; deserializing rebuilds
    it through the visitor callbacks, keeping byte strings as byte strings.
    """

    expecting = "a bencode value"

    def serialize(self, obj, ser):
        if isinstance(obj, (Binary, BinaryOwned)):
            return ser.serialize_bytes(obj.data)
        if isinstance(obj, (Text, TextOwned)):
            return ser.serialize_str(obj.value)
        if isinstance(obj, Integer):
            return ser.serialize_i64(obj.value)
        if isinstance(obj, List):
            builder = ser.serialize_seq(len(obj.items))
            for item in obj.items:
                builder.serialize_element(item, self)
            return builder.end()
        if isinstance(obj, (Dictionary, DictionaryOwned)):
            builder = ser.serialize_map(len(obj.entries))
            for key, value in obj.entries.items():
                builder.serialize_entry(key, value, STR, self)
            return builder.end()
        if isinstance(obj, _EmptyType):
            return ser.serialize_none()
        raise ConversionError.invalid_type(obj, "a bencode value")

    def deserialize(self, de):
        if de.value.is_binary():
            return de.deserialize_bytes(self)
        return de.deserialize_any(self)

    def visit_int(self, value):
        return Integer(value)

    def visit_borrowed_str(self, value):
        return Text(value)

    def visit_string(self, value):
        return TextOwned(value)

    def visit_borrowed_bytes(self, value):
        return Binary(value)

    def visit_byte_buf(self, value):
        return BinaryOwned(value)

    def visit_none(self):
        return Empty

    def visit_seq(self, seq):
        items = []
        while seq.remaining:
            items.append(seq.next_element(self))
        return List(items)

    def visit_map(self, access):
        entries = {}
        while access.remaining:
            entry = access.next_key(STR)
            entries[entry.key] = entry.value(self)
        return Dictionary(entries)


class DynamicShape(Shape):
    """Plain Python objects, dispatched on their runtime type.

    Decodes to ``int``, ``str``, ``list``, ``dict`` and ``None``; byte
    strings come back as lists of integers.
    """

    expecting = "any bencode value"

    def serialize(self, obj, ser):
        if isinstance(obj, Value):
            return VALUE.serialize(obj, ser)
        if obj is None:
            return ser.serialize_none()
        if isinstance(obj, bool):
            return ser.serialize_bool(obj)
        if isinstance(obj, Enum):
            return EnumShape(type(obj)).serialize(obj, ser)
        if isinstance(obj, int):
            if _I64_MAX < obj <= _U64_MAX:
                return ser.serialize_u64(obj)
            return ser.serialize_i64(obj)
        if isinstance(obj, float):
            return ser.serialize_f64(obj)
        if isinstance(obj, str):
            return ser.serialize_str(obj)
        if isinstance(obj, (bytes, bytearray, memoryview)):
            return ser.serialize_bytes(obj)
        if isinstance(obj, Mapping):
            return MapShape(self).serialize(obj, ser)
        if (
            dataclasses.is_dataclass(obj)
            or hasattr(type(obj), "__bencode_shape__")
            or (isinstance(obj, tuple) and hasattr(obj, "_fields"))
        ):
            from .typedef import shape_of

            return shape_of(type(obj)).serialize(obj, ser)
        if isinstance(obj, Iterable):
            return SeqShape(self).serialize(obj, ser)
        raise ConversionError.custom(f"cannot serialize {type(obj).__name__}")

    def deserialize(self, de):
        return de.deserialize_any(self)

    def visit_int(self, value):
        return value

    def visit_str(self, value):
        return value

    def visit_none(self):
        return None

    def visit_seq(self, seq):
        items = []
        while seq.remaining:
            items.append(seq.next_element(self))
        return items

    def visit_map(self, access):
        out = {}
        while access.remaining:
            entry = access.next_key(STR)
            out[entry.key] = entry.value(self)
        return out


class IgnoredShape(Shape):
    """Accepts and discards any value; encodes as absent."""

    expecting = "anything"

    def serialize(self, obj, ser):
        return ser.serialize_none()

    def deserialize(self, de):
        return de.deserialize_ignored_any(self)

    def visit_unit(self):
        return None


# ---------------------------------------------------------------------------
# Shared instances
# ---------------------------------------------------------------------------

BOOL = BoolShape()
I8 = IntShape(8)
I16 = IntShape(16)
I32 = IntShape(32)
I64 = IntShape(64)
U8 = IntShape(8, signed=False)
U16 = IntShape(16, signed=False)
U32 = IntShape(32, signed=False)
U64 = IntShape(64, signed=False)
F32 = FloatShape(32)
F64 = FloatShape(64)
CHAR = CharShape()
STR = StrShape()
BYTES = BytesShape(bytes)
BYTEARRAY = BytesShape(bytearray)
BYTES_VIEW = BytesViewShape()
UNIT = UnitShape()
VALUE = ValueShape()
DYNAMIC = DynamicShape()
IGNORED = IgnoredShape()
