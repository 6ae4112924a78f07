"""Tests for record descriptors and shape derivation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, NamedTuple, NewType, Optional

import pytest

from bencode_core import from_bytes, to_bytes, to_value
from bencode_core.errors import ConversionError
from bencode_core.shapes import (
    BYTES,
    DYNAMIC,
    F64,
    I64,
    STR,
    U8,
    VALUE,
    EnumShape,
    MapShape,
    NewTypeShape,
    OptionShape,
    SeqShape,
    Shape,
    StructShape,
    TupleShape,
    TupleStructShape,
    UnitStructShape,
)
from bencode_core.typedef import TypeDef, member, record, shape_of
from bencode_core.values import DictionaryOwned, Integer, List, TextOwned, Value

UserId = NewType("UserId", int)


class Mode(Enum):
    FAST = "fast"


class Pair(NamedTuple):
    left: int
    right: str


@dataclass
class Task:
    title: str
    done: bool = False
    tags: list[str] = field(default_factory=list)
    due: int | None = None


@dataclass
class Renamed:
    piece_length: int = member(rename="piece length")
    raw: bytes = member(shape=BYTES, default=b"")


@record(deny_unknown=True)
@dataclass
class Strict:
    name: str


@record(positional=True)
@dataclass
class Vec2:
    x: int
    y: int


@record(positional=True)
@dataclass
class Span:
    start: int | None
    end: int | None


@dataclass
class Node:
    name: str
    children: list[Node] = field(default_factory=list)


@dataclass
class Marker:
    pass


@dataclass
class Owner:
    id: UserId
    small: Annotated[int, U8]


class Celsius:
    def __init__(self, degrees):
        self.degrees = degrees

    @classmethod
    def __bencode_shape__(cls):
        return CELSIUS


class CelsiusShape(Shape):
    expecting = "degrees"

    def serialize(self, obj, ser):
        return ser.serialize_i64(obj.degrees)

    def deserialize(self, de):
        return de.deserialize_i64(self)

    def visit_int(self, value):
        return Celsius(value)


CELSIUS = CelsiusShape()


# ---------------------------------------------------------------------------
# shape_of
# ---------------------------------------------------------------------------

class TestShapeOf:
    def test_scalars(self):
        assert shape_of(int) is I64
        assert shape_of(str) is STR
        assert shape_of(float) is F64
        assert shape_of(bytes) is BYTES

    def test_optional(self):
        shape = shape_of(Optional[int])
        assert isinstance(shape, OptionShape)
        assert shape.inner is I64
        assert isinstance(shape_of(str | None), OptionShape)

    def test_generics(self):
        assert isinstance(shape_of(list[int]), SeqShape)
        assert isinstance(shape_of(dict[str, int]), MapShape)
        assert isinstance(shape_of(Task), StructShape)
        assert isinstance(shape_of(tuple[int, str]), TupleShape)

    def test_unsupported_union(self):
        with pytest.raises(TypeError):
            shape_of(int | str)

    def test_unsupported_class(self):
        with pytest.raises(TypeError):
            shape_of(complex)

    def test_annotated_override(self):
        assert shape_of(Annotated[int, U8]) is U8

    def test_newtype(self):
        shape = shape_of(UserId)
        assert isinstance(shape, NewTypeShape)
        assert shape.inner is I64

    def test_enum(self):
        assert isinstance(shape_of(Mode), EnumShape)

    def test_named_tuple(self):
        assert isinstance(shape_of(Pair), TupleStructShape)

    def test_value_and_any(self):
        assert shape_of(Value) is VALUE
        assert shape_of(object) is DYNAMIC

    def test_derived_once(self):
        assert shape_of(Task) is shape_of(Task)

    def test_custom_shape_hook(self):
        assert shape_of(Celsius) is CELSIUS

    def test_unit_struct(self):
        assert isinstance(shape_of(Marker), UnitStructShape)


# ---------------------------------------------------------------------------
# TypeDef
# ---------------------------------------------------------------------------

class TestTypeDef:
    def test_members(self):
        td = shape_of(Task).typedef
        assert isinstance(td, TypeDef)
        assert [m.name for m in td.members] == ["title", "done", "tags", "due"]
        assert td.members[1].has_default
        assert td.members[3].optional

    def test_rename(self):
        td = shape_of(Renamed).typedef
        assert td.keys() == ["piece length", "raw"]
        assert td.member_for_key("piece length").name == "piece_length"
        assert td.member_for_key("piece_length") is None

    def test_explicit_member_shape(self):
        assert shape_of(Renamed).typedef.members[1].shape is BYTES

    def test_record_options(self):
        assert shape_of(Strict).typedef.deny_unknown
        assert shape_of(Vec2).typedef.positional


# ---------------------------------------------------------------------------
# Records through the bridge
# ---------------------------------------------------------------------------

class TestRecords:
    def test_defaults_fill_missing_fields(self):
        assert from_bytes(b"d5:title3:fooe", Task) == Task("foo")

    def test_optional_absent_is_none(self):
        task = from_bytes(b"d5:title1:a4:donei1ee", Task)
        assert task.done is True
        assert task.due is None

    def test_missing_required_field(self):
        with pytest.raises(ConversionError, match="missing field `title`"):
            from_bytes(b"d4:donei0ee", Task)

    def test_unknown_keys_ignored(self):
        assert from_bytes(b"d5:extrai1e5:title1:ae", Task) == Task("a")

    def test_unknown_keys_rejected_when_strict(self):
        with pytest.raises(ConversionError, match="unknown field `extra`"):
            from_bytes(b"d5:extrai1e4:name1:ae", Strict)

    def test_absent_option_not_written(self):
        assert to_bytes(Task("a")) == b"d5:title1:a4:donei0e4:tagslee"

    def test_rename_round_trip(self):
        data = to_bytes(Renamed(16, b"\xff"))
        assert data == b"d12:piece lengthi16e3:raw1:\xffe"
        assert from_bytes(data, Renamed) == Renamed(16, b"\xff")

    def test_positional(self):
        assert to_value(Vec2(1, 2)) == List([Integer(1), Integer(2)])
        assert from_bytes(b"li3ei4ee", Vec2) == Vec2(3, 4)
        assert from_bytes(b"d1:xi3e1:yi4ee", Vec2) == Vec2(3, 4)

    def test_too_many_positional_elements(self):
        with pytest.raises(ConversionError):
            from_bytes(b"li1ei2ei3ee", Vec2)

    def test_positional_absent_member_rejected(self):
        assert from_bytes(to_bytes(Span(1, 5)), Span) == Span(1, 5)
        with pytest.raises(ConversionError, match="absent"):
            to_bytes(Span(None, 5))

    def test_positional_trailing_elements_may_be_missing(self):
        assert from_bytes(b"li1ee", Span) == Span(1, None)

    def test_recursive(self):
        tree = Node("root", [Node("a"), Node("b", [Node("c")])])
        assert from_bytes(to_bytes(tree), Node) == tree

    def test_newtype_and_annotated(self):
        owner = Owner(UserId(7), 200)
        assert to_value(owner) == DictionaryOwned(
            {"id": Integer(7), "small": Integer(200)}
        )
        assert from_bytes(b"d2:idi7e5:smalli200ee", Owner) == owner
        with pytest.raises(ConversionError):
            from_bytes(b"d2:idi7e5:smalli300ee", Owner)

    def test_named_tuple(self):
        assert to_bytes(Pair(1, "a")) == b"li1e1:ae"
        assert from_bytes(b"li1e1:ae", Pair) == Pair(1, "a")

    def test_unit_struct_has_no_encoding(self):
        with pytest.raises(ConversionError, match="cannot serialize units"):
            to_value(Marker())
        with pytest.raises(ConversionError, match="cannot deserialize units"):
            from_bytes(b"de", Marker)

    def test_enum_encodes_but_does_not_decode(self):
        assert to_value(Mode.FAST) == TextOwned("FAST")
        with pytest.raises(ConversionError, match="enums are not supported"):
            from_bytes(b"4:FAST", Mode)

    def test_custom_shape(self):
        assert to_bytes(Celsius(21)) == b"i21e"
        assert to_bytes(Celsius(21), Celsius) == b"i21e"
        assert from_bytes(b"i21e", Celsius).degrees == 21
