"""Tests for the deserializer bridge."""

from dataclasses import dataclass

import pytest

from bencode_core.config import CodecConfig
from bencode_core.de import Deserializer, MapAccess, SeqAccess, from_bytes, from_value
from bencode_core.errors import ConversionError, InvariantViolation, ParseError
from bencode_core.parser import parse_exact
from bencode_core.shapes import (
    BOOL,
    BYTES,
    BYTES_VIEW,
    CHAR,
    F32,
    F64,
    I8,
    I32,
    I64,
    IGNORED,
    STR,
    U8,
    U64,
    DYNAMIC,
    VALUE,
    MapShape,
    OptionShape,
    SeqShape,
)
from bencode_core.visitor import Visitor
from bencode_core.values import (
    Binary,
    BinaryOwned,
    Dictionary,
    DictionaryOwned,
    Empty,
    Integer,
    List,
    Text,
    TextOwned,
)


@dataclass
class Person:
    name: str
    age: int
    friends: list[str]


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------

def test_string():
    assert from_value(TextOwned("Hello, world!"), str) == "Hello, world!"
    assert from_bytes(b"13:Hello, world!", str) == "Hello, world!"

def test_number():
    assert from_value(Integer(64), int) == 64
    assert from_value(Integer(64), I8) == 64
    assert from_value(Integer(64), U8) == 64
    assert from_bytes(b"i64e", I64) == 64

def test_bool_accepts_only_zero_and_one():
    assert from_value(Integer(1), bool) is True
    assert from_value(Integer(0), BOOL) is False
    with pytest.raises(ConversionError):
        from_value(Integer(2), bool)
    with pytest.raises(ConversionError):
        from_value(TextOwned("true"), bool)

def test_narrowing_out_of_range():
    with pytest.raises(ConversionError):
        from_value(Integer(128), I8)
    with pytest.raises(ConversionError):
        from_value(Integer(2**31), I32)

def test_unsigned_rejects_negative():
    with pytest.raises(ConversionError, match="uint cannot be negative"):
        from_value(Integer(-1), U64)
    with pytest.raises(ConversionError):
        from_value(Integer(256), U8)

def test_float_widened_directly():
    assert from_value(Integer(3), float) == 3.0
    assert from_value(Integer(2**40), F64) == float(2**40)

def test_float_through_int32():
    config = CodecConfig(float_via_int32=True)
    assert from_value(Integer(2**32 + 5), F64, config) == 5.0
    assert from_value(Integer(-7), F64, config) == -7.0

def test_f32_narrows_precision():
    assert from_value(Integer(2**24 + 1), F32) == float(2**24)

def test_char():
    assert from_value(TextOwned("x"), CHAR) == "x"
    with pytest.raises(ConversionError):
        from_value(TextOwned("xy"), CHAR)
    with pytest.raises(ConversionError):
        from_value(Integer(1), CHAR)

def test_str_rejects_binary():
    with pytest.raises(ConversionError, match="cannot convert from"):
        from_value(Binary(b"\xff"), str)


# ---------------------------------------------------------------------------
# Bytes
# ---------------------------------------------------------------------------

class TestBytes:
    def test_binary(self):
        assert from_value(Binary(b"\x00\xff"), bytes) == b"\x00\xff"
        assert from_value(BinaryOwned(b"\x01"), BYTES) == b"\x01"

    def test_bytearray(self):
        assert from_value(Binary(b"ab"), bytearray) == bytearray(b"ab")

    def test_text_rejected_by_default(self):
        with pytest.raises(ConversionError):
            from_value(Text("abc"), bytes)

    def test_text_accepted_when_configured(self):
        config = CodecConfig(bytes_from_text=True)
        assert from_value(Text("abc"), bytes, config) == b"abc"

    def test_view_borrows_from_input(self):
        data = b"4:\xff\xfe\xfd\xfc"
        view = from_bytes(data, BYTES_VIEW)
        assert isinstance(view, memoryview)
        assert view.obj is data

    def test_view_of_owned_value_is_bytes(self):
        assert from_value(BinaryOwned(b"ab"), memoryview) == b"ab"


# ---------------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------------

def test_list():
    value = List([TextOwned("hello"), TextOwned("world")])
    assert from_value(value, list[str]) == ["hello", "world"]
    assert from_bytes(b"l5:hello5:worlde", list[str]) == ["hello", "world"]

def test_binary_as_sequence_of_bytes():
    assert from_value(Binary(b"\x01\x02\xff"), list[int]) == [1, 2, 255]
    assert from_value(BinaryOwned(b"\x01"), SeqShape(U8)) == [1]

def test_tuple():
    assert from_bytes(b"li1e1:ae", tuple[int, str]) == (1, "a")
    with pytest.raises(ConversionError):
        from_bytes(b"li1ee", tuple[int, str])

def test_variadic_tuple_and_set():
    assert from_bytes(b"li1ei2ee", tuple[int, ...]) == (1, 2)
    assert from_bytes(b"li1ei1ee", set[int]) == {1}

def test_dict():
    expected = {"a": 1, "b": 2, "c": 3, "d": 4}
    value = DictionaryOwned({k: Integer(v) for k, v in expected.items()})
    assert from_value(value, dict[str, int]) == expected

def test_dict_with_int_keys_rejected():
    with pytest.raises(ConversionError):
        from_value(Dictionary({"1": Integer(1)}), MapShape(I64, key=I64))

def test_map_requires_dictionary():
    with pytest.raises(ConversionError):
        from_value(List([]), dict[str, int])

def test_struct_from_dictionary():
    value = DictionaryOwned(
        {
            "age": Integer(24),
            "name": TextOwned("Tom"),
            "friends": List([TextOwned("David"), TextOwned("Donald")]),
        }
    )
    assert from_value(value, Person) == Person("Tom", 24, ["David", "Donald"])

def test_struct_from_list():
    value = List([TextOwned("Tom"), Integer(24), List([])])
    assert from_value(value, Person) == Person("Tom", 24, [])

def test_struct_from_integer_rejected():
    with pytest.raises(ConversionError):
        from_value(Integer(1), Person)


# ---------------------------------------------------------------------------
# Option / ignored / any
# ---------------------------------------------------------------------------

def test_option():
    assert from_value(Empty, OptionShape(I64)) is None
    assert from_value(Integer(5), int | None) == 5

def test_ignored_always_succeeds():
    assert from_value(Dictionary({"x": Binary(b"\xff")}), IGNORED) is None
    assert from_value(Empty, IGNORED) is None

@pytest.mark.parametrize(
    "value, expected",
    [
        (Integer(7), 7),
        (Text("s"), "s"),
        (Binary(b"\x01\x02"), [1, 2]),
        (List([Integer(1), Text("a")]), [1, "a"]),
        (Dictionary({"k": List([])}), {"k": []}),
        (Empty, None),
    ],
)
def test_any(value, expected):
    assert from_value(value) == expected
    assert from_value(value, DYNAMIC) == expected

def test_value_shape_rebuilds_tree():
    value = Dictionary({"b": Binary(b"\xff"), "t": Text("x"), "l": List([Integer(1)])})
    rebuilt = from_value(value, VALUE)
    assert rebuilt == value
    assert rebuilt.unwrap_dict()["b"].is_binary()

def test_from_bytes_propagates_parse_errors():
    with pytest.raises(ParseError):
        from_bytes(b"i1ex", int)

def test_units_rejected():
    with pytest.raises(ConversionError, match="cannot deserialize units"):
        from_value(Integer(0), type(None))


# ---------------------------------------------------------------------------
# str ownership
# ---------------------------------------------------------------------------

class Recorder(Visitor):
    expecting = "anything"

    def visit_borrowed_str(self, value):
        return ("borrowed", value)

    def visit_string(self, value):
        return ("owned", value)


def test_owned_text_yields_owned_string():
    assert Deserializer(TextOwned("a")).deserialize_str(Recorder()) == ("owned", "a")
    assert Deserializer(Text("a")).deserialize_str(Recorder()) == ("borrowed", "a")
    assert Deserializer(Text("a")).deserialize_string(Recorder()) == ("owned", "a")

def test_default_visitor_rejects():
    with pytest.raises(ConversionError, match="expected a value"):
        Deserializer(Integer(1)).deserialize_i64(Visitor())

def test_enum_rejected():
    with pytest.raises(ConversionError, match="enums are not supported"):
        Deserializer(TextOwned("A")).deserialize_enum("E", ["A"], Visitor())


# ---------------------------------------------------------------------------
# Access adapters
# ---------------------------------------------------------------------------

class TestSeqAccess:
    def test_remaining(self):
        seq = SeqAccess([Integer(1), Integer(2)], CodecConfig())
        assert seq.remaining == 2
        assert seq.next_element(I64) == 1
        assert seq.remaining == 1
        assert seq.next_element(I64) == 2
        assert seq.remaining == 0

    def test_past_the_end(self):
        seq = SeqAccess([], CodecConfig())
        with pytest.raises(InvariantViolation):
            seq.next_element(I64)


class TestMapAccess:
    def _access(self):
        return MapAccess({"a": Integer(1), "b": Integer(2)}, CodecConfig())

    def test_alternation(self):
        access = self._access()
        entry = access.next_key(STR)
        assert entry.key == "a"
        assert entry.value(I64) == 1
        entry = access.next_key(STR)
        entry.ignore()
        assert access.remaining == 0

    def test_second_key_before_value(self):
        access = self._access()
        access.next_key(STR)
        with pytest.raises(InvariantViolation):
            access.next_key(STR)

    def test_value_taken_twice(self):
        entry = self._access().next_key(STR)
        entry.value(I64)
        with pytest.raises(InvariantViolation):
            entry.value(I64)

    def test_past_the_end(self):
        access = MapAccess({}, CodecConfig())
        with pytest.raises(InvariantViolation):
            access.next_key(STR)

    def test_failed_key_is_not_consumed(self):
        access = self._access()
        with pytest.raises(ConversionError):
            access.next_key(I64)
        assert access.remaining == 2
        assert access.next_key(STR).key == "a"


# ---------------------------------------------------------------------------
# Nesting depth
# ---------------------------------------------------------------------------

def _nested(depth: int) -> List:
    value = List([])
    for _ in range(depth - 1):
        value = List([value])
    return value


class TestNesting:
    def test_default_limit_matches_parser(self):
        depth = CodecConfig().max_depth
        data = b"l" * depth + b"e" * depth
        assert from_bytes(data, VALUE) == parse_exact(data)
        out = from_bytes(data)
        for _ in range(depth - 1):
            (out,) = out
        assert out == []

    def test_deeper_than_limit(self):
        config = CodecConfig(max_depth=3)
        assert from_value(_nested(3), None, config) == [[[]]]
        with pytest.raises(ConversionError, match="more than 3 nested"):
            from_value(_nested(4), None, config)
        with pytest.raises(ConversionError):
            from_value(_nested(4), VALUE, config)

    def test_deeper_than_limit_in_dictionaries(self):
        value = Dictionary({"a": Dictionary({"b": Dictionary({"c": List([])})})})
        with pytest.raises(ConversionError):
            from_value(value, dict, CodecConfig(max_depth=3))

    def test_stack_exhaustion_is_a_conversion_error(self):
        with pytest.raises(ConversionError, match="too deep"):
            from_value(_nested(5000), VALUE, CodecConfig(max_depth=10_000))
