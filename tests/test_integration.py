"""End-to-end properties of the codec."""

from dataclasses import dataclass, field

import pytest

from bencode_core import (
    Binary,
    CodecConfig,
    Dictionary,
    Empty,
    Integer,
    List,
    ParseError,
    ParseErrorKind,
    Text,
    TextOwned,
    encode,
    from_bytes,
    from_value,
    parse_exact,
    to_bytes,
    to_value,
)
from bencode_core.parser import parse_one


@dataclass
class Inventory:
    owner: str
    counts: dict[str, int] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    blob: bytes = b""
    note: str | None = None


# ---------------------------------------------------------------------------
# Parser / writer round trip
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "data",
    [
        b"i0e",
        b"i-42e",
        b"0:",
        b"4:spam",
        b"2:\xff\xfe",
        b"le",
        b"de",
        b"l4:spami42ee",
        b"d3:bar4:spam3:fooi42ee",
        b"d4:listli1eli2eee1:ad1:bdeee",
    ],
)
def test_parse_write_round_trip(data):
    value = parse_exact(data)
    assert parse_exact(encode(value)) == value
    assert encode(value) == data

def test_canonical_output_of_unsorted_input():
    value = parse_exact(b"d1:bi2e1:ai1ee")
    assert encode(value) == b"d1:bi2e1:ai1ee"
    assert encode(value, CodecConfig(sort_keys=True)) == b"d1:ai1e1:bi2ee"


# ---------------------------------------------------------------------------
# Format properties
# ---------------------------------------------------------------------------

def test_integer_boundaries():
    assert parse_one(b"i0e")[1] == Integer(0)
    assert parse_one(b"i-0e")[1] == Integer(0)
    with pytest.raises(ParseError) as info:
        parse_one(b"i3")
    assert info.value.is_incomplete

def test_length_prefixed_strings():
    rest, value = parse_one(b"0:")
    assert value == Text("")
    assert bytes(rest) == b""
    rest, value = parse_one(b"3:abcdef")
    assert value == Text("abc")
    assert bytes(rest) == b"def"

def test_grouping_rule():
    assert parse_exact(b"i3ei4e") == List([Integer(3), Integer(4)])
    assert parse_exact(b"i3e") == Integer(3)
    assert parse_exact(b"") is Empty

def test_dictionary():
    _, value = parse_one(b"d1:ai4e1:b3:cowe")
    assert value == Dictionary({"b": Text("cow"), "a": Integer(4)})
    assert len(value.unwrap_dict()) == 2

def test_cross_representation_equality():
    assert Binary(b"abc") == Text("abc")
    assert TextOwned("abc") == Text("abc")

@pytest.mark.parametrize("data", [b"5:abc", b"10:", b"l3:ab", b"d1:a9:x"])
def test_declared_length_beyond_input_is_incomplete(data):
    with pytest.raises(ParseError) as info:
        parse_exact(data)
    assert info.value.kind is ParseErrorKind.INCOMPLETE


# ---------------------------------------------------------------------------
# Typed bridge
# ---------------------------------------------------------------------------

def test_record_round_trip():
    inv = Inventory(
        owner="ann",
        counts={"apples": 3, "pears": 0},
        tags=["fruit"],
        blob=b"\x00\xff",
    )
    assert from_value(to_value(inv), Inventory) == inv
    assert from_bytes(to_bytes(inv), Inventory) == inv

def test_bool_becomes_integer():
    assert from_bytes(to_bytes(True), int) == 1

def test_float_becomes_rounded_integer():
    assert from_bytes(to_bytes(2.6), int) == 3
    # the float itself is gone; only an integer comes back
    assert from_bytes(to_bytes(2.6)) == 3
    assert from_bytes(to_bytes(2.6), float) == 3.0

def test_absent_optional_round_trip():
    data = to_bytes(Inventory("bob", blob=b"\xff"))
    assert b"note" not in data
    assert from_bytes(data, Inventory).note is None
