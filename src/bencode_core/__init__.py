"""bencode-core: bencode parser, writer and typed bridge."""

from .config import CodecConfig, DEFAULT_CONFIG
from .errors import (
    BencodeError,
    ConversionError,
    InvariantViolation,
    ParseError,
    ParseErrorKind,
)
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
from .parser import parse, parse_exact, parse_exact_allow_trailing, parse_many
from .writer import encode, write
from .typedef import MemberDef, TypeDef, member, record, shape_of
from .shapes import Shape, Tagged
from .ser import Serializer, to_bytes, to_sink, to_value
from .de import Deserializer, from_bytes, from_value

__all__ = [
    "parse",
    "parse_exact",
    "parse_exact_allow_trailing",
    "parse_many",
    "write",
    "encode",
    "to_value",
    "to_bytes",
    "to_sink",
    "from_value",
    "from_bytes",
    "Serializer",
    "Deserializer",
    "Shape",
    "Tagged",
    "shape_of",
    "member",
    "record",
    "TypeDef",
    "MemberDef",
    "CodecConfig",
    "DEFAULT_CONFIG",
    "Value",
    "Binary",
    "BinaryOwned",
    "Text",
    "TextOwned",
    "Integer",
    "List",
    "Dictionary",
    "DictionaryOwned",
    "Empty",
    "BencodeError",
    "ParseError",
    "ParseErrorKind",
    "ConversionError",
    "InvariantViolation",
]
