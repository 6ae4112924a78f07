"""Value types for bencode_core."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvariantViolation

# Containers longer than this only show their length in repr().
_REPR_LIMIT = 32


class Value:
    """Base of every decoded or encodable bencode value.

    Variants produced by the parser (``Binary``, ``Text``, ``Dictionary``)
    borrow from the input buffer; the ``*Owned`` variants and everything
    built by the serializer own their data.
    """

    __slots__ = ()

    # -- Predicates -----------------------------------------------------

    def is_binary(self) -> bool:
        return False

    def is_text(self) -> bool:
        return False

    def is_integer(self) -> bool:
        return False

    def is_list(self) -> bool:
        return False

    def is_dictionary(self) -> bool:
        return False

    def is_empty(self) -> bool:
        return False

    def is_owned(self) -> bool:
        return False

    # -- Unwraps (caller must have checked the predicate) ----------------

    def unwrap_bytes(self) -> bytes:
        raise InvariantViolation(f"not a binary value: {self!r}")

    def unwrap_str(self) -> str:
        raise InvariantViolation(f"not a text value: {self!r}")

    def unwrap_int(self) -> int:
        raise InvariantViolation(f"not an integer: {self!r}")

    def unwrap_list(self) -> list[Value]:
        raise InvariantViolation(f"not a list: {self!r}")

    def unwrap_dict(self) -> dict[str, Value]:
        raise InvariantViolation(f"not a dictionary: {self!r}")

    def to_owned(self) -> Value:
        """Return an equal value that holds no reference to a parse buffer."""
        return self


# ---------------------------------------------------------------------------
# Byte strings
# ---------------------------------------------------------------------------

class _ByteString(Value):
    """Binary and text share one wire encoding and compare by raw bytes."""

    __slots__ = ()

    def as_bytes(self) -> bytes:
        raise NotImplementedError

    def __eq__(self, other: object) -> bool:
        if isinstance(other, _ByteString):
            return self.as_bytes() == other.as_bytes()
        if isinstance(other, Value):
            return False
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.as_bytes())


@dataclass(slots=True, eq=False, repr=False)
class Binary(_ByteString):
    data: memoryview

    def __post_init__(self) -> None:
        if not isinstance(self.data, memoryview):
            self.data = memoryview(self.data)
        if self.data.format != "B" or self.data.ndim != 1:
            self.data = self.data.cast("B")

    def is_binary(self) -> bool:
        return True

    def as_bytes(self) -> bytes:
        return self.data.tobytes()

    def unwrap_bytes(self) -> bytes:
        return self.data.tobytes()

    def to_owned(self) -> Value:
        return BinaryOwned(self.data.tobytes())

    def __repr__(self) -> str:
        return f"Binary(length={len(self.data)})"


@dataclass(slots=True, eq=False, repr=False)
class BinaryOwned(_ByteString):
    data: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.data, bytes):
            self.data = bytes(self.data)

    def is_binary(self) -> bool:
        return True

    def is_owned(self) -> bool:
        return True

    def as_bytes(self) -> bytes:
        return self.data

    def unwrap_bytes(self) -> bytes:
        return self.data

    def __repr__(self) -> str:
        return f"BinaryOwned(length={len(self.data)})"


@dataclass(slots=True, eq=False, repr=False)
class Text(_ByteString):
    value: str

    def is_text(self) -> bool:
        return True

    def as_bytes(self) -> bytes:
        return self.value.encode("utf-8")

    def unwrap_str(self) -> str:
        return self.value

    def to_owned(self) -> Value:
        return TextOwned(self.value)

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"Text({self.value!r})"


@dataclass(slots=True, eq=False, repr=False)
class TextOwned(_ByteString):
    value: str

    def is_text(self) -> bool:
        return True

    def is_owned(self) -> bool:
        return True

    def as_bytes(self) -> bytes:
        return self.value.encode("utf-8")

    def unwrap_str(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"TextOwned({self.value!r})"


# ---------------------------------------------------------------------------
# Integer / List
# ---------------------------------------------------------------------------

@dataclass(slots=True, eq=False, repr=False)
class Integer(Value):
    value: int

    def is_integer(self) -> bool:
        return True

    def unwrap_int(self) -> int:
        return self.value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Integer):
            return self.value == other.value
        if isinstance(other, Value):
            return False
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"Integer({self.value})"


@dataclass(slots=True, eq=False, repr=False)
class List(Value):
    items: list[Value]

    def is_list(self) -> bool:
        return True

    def unwrap_list(self) -> list[Value]:
        return self.items

    def to_owned(self) -> Value:
        return List([item.to_owned() for item in self.items])

    def __eq__(self, other: object) -> bool:
        if isinstance(other, List):
            return self.items == other.items
        if isinstance(other, Value):
            return False
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __len__(self) -> int:
        return len(self.items)

    def __repr__(self) -> str:
        if len(self.items) > _REPR_LIMIT:
            return f"List(length={len(self.items)})"
        return f"List({self.items!r})"


# ---------------------------------------------------------------------------
# Dictionaries
# ---------------------------------------------------------------------------

class _Mapping(Value):
    """Both dictionary variants compare by their key/value pairs."""

    __slots__ = ()

    entries: dict[str, Value]

    def is_dictionary(self) -> bool:
        return True

    def unwrap_dict(self) -> dict[str, Value]:
        return self.entries

    def to_owned(self) -> Value:
        return DictionaryOwned({k: v.to_owned() for k, v in self.entries.items()})

    def __eq__(self, other: object) -> bool:
        if isinstance(other, _Mapping):
            return self.entries == other.entries
        if isinstance(other, Value):
            return False
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __len__(self) -> int:
        return len(self.entries)

    def _repr(self, name: str) -> str:
        if len(self.entries) > _REPR_LIMIT:
            return f"{name}(length={len(self.entries)})"
        return f"{name}({self.entries!r})"


@dataclass(slots=True, eq=False, repr=False)
class Dictionary(_Mapping):
    entries: dict[str, Value]

    def __repr__(self) -> str:
        return self._repr("Dictionary")


@dataclass(slots=True, eq=False, repr=False)
class DictionaryOwned(_Mapping):
    entries: dict[str, Value]

    def is_owned(self) -> bool:
        return True

    def __repr__(self) -> str:
        return self._repr("DictionaryOwned")


# ---------------------------------------------------------------------------
# Empty: placeholder for absent values, never on the wire
# ---------------------------------------------------------------------------

class _EmptyType(Value):
    """Singleton standing for an absent value (``None`` in the typed bridge)."""

    __slots__ = ()

    _instance: _EmptyType | None = None

    def __new__(cls) -> _EmptyType:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def is_empty(self) -> bool:
        return True

    def is_owned(self) -> bool:
        return True

    def __reduce__(self) -> tuple:
        return (_EmptyType, ())

    def __repr__(self) -> str:
        return "Empty"

    def __bool__(self) -> bool:
        return False


Empty = _EmptyType()
