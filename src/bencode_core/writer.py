"""Writer layer: encodes a Value tree into bencoded bytes."""

from __future__ import annotations

import io
import logging
from typing import Mapping, Protocol, Sequence

from .config import CodecConfig, DEFAULT_CONFIG
from .values import (
    Binary,
    BinaryOwned,
    Dictionary,
    DictionaryOwned,
    Integer,
    List,
    Text,
    TextOwned,
    Value,
    _EmptyType,
)

logger = logging.getLogger(__name__)


class Sink(Protocol):
    def write(self, data: bytes, /) -> object:
        ...


def write(value: Value, sink: Sink, config: CodecConfig | None = None) -> None:
    """Write *value* to *sink*.

    ``Empty`` produces no bytes at all; it must not appear where a reader
    expects a self-delimiting value. Errors raised by ``sink.write``
    propagate unchanged.
    """
    config = config or DEFAULT_CONFIG
    if isinstance(value, (Binary, BinaryOwned)):
        write_bin(value.data, sink)
    elif isinstance(value, (Text, TextOwned)):
        write_str(value.value, sink)
    elif isinstance(value, Integer):
        write_int(value.value, sink)
    elif isinstance(value, List):
        write_list(value.items, sink, config)
    elif isinstance(value, (Dictionary, DictionaryOwned)):
        write_dict(value.entries, sink, config)
    elif isinstance(value, _EmptyType):
        logger.debug("Writing Empty: no bytes emitted")
    else:
        raise TypeError(f"not a bencode value: {value!r}")


def write_bin(data: bytes | memoryview, sink: Sink) -> None:
    sink.write(b"%d:" % len(data))
    sink.write(data)


def write_str(text: str, sink: Sink) -> None:
    write_bin(text.encode("utf-8"), sink)


def write_int(number: int, sink: Sink) -> None:
    sink.write(b"i%de" % number)


def write_list(items: Sequence[Value], sink: Sink, config: CodecConfig | None = None) -> None:
    sink.write(b"l")
    for item in items:
        write(item, sink, config)
    sink.write(b"e")


def write_dict(
    entries: Mapping[str, Value], sink: Sink, config: CodecConfig | None = None
) -> None:
    """Write a dictionary, in iteration order unless ``config.sort_keys``."""
    config = config or DEFAULT_CONFIG
    pairs = [(key.encode("utf-8"), value) for key, value in entries.items()]
    if config.sort_keys:
        pairs.sort(key=lambda pair: pair[0])
    sink.write(b"d")
    for raw_key, value in pairs:
        write_bin(raw_key, sink)
        write(value, sink, config)
    sink.write(b"e")


def encode(value: Value, config: CodecConfig | None = None) -> bytes:
    """Return the encoding of *value* as ``bytes``."""
    buf = io.BytesIO()
    write(value, buf, config)
    return buf.getvalue()
