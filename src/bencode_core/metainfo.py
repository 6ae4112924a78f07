"""Torrent metainfo (``.torrent`` file) records.

A metainfo file is a bencoded dictionary. Its ``info`` dictionary comes in
two layouts that are told apart by the presence of ``files``: a single
file (``name`` and ``length``) or a directory of files (``name`` is the
directory and ``files`` lists its contents). That choice cannot be made by
the generic record machinery, so :class:`InfoShape` extracts the
dictionary by hand and rejects any key it does not know.

Piece hashes and md5 sums are binary but may happen to be valid UTF-8, in
which case the parser produces Text for them; :data:`METAINFO_CONFIG`
lets byte fields accept both.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

from .config import CodecConfig
from .de import from_bytes as _from_bytes
from .errors import ConversionError
from .ser import to_bytes as _to_bytes, to_value
from .shapes import BOOL, BYTES, I64, STR, OptionShape, SeqShape, Shape
from .typedef import member, shape_of
from .writer import encode

METAINFO_CONFIG = CodecConfig(bytes_from_text=True, sort_keys=True)


@dataclass
class FileInfo:
    name: str
    length: int
    md5sum: bytes | None = None


@dataclass
class SingleFile:
    """The torrent holds one file; ``file`` is flattened into ``info``."""

    piece_length: int
    pieces: bytes
    file: FileInfo
    private: bool | None = None

    def is_single_file(self) -> bool:
        return True

    def is_multi_file(self) -> bool:
        return False


@dataclass
class MultiFile:
    """The torrent holds a directory named ``dir_name``."""

    piece_length: int
    pieces: bytes
    dir_name: str
    files: list[FileInfo] = field(default_factory=list)
    private: bool | None = None

    def is_single_file(self) -> bool:
        return False

    def is_multi_file(self) -> bool:
        return True


Info = SingleFile | MultiFile

_FILES = SeqShape(shape_of(FileInfo))
_PRIVATE = OptionShape(BOOL)
_MD5SUM = OptionShape(BYTES)

# key -> (shape, description used in error messages)
_INFO_FIELDS: dict[str, tuple[Shape, str]] = {
    "piece length": (I64, "an i64"),
    "pieces": (BYTES, "a byte array"),
    "private": (BOOL, "a bool"),
    "name": (STR, "a string"),
    "length": (I64, "an i64"),
    "md5sum": (BYTES, "an md5"),
    "files": (_FILES, "a list of FileInfo"),
}


class InfoShape(Shape):
    expecting = "map"

    def serialize(self, obj, ser):
        builder = ser.serialize_struct(type(obj).__name__, 6)
        builder.serialize_field("piece length", obj.piece_length, I64)
        builder.serialize_field("pieces", obj.pieces, BYTES)
        builder.serialize_field("private", obj.private, _PRIVATE)
        if isinstance(obj, SingleFile):
            builder.serialize_field("name", obj.file.name, STR)
            builder.serialize_field("length", obj.file.length, I64)
            builder.serialize_field("md5sum", obj.file.md5sum, _MD5SUM)
        elif isinstance(obj, MultiFile):
            builder.serialize_field("name", obj.dir_name, STR)
            builder.serialize_field("files", obj.files, _FILES)
        else:
            raise ConversionError.invalid_type(obj, "Info")
        return builder.end()

    def deserialize(self, de):
        return de.deserialize_map(self)

    def visit_map(self, access):
        found = {}
        while access.remaining:
            entry = access.next_key(STR)
            try:
                shape, description = _INFO_FIELDS[entry.key]
            except KeyError:
                raise ConversionError.unknown_field(entry.key, _INFO_FIELDS) from None
            try:
                found[entry.key] = entry.value(shape)
            except ConversionError as err:
                raise ConversionError.invalid_visit(description, self.expecting) from err

        for key in ("pieces", "name", "piece length"):
            if key not in found:
                raise ConversionError.missing_field(key)

        if "files" in found:
            return MultiFile(
                piece_length=found["piece length"],
                pieces=found["pieces"],
                dir_name=found["name"],
                files=found["files"],
                private=found.get("private"),
            )
        if "length" not in found:
            raise ConversionError.missing_field("length")
        return SingleFile(
            piece_length=found["piece length"],
            pieces=found["pieces"],
            file=FileInfo(found["name"], found["length"], found.get("md5sum")),
            private=found.get("private"),
        )


INFO = InfoShape()


@dataclass
class Metainfo:
    announce: str
    info: Info = member(shape=INFO)
    announce_list: list[list[str]] | None = member(rename="announce-list", default=None)
    creation_date: int | None = member(rename="creation date", default=None)
    comment: str | None = None
    created_by: str | None = member(rename="created by", default=None)
    encoding: str | None = None

    def info_hash(self) -> bytes:
        """SHA-1 of the canonically encoded ``info`` dictionary."""
        return hashlib.sha1(encode(to_value(self.info, INFO), METAINFO_CONFIG)).digest()


def from_bytes(data, config: CodecConfig = METAINFO_CONFIG) -> Metainfo:
    """Decode a ``.torrent`` file."""
    return _from_bytes(data, Metainfo, config)


def to_bytes(meta: Metainfo, config: CodecConfig = METAINFO_CONFIG) -> bytes:
    """Encode *meta* with keys in canonical order."""
    return _to_bytes(meta, Metainfo, config)
