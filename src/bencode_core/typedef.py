"""TypeDef and MemberDef for bencode_core, and shape derivation from types."""

from __future__ import annotations

import collections.abc
import dataclasses
import types
import typing
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Union, get_args, get_origin, get_type_hints

from .errors import ConversionError
from .shapes import (
    BOOL,
    BYTEARRAY,
    BYTES,
    BYTES_VIEW,
    DYNAMIC,
    F64,
    I64,
    STR,
    UNIT,
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
from .values import Value

_OPTIONS_ATTR = "__bencode_options__"
_META_KEY = "bencode"


@dataclass(slots=True)
class MemberDef:
    name: str  # attribute name
    key: str  # dictionary key on the wire
    shape: Shape
    has_default: bool = False
    optional: bool = False  # absent key decodes to None


@dataclass(slots=True)
class TypeDef:
    name: str
    cls: type
    members: list[MemberDef] = field(default_factory=list)
    positional: bool = False  # encode as a list in member order
    deny_unknown: bool = False  # reject keys that match no member
    _by_key: dict[str, MemberDef] = field(default_factory=dict, repr=False)

    def add(self, member: MemberDef) -> None:
        if member.key in self._by_key:
            raise TypeError(f"{self.name}: duplicate key {member.key!r}")
        self.members.append(member)
        self._by_key[member.key] = member

    def keys(self) -> list[str]:
        return [m.key for m in self.members]

    def member_for_key(self, key: str) -> MemberDef | None:
        return self._by_key.get(key)

    def construct(self, found: dict[str, Any]) -> Any:
        """Build an instance from decoded member values (by attribute name)."""
        kwargs = {}
        for m in self.members:
            if m.name in found:
                kwargs[m.name] = found[m.name]
            elif m.has_default:
                continue
            elif m.optional:
                kwargs[m.name] = None
            else:
                raise ConversionError.missing_field(m.key)
        return self.cls(**kwargs)


@dataclass(slots=True, frozen=True)
class RecordOptions:
    deny_unknown: bool = False
    positional: bool = False


# ---------------------------------------------------------------------------
# Declaring records
# ---------------------------------------------------------------------------

def member(*, rename: str | None = None, shape=None, **kwargs: Any) -> Any:
    """``dataclasses.field`` with a wire key and/or an explicit shape.

    >>> @dataclass
    ... class Info:
    ...     piece_length: int = member(rename="piece length")
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[_META_KEY] = {"rename": rename, "shape": shape}
    return field(metadata=metadata, **kwargs)


def record(*, deny_unknown: bool = False, positional: bool = False):
    """Class decorator setting record options; combine with ``@dataclass``."""

    def decorate(cls: type) -> type:
        setattr(cls, _OPTIONS_ATTR, RecordOptions(deny_unknown, positional))
        _cache.pop(cls, None)
        return cls

    return decorate


# ---------------------------------------------------------------------------
# Shape derivation
# ---------------------------------------------------------------------------

_SIMPLE: dict[Any, Shape] = {
    bool: BOOL,
    int: I64,
    float: F64,
    str: STR,
    bytes: BYTES,
    bytearray: BYTEARRAY,
    memoryview: BYTES_VIEW,
    type(None): UNIT,
    None: UNIT,
    object: DYNAMIC,
    Any: DYNAMIC,
}

_SEQUENCE_ORIGINS = {
    list: list,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Iterable: list,
    set: set,
    collections.abc.Set: set,
    collections.abc.MutableSet: set,
    frozenset: frozenset,
}

_MAPPING_ORIGINS = {dict, collections.abc.Mapping, collections.abc.MutableMapping}

_cache: dict[Any, Shape] = {}


def shape_of(tp: Any) -> Shape:
    """Return the shape for a type annotation, deriving it on first use."""
    if isinstance(tp, Shape):
        return tp
    try:
        return _cache[tp]
    except KeyError:
        pass
    except TypeError:
        # Unhashable annotation; derive without caching.
        return _derive(tp)
    shape = _derive(tp)
    return _cache.setdefault(tp, shape)


def resolve_shape(target: Any) -> Shape:
    """Shape for a bridge entry point: ``None`` means plain Python objects."""
    if target is None:
        return DYNAMIC
    return shape_of(target)


def _derive(tp: Any) -> Shape:
    try:
        if tp in _SIMPLE:
            return _SIMPLE[tp]
    except TypeError:
        pass

    origin = get_origin(tp)
    args = get_args(tp)

    if origin is Annotated:
        for extra in args[1:]:
            if isinstance(extra, Shape):
                return extra
        return shape_of(args[0])

    if origin is Union or origin is types.UnionType:
        inner = [a for a in args if a is not type(None)]
        if len(inner) == 1 and len(inner) < len(args):
            return OptionShape(shape_of(inner[0]))
        raise TypeError(f"cannot derive a bencode shape for {tp!r}")

    if origin in _SEQUENCE_ORIGINS:
        return SeqShape(shape_of(args[0]) if args else DYNAMIC, _SEQUENCE_ORIGINS[origin])

    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return SeqShape(shape_of(args[0]), tuple)
        if args == ((),):
            return TupleShape(())
        return TupleShape([shape_of(a) for a in args])

    if origin in _MAPPING_ORIGINS:
        if not args:
            return MapShape(DYNAMIC)
        return MapShape(shape_of(args[1]), key=shape_of(args[0]))

    if isinstance(tp, typing.NewType):
        return NewTypeShape(tp.__name__, shape_of(tp.__supertype__))

    if isinstance(tp, type):
        return _derive_class(tp)

    raise TypeError(f"cannot derive a bencode shape for {tp!r}")


def _derive_class(cls: type) -> Shape:
    custom = getattr(cls, "__bencode_shape__", None)
    if custom is not None:
        return custom()
    if issubclass(cls, Value):
        return VALUE
    if issubclass(cls, Enum):
        return EnumShape(cls)
    if dataclasses.is_dataclass(cls):
        return _derive_record(cls)
    if issubclass(cls, tuple):
        if hasattr(cls, "_fields"):
            hints = get_type_hints(cls, include_extras=True)
            return TupleStructShape(
                cls, [shape_of(hints.get(name, Any)) for name in cls._fields]
            )
        return SeqShape(DYNAMIC, tuple)
    if issubclass(cls, (list, set, frozenset)):
        return SeqShape(DYNAMIC, cls)
    if issubclass(cls, dict):
        return MapShape(DYNAMIC)
    raise TypeError(f"cannot derive a bencode shape for {cls.__name__}")


def _derive_record(cls: type) -> Shape:
    fields = [f for f in dataclasses.fields(cls) if f.init]
    if not fields:
        return UnitStructShape(cls)

    opts = getattr(cls, _OPTIONS_ATTR, None) or RecordOptions()
    td = TypeDef(
        cls.__name__, cls, positional=opts.positional, deny_unknown=opts.deny_unknown
    )
    shape = StructShape(td)
    # Registered before the members are derived so self-referencing
    # records resolve to this same shape.
    _cache[cls] = shape
    try:
        hints = get_type_hints(cls, include_extras=True)
        for f in fields:
            meta = f.metadata.get(_META_KEY, {})
            member_shape = shape_of(meta.get("shape") or hints[f.name])
            has_default = (
                f.default is not dataclasses.MISSING
                or f.default_factory is not dataclasses.MISSING
            )
            td.add(
                MemberDef(
                    f.name,
                    meta.get("rename") or f.name,
                    member_shape,
                    has_default=has_default,
                    optional=isinstance(member_shape, OptionShape),
                )
            )
    except Exception:
        _cache.pop(cls, None)
        raise
    return shape
