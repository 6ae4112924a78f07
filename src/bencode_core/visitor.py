"""Visitor protocol driven by the Deserializer.

A :class:`Deserializer` inspects the Value it holds and calls exactly one
``visit_*`` method on the visitor it was given. Every default rejects the
input with a :class:`ConversionError`, so a visitor only overrides the
callbacks for the inputs it accepts. The convenience variants
(``visit_char``, ``visit_borrowed_str``, ``visit_string``,
``visit_borrowed_bytes``, ``visit_byte_buf``) fall back to the plain
``visit_str`` / ``visit_bytes`` callback.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .errors import ConversionError

if TYPE_CHECKING:
    from .de import Deserializer, MapAccess, SeqAccess


class Visitor:
    # Human readable description of what this visitor accepts.
    expecting = "a value"

    def _reject(self, what: str) -> Any:
        raise ConversionError.invalid_visit(what, self.expecting)

    # -- Scalars ---------------------------------------------------------

    def visit_bool(self, value: bool) -> Any:
        return self._reject(f"boolean `{value}`")

    def visit_int(self, value: int) -> Any:
        return self._reject(f"integer `{value}`")

    def visit_float(self, value: float) -> Any:
        return self._reject(f"floating point `{value}`")

    def visit_char(self, value: str) -> Any:
        return self.visit_str(value)

    def visit_str(self, value: str) -> Any:
        return self._reject(f"string {value!r}")

    def visit_borrowed_str(self, value: str) -> Any:
        return self.visit_str(value)

    def visit_string(self, value: str) -> Any:
        return self.visit_str(value)

    def visit_bytes(self, value: bytes | memoryview) -> Any:
        return self._reject(f"byte string of length {len(value)}")

    def visit_borrowed_bytes(self, value: memoryview) -> Any:
        return self.visit_bytes(value)

    def visit_byte_buf(self, value: bytes) -> Any:
        return self.visit_bytes(value)

    # -- Option / unit / newtype ----------------------------------------

    def visit_none(self) -> Any:
        return self._reject("None")

    def visit_some(self, de: Deserializer) -> Any:
        return self._reject("Some")

    def visit_unit(self) -> Any:
        return self._reject("unit value")

    def visit_newtype_struct(self, de: Deserializer) -> Any:
        return self._reject("newtype struct")

    # -- Compounds -------------------------------------------------------

    def visit_seq(self, seq: SeqAccess) -> Any:
        return self._reject("sequence")

    def visit_map(self, access: MapAccess) -> Any:
        return self._reject("map")
