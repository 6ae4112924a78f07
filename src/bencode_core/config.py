"""Codec options shared by the parser, writer and typed bridge."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class CodecConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    max_depth: Annotated[
        int,
        Field(
            description=(
                "Maximum nesting of lists and dictionaries. The parser rejects deeper\n"
                "input with NESTING_TOO_DEEP and the deserializer with a\n"
                "ConversionError, before the interpreter stack runs out."
            ),
            default=100,
            ge=1,
        )
    ]

    sort_keys: Annotated[
        bool,
        Field(
            description=(
                "Write dictionary keys sorted by their raw UTF-8 bytes.\n"
                "This is the canonical form required by BEP 3 and is needed when\n"
                "encoded bytes are hashed (info-hash). When disabled keys are written\n"
                "in the mapping's own iteration order."
            ),
            default=False,
        )
    ]

    float_via_int32: Annotated[
        bool,
        Field(
            description=(
                "Narrow integers through a signed 32-bit intermediate before\n"
                "producing a float. Only useful for compatibility with data produced\n"
                "by implementations that behave this way."
            ),
            default=False,
        )
    ]

    bytes_from_text: Annotated[
        bool,
        Field(
            description=(
                "Let byte-buffer targets accept Text values. Strings that happen to\n"
                "be valid UTF-8 parse as Text; enable this when such fields are\n"
                "binary data (piece hashes, md5 sums)."
            ),
            default=False,
        )
    ]


DEFAULT_CONFIG = CodecConfig()
