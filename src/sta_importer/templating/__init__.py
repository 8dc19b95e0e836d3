"""Field path resolution and placeholder templates."""

from .engine import (
    build_equals_filter,
    convert_decimal_separator,
    escape_for_string_constant,
    fill_template,
)
from .paths import ABSENT, decode_segment, resolve

__all__ = [
    "ABSENT",
    "decode_segment",
    "resolve",
    "fill_template",
    "build_equals_filter",
    "convert_decimal_separator",
    "escape_for_string_constant",
]
