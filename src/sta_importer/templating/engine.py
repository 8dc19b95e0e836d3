"""Expand ``{path|default}`` placeholders against records and entities."""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Sequence

from sta_importer.core.constants import DEFAULT_EQUALS_FILTER
from sta_importer.core.models import TimeValue

from .paths import ABSENT, resolve

PLACEHOLDER_PATTERN = re.compile(r"\{([^|{}]+)(\|([^}]*))?\}")
NUMERIC_MARKER = "N:"


def escape_for_string_constant(value: str) -> str:
    """Escape a value for use inside a single-quoted filter literal."""
    return value.replace("'", "''")


def escape_for_json_string(value: str) -> str:
    return value.replace('"', '\\"').replace("\n", "\\n")


def convert_decimal_separator(text: str) -> str:
    """Normalise ``1.234,5`` and ``1,5`` style numbers to a dot decimal separator."""
    has_comma = "," in text
    has_dot = "." in text
    if has_comma and not has_dot:
        return text.replace(",", ".")
    if has_comma and has_dot:
        if text.rfind(",") > text.rfind("."):
            return text.replace(".", "").replace(",", ".")
        return text.replace(",", "")
    return text


def stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (TimeValue, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def _is_compound(value: Any) -> bool:
    if isinstance(value, Mapping):
        return True
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _expand(match: re.Match[str], source: Any, for_url: bool) -> str:
    path = match.group(1)
    default = match.group(3) or ""
    numeric = path.startswith(NUMERIC_MARKER)
    if numeric:
        path = path[len(NUMERIC_MARKER) :]

    value = resolve(path, source)
    if value is ABSENT or value is None or _is_compound(value):
        return default
    text = stringify(value)
    if for_url:
        return escape_for_string_constant(text)
    if not text:
        return default
    text = escape_for_json_string(text)
    if numeric:
        text = convert_decimal_separator(text)
    return text


def fill_template(template: str | None, source: Any, for_url: bool = False) -> str:
    """Replace every placeholder in ``template`` with its value from ``source``.

    Text outside placeholders, including unmatched braces, is copied as is.
    """
    if not template:
        return ""
    return PLACEHOLDER_PATTERN.sub(lambda match: _expand(match, source, for_url), template)


def build_equals_filter(template: str | None, entity: Any) -> str:
    """Render the filter that must match exactly one remote entity."""
    return fill_template(template or DEFAULT_EQUALS_FILTER, entity, True)


def is_empty_template(template: str | None) -> bool:
    return template is None or not template.strip()
