"""JSON helpers shared by creators, the wire codec and geometry comparison."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

from .exceptions import MalformedPayloadError


def parse_json_value(text: str) -> Any:
    """Parse rendered template output as JSON."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedPayloadError(f"Failed to parse json: {exc}") from exc


def parse_json_object(text: str | None, *, what: str = "properties") -> dict[str, Any] | None:
    """Parse a JSON object, returning ``None`` for blank input."""
    if text is None or not text.strip():
        return None
    parsed = parse_json_value(text)
    if not isinstance(parsed, dict):
        raise MalformedPayloadError(f"Failed to parse json: expected an object, got {type(parsed).__name__} for {what}")
    return parsed


def canonical_json(value: Any) -> str:
    """Serialise ``value`` deterministically; used for geometry equality."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_default)


def dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=_default)


def _default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
