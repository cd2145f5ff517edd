"""Helpers for walking untyped record values."""

import re
from typing import Any

_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]+")

NAME_SEPARATOR = "_"


def get_path(data: Any, path: str | None) -> Any:
    """Get a value by dotted path.

    ``None`` or ``"."`` returns ``data`` itself; any missing step returns None.

    Examples:
        >>> get_path({"inventory": {"id": 123}}, "inventory.id")
        123
    """
    if path is None or path == ".":
        return data

    value = data
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
        if value is None:
            return None
    return value


def is_primitive(value: Any) -> bool:
    """True for strings and numbers usable in a URL (booleans excluded)."""
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def to_identifier(value: Any) -> str:
    """Turn a value into a safe element name.

    Runs of characters outside ``[A-Za-z0-9_]`` collapse to a single ``_``.

    Examples:
        >>> to_identifier("Notify agents: 24h")
        'Notify_agents_24h'
    """
    return _INVALID_NAME_CHARS.sub(NAME_SEPARATOR, str(value)).strip(NAME_SEPARATOR) or NAME_SEPARATOR


def value_type_name(value: Any) -> str:
    """Map a value to one of the field type names used in definitions."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "list"
    if isinstance(value, dict):
        return "map"
    return type(value).__name__
