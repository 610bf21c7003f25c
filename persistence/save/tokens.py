"""
Tokenized value format shared by the global subsystems.

Scalar state is written as `key:value` pairs joined by `|`:

    "3:1|7:Harbor*COLON*Dock|12:0.5"

String values escape the two separators before joining, so a value can
never split a pair or a list. The divider escaping of whole blocks lives in
the codec, not here.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

PAIR_SEPARATOR = "|"
KEY_SEPARATOR = ":"

PIPE_PLACEHOLDER = "*PIPE*"
COLON_PLACEHOLDER = "*COLON*"


def escape(value: str) -> str:
    """Escape both separators in a string value."""
    return value.replace(PAIR_SEPARATOR, PIPE_PLACEHOLDER).replace(KEY_SEPARATOR, COLON_PLACEHOLDER)


def unescape(value: str) -> str:
    return value.replace(PIPE_PLACEHOLDER, PAIR_SEPARATOR).replace(COLON_PLACEHOLDER, KEY_SEPARATOR)


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, str):
        return escape(value)
    return str(value)


def join_tokens(pairs: Mapping[Any, Any] | Iterable[tuple[Any, Any]]) -> str:
    """
    Join key/value pairs into a token string.

    Keys are written as-is and must not contain a separator. Values are
    formatted with format_value(): bools become 1/0, strings are escaped.
    """
    items = pairs.items() if isinstance(pairs, Mapping) else pairs
    return PAIR_SEPARATOR.join(f"{key}{KEY_SEPARATOR}{format_value(value)}" for key, value in items)


def split_tokens(data: str) -> list[tuple[str, str]]:
    """
    Split a token string into (key, raw value) pairs.

    Values are returned still escaped; callers unescape the ones they know
    to be strings. Malformed chunks (no separator) are skipped.
    """
    pairs: list[tuple[str, str]] = []
    if not data:
        return pairs
    for chunk in data.split(PAIR_SEPARATOR):
        key, sep, value = chunk.partition(KEY_SEPARATOR)
        if sep:
            pairs.append((key, value))
    return pairs


def parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true")


def join_list(values: Iterable[Any]) -> str:
    """Join plain values with `|`, escaping strings."""
    return PAIR_SEPARATOR.join(format_value(v) for v in values)


def split_list(data: str) -> list[str]:
    if not data:
        return []
    return [unescape(v) for v in data.split(PAIR_SEPARATOR)]
