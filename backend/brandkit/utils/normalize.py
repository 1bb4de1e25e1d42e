"""Validation and normalization primitives for brand kit documents.

Every function here is pure and total: malformed input degrades to a safe
default or an explicit None instead of raising. Documents come from a
schema-less JSON column and from generated text, so nothing is trusted.

- clamp_to_range: sliders and other bounded integers
- trim_and_clamp: bounded free text
- normalize_word_list / normalize_words: word and phrase lists
- read_string_array_exact / read_string_list: fixed or ranged arity lists
- safe_timestamp / parse_timestamp: ISO-8601 handling
- normalize_hex_color: #RRGGBB colors
"""

import math
import re
from datetime import UTC, datetime
from typing import Any

HEX_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")

DEFAULT_WORD_LIST_MAX = 6


def clamp_to_range(value: Any, lo: int, hi: int, fallback: int) -> int:
    """Round a number to the nearest integer and clamp it into [lo, hi].

    Non-numbers (including booleans), NaN and infinities return fallback.
    Halves round up, so 49.5 becomes 50.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return fallback
    if isinstance(value, int):
        return min(hi, max(lo, value))
    if not math.isfinite(value):
        return fallback
    return min(hi, max(lo, math.floor(value + 0.5)))


def trim_and_clamp(value: Any, max_len: int) -> str:
    """Strip a string and truncate it to max_len. Non-strings become ""."""
    if not isinstance(value, str):
        return ""
    return value.strip()[:max_len]


def normalize_word_list(value: Any, max_count: int = DEFAULT_WORD_LIST_MAX) -> list[str]:
    """Case-insensitively deduplicated list of non-empty trimmed strings.

    The first occurrence wins, so ["Foo", "foo", "bar"] becomes
    ["Foo", "bar"]. Capped at max_count entries.
    """
    if not isinstance(value, list):
        return []

    seen: set[str] = set()
    words: list[str] = []
    for item in value:
        if not isinstance(item, str):
            continue
        trimmed = item.strip()
        if not trimmed:
            continue
        key = trimmed.lower()
        if key in seen:
            continue
        seen.add(key)
        words.append(trimmed)
        if len(words) >= max_count:
            break
    return words


def normalize_words(value: Any, max_len: int, max_count: int) -> list[str]:
    """Trimmed, length-clamped, non-empty strings capped at max_count."""
    if not isinstance(value, list):
        return []
    words = [trim_and_clamp(item, max_len) for item in value if isinstance(item, str)]
    return [word for word in words if word][:max_count]


def read_string_array_exact(value: Any, count: int, item_max: int) -> list[str] | None:
    """Exactly `count` usable strings, or None.

    Every entry must survive the string check, trim/clamp and empty filter;
    a list with one blank entry out of three is rejected, not shortened.
    """
    if not isinstance(value, list) or len(value) != count:
        return None
    items = normalize_words(value, item_max, count)
    if len(items) != count:
        return None
    return items


def read_string_list(
    value: Any, min_count: int, max_count: int, item_max: int
) -> list[str] | None:
    """Usable strings when their count falls within [min_count, max_count]."""
    if not isinstance(value, list):
        return None
    items = [trim_and_clamp(item, item_max) for item in value if isinstance(item, str)]
    items = [item for item in items if item]
    if len(items) < min_count or len(items) > max_count:
        return None
    return items


def read_object(value: Any) -> dict[str, Any] | None:
    """The value when it is a JSON object, else None (arrays are not objects)."""
    return value if isinstance(value, dict) else None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string into an aware datetime (naive means UTC)."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def safe_timestamp(value: Any, fallback: str) -> str:
    """Keep value when it is a parseable timestamp string, else fallback."""
    if parse_timestamp(value) is None:
        return fallback
    return value


def timestamp_sort_key(value: str | None) -> float:
    """Sort key for ISO strings; unparseable values sort as oldest."""
    parsed = parse_timestamp(value)
    return parsed.timestamp() if parsed else float("-inf")


def isoformat_utc(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix (naive means UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    """Current UTC time as e.g. 2026-03-01T12:00:00.000Z."""
    return isoformat_utc(datetime.now(UTC))


def is_hex_color(value: Any) -> bool:
    return isinstance(value, str) and HEX_COLOR_PATTERN.match(value.strip()) is not None


def normalize_hex_color(value: Any) -> str | None:
    """Uppercased #RRGGBB, or None when the value is not a hex color."""
    if not is_hex_color(value):
        return None
    return value.strip().upper()
