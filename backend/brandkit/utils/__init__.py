"""Utility modules for the application.

This package contains shared, dependency-free helper functions.
"""

from brandkit.utils.normalize import (
    clamp_to_range,
    isoformat_utc,
    normalize_word_list,
    normalize_words,
    parse_timestamp,
    read_object,
    read_string_array_exact,
    read_string_list,
    safe_timestamp,
    trim_and_clamp,
    utc_now_iso,
)

__all__ = [
    "clamp_to_range",
    "isoformat_utc",
    "normalize_word_list",
    "normalize_words",
    "parse_timestamp",
    "read_object",
    "read_string_array_exact",
    "read_string_list",
    "safe_timestamp",
    "trim_and_clamp",
    "utc_now_iso",
]
