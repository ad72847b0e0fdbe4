from __future__ import annotations

from typing import Any

MIN_CONTENT_LEN = 10
MAX_CONTENT_LEN = 500


def is_valid_content(text: Any) -> bool:
    """Pure length check used before any send mutates state.

    Length is counted in characters, not encoded bytes.
    """
    if not isinstance(text, str):
        return False
    return MIN_CONTENT_LEN <= len(text) <= MAX_CONTENT_LEN
