from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

# Stable numeric codes, as exposed by the on-ledger contract interface
# (`(err u1xx)`); HTTP errors carry them in details.error_code.
ERROR_CODES: Dict[str, int] = {
    "owner_only": 100,
    "already_initialized": 101,
    "not_initialized": 102,
    "invalid_message_length": 103,
    "message_not_found": 104,
    "invalid_message_count": 105,
    "invalid_reply_depth": 107,
    "rate_limit_exceeded": 109,
}


@dataclass
class ServiceError(Exception):
    """Canonical error type for apply, dispatch and query failures."""

    code: str
    reason: str
    details: Any | None = None

    @property
    def numeric_code(self) -> int | None:
        return ERROR_CODES.get(self.code)

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"
