from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict

Json = Dict[str, Any]

# Message text and anything naming a caller never reach a log line, whoever
# passes them in.
REDACTED_FIELDS = frozenset(
    {"content", "content1", "content2", "caller", "signer", "sender", "identity"}
)
REDACTED = "<redacted>"


def scrub_fields(fields: Json) -> Json:
    return {k: (REDACTED if k in REDACTED_FIELDS and v is not None else v) for k, v in fields.items()}


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit one JSON line `{"ts_ms", "event", ...fields}`.

    Sensitive fields (REDACTED_FIELDS) are replaced before encoding. Values
    json cannot encode are logged via repr() instead of failing the caller.
    """
    if not logger.isEnabledFor(level):
        return
    payload: Json = {"ts_ms": int(time.time() * 1000), "event": str(event)}
    payload.update(scrub_fields(fields))
    logger.log(level, json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=repr))
