from __future__ import annotations

"""Read-only projections over a ledger state snapshot.

Nothing in this module writes to `state`. Point lookups on unknown ids
return None; only range and last-id queries raise.
"""

from typing import Any, Dict, List, Optional

from anonymity_service.runtime.content import is_valid_content as _is_valid_content
from anonymity_service.runtime.errors import ServiceError
from anonymity_service.runtime.service_state import (
    Message,
    ServiceState,
    message_record,
    next_id,
    reply_ids,
)

Json = Dict[str, Any]

MAX_PAGE_LIMIT = 100


def get_message(state: Json, message_id: int) -> Optional[Message]:
    rec = message_record(state, message_id)
    return Message.from_json(rec) if rec is not None else None


def get_message_count(state: Json) -> int:
    return next_id(state)


def get_messages_count(state: Json, start: int, end: int) -> int:
    """Number of ids in [start, end).

    `end` must name an existing message and `start` must not pass it.
    """
    n = next_id(state)
    if start < 0 or start > end or end >= n:
        raise ServiceError(
            "invalid_message_count",
            "invalid_range",
            {"from": start, "to": end, "message_count": n},
        )
    return end - start


def get_last_message_id(state: Json) -> int:
    n = next_id(state)
    if n == 0:
        raise ServiceError("message_not_found", "no_messages", None)
    return n - 1


def does_message_exist(state: Json, message_id: int) -> bool:
    return message_record(state, message_id) is not None


def get_message_depth(state: Json, message_id: int) -> Optional[int]:
    msg = get_message(state, message_id)
    return msg.reply_depth if msg is not None else None


def get_message_replies(state: Json, message_id: int) -> Optional[List[int]]:
    if not does_message_exist(state, message_id):
        return None
    return reply_ids(state, message_id)


def get_user_message_count(state: Json, identity: str) -> int:
    counts = state.get("user_message_counts")
    if not isinstance(counts, dict):
        return 0
    try:
        return int(counts.get(identity, 0) or 0)
    except Exception:
        return 0


def get_service_fee(state: Json) -> int:
    return ServiceState.from_ledger(state).service_fee


def is_valid_content(text: Any) -> bool:
    return _is_valid_content(text)


def get_service_status(state: Json) -> Json:
    out = ServiceState.from_ledger(state).to_json()
    out["message_count"] = next_id(state)
    return out


def list_messages(state: Json, start: int = 0, limit: int = 50) -> List[Message]:
    """Id-ordered page of messages starting at `start`."""
    lim = max(0, min(int(limit), MAX_PAGE_LIMIT))
    first = max(0, int(start))
    stop = min(next_id(state), first + lim)
    out: List[Message] = []
    for mid in range(first, stop):
        msg = get_message(state, mid)
        if msg is not None:
            out.append(msg)
    return out
