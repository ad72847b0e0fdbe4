# src/anonymity_service/runtime/apply/messaging.py
from __future__ import annotations

"""
Message store apply semantics.

Txs:
- SEND_ANONYMOUS_MESSAGE               payload: {"content"}                      not rate limited
- SEND_ANONYMOUS_MESSAGE_WITH_CATEGORY payload: {"content", "category"?, "encrypted"}  rate limited
- SEND_BULK_MESSAGES                   payload: {"content1", "content2"}         not rate limited
- REPLY_TO_MESSAGE                     payload: {"content", "reply_to", "encrypted"}  rate limited

State shape:
ledger["messaging"] = {
  "next_id": int,                        # dense ids [0, next_id)
  "messages_by_id": {
      "<id>": {
          "id": int,
          "content": str,
          "sender": None,                # anonymous sends never record one
          "category": str | None,
          "encrypted": bool,
          "reply_to": int | None,
          "reply_depth": int,            # 0..MAX_REPLY_DEPTH
          "created_at": int,
      }
  },
  "replies_by_id": {"<parent id>": [child id, ...]},   # append-only
}
ledger["user_message_counts"] = {"<identity>": int}

The lifecycle gate runs before payload parsing. Every check runs before the
first write, and the dispatcher applies txs on a copy, so a rejected tx never
consumes an id.
"""

from typing import Any, Dict, List, Optional, Set

from anonymity_service.runtime.apply.service import require_active
from anonymity_service.runtime.content import MAX_CONTENT_LEN, MIN_CONTENT_LEN, is_valid_content
from anonymity_service.runtime.errors import ServiceError
from anonymity_service.runtime.rate_limiter import check_and_record
from anonymity_service.runtime.service_state import (
    MAX_REPLY_DEPTH,
    Message,
    ensure_messaging,
    ensure_root_dict,
    message_record,
)
from anonymity_service.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require_content(content: Any) -> str:
    if not is_valid_content(content):
        n = len(content) if isinstance(content, str) else None
        raise ServiceError(
            "invalid_message_length",
            "content_length_out_of_bounds",
            {"length": n, "min": MIN_CONTENT_LEN, "max": MAX_CONTENT_LEN},
        )
    return content


def _opt_category(payload: Json, env: TxEnvelope) -> Optional[str]:
    v = payload.get("category")
    if v is None:
        return None
    if not isinstance(v, str):
        raise ServiceError("invalid_payload", "bad_category", {"tx_type": env.tx_type})
    return v


def _flag(payload: Json, key: str, env: TxEnvelope) -> bool:
    v = payload.get(key, False)
    if not isinstance(v, bool):
        raise ServiceError("invalid_payload", f"bad_{key}", {"tx_type": env.tx_type})
    return v


def _reply_depth_for(state: Json, reply_to: Optional[int]) -> int:
    if reply_to is None:
        return 0
    parent = message_record(state, reply_to)
    if parent is None:
        raise ServiceError("message_not_found", "reply_target_missing", {"reply_to": reply_to})
    depth = int(parent.get("reply_depth", 0)) + 1
    if depth > MAX_REPLY_DEPTH:
        raise ServiceError(
            "invalid_reply_depth",
            "reply_depth_exceeds_max",
            {"reply_to": reply_to, "depth": depth, "max": MAX_REPLY_DEPTH},
        )
    return depth


def _insert(
    state: Json,
    *,
    content: str,
    category: Optional[str],
    encrypted: bool,
    reply_to: Optional[int],
    reply_depth: int,
    identity: str,
    now: int,
) -> int:
    m = ensure_messaging(state)
    mid = int(m["next_id"])
    m["next_id"] = mid + 1

    msg = Message(
        id=mid,
        content=content,
        sender=None,
        category=category,
        encrypted=encrypted,
        reply_to=reply_to,
        reply_depth=reply_depth,
        created_at=int(now),
    )
    m["messages_by_id"][str(mid)] = msg.to_json()

    if reply_to is not None:
        replies = m["replies_by_id"].get(str(reply_to))
        if not isinstance(replies, list):
            replies = []
        replies.append(mid)
        m["replies_by_id"][str(reply_to)] = replies

    counts = ensure_root_dict(state, "user_message_counts")
    counts[identity] = int(counts.get(identity, 0) or 0) + 1
    return mid


def append_message(
    state: Json,
    *,
    content: Any,
    identity: str,
    now: int,
    category: Optional[str] = None,
    encrypted: bool = False,
    reply_to: Optional[int] = None,
    rate_limited: bool = False,
) -> int:
    """Admit one message and return its id.

    Order: lifecycle gate, reply target and depth, content, rate limit.
    """
    require_active(state)
    depth = _reply_depth_for(state, reply_to)
    text = _require_content(content)
    if rate_limited:
        check_and_record(state, identity, now)
    return _insert(
        state,
        content=text,
        category=category,
        encrypted=encrypted,
        reply_to=reply_to,
        reply_depth=depth,
        identity=identity,
        now=now,
    )


def append_bulk(state: Json, *, contents: List[Any], identity: str, now: int) -> List[int]:
    """Validate every content first, then append all as top-level messages."""
    require_active(state)
    texts = [_require_content(c) for c in contents]
    return [
        _insert(
            state,
            content=t,
            category=None,
            encrypted=False,
            reply_to=None,
            reply_depth=0,
            identity=identity,
            now=now,
        )
        for t in texts
    ]


# ---------------------------------------------------------------------------
# Tx appliers
# ---------------------------------------------------------------------------

def _apply_send(state: Json, env: TxEnvelope) -> Json:
    mid = append_message(state, content=env.payload.get("content"), identity=env.signer, now=env.now)
    return {"applied": "SEND_ANONYMOUS_MESSAGE", "result": mid, "message_id": mid}


def _apply_send_with_category(state: Json, env: TxEnvelope) -> Json:
    p = env.payload
    category = _opt_category(p, env)
    encrypted = _flag(p, "encrypted", env)
    mid = append_message(
        state,
        content=p.get("content"),
        identity=env.signer,
        now=env.now,
        category=category,
        encrypted=encrypted,
        rate_limited=True,
    )
    return {"applied": "SEND_ANONYMOUS_MESSAGE_WITH_CATEGORY", "result": mid, "message_id": mid}


def _apply_send_bulk(state: Json, env: TxEnvelope) -> Json:
    p = env.payload
    first, second = append_bulk(
        state,
        contents=[p.get("content1"), p.get("content2")],
        identity=env.signer,
        now=env.now,
    )
    return {"applied": "SEND_BULK_MESSAGES", "result": {"first_id": first, "second_id": second}}


def _apply_reply(state: Json, env: TxEnvelope) -> Json:
    p = env.payload
    parent = p.get("reply_to")
    if isinstance(parent, bool) or not isinstance(parent, int) or parent < 0:
        raise ServiceError("invalid_payload", "bad_reply_to", {"tx_type": env.tx_type})
    encrypted = _flag(p, "encrypted", env)
    mid = append_message(
        state,
        content=p.get("content"),
        identity=env.signer,
        now=env.now,
        encrypted=encrypted,
        reply_to=parent,
        rate_limited=True,
    )
    return {"applied": "REPLY_TO_MESSAGE", "result": mid, "message_id": mid, "reply_to": parent}


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

MESSAGING_TX_TYPES: Set[str] = {
    "SEND_ANONYMOUS_MESSAGE",
    "SEND_ANONYMOUS_MESSAGE_WITH_CATEGORY",
    "SEND_BULK_MESSAGES",
    "REPLY_TO_MESSAGE",
}


def apply_messaging(state: Json, env: TxEnvelope) -> Optional[Json]:
    """Apply messaging txs. Returns meta dict if handled; otherwise None."""
    t = str(env.tx_type or "").strip()
    if t not in MESSAGING_TX_TYPES:
        return None

    # Lifecycle gate precedes payload parsing.
    require_active(state)

    if t == "SEND_ANONYMOUS_MESSAGE":
        return _apply_send(state, env)
    if t == "SEND_ANONYMOUS_MESSAGE_WITH_CATEGORY":
        return _apply_send_with_category(state, env)
    if t == "SEND_BULK_MESSAGES":
        return _apply_send_bulk(state, env)
    if t == "REPLY_TO_MESSAGE":
        return _apply_reply(state, env)

    return None
