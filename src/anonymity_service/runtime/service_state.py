from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

Json = Dict[str, Any]


DEFAULT_SERVICE_FEE = 100
DEFAULT_RATE_WINDOW = 144
DEFAULT_MAX_PER_WINDOW = 10
MAX_REPLY_DEPTH = 5


def _as_dict(x: Any) -> Json:
    return x if isinstance(x, dict) else {}


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except Exception:
        return default


def _opt_int(x: Any) -> Optional[int]:
    if x is None or isinstance(x, bool):
        return None
    try:
        return int(x)
    except Exception:
        return None


def _opt_str(x: Any) -> Optional[str]:
    return x if isinstance(x, str) else None


def initial_state(*, service_id: str, owner: str) -> Json:
    """Fresh, uninitialized ledger state for a newly deployed service."""
    return {
        "service_id": str(service_id),
        "height": 0,
        "service": {
            "owner": str(owner),
            "initialized": False,
            "paused": False,
            "service_fee": DEFAULT_SERVICE_FEE,
            "rate_window": DEFAULT_RATE_WINDOW,
            "max_per_window": DEFAULT_MAX_PER_WINDOW,
        },
        "messaging": {
            "next_id": 0,
            "messages_by_id": {},
            "replies_by_id": {},
        },
        "rate_limits": {},
        "user_message_counts": {},
    }


@dataclass(frozen=True, slots=True)
class ServiceState:
    """Immutable view of the owner-gated service configuration."""

    owner: str
    initialized: bool = False
    paused: bool = False
    service_fee: int = DEFAULT_SERVICE_FEE
    rate_window: int = DEFAULT_RATE_WINDOW
    max_per_window: int = DEFAULT_MAX_PER_WINDOW

    @classmethod
    def from_ledger(cls, state: Json) -> "ServiceState":
        svc = _as_dict(state.get("service"))
        return cls(
            owner=str(svc.get("owner") or ""),
            initialized=bool(svc.get("initialized", False)),
            paused=bool(svc.get("paused", False)),
            service_fee=_as_int(svc.get("service_fee"), DEFAULT_SERVICE_FEE),
            rate_window=_as_int(svc.get("rate_window"), DEFAULT_RATE_WINDOW),
            max_per_window=_as_int(svc.get("max_per_window"), DEFAULT_MAX_PER_WINDOW),
        )

    @property
    def active(self) -> bool:
        return self.initialized and not self.paused

    def to_json(self) -> Json:
        return {
            "owner": self.owner,
            "initialized": self.initialized,
            "paused": self.paused,
            "service_fee": self.service_fee,
            "rate_window": self.rate_window,
            "max_per_window": self.max_per_window,
        }


@dataclass(frozen=True, slots=True)
class Message:
    """A stored message record. Never mutated after creation."""

    id: int
    content: str
    sender: Optional[str] = None
    category: Optional[str] = None
    encrypted: bool = False
    reply_to: Optional[int] = None
    reply_depth: int = 0
    created_at: int = 0

    @classmethod
    def from_json(cls, j: Json) -> "Message":
        return cls(
            id=_as_int(j.get("id")),
            content=str(j.get("content") or ""),
            sender=_opt_str(j.get("sender")),
            category=_opt_str(j.get("category")),
            encrypted=bool(j.get("encrypted", False)),
            reply_to=_opt_int(j.get("reply_to")),
            reply_depth=_as_int(j.get("reply_depth")),
            created_at=_as_int(j.get("created_at")),
        )

    def to_json(self) -> Json:
        return {
            "id": self.id,
            "content": self.content,
            "sender": self.sender,
            "category": self.category,
            "encrypted": self.encrypted,
            "reply_to": self.reply_to,
            "reply_depth": self.reply_depth,
            "created_at": self.created_at,
        }


# ---------------------------------------------------------------------------
# State shape helpers shared by apply modules and queries
# ---------------------------------------------------------------------------

def ensure_root_dict(state: Json, key: str) -> Json:
    cur = state.get(key)
    if not isinstance(cur, dict):
        cur = {}
        state[key] = cur
    return cur


def ensure_messaging(state: Json) -> Json:
    m = ensure_root_dict(state, "messaging")
    if not isinstance(m.get("messages_by_id"), dict):
        m["messages_by_id"] = {}
    if not isinstance(m.get("replies_by_id"), dict):
        m["replies_by_id"] = {}
    m["next_id"] = _as_int(m.get("next_id"), 0)
    return m


def messaging_view(state: Json) -> Json:
    """Read-only counterpart of ensure_messaging (never writes to state)."""
    return _as_dict(state.get("messaging"))


def next_id(state: Json) -> int:
    return _as_int(messaging_view(state).get("next_id"), 0)


def message_record(state: Json, message_id: int) -> Optional[Json]:
    if isinstance(message_id, bool) or not isinstance(message_id, int):
        return None
    if message_id < 0 or message_id >= next_id(state):
        return None
    rec = _as_dict(messaging_view(state).get("messages_by_id")).get(str(message_id))
    return rec if isinstance(rec, dict) else None


def reply_ids(state: Json, message_id: int) -> List[int]:
    raw = _as_dict(messaging_view(state).get("replies_by_id")).get(str(message_id))
    if not isinstance(raw, list):
        return []
    return [_as_int(x) for x in raw]
