from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from anonymity_service.runtime.errors import ServiceError
from anonymity_service.runtime.service_state import ServiceState, ensure_root_dict

Json = Dict[str, Any]


@dataclass(frozen=True)
class RateRecord:
    window_start: int
    count_in_window: int

    @classmethod
    def from_json(cls, j: Any) -> "RateRecord | None":
        if not isinstance(j, dict):
            return None
        try:
            return cls(window_start=int(j.get("window_start", 0)), count_in_window=int(j.get("count_in_window", 0)))
        except Exception:
            return None

    def to_json(self) -> Json:
        return {"window_start": self.window_start, "count_in_window": self.count_in_window}


def get_rate_record(state: Json, identity: str) -> RateRecord | None:
    recs = state.get("rate_limits")
    if not isinstance(recs, dict):
        return None
    return RateRecord.from_json(recs.get(identity))


def check_and_record(state: Json, identity: str, now: int) -> RateRecord:
    """Admit one send for `identity` at time `now` or raise rate_limit_exceeded.

    Limits are read from the current service config on every call, so an
    owner update applies to existing records on their next send.
    On rejection the stored record is left untouched.
    """
    svc = ServiceState.from_ledger(state)
    now = int(now)

    rec = get_rate_record(state, identity) or RateRecord(window_start=now, count_in_window=0)

    if now - rec.window_start >= svc.rate_window:
        rec = RateRecord(window_start=now, count_in_window=0)

    if rec.count_in_window >= svc.max_per_window:
        raise ServiceError(
            "rate_limit_exceeded",
            "window_at_capacity",
            {
                "window_start": rec.window_start,
                "count_in_window": rec.count_in_window,
                "max_per_window": svc.max_per_window,
            },
        )

    rec = RateRecord(window_start=rec.window_start, count_in_window=rec.count_in_window + 1)
    ensure_root_dict(state, "rate_limits")[identity] = rec.to_json()
    return rec
