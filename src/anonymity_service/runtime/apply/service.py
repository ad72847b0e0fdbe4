# src/anonymity_service/runtime/apply/service.py
from __future__ import annotations

"""
Service controller apply semantics.

Lifecycle: Uninitialized -> Active <-> Paused

Txs:
- INITIALIZE          (deployer only, exactly once)
- PAUSE_SERVICE       (owner only)
- RESUME_SERVICE      (owner only)
- UPDATE_SERVICE_FEE  (owner only) payload: {"fee": int}
- UPDATE_RATE_LIMITS  (owner only) payload: {"window": int, "max_per_window": int}

The owner is fixed in state at deployment. Owner checks always run before
lifecycle checks so a non-owner sees owner_only regardless of state.
"""

from typing import Any, Dict, Optional, Set

from anonymity_service.runtime.errors import ServiceError
from anonymity_service.runtime.service_state import (
    DEFAULT_MAX_PER_WINDOW,
    DEFAULT_RATE_WINDOW,
    DEFAULT_SERVICE_FEE,
    ServiceState,
    ensure_root_dict,
)
from anonymity_service.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]


def _uint_arg(payload: Json, key: str, env: TxEnvelope) -> int:
    v = payload.get(key)
    if isinstance(v, bool) or not isinstance(v, int) or v < 0:
        raise ServiceError("invalid_payload", f"bad_{key}", {"tx_type": env.tx_type, key: v})
    return int(v)


def require_owner(state: Json, env: TxEnvelope) -> ServiceState:
    svc = ServiceState.from_ledger(state)
    if not svc.owner or env.signer != svc.owner:
        raise ServiceError("owner_only", "caller_is_not_owner", {"tx_type": env.tx_type})
    return svc


def require_active(state: Json) -> ServiceState:
    """Gate for every message mutation.

    Never-initialized and paused share one error code.
    """
    svc = ServiceState.from_ledger(state)
    if not svc.active:
        raise ServiceError("not_initialized", "service_not_active", None)
    return svc


def _apply_initialize(state: Json, env: TxEnvelope) -> bool:
    svc = require_owner(state, env)
    if svc.initialized:
        raise ServiceError("already_initialized", "initialize_called_twice", None)

    rec = ensure_root_dict(state, "service")
    rec["initialized"] = True
    rec["paused"] = False
    rec["service_fee"] = DEFAULT_SERVICE_FEE
    rec["rate_window"] = DEFAULT_RATE_WINDOW
    rec["max_per_window"] = DEFAULT_MAX_PER_WINDOW
    return True


def _apply_set_paused(state: Json, env: TxEnvelope, paused: bool) -> bool:
    require_owner(state, env)
    ensure_root_dict(state, "service")["paused"] = bool(paused)
    return True


def _apply_update_service_fee(state: Json, env: TxEnvelope) -> bool:
    require_owner(state, env)
    fee = _uint_arg(env.payload, "fee", env)
    ensure_root_dict(state, "service")["service_fee"] = fee
    return True


def _apply_update_rate_limits(state: Json, env: TxEnvelope) -> bool:
    require_owner(state, env)
    window = _uint_arg(env.payload, "window", env)
    max_per_window = _uint_arg(env.payload, "max_per_window", env)
    rec = ensure_root_dict(state, "service")
    rec["rate_window"] = window
    rec["max_per_window"] = max_per_window
    return True


SERVICE_TX_TYPES: Set[str] = {
    "INITIALIZE",
    "PAUSE_SERVICE",
    "RESUME_SERVICE",
    "UPDATE_SERVICE_FEE",
    "UPDATE_RATE_LIMITS",
}


def apply_service(state: Json, env: TxEnvelope) -> Optional[Json]:
    """Apply controller txs. Returns meta dict if handled; otherwise None."""
    t = str(env.tx_type or "").strip()
    if t not in SERVICE_TX_TYPES:
        return None

    if t == "INITIALIZE":
        result = _apply_initialize(state, env)
    elif t == "PAUSE_SERVICE":
        result = _apply_set_paused(state, env, True)
    elif t == "RESUME_SERVICE":
        result = _apply_set_paused(state, env, False)
    elif t == "UPDATE_SERVICE_FEE":
        result = _apply_update_service_fee(state, env)
    else:
        result = _apply_update_rate_limits(state, env)

    return {"applied": t, "result": result}
