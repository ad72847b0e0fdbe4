# src/anonymity_service/runtime/domain_apply.py
# ---------------------------------------------------------------------------
# Public, stable import path for applying tx envelopes.
# ---------------------------------------------------------------------------

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from anonymity_service.runtime.apply.messaging import MESSAGING_TX_TYPES, apply_messaging
from anonymity_service.runtime.apply.service import SERVICE_TX_TYPES, apply_service
from anonymity_service.runtime.errors import ServiceError
from anonymity_service.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]

_APPLIERS: List[Callable[[Json, TxEnvelope], Optional[Json]]] = [
    apply_service,
    apply_messaging,
]

SUPPORTED_TX_TYPES: Set[str] = set(SERVICE_TX_TYPES) | set(MESSAGING_TX_TYPES)


def apply_tx(state: Json, env: Any) -> Json:
    """Route a tx to its domain applier.

    Mutates `state` in place. Fails closed on unknown tx types.
    """
    env_norm = TxEnvelope.from_json(env)
    if not env_norm.signer:
        raise ServiceError("invalid_payload", "missing_signer", {"tx_type": env_norm.tx_type})

    for fn in _APPLIERS:
        meta = fn(state, env_norm)
        if meta is not None:
            return meta

    raise ServiceError("unsupported_tx", "unknown_tx_type", {"tx_type": env_norm.tx_type})


def apply_tx_atomic(state: Json, env: Any) -> Tuple[Json, Json]:
    """Apply a tx to a private copy of `state`.

    Returns `(next_state, meta)`. `state` itself is never touched, so a
    committed snapshot held by readers stays valid; on ServiceError the
    copy is discarded.
    """
    next_state = copy.deepcopy(state)
    meta = apply_tx(next_state, env)
    return next_state, meta


__all__ = ["ServiceError", "SUPPORTED_TX_TYPES", "apply_tx", "apply_tx_atomic", "Json"]
