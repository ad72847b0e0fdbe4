from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict


@dataclass(frozen=True)
class TxEnvelope:
    """One decoded call into the service.

    `signer` is the caller identity supplied by the external resolver and
    `now` is the clock value stamped by the executor at apply time.
    """

    tx_type: str
    signer: str
    payload: Dict[str, Any] = field(default_factory=dict)
    now: int = 0

    @staticmethod
    def from_json(j: Any) -> "TxEnvelope":
        if isinstance(j, TxEnvelope):
            return j
        if not isinstance(j, dict):
            j = dict(j)  # type: ignore[arg-type]
        return TxEnvelope(
            tx_type=str(j.get("tx_type", "")).strip().upper(),
            signer=str(j.get("signer", "")).strip(),
            payload=dict(j.get("payload", {}) or {}),
            now=int(j.get("now", 0) or 0),
        )

    def stamped(self, now: int) -> "TxEnvelope":
        return replace(self, now=int(now))
