from __future__ import annotations

import time
from typing import Any, Optional

from fastapi import APIRouter, Request

from anonymity_service.runtime.service_state import ServiceState, next_id

router = APIRouter()


def _now_ms() -> int:
    return int(time.time() * 1000)


def _try_executor_snapshot(ex: Any) -> Optional[dict[str, Any]]:
    if ex is None:
        return None
    snap = getattr(ex, "snapshot", None)
    if not callable(snap):
        return None
    try:
        st = snap()
        return st if isinstance(st, dict) else None
    except Exception:
        return None


def _health_payload(request: Request) -> dict[str, object]:
    # health must never crash; the fields are best-effort
    ex = getattr(request.app.state, "executor", None)
    st = _try_executor_snapshot(ex)

    service_id = None
    height = None
    initialized = None
    paused = None
    message_count = None

    if isinstance(st, dict):
        svc = ServiceState.from_ledger(st)
        service_id = str(st.get("service_id") or "") or None
        height = int(st.get("height", 0) or 0)
        initialized = svc.initialized
        paused = svc.paused
        message_count = next_id(st)

    return {
        "ok": True,
        "service": "anonymity-service",
        "version": "v1",
        "ts_ms": _now_ms(),
        "service_id": service_id,
        "height": height,
        "initialized": initialized,
        "paused": paused,
        "message_count": message_count,
    }


def _ready_payload(request: Request) -> dict[str, object]:
    """Readiness check for load balancers.

    Ready means an executor is attached and its state names a service_id.
    A paused or not-yet-initialized service is still ready: reads work and
    writes fail with a typed error.
    """
    ex = getattr(request.app.state, "executor", None)
    st = _try_executor_snapshot(ex)
    service_id = str(st.get("service_id") or "") if isinstance(st, dict) else ""
    return {
        "ok": bool(service_id),
        "service": "anonymity-service",
        "version": "v1",
        "ts_ms": _now_ms(),
        "service_id": service_id or None,
    }


@router.get("/v1/health")
def v1_health(request: Request) -> dict[str, object]:
    return _health_payload(request)


@router.get("/healthz")
def healthz(request: Request) -> dict[str, object]:
    # Kubernetes-style alias
    return _health_payload(request)


@router.get("/readyz")
def readyz(request: Request) -> dict[str, object]:
    return _ready_payload(request)
