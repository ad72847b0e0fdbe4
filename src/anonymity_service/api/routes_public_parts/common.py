from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from anonymity_service.api.errors import ApiError
from anonymity_service.runtime.errors import ServiceError
from anonymity_service.runtime.executor import ServiceExecutor

Json = Dict[str, Any]


def _executor(request: Request) -> ServiceExecutor:
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def _snapshot(request: Request) -> Json:
    """Committed state for read-only routes (never mutated by callers)."""
    return _executor(request).snapshot()


def _submit(request: Request, tx_type: str, caller: str, payload: Json) -> Json:
    """Submit one tx and translate runtime rejections into ApiError."""
    ex = _executor(request)
    try:
        return ex.submit({"tx_type": tx_type, "signer": caller, "payload": payload})
    except ServiceError as e:
        raise ApiError.from_service_error(e) from e


def _query(fn, *args: Any) -> Any:
    try:
        return fn(*args)
    except ServiceError as e:
        raise ApiError.from_service_error(e) from e
