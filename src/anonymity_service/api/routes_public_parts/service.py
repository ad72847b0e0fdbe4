from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from anonymity_service.api.routes_public_parts.common import _snapshot, _submit
from anonymity_service.api.schemas import UpdateRateLimitsRequest, UpdateServiceFeeRequest
from anonymity_service.api.security import require_caller
from anonymity_service.runtime import queries

router = APIRouter()

Json = Dict[str, Any]


@router.post("/service/initialize")
def service_initialize(request: Request, caller: str = Depends(require_caller)) -> Json:
    meta = _submit(request, "INITIALIZE", caller, {})
    return {"ok": True, "result": meta["result"]}


@router.post("/service/pause")
def service_pause(request: Request, caller: str = Depends(require_caller)) -> Json:
    meta = _submit(request, "PAUSE_SERVICE", caller, {})
    return {"ok": True, "result": meta["result"]}


@router.post("/service/resume")
def service_resume(request: Request, caller: str = Depends(require_caller)) -> Json:
    meta = _submit(request, "RESUME_SERVICE", caller, {})
    return {"ok": True, "result": meta["result"]}


@router.post("/service/fee")
def service_fee_update(
    request: Request, body: UpdateServiceFeeRequest, caller: str = Depends(require_caller)
) -> Json:
    meta = _submit(request, "UPDATE_SERVICE_FEE", caller, {"fee": body.fee})
    return {"ok": True, "result": meta["result"]}


@router.post("/service/rate-limits")
def service_rate_limits_update(
    request: Request, body: UpdateRateLimitsRequest, caller: str = Depends(require_caller)
) -> Json:
    meta = _submit(
        request,
        "UPDATE_RATE_LIMITS",
        caller,
        {"window": body.window, "max_per_window": body.max_per_window},
    )
    return {"ok": True, "result": meta["result"]}


@router.get("/service/fee")
def service_fee(request: Request) -> Json:
    return {"ok": True, "fee": queries.get_service_fee(_snapshot(request))}


@router.get("/service/status")
def service_status(request: Request) -> Json:
    return {"ok": True, "service": queries.get_service_status(_snapshot(request))}
