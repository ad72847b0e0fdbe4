# src/anonymity_service/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from anonymity_service.api.routes_public_parts.health import router as health_router
from anonymity_service.api.routes_public_parts.messages import router as messages_router
from anonymity_service.api.routes_public_parts.metrics import router as metrics_router
from anonymity_service.api.routes_public_parts.service import router as service_router

public_router = APIRouter()

# Health routes carry their own paths (/v1/health plus unversioned aliases).
public_router.include_router(health_router, prefix="", tags=["health"])

# Versioned API surface
public_router.include_router(service_router, prefix="/v1", tags=["service"])
public_router.include_router(messages_router, prefix="/v1", tags=["messages"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
