from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from anonymity_service.api.errors import ApiError
from anonymity_service.api.routes_public import public_router
from anonymity_service.api.security import CALLER_HEADER, RequestSizeLimitMiddleware
from anonymity_service.api.structured_logging import RequestLogMiddleware, log_event
from anonymity_service.runtime.errors import ServiceError
from anonymity_service.runtime.executor import ServiceExecutor
from anonymity_service.runtime.service_config import ServiceConfig, load_service_config


def build_executor(cfg: ServiceConfig) -> ServiceExecutor:
    """Build the ServiceExecutor for API runtime.

    This wrapper exists so tests can monkeypatch
    `anonymity_service.api.app.build_executor` without reaching into runtime
    modules.
    """
    return ServiceExecutor.from_config(cfg)


def _parse_cors_origins(mode: str) -> List[str]:
    """Parse ANONSVC_CORS_ORIGINS.

    Unset/empty disables CORS. Wildcard "*" is rejected in prod mode.
    """
    raw = os.environ.get("ANONSVC_CORS_ORIGINS", "").strip()
    if not raw:
        return []

    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in ANONSVC_CORS_ORIGINS."
            )
        return ["*"]
    return origins


def create_app(*, boot_runtime: bool = True, executor: Optional[ServiceExecutor] = None) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load ServiceConfig and attach an executor
      - False: no executor; mutating and read routes answer 500 not_ready

    An explicit `executor` wins over boot_runtime (tests inject one with a
    fixed clock).
    """
    cfg = load_service_config()
    log = logging.getLogger("anonymity_service.api")

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        ex = getattr(app.state, "executor", None)
        log_event(
            log,
            "api_started",
            mode=cfg.mode,
            service_id=getattr(ex, "service_id", None),
            persistent=bool(cfg.db_path),
        )
        yield
        log_event(log, "api_stopped", service_id=getattr(ex, "service_id", None))

    # Disable docs in production.
    if cfg.mode == "prod":
        app = FastAPI(
            title="Anonymity Service API",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=_lifespan,
        )
    else:
        app = FastAPI(title="Anonymity Service API", lifespan=_lifespan)

    app.state.cfg = cfg

    if executor is not None:
        app.state.executor = executor
    elif boot_runtime:
        app.state.executor = build_executor(cfg)
    else:
        app.state.executor = None

    # --- Error rendering ---
    @app.exception_handler(ApiError)
    async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_json())

    @app.exception_handler(ServiceError)
    async def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        err = ApiError.from_service_error(exc)
        return JSONResponse(status_code=err.status_code, content=err.to_json())

    # --- Middleware ---
    # Outermost last: request log wraps the size limiter so 413s are logged too.
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RequestLogMiddleware)

    cors_origins = _parse_cors_origins(cfg.mode)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", CALLER_HEADER],
        )

    # --- Routers ---
    app.include_router(public_router)

    return app


# Module-level app for uvicorn.
app = create_app(boot_runtime=True)
