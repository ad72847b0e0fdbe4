# src/anonymity_service/api/structured_logging.py
from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from anonymity_service.runtime.runtime_logging import log_event

Json = Dict[str, Any]

_USERS_PREFIX = "/v1/users/"


def loggable_path(path: str) -> str:
    """Request path with any caller identity segment replaced."""
    if not path.startswith(_USERS_PREFIX):
        return path
    rest = path[len(_USERS_PREFIX):]
    _identity, sep, tail = rest.partition("/")
    return f"{_USERS_PREFIX}{{identity}}{sep}{tail}"


def configure_structured_logging(level_name: Optional[str] = None) -> None:
    """Configure stdlib logging for JSONL output (stdout).

    - Level from the argument, else ANONSVC_LOG_LEVEL (default INFO).
    - Safe to call multiple times.
    """
    raw = level_name or os.environ.get("ANONSVC_LOG_LEVEL") or "INFO"
    level = getattr(logging, raw.strip().upper(), logging.INFO)

    root = logging.getLogger()
    if getattr(root, "_anonsvc_configured", False):  # type: ignore[attr-defined]
        root.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root.handlers = [handler]
    root.setLevel(level)
    setattr(root, "_anonsvc_configured", True)  # type: ignore[attr-defined]


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Structured request logging middleware.

    Controls:
      - ANONSVC_LOG_REQUESTS=0 to disable (default on)

    The caller header is never logged: message senders stay out of logs.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        raw = (os.environ.get("ANONSVC_LOG_REQUESTS") or "1").strip().lower()
        self._enabled = raw not in {"0", "false", "no", "n", "off"}
        self._logger = logging.getLogger("anonymity_service.http")

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        started = time.monotonic()
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id

        status = 500
        err: Optional[str] = None
        response: Optional[Response] = None

        try:
            response = await call_next(request)
            status = int(response.status_code)
            return response
        except Exception as e:
            err = str(e)
            raise
        finally:
            log_event(
                self._logger,
                "http_request",
                request_id=request_id,
                method=request.method,
                path=loggable_path(str(request.url.path or "")),
                status=status,
                duration_ms=int((time.monotonic() - started) * 1000),
                error=err,
            )
            if response is not None:
                response.headers.setdefault("x-request-id", request_id)


__all__ = ["RequestLogMiddleware", "configure_structured_logging", "log_event", "loggable_path"]
