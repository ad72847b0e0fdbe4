from __future__ import annotations

import os
from typing import Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from anonymity_service.api.errors import ApiError

CALLER_HEADER = "x-anonsvc-caller"


def _truthy(v: str | None) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return int(default)
    try:
        return int(str(raw).strip())
    except Exception:
        return int(default)


def require_caller(request: Request, *, header: str = CALLER_HEADER) -> str:
    """Caller identity for a mutating request.

    The header is set by the authenticating gateway in front of this API
    and is trusted as-is for owner checks and rate-limit keys.
    """
    caller = (request.headers.get(header) or "").strip()
    if not caller:
        raise ApiError.bad_request("caller_missing", f"missing {header} header", {})
    return caller


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Fail-fast request size limiter.

    - Enforces Content-Length when present.
    - Also caps the buffered body of POST/PUT/PATCH requests.

    Configure:
      ANONSVC_MAX_REQUEST_BYTES (default: 64_000)
      ANONSVC_SIZE_LIMIT_DISABLE=1 to disable (not recommended unless handled at edge)
    """

    def __init__(
        self,
        app,
        *,
        max_bytes: Optional[int] = None,
        exempt_prefixes: Tuple[str, ...] = ("/docs", "/openapi.json", "/health"),
    ):
        super().__init__(app)
        self._enabled = not _truthy(os.environ.get("ANONSVC_SIZE_LIMIT_DISABLE"))
        if max_bytes is not None:
            self._max_bytes = int(max_bytes)
        else:
            self._max_bytes = _env_int("ANONSVC_MAX_REQUEST_BYTES", 64_000)
        self._exempt_prefixes = exempt_prefixes

    def _too_large(self) -> JSONResponse:
        return JSONResponse(
            status_code=413,
            content={
                "ok": False,
                "error": {"code": "request_too_large", "message": "Request body too large", "details": {}},
            },
        )

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        path = request.url.path or ""
        for ex in self._exempt_prefixes:
            if path.startswith(ex):
                return await call_next(request)

        cl = request.headers.get("content-length")
        if cl:
            try:
                if int(cl) > self._max_bytes:
                    return self._too_large()
            except ValueError:
                # Malformed header; fall back to the buffered body cap.
                pass

        # Chunked bodies carry no Content-Length.
        if (request.method or "").upper() in {"POST", "PUT", "PATCH"}:
            body = await request.body()
            if body and len(body) > self._max_bytes:
                return self._too_large()

        return await call_next(request)
