from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from anonymity_service.runtime.errors import ServiceError

# HTTP status per service error code; anything unlisted is a 400.
_STATUS_BY_CODE: Dict[str, int] = {
    "owner_only": 403,
    "already_initialized": 409,
    "not_initialized": 409,
    "message_not_found": 404,
    "rate_limit_exceeded": 429,
}


@dataclass
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def from_service_error(e: ServiceError) -> "ApiError":
        details: Dict[str, Any] = dict(e.details) if isinstance(e.details, dict) else {}
        if e.numeric_code is not None:
            details["error_code"] = e.numeric_code
        return ApiError(_STATUS_BY_CODE.get(e.code, 400), e.code, e.reason, details)

    def to_json(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": self.details}}
