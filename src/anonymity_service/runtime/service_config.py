# src/anonymity_service/runtime/service_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


@dataclass(frozen=True)
class ServiceConfig:
    service_id: str
    # Identity allowed to call INITIALIZE; becomes the permanent owner.
    deployer: str
    mode: str  # "dev" | "testnet" | "prod"

    # Empty string keeps the executor memory-only.
    db_path: str

    api_host: str
    api_port: int

    log_level: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_service_config(cfg: ServiceConfig) -> None:
    """Fail-fast validation for operator config."""

    if not isinstance(cfg.service_id, str) or not cfg.service_id.strip():
        raise ValueError("service_id must be a non-empty string")

    if not isinstance(cfg.deployer, str) or not cfg.deployer.strip():
        raise ValueError("deployer must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if str(cfg.log_level).strip().upper() not in _ALLOWED_LOG_LEVELS:
        raise ValueError(f"log_level must be one of {_ALLOWED_LOG_LEVELS}; got: {cfg.log_level!r}")

    if mode == "prod" and not str(cfg.db_path or "").strip():
        # A prod service that forgets every message on restart is a misconfiguration.
        raise ValueError("db_path is required in prod mode")


def default_service_config() -> ServiceConfig:
    return ServiceConfig(
        service_id="anonsvc-dev",
        deployer="deployer",
        mode="dev",
        db_path="",
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def _from_mapping(raw: Json, base: ServiceConfig) -> ServiceConfig:
    return ServiceConfig(
        service_id=_as_str(raw.get("service_id"), base.service_id),
        deployer=_as_str(raw.get("deployer"), base.deployer),
        mode=_as_str(raw.get("mode"), base.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), base.db_path),
        api_host=_as_str(raw.get("api_host"), base.api_host),
        api_port=_as_int(raw.get("api_port"), base.api_port),
        log_level=_as_str(raw.get("log_level"), base.log_level).strip().upper(),
    )


def read_service_config_file(path: str) -> ServiceConfig:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("service config must be a JSON object")
    return _from_mapping(raw, default_service_config())


def _env_overrides() -> Json:
    keys = {
        "service_id": "ANONSVC_SERVICE_ID",
        "deployer": "ANONSVC_DEPLOYER",
        "mode": "ANONSVC_MODE",
        "db_path": "ANONSVC_DB_PATH",
        "api_host": "ANONSVC_API_HOST",
        "api_port": "ANONSVC_API_PORT",
        "log_level": "ANONSVC_LOG_LEVEL",
    }
    out: Json = {}
    for field_name, env_name in keys.items():
        v = os.environ.get(env_name)
        if v is not None and v.strip():
            out[field_name] = v.strip()
    return out


def load_service_config(*, config_path: Optional[str] = None) -> ServiceConfig:
    """Defaults <- JSON file (ANONSVC_CONFIG_PATH) <- ANONSVC_* env vars."""
    p = config_path or os.environ.get("ANONSVC_CONFIG_PATH")
    cfg = read_service_config_file(p) if p else default_service_config()
    cfg = _from_mapping(_env_overrides(), cfg)
    validate_service_config(cfg)
    return cfg

