from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient


class _FakeExecutor(SimpleNamespace):
    """Minimal executor stub for API lifecycle tests."""

    def snapshot(self) -> dict:
        return {"service_id": self.service_id, "height": 0}


def test_create_app_boot_runtime_false_does_not_attach_executor() -> None:
    from anonymity_service.api.app import create_app

    app = create_app(boot_runtime=False)
    assert getattr(app.state, "executor", None) is None

    # App should still be startable for route/middleware tests.
    with TestClient(app) as _client:
        pass


def test_create_app_boot_runtime_true_attaches_executor(monkeypatch: pytest.MonkeyPatch) -> None:
    from anonymity_service.api import app as api_app

    seen = {}

    def _fake_build_executor(cfg):
        seen["cfg"] = cfg
        return _FakeExecutor(service_id="anonsvc-fake")

    monkeypatch.setenv("ANONSVC_SERVICE_ID", "anonsvc-fake")
    monkeypatch.setattr(api_app, "build_executor", _fake_build_executor)

    app = api_app.create_app(boot_runtime=True)
    assert getattr(app.state.executor, "service_id", "") == "anonsvc-fake"
    assert seen["cfg"].service_id == "anonsvc-fake"

    with TestClient(app) as client:
        assert client.get("/readyz").json()["service_id"] == "anonsvc-fake"


def test_docs_disabled_in_prod(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    from anonymity_service.api.app import create_app

    monkeypatch.setenv("ANONSVC_MODE", "prod")
    monkeypatch.setenv("ANONSVC_DB_PATH", str(tmp_path / "anonsvc.db"))

    app = create_app(boot_runtime=True)
    c = TestClient(app)
    assert c.get("/openapi.json").status_code == 404
    assert c.get("/v1/health").json()["ok"] is True


def test_wildcard_cors_rejected_in_prod(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    from anonymity_service.api.app import create_app

    monkeypatch.setenv("ANONSVC_MODE", "prod")
    monkeypatch.setenv("ANONSVC_DB_PATH", str(tmp_path / "anonsvc.db"))
    monkeypatch.setenv("ANONSVC_CORS_ORIGINS", "*")

    with pytest.raises(RuntimeError):
        create_app(boot_runtime=False)
