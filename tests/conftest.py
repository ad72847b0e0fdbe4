from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure local "src/" takes precedence over any globally-installed package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)


DEPLOYER = "ST1DEPLOYER"
ALICE = "ST1ALICE"
BOB = "ST1BOB"


class ManualClock:
    """Deterministic clock; tests advance it explicitly."""

    def __init__(self, start: int = 0) -> None:
        self.now = int(start)

    def advance(self, n: int) -> None:
        self.now += int(n)

    def __call__(self) -> int:
        return self.now


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for k in (
        "ANONSVC_CONFIG_PATH",
        "ANONSVC_SERVICE_ID",
        "ANONSVC_DEPLOYER",
        "ANONSVC_MODE",
        "ANONSVC_DB_PATH",
        "ANONSVC_API_HOST",
        "ANONSVC_API_PORT",
        "ANONSVC_LOG_LEVEL",
    ):
        monkeypatch.delenv(k, raising=False)

    from anonymity_service.runtime import metrics

    metrics.reset()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def executor(clock: ManualClock):
    from anonymity_service.runtime.executor import ServiceExecutor

    return ServiceExecutor(service_id="anonsvc-test", deployer=DEPLOYER, clock=clock)


@pytest.fixture
def live(executor):
    """Executor with the service initialized by the deployer."""
    assert executor.initialize(DEPLOYER) is True
    return executor
