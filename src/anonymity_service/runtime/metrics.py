from __future__ import annotations

import os
import threading
import time
from typing import Dict


_lock = threading.Lock()
_counters: Dict[str, int] = {}
_gauges: Dict[str, int] = {}
_started_ms = int(time.time() * 1000)


def metrics_enabled() -> bool:
    v = (os.environ.get("ANONSVC_METRICS_ENABLED") or "").strip().lower()
    if not v:
        return False
    return v in {"1", "true", "yes", "y", "on"}


def inc_counter(name: str, value: int = 1) -> None:
    n = str(name or "").strip()
    if not n:
        return
    with _lock:
        _counters[n] = int(_counters.get(n, 0)) + int(value)


def set_gauge(name: str, value: int) -> None:
    n = str(name or "").strip()
    if not n:
        return
    with _lock:
        _gauges[n] = int(value)


def reset() -> None:
    """Drop all counters and gauges (test isolation)."""
    with _lock:
        _counters.clear()
        _gauges.clear()


def snapshot() -> dict:
    with _lock:
        now_ms = int(time.time() * 1000)
        return {
            "ts_ms": now_ms,
            "started_ms": int(_started_ms),
            "uptime_ms": now_ms - int(_started_ms),
            "counters": dict(_counters),
            "gauges": dict(_gauges),
        }


def format_prometheus(prefix: str = "anonsvc_") -> str:
    """Prometheus exposition text for integer counters and gauges."""
    pre = str(prefix or "").strip() or "anonsvc_"
    snap = snapshot()
    lines: list[str] = [f"{pre}uptime_ms {int(snap['uptime_ms'])}"]

    for kind, values in (("counter", snap["counters"]), ("gauge", snap["gauges"])):
        for name in sorted(values.keys()):
            lines.append(f"# TYPE {pre}{name} {kind}")
            lines.append(f"{pre}{name} {int(values[name])}")

    return "\n".join(lines) + "\n"
