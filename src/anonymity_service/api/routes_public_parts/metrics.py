from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import JSONResponse

from anonymity_service.runtime import metrics as rt_metrics
from anonymity_service.runtime.service_state import next_id

router = APIRouter()


def _refresh_ledger_gauges(request: Request) -> None:
    # Height and message count are read from the committed snapshot at scrape
    # time so the numbers match what readers see.
    ex: Any = getattr(request.app.state, "executor", None)
    if ex is None:
        return
    st = ex.snapshot()
    rt_metrics.set_gauge("ledger_height", int(st.get("height", 0) or 0))
    rt_metrics.set_gauge("messages_total", next_id(st))


@router.get("/metrics")
def metrics(request: Request, fmt: str = Query(default="prometheus", alias="format")) -> Response:
    """Service counters and gauges.

    `?format=prometheus` (default) or `?format=json`. Disabled unless
    ANONSVC_METRICS_ENABLED=1.
    """
    if not rt_metrics.metrics_enabled():
        return Response(status_code=404, content="not_found\n", media_type="text/plain")

    _refresh_ledger_gauges(request)
    if fmt.strip().lower() == "json":
        return JSONResponse({"ok": True, "metrics": rt_metrics.snapshot()})
    return Response(content=rt_metrics.format_prometheus(), media_type="text/plain")
