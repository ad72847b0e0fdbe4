from __future__ import annotations

import pytest

from anonymity_service.runtime import metrics
from anonymity_service.runtime.errors import ServiceError

from conftest import ALICE, DEPLOYER


def test_executor_counts_applied_and_rejected_txs(live) -> None:
    live.send_anonymous_message(ALICE, "Counted message")
    with pytest.raises(ServiceError):
        live.pause_service(ALICE)

    snap = metrics.snapshot()
    # initialize + send
    assert snap["counters"]["tx_applied_total"] == 2
    assert snap["counters"]["tx_rejected_owner_only"] == 1
    assert snap["gauges"]["messages_total"] == 1


def test_prometheus_text_format() -> None:
    metrics.inc_counter("tx_applied_total", 3)
    metrics.set_gauge("messages_total", 7)

    text = metrics.format_prometheus()
    assert "# TYPE anonsvc_tx_applied_total counter" in text
    assert "anonsvc_tx_applied_total 3" in text
    assert "# TYPE anonsvc_messages_total gauge" in text
    assert "anonsvc_messages_total 7" in text
    assert text.startswith("anonsvc_uptime_ms ")


def test_metrics_disabled_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ANONSVC_METRICS_ENABLED", raising=False)
    assert metrics.metrics_enabled() is False
    monkeypatch.setenv("ANONSVC_METRICS_ENABLED", "1")
    assert metrics.metrics_enabled() is True


def test_executor_logs_tx_events_without_content(live, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level("INFO", logger="anonymity_service.executor")
    live.send_anonymous_message(ALICE, "Secret message text")
    with pytest.raises(ServiceError):
        live.update_service_fee(ALICE, 1)

    text = caplog.text
    assert '"event":"tx_applied"' in text
    assert '"event":"tx_rejected"' in text
    assert '"code":"owner_only"' in text
    assert "Secret message text" not in text
    assert ALICE not in text
    assert DEPLOYER not in text


def test_log_event_redacts_content_and_identities(caplog: pytest.LogCaptureFixture) -> None:
    import json
    import logging

    from anonymity_service.runtime.runtime_logging import REDACTED, log_event

    log = logging.getLogger("anonymity_service.test")
    caplog.set_level("INFO", logger="anonymity_service.test")
    log_event(log, "message_seen", content="Secret message text", caller=ALICE, signer=ALICE, sender=None, height=3)

    line = json.loads(caplog.records[-1].getMessage())
    assert line["event"] == "message_seen"
    assert line["content"] == REDACTED
    assert line["caller"] == REDACTED
    assert line["signer"] == REDACTED
    assert line["sender"] is None
    assert line["height"] == 3
    assert "Secret message text" not in caplog.text
    assert ALICE not in caplog.text


def test_log_event_encodes_unknown_values_with_repr(caplog: pytest.LogCaptureFixture) -> None:
    import logging

    from anonymity_service.runtime.runtime_logging import log_event

    log = logging.getLogger("anonymity_service.test")
    caplog.set_level("INFO", logger="anonymity_service.test")
    log_event(log, "odd_value", value={1, 2} - {1})
    assert '"value":"{2}"' in caplog.text


def test_log_event_respects_level(caplog: pytest.LogCaptureFixture) -> None:
    import logging

    from anonymity_service.runtime.runtime_logging import log_event

    log = logging.getLogger("anonymity_service.test")
    caplog.set_level("WARNING", logger="anonymity_service.test")
    log_event(log, "quiet")
    log_event(log, "loud", level=logging.WARNING)
    assert '"event":"quiet"' not in caplog.text
    assert '"event":"loud"' in caplog.text


def test_request_log_path_hides_identity() -> None:
    from anonymity_service.api.structured_logging import loggable_path

    assert loggable_path(f"/v1/users/{ALICE}/message-count") == "/v1/users/{identity}/message-count"
    assert loggable_path("/v1/messages/3") == "/v1/messages/3"
