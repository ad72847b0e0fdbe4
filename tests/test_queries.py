from __future__ import annotations

import pytest

from anonymity_service.runtime import queries
from anonymity_service.runtime.errors import ServiceError
from anonymity_service.runtime.service_state import initial_state

from conftest import ALICE, DEPLOYER

MSG = "Query test message"


@pytest.fixture
def three(live):
    for i in range(3):
        live.send_anonymous_message(ALICE, f"{MSG} {i}")
    return live


def test_range_count_is_end_exclusive(three) -> None:
    assert three.get_messages_count(0, 2) == 2
    assert three.get_messages_count(1, 2) == 1
    assert three.get_messages_count(2, 2) == 0


@pytest.mark.parametrize("start,end", [(5, 2), (0, 3), (-1, 1), (0, 99)])
def test_range_count_rejects_invalid_ranges(three, start, end) -> None:
    with pytest.raises(ServiceError) as e:
        three.get_messages_count(start, end)
    assert e.value.code == "invalid_message_count"
    assert e.value.numeric_code == 105


def test_last_message_id_on_empty_store_fails(live) -> None:
    with pytest.raises(ServiceError) as e:
        live.get_last_message_id()
    assert e.value.code == "message_not_found"


def test_point_queries_on_missing_ids_return_none(three) -> None:
    assert three.get_message(999) is None
    assert three.get_message(-1) is None
    assert three.does_message_exist(999) is False
    assert three.does_message_exist(2) is True
    assert three.get_message_depth(999) is None
    assert three.get_message_replies(999) is None


def test_queries_do_not_mutate_state() -> None:
    st = initial_state(service_id="s", owner="o")
    del st["messaging"]
    del st["user_message_counts"]

    assert queries.get_message_count(st) == 0
    assert queries.get_message(st, 0) is None
    assert queries.get_user_message_count(st, ALICE) == 0
    assert queries.list_messages(st) == []
    assert "messaging" not in st
    assert "user_message_counts" not in st


def test_list_messages_pages_in_id_order(three) -> None:
    page = three.list_messages(start=1, limit=5)
    assert [m.id for m in page] == [1, 2]
    assert three.list_messages(start=3) == []
    assert len(three.list_messages(limit=1000)) == 3


def test_list_messages_caps_limit(live) -> None:
    for i in range(queries.MAX_PAGE_LIMIT + 5):
        live.send_anonymous_message(ALICE, f"{MSG} {i}")
    assert len(live.list_messages(limit=10_000)) == queries.MAX_PAGE_LIMIT


def test_service_status_reports_message_count(three) -> None:
    status = three.get_service_status()
    assert status["message_count"] == 3
    assert status["owner"] == DEPLOYER
