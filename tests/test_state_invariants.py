from __future__ import annotations

import copy

import pytest

from anonymity_service.runtime.service_state import initial_state
from anonymity_service.runtime.state_invariants import StateInvariantError, check_state_invariants

from conftest import ALICE, DEPLOYER


def _threaded(live) -> dict:
    root = live.send_anonymous_message(ALICE, "Thread root message")
    child = live.reply_to_message(ALICE, "Thread child message", root, False)
    live.reply_to_message(ALICE, "Thread grandchild message", child, False)
    # Tests below edit the state, so take a private copy.
    return copy.deepcopy(live.snapshot())


def test_fresh_and_live_states_pass() -> None:
    check_state_invariants(initial_state(service_id="s", owner=DEPLOYER))


def test_threaded_state_passes(live) -> None:
    check_state_invariants(_threaded(live))


def test_gap_in_ids_is_detected(live) -> None:
    st = _threaded(live)
    del st["messaging"]["messages_by_id"]["1"]
    with pytest.raises(StateInvariantError):
        check_state_invariants(st)


def test_wrong_depth_is_detected(live) -> None:
    st = _threaded(live)
    st["messaging"]["messages_by_id"]["2"]["reply_depth"] = 1
    with pytest.raises(StateInvariantError):
        check_state_invariants(st)


def test_forward_reference_is_detected(live) -> None:
    st = _threaded(live)
    st["messaging"]["messages_by_id"]["1"]["reply_to"] = 2
    with pytest.raises(StateInvariantError):
        check_state_invariants(st)


def test_reply_index_mismatch_is_detected(live) -> None:
    st = _threaded(live)
    st["messaging"]["replies_by_id"]["0"] = []
    with pytest.raises(StateInvariantError):
        check_state_invariants(st)


def test_stray_reply_index_entry_is_detected(live) -> None:
    live.send_anonymous_message(ALICE, "First top-level message")
    live.send_anonymous_message(ALICE, "Second top-level message")
    st = copy.deepcopy(live.snapshot())

    # Message 1 is top-level, so listing it under 0 is a lie.
    st["messaging"]["replies_by_id"]["0"] = [1]
    with pytest.raises(StateInvariantError):
        check_state_invariants(st)


def test_reply_index_key_for_unknown_message_is_detected(live) -> None:
    st = _threaded(live)
    st["messaging"]["replies_by_id"]["99"] = []
    with pytest.raises(StateInvariantError):
        check_state_invariants(st)
