from __future__ import annotations

import pytest

from anonymity_service.runtime.errors import ServiceError
from anonymity_service.runtime.service_state import MAX_REPLY_DEPTH

from conftest import ALICE, BOB, DEPLOYER

ROOT_MSG = "Original message"
REPLY = "Reply message"


@pytest.fixture
def roomy(live):
    # Thread tests post more than the default per-window allowance.
    live.update_rate_limits(DEPLOYER, 144, 100)
    return live


def test_reply_links_parent_and_child(roomy) -> None:
    root = roomy.send_anonymous_message(ALICE, ROOT_MSG)
    rid = roomy.reply_to_message(BOB, REPLY, root, False)

    msg = roomy.get_message(rid)
    assert msg.reply_to == root
    assert msg.reply_depth == 1
    assert msg.sender is None
    assert roomy.get_message_replies(root) == [rid]
    assert roomy.get_message_depth(rid) == 1
    assert roomy.get_message_depth(root) == 0


def test_replies_are_listed_in_creation_order(roomy) -> None:
    root = roomy.send_anonymous_message(ALICE, ROOT_MSG)
    a = roomy.reply_to_message(BOB, REPLY + " a", root, False)
    roomy.send_anonymous_message(ALICE, "Unrelated message")
    b = roomy.reply_to_message(ALICE, REPLY + " b", root, True)

    assert roomy.get_message_replies(root) == [a, b]
    assert roomy.get_message(b).encrypted is True


def test_replies_of_message_without_replies_is_empty(roomy) -> None:
    root = roomy.send_anonymous_message(ALICE, ROOT_MSG)
    assert roomy.get_message_replies(root) == []
    assert roomy.get_message_replies(999) is None


def test_reply_chain_stops_at_max_depth(roomy) -> None:
    parent = roomy.send_anonymous_message(ALICE, ROOT_MSG)
    for depth in range(1, MAX_REPLY_DEPTH + 1):
        parent = roomy.reply_to_message(BOB, f"{REPLY} {depth}", parent, False)
        assert roomy.get_message_depth(parent) == depth

    count = roomy.get_message_count()
    with pytest.raises(ServiceError) as e:
        roomy.reply_to_message(BOB, "One reply too deep", parent, False)
    assert e.value.code == "invalid_reply_depth"
    assert e.value.numeric_code == 107
    assert roomy.get_message_count() == count
    assert roomy.get_message_replies(parent) == []


def test_reply_to_missing_message_fails(roomy) -> None:
    with pytest.raises(ServiceError) as e:
        roomy.reply_to_message(BOB, REPLY, 999, False)
    assert e.value.code == "message_not_found"
    assert e.value.numeric_code == 104
    assert roomy.get_message_count() == 0


@pytest.mark.parametrize("bad", [-1, True, "0", None])
def test_reply_to_must_be_a_message_id(roomy, bad) -> None:
    roomy.send_anonymous_message(ALICE, ROOT_MSG)
    with pytest.raises(ServiceError) as e:
        roomy.reply_to_message(BOB, REPLY, bad, False)
    assert e.value.code == "invalid_payload"


def test_reply_with_bad_content_leaves_parent_untouched(roomy) -> None:
    root = roomy.send_anonymous_message(ALICE, ROOT_MSG)
    with pytest.raises(ServiceError) as e:
        roomy.reply_to_message(BOB, "short", root, False)
    assert e.value.code == "invalid_message_length"
    assert roomy.get_message_replies(root) == []
    assert roomy.get_user_message_count(BOB) == 0
