from __future__ import annotations

from typing import Any, Dict

from anonymity_service.runtime.service_state import MAX_REPLY_DEPTH, messaging_view, next_id, reply_ids

Json = Dict[str, Any]


class StateInvariantError(RuntimeError):
    pass


def check_state_invariants(state: Json) -> None:
    """Fail-closed structural check of a ledger snapshot.

    Verifies dense ids, reply depth consistency, no dangling or forward
    reply references, and that the reply index agrees with the messages.
    Raises StateInvariantError on the first violation.
    """
    m = messaging_view(state)
    msgs = m.get("messages_by_id")
    if not isinstance(msgs, dict):
        msgs = {}
    n = next_id(state)

    if n < 0:
        raise StateInvariantError(f"next_id is negative: {n}")
    if set(msgs.keys()) != {str(i) for i in range(n)}:
        raise StateInvariantError(f"message ids are not the dense range [0, {n})")

    expected_replies: Dict[int, list] = {}
    for i in range(n):
        rec = msgs[str(i)]
        if not isinstance(rec, dict) or int(rec.get("id", -1)) != i:
            raise StateInvariantError(f"message {i} record is malformed")

        depth = int(rec.get("reply_depth", 0))
        parent = rec.get("reply_to")
        if parent is None:
            if depth != 0:
                raise StateInvariantError(f"top-level message {i} has depth {depth}")
            continue

        parent = int(parent)
        if parent < 0 or parent >= i:
            raise StateInvariantError(f"message {i} references {parent} which did not exist before it")
        parent_depth = int(msgs[str(parent)].get("reply_depth", 0))
        if depth != parent_depth + 1:
            raise StateInvariantError(f"message {i} depth {depth} != parent depth {parent_depth} + 1")
        if depth > MAX_REPLY_DEPTH:
            raise StateInvariantError(f"message {i} depth {depth} exceeds {MAX_REPLY_DEPTH}")
        expected_replies.setdefault(parent, []).append(i)

    index = m.get("replies_by_id")
    if not isinstance(index, dict):
        index = {}
    for key in index.keys():
        if not str(key).isdigit() or int(key) >= n:
            raise StateInvariantError(f"reply index key {key!r} is not a message id")
    # Every indexed parent, and every parent with real replies, must agree.
    parents = {int(k) for k in index.keys()} | set(expected_replies.keys())
    for pid in sorted(parents):
        if reply_ids(state, pid) != expected_replies.get(pid, []):
            raise StateInvariantError(f"reply index for {pid} does not match stored replies")
