from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, Request

from anonymity_service.api.routes_public_parts.common import _query, _snapshot, _submit
from anonymity_service.api.schemas import (
    MessageListOut,
    MessageOut,
    ReplyRequest,
    SendBulkMessagesRequest,
    SendCategorizedMessageRequest,
    SendMessageRequest,
)
from anonymity_service.api.security import require_caller
from anonymity_service.runtime import queries

router = APIRouter()

Json = Dict[str, Any]


# ----------------------------
# Writes
# ----------------------------


@router.post("/messages")
def send_message(request: Request, body: SendMessageRequest, caller: str = Depends(require_caller)) -> Json:
    meta = _submit(request, "SEND_ANONYMOUS_MESSAGE", caller, {"content": body.content})
    return {"ok": True, "message_id": meta["result"]}


@router.post("/messages/categorized")
def send_categorized_message(
    request: Request, body: SendCategorizedMessageRequest, caller: str = Depends(require_caller)
) -> Json:
    meta = _submit(
        request,
        "SEND_ANONYMOUS_MESSAGE_WITH_CATEGORY",
        caller,
        {"content": body.content, "category": body.category, "encrypted": body.encrypted},
    )
    return {"ok": True, "message_id": meta["result"]}


@router.post("/messages/bulk")
def send_bulk_messages(
    request: Request, body: SendBulkMessagesRequest, caller: str = Depends(require_caller)
) -> Json:
    meta = _submit(
        request,
        "SEND_BULK_MESSAGES",
        caller,
        {"content1": body.content1, "content2": body.content2},
    )
    res = meta["result"]
    return {"ok": True, "first_id": res["first_id"], "second_id": res["second_id"]}


@router.post("/messages/{message_id}/replies")
def reply_to_message(
    request: Request, message_id: int, body: ReplyRequest, caller: str = Depends(require_caller)
) -> Json:
    meta = _submit(
        request,
        "REPLY_TO_MESSAGE",
        caller,
        {"content": body.content, "reply_to": message_id, "encrypted": body.encrypted},
    )
    return {"ok": True, "message_id": meta["result"], "reply_to": message_id}


# ----------------------------
# Reads (static paths before /messages/{message_id})
# ----------------------------


@router.get("/messages", response_model=MessageListOut)
def list_messages(
    request: Request,
    start: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=queries.MAX_PAGE_LIMIT),
) -> MessageListOut:
    st = _snapshot(request)
    items = [MessageOut.from_message(m) for m in queries.list_messages(st, start, limit)]
    return MessageListOut(items=items, start=start, limit=limit, total=queries.get_message_count(st))


@router.get("/messages/count")
def message_count(request: Request) -> Json:
    return {"ok": True, "count": queries.get_message_count(_snapshot(request))}


@router.get("/messages/range-count")
def messages_range_count(
    request: Request,
    start: int = Query(..., alias="from"),
    end: int = Query(..., alias="to"),
) -> Json:
    n = _query(queries.get_messages_count, _snapshot(request), start, end)
    return {"ok": True, "from": start, "to": end, "count": n}


@router.get("/messages/last-id")
def last_message_id(request: Request) -> Json:
    return {"ok": True, "message_id": _query(queries.get_last_message_id, _snapshot(request))}


@router.get("/messages/{message_id}")
def get_message(request: Request, message_id: int) -> Json:
    # Absent ids are a normal answer, not an error.
    msg = queries.get_message(_snapshot(request), message_id)
    return {"ok": True, "message": MessageOut.from_message(msg).model_dump() if msg is not None else None}


@router.get("/messages/{message_id}/exists")
def message_exists(request: Request, message_id: int) -> Json:
    return {"ok": True, "exists": queries.does_message_exist(_snapshot(request), message_id)}


@router.get("/messages/{message_id}/depth")
def message_depth(request: Request, message_id: int) -> Json:
    return {"ok": True, "depth": queries.get_message_depth(_snapshot(request), message_id)}


@router.get("/messages/{message_id}/replies")
def message_replies(request: Request, message_id: int) -> Json:
    return {"ok": True, "replies": queries.get_message_replies(_snapshot(request), message_id)}


@router.get("/users/{identity}/message-count")
def user_message_count(request: Request, identity: str) -> Json:
    return {"ok": True, "identity": identity, "count": queries.get_user_message_count(_snapshot(request), identity)}


@router.get("/content/validate")
def validate_content(content: str = Query(default="")) -> Json:
    return {"ok": True, "valid": queries.is_valid_content(content), "length": len(content)}
