from __future__ import annotations

"""Pydantic request/response schemas for the public API.

These exist only for HTTP input validation and response shape stability.
Content length, ownership and lifecycle rules are enforced by the runtime,
not here, so the HTTP surface reports the same error codes as the core.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from anonymity_service.runtime.service_state import Message


class SendMessageRequest(BaseModel):
    content: str = Field(..., description="Message text")


class SendCategorizedMessageRequest(BaseModel):
    content: str = Field(..., description="Message text")
    category: Optional[str] = Field(default=None, description="Free-form category label")
    encrypted: bool = Field(default=False, description="Caller-asserted: content is ciphertext")


class SendBulkMessagesRequest(BaseModel):
    content1: str
    content2: str


class ReplyRequest(BaseModel):
    content: str = Field(..., description="Reply text")
    encrypted: bool = Field(default=False)


class UpdateServiceFeeRequest(BaseModel):
    fee: int = Field(..., ge=0)


class UpdateRateLimitsRequest(BaseModel):
    window: int = Field(..., ge=0, description="Window length in clock units")
    max_per_window: int = Field(..., ge=0)


class MessageOut(BaseModel):
    id: int
    content: str
    sender: Optional[str] = None
    category: Optional[str] = None
    encrypted: bool = False
    reply_to: Optional[int] = None
    reply_depth: int = 0
    created_at: int = 0

    @classmethod
    def from_message(cls, msg: Message) -> "MessageOut":
        return cls(**msg.to_json())


class MessageListOut(BaseModel):
    ok: bool = True
    items: List[MessageOut]
    start: int
    limit: int
    total: int
