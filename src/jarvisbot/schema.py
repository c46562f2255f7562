"""Subset of the Telegram Bot API objects the relay reads or sends."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    id: int
    is_bot: bool = False
    username: str | None = None


class Chat(BaseModel):
    id: int
    type: str | None = None


class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: int
    chat: Chat
    from_user: User | None = Field(default=None, alias="from")
    text: str | None = None


class Update(BaseModel):
    update_id: int
    message: Message | None = None


class ApiResponse(BaseModel):
    ok: bool
    result: Any = None
    description: str | None = None
    error_code: int | None = None


class SendMessageRequest(BaseModel):
    chat_id: int
    text: str


class GetUpdatesRequest(BaseModel):
    offset: int | None = None
    timeout: int = 0
    allowed_updates: list[str] = Field(default_factory=lambda: ["message"])
