"""Modelos de conversaciones de WhatsApp y sus mensajes."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SenderType = Literal["user", "assistant"]


class Message(BaseModel):
    """Mensaje inmutable dentro de una conversación."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str | int
    conversation_id: str
    sender_type: SenderType
    content: str | None = None
    created_at: datetime


class Conversation(BaseModel):
    """Conversación identificada por la dirección del canal (número de WhatsApp).

    `has_response` y `last_message_time` se derivan en cada refresco y nunca se
    persisten.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    title: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    has_response: bool = Field(default=False, exclude=True)
    last_message_time: datetime | None = Field(default=None, exclude=True)

    def with_last_message(self, last: Message | None) -> Conversation:
        """Retorna una copia con los campos derivados del último mensaje."""
        if last is None:
            return self.model_copy(
                update={"has_response": False, "last_message_time": self.updated_at}
            )
        return self.model_copy(
            update={
                "has_response": last.sender_type == "assistant",
                "last_message_time": last.created_at,
            }
        )
