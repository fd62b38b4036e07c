"""Instantáneas inmutables del panel para la capa de presentación."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.models.auth import UserIdentity
from app.models.client import Client
from app.models.conversation import Conversation, Message


@dataclass(slots=True, frozen=True)
class DashboardStats:
    """Tarjetas de resumen: conversaciones, clientes y última actividad."""

    conversations: int
    clients_total: int
    last_activity: datetime | None


@dataclass(slots=True, frozen=True)
class DashboardState:
    user: UserIdentity | None
    conversations: tuple[Conversation, ...]
    loading_conversations: bool
    conversations_error: str | None
    clients: tuple[Client, ...]
    clients_total: int
    clients_page: int
    clients_page_size: int
    has_more_clients: bool
    search_term: str
    loading_clients: bool
    loading_more_clients: bool
    clients_error: str | None
    selected_conversation_id: str | None
    messages: tuple[Message, ...]
    loading_messages: bool
    messages_error: str | None

    @property
    def stats(self) -> DashboardStats:
        last_activity = self.conversations[0].updated_at if self.conversations else None
        return DashboardStats(
            conversations=len(self.conversations),
            clients_total=self.clients_total,
            last_activity=last_activity,
        )


@dataclass(slots=True, frozen=True)
class OperationResult:
    """Resultado de una operación iniciada por el usuario (ej. alta de cliente)."""

    success: bool
    error: str | None = None
    client: Client | None = None
