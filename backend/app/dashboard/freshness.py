"""Refresco periódico de conversaciones y detección de respuestas nuevas."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from pydantic import ValidationError

from app.core.logging import get_logger
from app.models.conversation import Conversation, Message
from app.services.supabase import AuthError, Gateway, GatewayError

logger = get_logger("app.dashboard.conversations")

CONVERSATIONS_TABLE = "conversations"
MESSAGES_TABLE = "messages"
REFRESH_ERROR = "Error al cargar las conversaciones"
NO_SESSION = "No hay una sesión activa"


class ConversationFreshness:
    """Lista de conversaciones del usuario con `has_response` recalculado.

    Cada refresco reemplaza la lista completa. Los refrescos llevan un número
    de secuencia creciente: si uno más reciente ya se aplicó, el resultado de
    uno anterior se descarta.
    """

    def __init__(
        self,
        gateway: Gateway,
        *,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._gateway = gateway
        self._on_change = on_change
        self.conversations: tuple[Conversation, ...] = ()
        self.loading = False
        self.error: str | None = None
        self._issued = 0
        self._applied = 0
        self._in_flight = 0
        self._closed = False

    @property
    def last_applied_sequence(self) -> int:
        return self._applied

    def close(self) -> None:
        self._closed = True

    async def refresh(self) -> bool:
        """Recarga todas las conversaciones; retorna True si el resultado se aplicó."""
        self._issued += 1
        sequence = self._issued
        self._in_flight += 1
        self.loading = True
        self._changed()

        failure: GatewayError | ValidationError | None = None
        conversations: list[Conversation] = []
        try:
            conversations = await self._load()
        except (GatewayError, ValidationError) as exc:
            failure = exc
        finally:
            self._in_flight -= 1

        if failure is not None:
            logger.warning(
                "conversations.refresh_failed",
                extra={"sequence": sequence, "error": str(failure)},
            )
            if not self._closed and sequence > self._applied:
                self.error = str(failure) if isinstance(failure, GatewayError) else REFRESH_ERROR
            self._settle()
            return False

        if self._closed or sequence < self._applied:
            logger.info(
                "conversations.refresh_discarded",
                extra={"sequence": sequence, "applied": self._applied},
            )
            self._settle()
            return False

        self._applied = sequence
        self.conversations = tuple(conversations)
        self.error = None
        logger.debug(
            "conversations.refreshed",
            extra={
                "sequence": sequence,
                "count": len(conversations),
                "with_response": sum(1 for conv in conversations if conv.has_response),
            },
        )
        self._settle()
        return True

    async def _load(self) -> list[Conversation]:
        user = await self._gateway.get_current_user()
        if user is None:
            raise AuthError(NO_SESSION)
        result = await self._gateway.query(
            CONVERSATIONS_TABLE,
            filters={"user_id": f"eq.{user.id}"},
            order="updated_at.desc",
        )
        conversations = [Conversation.model_validate(row) for row in result.rows]
        # Una consulta por conversación; sin atomicidad respecto a la lista.
        latest = await asyncio.gather(*(self._latest_message(conv.id) for conv in conversations))
        return [conv.with_last_message(last) for conv, last in zip(conversations, latest)]

    async def _latest_message(self, conversation_id: str) -> Message | None:
        result = await self._gateway.query(
            MESSAGES_TABLE,
            select="id,conversation_id,sender_type,created_at",
            filters={"conversation_id": f"eq.{conversation_id}"},
            order="created_at.desc",
            limit=1,
        )
        if not result.rows:
            return None
        return Message.model_validate(result.rows[0])

    def _settle(self) -> None:
        if self._in_flight == 0:
            self.loading = False
        self._changed()

    def _changed(self) -> None:
        if self._on_change is not None and not self._closed:
            self._on_change()
