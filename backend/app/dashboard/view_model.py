"""View-model del panel: conversaciones, registro de clientes y su sincronización.

Es el único punto por el que el panel lee o escribe en Supabase. Las
operaciones que modifican estado son:

* `open_conversation` / `close_conversation`
* `add_client`
* `load_more_clients` y `search_clients` / `clear_search`
* `refresh_conversations` (manual o por el temporizador de `start`)
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from app.core.config import settings
from app.core.logging import get_logger, log_event
from app.models.auth import UserIdentity
from app.models.client import CLIENTS_TABLE, MISSING_REQUIRED_FIELDS, Client, ClientCreate
from app.models.conversation import Message
from app.services.supabase import AuthError, Gateway, GatewayError

from .freshness import MESSAGES_TABLE, NO_SESSION, ConversationFreshness
from .pagination import ClientPagination
from .search import ClientSearch
from .state import DashboardState, OperationResult

logger = get_logger("app.dashboard")

SAVE_CLIENT_ERROR = "Error al guardar el cliente"
MESSAGES_ERROR = "Error al cargar los mensajes"

StateListener = Callable[[DashboardState], None]


class DashboardViewModel:
    """Estado observable del panel con ciclo de vida explícito.

    `start()` carga usuario, conversaciones y la primera página de clientes, y
    lanza el refresco periódico; `stop()` lo cancela. Tras `stop()` cualquier
    respuesta pendiente se descarta sin tocar el estado.
    """

    def __init__(
        self,
        gateway: Gateway,
        *,
        page_size: int | None = None,
        refresh_interval: float | None = None,
    ) -> None:
        self._gateway = gateway
        self._refresh_interval = refresh_interval or settings.conversations_refresh_seconds
        self._pagination = ClientPagination(gateway, page_size=page_size, on_change=self._notify)
        self._search = ClientSearch(self._pagination)
        self._freshness = ConversationFreshness(gateway, on_change=self._notify)
        self._listeners: list[StateListener] = []
        self._user: UserIdentity | None = None
        self._selected_id: str | None = None
        self._messages: tuple[Message, ...] = ()
        self._loading_messages = False
        self._messages_error: str | None = None
        self._messages_token = 0
        self._task: asyncio.Task[None] | None = None
        self._started = False
        self._closed = False

    # -- ciclo de vida -------------------------------------------------------

    async def start(self) -> None:
        if self._closed:
            raise RuntimeError("El view-model ya fue detenido")
        if self._started:
            return
        self._started = True
        log_event(logger, "dashboard.started", refresh_interval=self._refresh_interval)
        await asyncio.gather(
            self._load_user(),
            self._freshness.refresh(),
            self._search.set_term(""),
        )
        if not self._closed:
            self._task = asyncio.create_task(self._poll(), name="dashboard-conversations-refresh")

    async def stop(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pagination.close()
        self._freshness.close()
        self._messages_token += 1
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        log_event(logger, "dashboard.stopped")

    async def __aenter__(self) -> DashboardViewModel:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self._refresh_interval)
            try:
                await self._freshness.refresh()
            except Exception:
                logger.exception("conversations.poll_failed")

    async def _load_user(self) -> None:
        try:
            user = await self._gateway.get_current_user()
        except GatewayError as exc:
            logger.warning("dashboard.user_failed", extra={"error": str(exc)})
            return
        if not self._closed:
            self._user = user
            self._notify()

    # -- estado observable ---------------------------------------------------

    @property
    def pagination(self) -> ClientPagination:
        return self._pagination

    @property
    def search(self) -> ClientSearch:
        return self._search

    @property
    def freshness(self) -> ConversationFreshness:
        return self._freshness

    @property
    def state(self) -> DashboardState:
        pagination = self._pagination
        return DashboardState(
            user=self._user,
            conversations=self._freshness.conversations,
            loading_conversations=self._freshness.loading,
            conversations_error=self._freshness.error,
            clients=pagination.accumulated,
            clients_total=pagination.total,
            clients_page=pagination.page,
            clients_page_size=pagination.page_size,
            has_more_clients=pagination.has_more,
            search_term=self._search.term,
            loading_clients=pagination.loading,
            loading_more_clients=pagination.loading_more,
            clients_error=pagination.error,
            selected_conversation_id=self._selected_id,
            messages=self._messages,
            loading_messages=self._loading_messages,
            messages_error=self._messages_error,
        )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Registra `listener`, invocado con la instantánea tras cada cambio."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if self._closed or not self._listeners:
            return
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("dashboard.listener_failed")

    # -- conversaciones ------------------------------------------------------

    async def refresh_conversations(self) -> bool:
        return await self._freshness.refresh()

    async def open_conversation(self, conversation_id: str) -> bool:
        """Carga el historial completo de la conversación en orden cronológico."""
        self._messages_token += 1
        token = self._messages_token
        self._selected_id = conversation_id
        self._messages = ()
        self._messages_error = None
        self._loading_messages = True
        self._notify()

        try:
            result = await self._gateway.query(
                MESSAGES_TABLE,
                filters={"conversation_id": f"eq.{conversation_id}"},
                order="created_at.asc",
            )
            messages = tuple(Message.model_validate(row) for row in result.rows)
        except (GatewayError, ValidationError) as exc:
            logger.warning(
                "messages.fetch_failed",
                extra={"conversation_id": conversation_id, "error": str(exc)},
            )
            if token == self._messages_token:
                self._messages_error = (
                    str(exc) if isinstance(exc, GatewayError) else MESSAGES_ERROR
                )
                self._loading_messages = False
                self._notify()
            return False

        if token != self._messages_token:
            logger.info("messages.fetch_discarded", extra={"conversation_id": conversation_id})
            return False
        self._messages = messages
        self._loading_messages = False
        self._notify()
        return True

    def close_conversation(self) -> None:
        self._messages_token += 1
        self._selected_id = None
        self._messages = ()
        self._messages_error = None
        self._loading_messages = False
        self._notify()

    # -- clientes ------------------------------------------------------------

    async def search_clients(self, term: str) -> bool:
        return await self._search.set_term(term)

    async def clear_search(self) -> bool:
        return await self._search.clear()

    async def load_more_clients(self) -> bool:
        """Avanza a la siguiente página con el término vigente.

        No hace nada si no hay más resultados o ya hay una carga en curso.
        """
        pagination = self._pagination
        if not pagination.has_more or pagination.loading or pagination.loading_more:
            logger.debug(
                "clients.load_more_skipped",
                extra={
                    "has_more": pagination.has_more,
                    "loading": pagination.loading,
                    "loading_more": pagination.loading_more,
                },
            )
            return False
        return await pagination.fetch_page(pagination.page + 1, self._search.term)

    async def add_client(self, record: ClientCreate | Mapping[str, Any]) -> OperationResult:
        """Da de alta un cliente y recarga la primera página sin filtro."""
        try:
            data = (
                record if isinstance(record, ClientCreate) else ClientCreate.model_validate(record)
            )
        except ValidationError as exc:
            logger.info("clients.add_invalid", extra={"error": str(exc)})
            return OperationResult(success=False, error=MISSING_REQUIRED_FIELDS)
        if data.missing_required():
            return OperationResult(success=False, error=MISSING_REQUIRED_FIELDS)

        try:
            user = await self._gateway.get_current_user()
            if user is None:
                raise AuthError(NO_SESSION)
            row = await self._gateway.insert(CLIENTS_TABLE, data.to_row(user_id=user.id))
        except GatewayError as exc:
            logger.exception(
                "clients.add_failed", extra={"order_number": data.order_number}
            )
            return OperationResult(success=False, error=str(exc) or SAVE_CLIENT_ERROR)

        created: Client | None = None
        try:
            created = Client.model_validate(row)
        except ValidationError as exc:
            # El alta ya quedó guardada; solo falta la representación devuelta.
            logger.warning(
                "clients.added_row_invalid",
                extra={"order_number": data.order_number, "error": str(exc)},
            )
        log_event(logger, "clients.added", order_number=data.order_number)
        await self._search.clear()
        return OperationResult(success=True, client=created)
