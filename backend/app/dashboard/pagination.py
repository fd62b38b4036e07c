"""Paginación acumulativa del registro de clientes."""

from __future__ import annotations

from collections.abc import Callable

from pydantic import ValidationError

from app.core.config import settings
from app.core.logging import get_logger
from app.models.client import (
    CLIENTS_TABLE,
    NAME_COLUMN,
    ORDER_COLUMN,
    OWNER_COLUMN,
    Client,
)
from app.services.supabase import AuthError, Gateway, GatewayError

logger = get_logger("app.dashboard.clients")

FETCH_ERROR = "Error al cargar los clientes"
NO_SESSION = "No hay una sesión activa"


def ilike_pattern(term: str) -> str | None:
    """Patrón PostgREST `ilike` para buscar `term` como subcadena.

    Se descartan comodines y separadores de PostgREST para que el término se
    trate como texto literal.
    """
    cleaned = " ".join(term.strip().split())
    sanitized = "".join(ch for ch in cleaned if ch.isalnum() or ch in " .'-@+").strip()
    if not sanitized:
        return None
    return f"ilike.*{sanitized}*"


class ClientPagination:
    """Ventana de páginas de clientes filtradas por un término de búsqueda.

    La página 1 reemplaza lo acumulado y las siguientes se anexan. El estado
    solo cambia tras una respuesta exitosa; un fallo deja `accumulated`,
    `total` y `page` intactos.
    """

    def __init__(
        self,
        gateway: Gateway,
        *,
        page_size: int | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._gateway = gateway
        self.page_size = page_size or settings.clients_page_size
        if self.page_size < 1:
            raise ValueError("page_size debe ser mayor que cero")
        self._on_change = on_change
        self.page = 1
        self.term = ""
        self.accumulated: tuple[Client, ...] = ()
        self.total = 0
        self.loading = False
        self.loading_more = False
        self.error: str | None = None
        # Cambia con cada reset; respuestas de una generación anterior se descartan.
        self._generation = 0
        self._closed = False

    @property
    def has_more(self) -> bool:
        return self.total > self.page * self.page_size

    def reset(self, term: str) -> None:
        self._generation += 1
        self.page = 1
        self.term = term
        self.accumulated = ()
        self.total = 0
        self.loading_more = False
        self.error = None
        self._changed()

    def close(self) -> None:
        self._closed = True

    async def fetch_page(self, page: int, term: str | None = None) -> bool:
        """Consulta la página `page` (base 1); retorna True si se aplicó."""
        if page < 1:
            raise ValueError(f"Página inválida: {page}")
        term = self.term if term is None else term
        generation = self._generation
        if page == 1:
            self.loading = True
        else:
            self.loading_more = True
        self._changed()

        try:
            rows, total = await self._query(page, term)
        except (GatewayError, ValidationError) as exc:
            current = self._is_current(generation)
            logger.warning(
                "clients.fetch_failed",
                extra={"page": page, "term": term, "error": str(exc), "stale": not current},
            )
            if current:
                self.error = str(exc) if isinstance(exc, GatewayError) else FETCH_ERROR
                self._finish(page)
            return False

        if not self._is_current(generation):
            logger.info("clients.fetch_discarded", extra={"page": page, "term": term})
            return False

        if page == 1:
            self.accumulated = tuple(rows)
        else:
            self.accumulated = self.accumulated + tuple(rows)
        self.total = total
        self.page = page
        self.term = term
        self.error = None
        logger.debug(
            "clients.page_loaded",
            extra={"page": page, "rows": len(rows), "total": total, "has_more": self.has_more},
        )
        self._finish(page)
        return True

    async def _query(self, page: int, term: str) -> tuple[list[Client], int]:
        user = await self._gateway.get_current_user()
        if user is None:
            raise AuthError(NO_SESSION)
        filters = {OWNER_COLUMN: f"eq.{user.id}"}
        pattern = ilike_pattern(term)
        if pattern:
            filters[NAME_COLUMN] = pattern
        start = (page - 1) * self.page_size
        result = await self._gateway.query(
            CLIENTS_TABLE,
            filters=filters,
            order=f"{ORDER_COLUMN}.desc",
            range=(start, start + self.page_size - 1),
            count=True,
        )
        rows = [Client.model_validate(row) for row in result.rows]
        return rows, result.total or 0

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def _finish(self, page: int) -> None:
        if page == 1:
            self.loading = False
        else:
            self.loading_more = False
        self._changed()

    def _changed(self) -> None:
        if self._on_change is not None and not self._closed:
            self._on_change()
