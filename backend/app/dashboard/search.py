"""Término de búsqueda activo del registro de clientes."""

from __future__ import annotations

from app.core.logging import get_logger

from .pagination import ClientPagination

logger = get_logger("app.dashboard.clients")


class ClientSearch:
    """Cada término enviado reinicia la paginación y vuelve a la página 1."""

    def __init__(self, pagination: ClientPagination) -> None:
        self._pagination = pagination
        self._term = ""

    @property
    def term(self) -> str:
        return self._term

    async def set_term(self, term: str) -> bool:
        self._term = (term or "").strip()
        logger.debug("clients.search", extra={"term": self._term})
        self._pagination.reset(self._term)
        return await self._pagination.fetch_page(1, self._term)

    async def clear(self) -> bool:
        return await self.set_term("")
