"""Fixtures compartidas para las pruebas."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app
from app.models.auth import AuthSession, UserIdentity
from app.services.supabase import AuthListener, GatewayError, QueryResult

OWNER_ID = "user-1"
BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

QueryHook = Callable[[str, dict[str, str]], Awaitable[None]]


def iso(minutes: int) -> str:
    return (BASE_TIME + timedelta(minutes=minutes)).isoformat()


def make_client_row(index: int, *, name: str | None = None, owner: str = OWNER_ID) -> dict[str, Any]:
    return {
        "Nº ORDEN": f"ORD-{index:03d}",
        "NOMBRE COMPLETO": name or f"Cliente {index:03d}",
        "CONTRATO": f"C-{index}",
        "SERVICIO": "Fibra",
        "TELEFONO": f"600000{index:03d}",
        "ESTADO": "ACTIVO",
        "ESTADO MENSAJE": "ENVIADO",
        "FECHA": iso(index),
        "user_id": owner,
    }


class FakeGateway:
    """Gateway en memoria con la semántica de filtros de PostgREST usada por el panel."""

    def __init__(self, user: UserIdentity | None = None) -> None:
        self.user = user if user is not None else UserIdentity(id=OWNER_ID, email="ana@example.com")
        self.tables: dict[str, list[dict[str, Any]]] = {
            "clientes": [],
            "conversations": [],
            "messages": [],
        }
        self.calls: list[tuple[str, str]] = []
        self.fail_tables: set[str] = set()
        self.fail_insert = False
        self.query_hook: QueryHook | None = None
        self._listeners: list[AuthListener] = []
        self._session: AuthSession | None = None
        self._clock = 10_000

    # -- datos ---------------------------------------------------------------

    async def query(
        self,
        table: str,
        *,
        select: str = "*",
        filters: dict[str, str] | None = None,
        order: str | None = None,
        range: tuple[int, int] | None = None,
        limit: int | None = None,
        count: bool = False,
    ) -> QueryResult:
        self.calls.append(("query", table))
        filters = dict(filters or {})
        if table in self.fail_tables:
            raise GatewayError(f"fallo simulado en {table}")
        rows = [dict(row) for row in self.tables[table] if self._matches(row, filters)]
        if order:
            column, _, direction = order.partition(".")
            rows.sort(key=lambda row: str(row.get(column) or ""), reverse=direction == "desc")
        total = len(rows) if count else None
        if range is not None:
            rows = rows[range[0] : range[1] + 1]
        elif limit is not None:
            rows = rows[:limit]
        if self.query_hook is not None:
            await self.query_hook(table, filters)
        return QueryResult(rows=rows, total=total)

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("insert", table))
        if self.fail_insert:
            raise GatewayError('duplicate key value violates unique constraint "clientes_pkey"')
        row = dict(record)
        if table == "clientes":
            self._clock += 1
            row.setdefault("FECHA", iso(self._clock))
            row.setdefault("ESTADO MENSAJE", "PENDIENTE")
        self.tables[table].append(row)
        return row

    @staticmethod
    def _matches(row: dict[str, Any], filters: dict[str, str]) -> bool:
        for column, expression in filters.items():
            operator, _, value = expression.partition(".")
            current = row.get(column)
            if operator == "eq" and str(current) != value:
                return False
            if operator == "ilike":
                needle = value.strip("*").lower()
                if needle not in str(current or "").lower():
                    return False
        return True

    # -- autenticación -------------------------------------------------------

    async def get_current_user(self) -> UserIdentity | None:
        self.calls.append(("get_current_user", "auth"))
        return self.user

    def get_session(self) -> AuthSession | None:
        return self._session

    def on_auth_state_change(self, callback: AuthListener):
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        if password != "secreto1":
            raise GatewayError("Invalid login credentials", status_code=400)
        self._session = AuthSession(
            access_token="jwt", user=UserIdentity(id=OWNER_ID, email=email)
        )
        for listener in list(self._listeners):
            listener("SIGNED_IN", self._session)
        return self._session

    async def sign_up(self, email: str, password: str) -> UserIdentity | None:
        return UserIdentity(id="user-new", email=email)

    async def sign_out(self) -> None:
        self._session = None
        for listener in list(self._listeners):
            listener("SIGNED_OUT", None)

    # -- helpers de pruebas --------------------------------------------------

    def gateway_calls(self, kind: str | None = None) -> list[tuple[str, str]]:
        return [call for call in self.calls if kind is None or call[0] == kind]

    def seed_clients(self, count: int, *, owner: str = OWNER_ID) -> None:
        for index in range(1, count + 1):
            self.tables["clientes"].append(make_client_row(index, owner=owner))


@pytest.fixture(name="async_client")
async def fixture_async_client() -> AsyncClient:
    """Retorna un cliente asíncrono contra la app principal utilizando ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture(name="gateway")
def fixture_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture(name="client_row")
def fixture_client_row() -> Callable[..., dict[str, Any]]:
    """Fábrica de filas de `clientes` con el mismo formato que `seed_clients`."""
    return make_client_row
