"""Gateway hacia Supabase: PostgREST (`/rest/v1`) y autenticación (`/auth/v1`).

Todas las lecturas y escrituras de datos del panel pasan por aquí. Las llamadas
REST viajan con el JWT del usuario cuando hay sesión, de modo que las políticas
RLS de Supabase restringen los resultados a su propietario.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, TypeVar

import httpx
from pydantic import ValidationError

from app.core.config import settings
from app.core.logging import get_logger
from app.models.auth import AuthSession, UserIdentity

logger = get_logger(__name__)

AuthEvent = Literal["SIGNED_IN", "SIGNED_OUT"]
AuthListener = Callable[[AuthEvent, AuthSession | None], None]
AuthModelT = TypeVar("AuthModelT", AuthSession, UserIdentity)


class GatewayError(RuntimeError):
    """Fallo de red, de Supabase o de configuración al hablar con el gateway."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(GatewayError):
    """Fallo del proveedor de identidad o ausencia de sesión."""


@dataclass(slots=True)
class QueryResult:
    """Filas de una consulta y, si se pidió, el total exacto reportado."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    total: int | None = None


class Gateway(Protocol):
    """Superficie del backend-as-a-service que consume el panel."""

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
    ) -> QueryResult: ...

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]: ...

    async def get_current_user(self) -> UserIdentity | None: ...

    def get_session(self) -> AuthSession | None: ...

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]: ...

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession: ...

    async def sign_up(self, email: str, password: str) -> UserIdentity | None: ...

    async def sign_out(self) -> None: ...


def content_range_total(header: str | None) -> int | None:
    """Extrae el total de un header `Content-Range` (`0-9/25`, `*/0`)."""
    if not header:
        return None
    try:
        _range, total = header.split("/")
    except ValueError:
        return None
    total = total.strip()
    if not total or total == "*":
        return None
    try:
        return int(total)
    except ValueError:
        return None


def error_detail(response: httpx.Response, fallback: str) -> str:
    """Mensaje legible a partir de una respuesta de error de Supabase."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    detail: str | None = None
    if isinstance(payload, dict):
        detail = (
            payload.get("message")
            or payload.get("msg")
            or payload.get("error_description")
            or payload.get("error")
            or payload.get("hint")
        )
    elif isinstance(payload, str):
        detail = payload
    return str(detail) if detail else (response.text.strip() or fallback)


class SupabaseGateway:
    """Cliente asíncrono mínimo de Supabase basado en httpx."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        anon_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        base_url = base_url or settings.supabase_url
        if not base_url:
            raise GatewayError("Supabase URL no configurada")
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key or settings.supabase_anon
        self._timeout = timeout or settings.supabase_timeout_seconds
        self._transport = transport
        self._session: AuthSession | None = None
        self._listeners: list[AuthListener] = []

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
        params: dict[str, str] = {"select": select}
        params.update(filters or {})
        if order:
            params["order"] = order
        if range is not None:
            start, end = range
            if start < 0 or end < start:
                raise ValueError(f"Rango inválido: {range!r}")
            params["offset"] = str(start)
            params["limit"] = str(end - start + 1)
        elif limit is not None:
            params["limit"] = str(limit)

        response = await self._request(
            "GET",
            f"/rest/v1/{table}",
            params=params,
            prefer="count=exact" if count else None,
        )
        rows = self._json_list(response)
        total = content_range_total(response.headers.get("content-range")) if count else None
        return QueryResult(rows=rows, total=total)

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=[record],
            prefer="return=representation",
        )
        rows = self._json_list(response)
        if not rows:
            raise GatewayError(f"Supabase no devolvió el registro creado en {table}")
        return rows[0]

    # -- autenticación -------------------------------------------------------

    def get_session(self) -> AuthSession | None:
        return self._session

    async def get_current_user(self) -> UserIdentity | None:
        """Valida el token vigente contra Supabase; `None` si no hay sesión."""
        if self._session is None:
            return None
        response = await self._request("GET", "/auth/v1/user", auth=True)
        payload = self._json_object(response)
        if not payload.get("id"):
            raise AuthError("Respuesta inesperada de /auth/v1/user")
        return self._auth_model(UserIdentity, payload)

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        """Registra un listener de inicio/cierre de sesión; retorna la baja."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            auth=True,
        )
        session = self._auth_model(AuthSession, self._json_object(response))
        self._set_session(session, "SIGNED_IN")
        logger.info("auth.signed_in", extra={"user_id": session.user.id})
        return session

    async def sign_up(self, email: str, password: str) -> UserIdentity | None:
        """Crea la cuenta; con confirmación por email no se emite sesión."""
        response = await self._request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password},
            auth=True,
        )
        payload = self._json_object(response)
        if payload.get("access_token"):
            session = self._auth_model(AuthSession, payload)
            self._set_session(session, "SIGNED_IN")
            return session.user
        user = payload.get("user") if isinstance(payload.get("user"), dict) else payload
        if not user.get("id"):
            return None
        return self._auth_model(UserIdentity, user)

    async def sign_out(self) -> None:
        if self._session is None:
            return
        try:
            await self._request("POST", "/auth/v1/logout", auth=True)
        except GatewayError as exc:
            # La sesión local se descarta aunque Supabase no confirme la revocación.
            logger.warning("auth.sign_out_failed", extra={"error": str(exc)})
        finally:
            self._set_session(None, "SIGNED_OUT")

    def _set_session(self, session: AuthSession | None, event: AuthEvent) -> None:
        self._session = session
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception("auth.listener_failed", extra={"auth_event": event})

    # -- transporte ----------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
        auth: bool = False,
    ) -> httpx.Response:
        url = f"{self._base_url}{path}"
        headers = self._headers(prefer, has_body=json is not None)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=headers,
                )
        except httpx.RequestError as exc:
            logger.exception("supabase.request_failed", extra={"path": path, "error": str(exc)})
            error_cls = AuthError if auth else GatewayError
            raise error_cls(f"Error al conectar a Supabase: {exc}") from exc
        if response.status_code >= 400:
            logger.error(
                "supabase.response_error",
                extra={"path": path, "status": response.status_code, "body": response.text},
            )
            detail = error_detail(response, f"Supabase respondió {response.status_code}")
            error_cls = AuthError if auth else GatewayError
            raise error_cls(detail, status_code=response.status_code)
        return response

    def _headers(self, prefer: str | None, *, has_body: bool) -> dict[str, str]:
        if not self._anon_key:
            raise GatewayError("Falta SUPABASE_ANON para realizar la operación")
        headers: dict[str, str] = {
            "Accept": "application/json",
            "apikey": self._anon_key,
        }
        if prefer:
            headers["Prefer"] = prefer
        if has_body:
            headers["Content-Type"] = "application/json"
        token = self._session.access_token if self._session else self._anon_key
        headers["Authorization"] = f"Bearer {token}"
        return headers

    @staticmethod
    def _json_object(response: httpx.Response) -> dict[str, Any]:
        """Cuerpo JSON de una respuesta de `/auth/v1`; debe ser un objeto."""
        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthError(
                "Respuesta de autenticación no es JSON", status_code=response.status_code
            ) from exc
        if not isinstance(payload, dict):
            raise AuthError(
                f"Respuesta inesperada de {response.request.url.path}",
                status_code=response.status_code,
            )
        return payload

    @staticmethod
    def _auth_model(model: type[AuthModelT], payload: dict[str, Any]) -> AuthModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "auth.invalid_payload",
                extra={"model": model.__name__, "error": str(exc)},
            )
            raise AuthError("Respuesta inesperada del servicio de autenticación") from exc

    @staticmethod
    def _json_list(response: httpx.Response) -> list[dict[str, Any]]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise GatewayError("Respuesta de Supabase no es JSON") from exc
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise GatewayError("Respuesta inesperada de Supabase")
        return [row for row in payload if isinstance(row, dict)]
