"""Flujo de acceso al panel: registro, inicio/cierre de sesión y guardia de rutas."""

from __future__ import annotations

from dataclasses import dataclass

from app.core.logging import get_logger
from app.models.auth import AuthSession
from app.services.supabase import AuthEvent, Gateway, GatewayError

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6
PASSWORDS_DO_NOT_MATCH = "Las contraseñas no coinciden"
PASSWORD_TOO_SHORT = "La contraseña debe tener al menos 6 caracteres"
ACCOUNT_CREATED = "¡Cuenta creada! Revisa tu email para confirmar."
GENERIC_AUTH_ERROR = "Ocurrió un error. Por favor, intenta nuevamente."

PUBLIC_ROUTE = "/"
LOGIN_ROUTE = "/login"
DASHBOARD_ROUTE = "/dashboard"


class AuthValidationError(ValueError):
    """Datos de registro inválidos; se detecta antes de llamar a Supabase."""


@dataclass(slots=True, frozen=True)
class AuthResult:
    success: bool
    error: str | None = None
    message: str | None = None


def validate_sign_up(password: str, confirm_password: str) -> None:
    if password != confirm_password:
        raise AuthValidationError(PASSWORDS_DO_NOT_MATCH)
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthValidationError(PASSWORD_TOO_SHORT)


class AuthController:
    """Mantiene la sesión vigente escuchando los cambios de autenticación."""

    def __init__(self, gateway: Gateway) -> None:
        self._gateway = gateway
        self._session: AuthSession | None = gateway.get_session()
        self._unsubscribe = gateway.on_auth_state_change(self._on_auth_change)

    @property
    def session(self) -> AuthSession | None:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def _on_auth_change(self, event: AuthEvent, session: AuthSession | None) -> None:
        logger.info("auth.state_changed", extra={"auth_event": event})
        self._session = session

    async def sign_in(self, email: str, password: str) -> AuthResult:
        try:
            await self._gateway.sign_in_with_password(email, password)
        except GatewayError as exc:
            logger.warning("auth.sign_in_failed", extra={"error": str(exc)})
            return AuthResult(success=False, error=str(exc) or GENERIC_AUTH_ERROR)
        return AuthResult(success=True)

    async def sign_up(self, email: str, password: str, confirm_password: str) -> AuthResult:
        try:
            validate_sign_up(password, confirm_password)
        except AuthValidationError as exc:
            return AuthResult(success=False, error=str(exc))
        try:
            user = await self._gateway.sign_up(email, password)
        except GatewayError as exc:
            logger.warning("auth.sign_up_failed", extra={"error": str(exc)})
            return AuthResult(success=False, error=str(exc) or GENERIC_AUTH_ERROR)
        if user is None:
            return AuthResult(success=False, error=GENERIC_AUTH_ERROR)
        return AuthResult(success=True, message=ACCOUNT_CREATED)

    async def sign_out(self) -> None:
        await self._gateway.sign_out()

    def resolve_route(self, path: str) -> str:
        """Ruta efectiva para `path` según haya o no sesión."""
        if path == LOGIN_ROUTE and self.is_authenticated:
            return DASHBOARD_ROUTE
        if path == DASHBOARD_ROUTE and not self.is_authenticated:
            return LOGIN_ROUTE
        return path

    def close(self) -> None:
        self._unsubscribe()
