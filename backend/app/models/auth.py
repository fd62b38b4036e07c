"""Identidad y sesión del proveedor de autenticación de Supabase."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class UserIdentity(BaseModel):
    """Usuario autenticado; `id` es el dueño de conversaciones y clientes."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    email: str | None = None
    user_metadata: dict[str, Any] | None = None


class AuthSession(BaseModel):
    """Sesión emitida por `/auth/v1/token`."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_in: int | None = None
    user: UserIdentity
