"""Modelos del registro de clientes (tabla `clientes`).

Las columnas de la tabla conservan los nombres en mayúsculas que usa el equipo
comercial; los modelos las exponen con nombres Python mediante alias.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

CLIENTS_TABLE = "clientes"
NAME_COLUMN = "NOMBRE COMPLETO"
ORDER_COLUMN = "FECHA"
OWNER_COLUMN = "user_id"

PENDING_CONTACT_STATUS = "Pendiente de contactar con"

MISSING_REQUIRED_FIELDS = "El número de orden y el nombre son obligatorios"


class Client(BaseModel):
    """Registro de cliente tal como lo devuelve Supabase."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    order_number: str = Field(alias="Nº ORDEN")
    full_name: str | None = Field(default=None, alias=NAME_COLUMN)
    contract: str | None = Field(default=None, alias="CONTRATO")
    service: str | None = Field(default=None, alias="SERVICIO")
    phone: str | None = Field(default=None, alias="TELEFONO")
    landline: str | None = Field(default=None, alias="TELEFONO FIJO")
    address: str | None = Field(default=None, alias="DIRECCION")
    postal_code: str | None = Field(default=None, alias="CODIGO POSTAL")
    municipality: str | None = Field(default=None, alias="MUNICIPIO")
    status: str | None = Field(default=None, alias="ESTADO")
    message_status: str | None = Field(default=None, alias="ESTADO MENSAJE")
    created_at: datetime | None = Field(default=None, alias=ORDER_COLUMN)
    template_sent_at: datetime | None = Field(default=None, alias="FECHA ENVIO PLANTILLA")
    user_id: str | None = None

    @field_validator(
        "order_number",
        "contract",
        "service",
        "phone",
        "landline",
        "postal_code",
        mode="before",
    )
    @classmethod
    def _numbers_as_text(cls, value: Any) -> Any:
        # Supabase puede devolver columnas numéricas para órdenes y teléfonos.
        if isinstance(value, int):
            return str(value)
        return value


class ClientCreate(BaseModel):
    """Datos capturados en el alta de un cliente.

    No incluye `ESTADO`: el alta siempre arranca en `PENDING_CONTACT_STATUS`.
    `FECHA`, `FECHA ENVIO PLANTILLA` y `ESTADO MENSAJE` los genera Supabase.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)

    order_number: str = Field(default="", alias="Nº ORDEN")
    full_name: str = Field(default="", alias=NAME_COLUMN)
    contract: str = Field(default="", alias="CONTRATO")
    service: str = Field(default="", alias="SERVICIO")
    phone: str = Field(default="", alias="TELEFONO")
    landline: str = Field(default="", alias="TELEFONO FIJO")
    address: str = Field(default="", alias="DIRECCION")
    postal_code: str = Field(default="", alias="CODIGO POSTAL")
    municipality: str = Field(default="", alias="MUNICIPIO")

    @field_validator("*", mode="before")
    @classmethod
    def _none_and_numbers(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, int):
            return str(value)
        return value

    def missing_required(self) -> bool:
        return not self.order_number or not self.full_name

    def to_row(self, *, user_id: str) -> dict[str, Any]:
        """Fila lista para insertar, etiquetada con el propietario."""
        row = self.model_dump(by_alias=True)
        row["ESTADO"] = PENDING_CONTACT_STATUS
        row[OWNER_COLUMN] = user_id
        return row
