"""Endpoint de salud mínimo para validaciones rápidas."""

from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Estado del servicio")
def healthcheck() -> dict[str, str]:
    """Indica que el host está vivo junto con la hora UTC del servidor."""
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return {"status": "OK", "timestamp": timestamp.replace("+00:00", "Z")}
