"""Configuración central basada en variables de entorno."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Valores globales leídos desde `.env` o el entorno."""

    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("WAM_ENVIRONMENT", "NODE_ENV"),
    )
    port: int = Field(default=5000, validation_alias=AliasChoices("WAM_PORT", "PORT"))
    log_level: str | None = Field(
        default=None,
        description="Nivel de logging global (ej. debug, info, warning). Cuando no se define, usa un valor por ambiente.",
    )
    request_log_level: str = Field(
        default="info",
        description=(
            "Nivel mínimo para registrar solicitudes en middleware. "
            "Valores más altos (warning/error) reducen registros de peticiones exitosas."
        ),
    )
    request_log_skip_prefixes: tuple[str, ...] = Field(
        default=("/static", "/favicon", "/manifest.json", "/robots.txt"),
        description=(
            "Prefijos de ruta (assets del build) para los que no se registran "
            "eventos request.started/completed."
        ),
    )
    log_file_path: str | None = None
    supabase_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("WAM_SUPABASE_URL", "SUPABASE_URL", "REACT_APP_SUPABASE_URL"),
    )
    # Acepta varias variantes comunes del anon key para robustez
    supabase_anon: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "WAM_SUPABASE_ANON",
            "SUPABASE_ANON_KEY",
            "SUPABASE_ANON",
            "REACT_APP_SUPABASE_ANON_KEY",
        ),
    )
    supabase_timeout_seconds: float = Field(default=10.0, gt=0)
    clients_page_size: int = Field(
        default=10,
        ge=1,
        description="Número de clientes por página en el registro.",
    )
    conversations_refresh_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Intervalo para refrescar conversaciones y detectar nuevas respuestas.",
    )
    client_build_dir: str = Field(
        default="client/build",
        description="Directorio con el build del panel que se sirve en producción.",
    )
    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="WAM_", extra="allow", populate_by_name=True
    )

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"


settings = Settings()
