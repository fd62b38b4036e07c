"""Arranca el host del panel con uvicorn (`python -m app`)."""

import uvicorn

from app.core.config import settings
from app.core.logging import get_logger
from app.main import app


def main() -> None:
    log = get_logger("app")
    log.info(f"Servidor ejecutándose en puerto {settings.port}", extra={"port": settings.port})
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
