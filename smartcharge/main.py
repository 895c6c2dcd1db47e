from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database

from smartcharge.api import router as api_router
from smartcharge.core.config import Settings
from smartcharge.core.errors import install_error_handlers
from smartcharge.database.database import create_client, ensure_indexes

logger = logging.getLogger(__name__)

NOISY_LOGGERS = (
    "httpx",
    "pymongo",
    "uvicorn",
    "uvicorn.error",
)


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(level=level)
    logging.getLogger().setLevel(level)

    # Reduce noisy third‑party loggers
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level)

    # Access log (HTTP request per line) can leak info; disable by default
    if settings.access_log_disabled:
        al = logging.getLogger("uvicorn.access")
        al.setLevel(logging.CRITICAL)
        al.propagate = False
        al.disabled = True
        al.handlers = []


def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None) -> FastAPI:
    """Construye la aplicación.

    Si no se pasa ``db`` el cliente Mongo se crea al arrancar y se cierra al
    parar; los handlers lo reciben siempre por dependencia desde ``app.state``.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = None
        if app.state.db is None:
            client = create_client(settings)
            app.state.db = client[settings.db_name]
        ensure_indexes(app.state.db)
        if settings.is_production and not settings.iot_api_key:
            logger.warning("IOT_API_KEY no configurada: se rechazarán todos los dispositivos")
        try:
            yield
        finally:
            if client is not None:
                client.close()

    app = FastAPI(title="SmartCharge API", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "x-api-key"],
        max_age=86400,
    )
    install_error_handlers(app)
    app.include_router(api_router, prefix="/api")

    @app.get("/health", tags=["health"])
    def health():
        return {"ok": True}

    return app


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(create_app(), host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
