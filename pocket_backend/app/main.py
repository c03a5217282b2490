# pocket_backend/app/main.py
from __future__ import annotations

import logging
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.admin import router as admin_router
from .api.config import router as config_router
from .api.scores import router as scores_router
from .api.sessions import router as sessions_router
from .api.transcripts import router as transcripts_router
from .api.webhooks import router as webhooks_router
from .config import Settings, load_settings
from .database import Database
from .errors import register_exception_handlers
from .services.app_config_service import AppConfigService
from .services.ingest_queue import IngestQueue
from .services.tavus_client import TavusClient

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    if settings is None:
        # .env: подхватываем максимально рано
        load_dotenv()
        settings = load_settings()
    configure_logging(settings.LOG_LEVEL)

    database = database or Database(settings)

    app = FastAPI(
        title="Pocket Interview API",
        description="Сессии mock-интервью, транскрипты и оценки",
        version="1.0.0",
    )

    app.state.settings = settings
    app.state.database = database
    app.state.tavus_client = TavusClient(settings)
    app.state.ingest_queue = IngestQueue(database, settings)
    app.state.app_config = AppConfigService(database)
    app.state.scoring_provider = None  # OpenAI-клиент создаётся при первом запросе

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(sessions_router,
                       prefix=f"{API_PREFIX}/sessions",    tags=["Sessions"])
    app.include_router(transcripts_router,
                       prefix=f"{API_PREFIX}/transcripts", tags=["Transcripts"])
    app.include_router(scores_router,
                       prefix=f"{API_PREFIX}/scores",      tags=["Scores"])
    app.include_router(webhooks_router,
                       prefix=f"{API_PREFIX}/webhooks",    tags=["Webhooks"])
    app.include_router(admin_router,
                       prefix=f"{API_PREFIX}/admin",       tags=["Admin"])
    app.include_router(config_router,
                       prefix=f"{API_PREFIX}/config",      tags=["Config"])

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "database": "ok" if database.check_connection() else "unavailable",
            "tavus_key_set": bool(settings.TAVUS_API_KEY),
            "openai_key_set": bool(settings.OPENAI_API_KEY),
        }

    logger.info(f"Pocket Interview API configured (db={database.engine.dialect.name})")
    return app


# Опционально: локальный запуск как модуля
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
