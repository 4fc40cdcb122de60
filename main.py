"""
Calendar link service — application entry point.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import register_middleware
from api.routes import router as calendar_router
from config.settings import config
from connectors.encryption import is_encryption_enabled
from connectors.routes import router as link_router

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "urllib3"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app(*, create_schema: bool = True) -> FastAPI:
    app = FastAPI(
        title="Calendar Link Service",
        version="1.0.0",
        description="Google Calendar linking, token refresh and daily event fetch.",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)

    # Routes
    app.include_router(link_router, prefix="/api/v1")
    app.include_router(calendar_router, prefix="/api/v1")

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.on_event("startup")
    async def on_startup():
        if not (config.google_client_id and config.google_client_secret):
            logger.warning("GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET not set — calendar linking disabled")
        is_encryption_enabled()

        if create_schema:
            from database.session import create_tables

            await create_tables()

        logger.info("Application ready to accept requests.")

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
