"""FastAPI application factory."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notification_hub.application.background import BackgroundWorkQueue
from notification_hub.config import get_settings
from notification_hub.infrastructure.database import engine, initialize_database
from notification_hub.infrastructure.notifications import (
    LiveChannelRegistry,
    NotificationPublisher,
)
from notification_hub.interfaces.api.routes import register_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Inicializa la base de datos y la cola de trabajo; libera los recursos al cerrar."""

    initialize_database()
    app.state.notification_publisher.bind_loop(asyncio.get_running_loop())
    app.state.work_queue.start()
    try:
        yield
    finally:
        app.state.work_queue.stop()
        app.state.notification_publisher.bind_loop(None)
        app.state.channel_registry.clear()
        engine.dispose()


def create_app() -> FastAPI:
    """Crea y configura la aplicación principal de FastAPI."""

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Notification Hub", lifespan=lifespan)
    registry = LiveChannelRegistry()
    app.state.channel_registry = registry
    app.state.notification_publisher = NotificationPublisher(registry)
    app.state.work_queue = BackgroundWorkQueue(
        max_attempts=settings.background_max_attempts,
        retry_delay=settings.background_retry_delay_seconds,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.frontend_url.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()
