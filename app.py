import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
load_dotenv()  # Load .env file for local development

from fastapi import FastAPI

from src.config import APPINSIGHTS_CONNECTION_STRING, ENVIRONMENT, PORT
from src.dependencies import get_config, get_dispatcher
from src.exceptions import register_exception_handlers
from src.routers import (
    health_router,
    identity_router,
    notifications_router,
    subscriptions_router,
)
from src.telemetry import configure_telemetry

logger = logging.getLogger(__name__)

# Before the app is built so request instrumentation applies to it
configure_telemetry(APPINSIGHTS_CONNECTION_STRING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load configuration on startup, drain background work on shutdown."""
    config = get_config()
    logger.info(
        f"Starting call media intercept ({ENVIRONMENT}); "
        f"notification URL: {config.notification_url or 'not set'}"
    )
    yield
    dispatcher = get_dispatcher()
    if dispatcher.pending:
        logger.info(f"Waiting for {dispatcher.pending} background task(s) before shutdown")
    await dispatcher.shutdown()


app = FastAPI(title="Call Media Intercept", lifespan=lifespan)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(notifications_router)
app.include_router(subscriptions_router)
app.include_router(identity_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
