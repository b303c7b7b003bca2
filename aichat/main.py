"""
AI Chat Oracle - Main Application

Builds the runtime (view store, local log, timer feed, oracle loop) in the
lifespan and exposes the chat, queue and diagnostics API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from aichat.api import create_api_router
from aichat.config_validator import validate_config
from aichat.exceptions import (
    AiChatException,
    aichat_exception_handler,
    generic_exception_handler,
)
from aichat.logging_config import setup_logging
from aichat.runtime import OracleRuntime
from aichat.settings import settings

# Configure structured logging (JSON in production, colored in development)
setup_logging()
logger = logging.getLogger(__name__)


# ------------------------------------------------------------------------------
# Lifespan event handler
# ------------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the runtime on startup and stop its background tasks on shutdown."""
    logger.info("Starting application...")
    validate_config()

    runtime = getattr(app.state, "runtime", None)
    if runtime is None:
        runtime = OracleRuntime(settings)
        app.state.runtime = runtime
    await runtime.start()

    yield

    logger.info("Initiating graceful shutdown...")
    await runtime.stop()
    logger.info("Graceful shutdown complete")


# ------------------------------------------------------------------------------
# FastAPI app setup
# ------------------------------------------------------------------------------

app = FastAPI(
    title=settings.api.title,
    description=settings.api.description,
    version=settings.api.version,
    lifespan=lifespan,
)

# ------------------------------------------------------------------------------
# Exception Handlers
# ------------------------------------------------------------------------------

app.add_exception_handler(AiChatException, aichat_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# ------------------------------------------------------------------------------
# Prometheus metrics
# ------------------------------------------------------------------------------

Instrumentator().instrument(app).expose(app)

# ------------------------------------------------------------------------------
# Routes
# ------------------------------------------------------------------------------

app.include_router(create_api_router())

logger.info(f"Application started: {settings.api.title} v{settings.api.version}")
logger.info(f"Oracle model: {settings.oracle.model} @ {settings.oracle.endpoint}")
logger.info(f"Oracle endpoint key: {'✓ Set' if settings.oracle.api_key else '✗ Not Set'}")
