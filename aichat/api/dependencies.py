"""
API dependencies for the chat oracle.

Contains FastAPI dependencies for authentication and the runtime.
"""

import logging

from fastapi import Header, HTTPException, Request, status

from aichat.runtime import OracleRuntime
from aichat.settings import settings

logger = logging.getLogger(__name__)


def check_api_key(x_api_key: str = Header(...)) -> str:
    """Verify the API key from the X-API-Key header.

    Raises:
        HTTPException: If API key is invalid
    """
    if x_api_key != settings.api_key:
        logger.warning("Rejected request with invalid API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key"
        )
    return x_api_key


def get_runtime(request: Request) -> OracleRuntime:
    """Runtime created by the application lifespan."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Runtime not started",
        )
    return runtime


__all__ = ["check_api_key", "get_runtime"]
