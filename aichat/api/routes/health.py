"""
Health check endpoints for the chat oracle.
"""

import logging
import socket
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from aichat.api.dependencies import get_runtime
from aichat.runtime import OracleRuntime
from aichat.settings import settings

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/health",
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="""
    Quick health check returning node status and oracle configuration.

    **Example Response:**
    ```json
    {
      "status": "healthy",
      "model": "gpt-oss-120b-fp16",
      "oracle_peer": true,
      "socket": "hostname"
    }
    ```
    """,
)
async def health(runtime: OracleRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    """Returns basic node health status."""
    return {
        "status": "healthy",
        "model": settings.oracle.model,
        "oracle_peer": runtime.is_oracle_peer,
        "features": runtime.features,
        "socket": socket.gethostname(),
    }


@router.get("/health/ready", status_code=status.HTTP_200_OK)
async def readiness_check(runtime: OracleRuntime = Depends(get_runtime)) -> Dict[str, str]:
    """Kubernetes-style readiness probe"""
    try:
        if runtime.store.health_check():
            return {"status": "ready"}
    except Exception as e:
        logger.warning(f"View store health check failed: {e}")
    return {"status": "not_ready"}


@router.get("/health/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> Dict[str, str]:
    """Kubernetes-style liveness probe"""
    return {"status": "alive"}
