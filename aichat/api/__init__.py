"""
API layer for the chat oracle.

Contains FastAPI routes and HTTP-related functionality.
"""

from fastapi import APIRouter

from aichat.api.routes import chat, diag, health, queue


def create_api_router() -> APIRouter:
    """Create the main API router with all sub-routers included."""
    api_router = APIRouter()

    api_router.include_router(health.router, tags=["Health"])
    api_router.include_router(chat.router, tags=["Chat"])
    api_router.include_router(queue.router, prefix="/queue", tags=["Queue"])
    api_router.include_router(diag.router, prefix="/diag", tags=["Diagnostics"])

    return api_router


__all__ = ["create_api_router"]
