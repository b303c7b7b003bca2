"""
API routes for the chat oracle.
"""

from aichat.api.routes import chat, diag, health, queue

__all__ = ["chat", "diag", "health", "queue"]
