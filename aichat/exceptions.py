from fastapi import Request
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


class AiChatException(Exception):
    """Base exception for the chat oracle"""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class AdmissionRejected(AiChatException):
    """Chat message not queued (rate limit, empty prompt, not selected)"""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Admission rejected: {reason}", status_code=429)


class ReplicationLag(AiChatException):
    """Queue entry not yet visible on this replica"""

    def __init__(self, seq: int):
        self.seq = seq
        super().__init__(f"Entry {seq} not yet visible", status_code=503)


class EndpointFailure(AiChatException):
    """Completion endpoint returned an error or could not be reached"""

    def __init__(self, message: str, status: int = None):
        self.status = status
        super().__init__(message, status_code=502)


class TransportSizeOverflow(AiChatException):
    """Chat message exceeds the transport size limit"""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"Message of {size} bytes exceeds limit of {limit} bytes",
            status_code=413,
        )


class CommitFailure(AiChatException):
    """Result or control event could not be appended to the log"""

    def __init__(self, message: str):
        super().__init__(message, status_code=503)


class StuckInflight(AiChatException):
    """Sequence number stayed inflight past its TTL too many times"""

    def __init__(self, seq: int, retries: int):
        self.seq = seq
        self.retries = retries
        super().__init__(
            f"Seq {seq} stuck inflight after {retries} retries", status_code=500
        )


class NotOraclePeer(AiChatException):
    """Operation only allowed on the writable administrator replica"""

    def __init__(self, message: str = "Not the oracle peer (admin + writable)"):
        super().__init__(message, status_code=403)


async def aichat_exception_handler(request: Request, exc: AiChatException):
    """Handle custom chat oracle exceptions"""
    logger.error(
        f"AiChat Exception: {exc.message}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "type": exc.__class__.__name__,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.exception(
        f"Unexpected error: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    # Don't leak implementation details
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An internal error occurred. Please try again later.",
        },
    )
