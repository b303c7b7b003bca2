"""
Chat endpoints: append messages and nicknames to the local log.
"""

import logging

from fastapi import APIRouter, Depends

from aichat.api.dependencies import check_api_key, get_runtime
from aichat.api.models import AppendResponse, ChatPostRequest, NickRequest
from aichat.contract.models import chat_message, nick_event
from aichat.contract.state_machine import ApplyResult
from aichat.runtime import OracleRuntime

router = APIRouter()
logger = logging.getLogger(__name__)


def _response(result: ApplyResult) -> AppendResponse:
    return AppendResponse(
        action=result.action,
        reason=result.reason,
        seq=result.seq,
        type=result.queue_type.value if result.queue_type else None,
    )


@router.post(
    "/chat",
    response_model=AppendResponse,
    summary="Post a chat message",
    description="""
    Append a chat message to the log. Messages mentioning `@ai` (or picked
    by random participation) are queued for the oracle.

    Rejections (rate limits, empty prompt) are not errors: the message is
    still part of the chat, it is only not queued.

    **Example Request:**
    ```json
    {"address": "aaaa...", "msg": "@ai price?"}
    ```

    **Example Response:**
    ```json
    {"action": "enqueued", "seq": 1, "type": "tagged"}
    ```
    """,
)
async def post_chat(
    request: ChatPostRequest,
    runtime: OracleRuntime = Depends(get_runtime),
    api_key: str = Depends(check_api_key),
) -> AppendResponse:
    result = runtime.ledger.append_sync(
        chat_message(request.address, request.msg, request.attachments)
    )
    return _response(result)


@router.post("/chat/nick", response_model=AppendResponse)
async def set_nick(
    request: NickRequest,
    runtime: OracleRuntime = Depends(get_runtime),
    api_key: str = Depends(check_api_key),
) -> AppendResponse:
    """Set the display nickname used when the oracle tags this address."""
    result = runtime.ledger.append_sync(nick_event(request.address, request.nick))
    return _response(result)
