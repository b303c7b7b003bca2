"""
Diagnostics endpoints for operators.

All routes require the X-API-Key header. ``ai_last``, ``ping`` and
``fast_forward`` only work on the oracle peer (admin + writable).
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from aichat import diagnostics
from aichat.api.dependencies import check_api_key, get_runtime
from aichat.runtime import OracleRuntime

router = APIRouter(dependencies=[Depends(check_api_key)])


@router.get("/state")
async def diag_state(runtime: OracleRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    """Admin, clock, pointers and next pending entry."""
    return diagnostics.state_snapshot(runtime)


@router.get("/rate")
async def diag_rate(
    user: Optional[str] = Query(default=None, max_length=128),
    runtime: OracleRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    """Rate-limit counters of a user (defaults to this node)."""
    return diagnostics.rate_snapshot(runtime, user)


@router.get("/inflight")
async def diag_inflight(runtime: OracleRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    return diagnostics.inflight_snapshot(runtime)


@router.get("/ai_last")
async def diag_ai_last(runtime: OracleRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    """Last completion calls and the last committed result."""
    return diagnostics.ai_last(runtime)


@router.post("/ping")
async def diag_ping(runtime: OracleRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    return await diagnostics.ping(runtime)


@router.post("/fast_forward")
async def diag_fast_forward(
    seq: Optional[int] = Query(default=None, ge=0),
    runtime: OracleRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    """Advance process_seq to unblock a stuck position (defaults to message_seq)."""
    return await diagnostics.request_fast_forward(runtime, seq)
