"""
Read-only views of the work queue.
"""

from fastapi import APIRouter, Depends, HTTPException, Path, status

from aichat.api.dependencies import get_runtime
from aichat.api.models import QueueEntryResponse, QueueStatus
from aichat.contract import keys
from aichat.runtime import OracleRuntime

router = APIRouter()


def _int(value) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


@router.get("", response_model=QueueStatus)
async def queue_status(runtime: OracleRuntime = Depends(get_runtime)) -> QueueStatus:
    """Pointers, backlog and pending positions."""
    ledger = runtime.ledger
    message_seq = _int(ledger.get(keys.MESSAGE_SEQ))
    process_seq = _int(ledger.get(keys.PROCESS_SEQ))
    pending = sorted(
        int(key[len(keys.PENDING_PREFIX):])
        for key in ledger.keys(keys.PENDING_PREFIX)
        if key[len(keys.PENDING_PREFIX):].isdigit()
    )
    summary = ledger.get(keys.SUMMARY)
    return QueueStatus(
        message_seq=message_seq,
        process_seq=process_seq,
        backlog=message_seq - process_seq,
        pending=pending,
        summary=summary if isinstance(summary, str) else "",
    )


def _entry(runtime: OracleRuntime, key: str, seq: int) -> QueueEntryResponse:
    entry = runtime.ledger.get(key)
    if not isinstance(entry, dict):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"No entry at {key}"
        )
    return QueueEntryResponse(seq=seq, entry=entry)


@router.get("/pending/{seq}", response_model=QueueEntryResponse)
async def pending_entry(
    seq: int = Path(..., ge=1), runtime: OracleRuntime = Depends(get_runtime)
) -> QueueEntryResponse:
    return _entry(runtime, keys.pending_key(seq), seq)


@router.get("/done/{seq}", response_model=QueueEntryResponse)
async def done_entry(
    seq: int = Path(..., ge=1), runtime: OracleRuntime = Depends(get_runtime)
) -> QueueEntryResponse:
    return _entry(runtime, keys.done_key(seq), seq)
