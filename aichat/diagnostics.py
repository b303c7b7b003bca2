"""
Operator diagnostics: snapshots of the queue, rate counters, inflight table
and last completion calls, plus the manual fast-forward.
"""

import logging
import time
from typing import Any, Dict, Optional

from aichat.contract import keys
from aichat.contract.models import fast_forward_event
from aichat.contract.rate_limiter import day_key
from aichat.exceptions import NotOraclePeer
from aichat.metrics import aichat_fast_forward_total

logger = logging.getLogger(__name__)

INFLIGHT_SAMPLE = 10


def _int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def state_snapshot(runtime) -> Dict[str, Any]:
    ledger = runtime.ledger
    now_local = int(time.time() * 1000)
    current_time = ledger.get(keys.CURRENT_TIME)
    message_seq = _int(ledger.get(keys.MESSAGE_SEQ))
    process_seq = _int(ledger.get(keys.PROCESS_SEQ))
    next_seq = process_seq + 1
    pending = ledger.get(keys.pending_key(next_seq))

    return {
        "node_address": runtime.settings.node_address,
        "admin": runtime.admin,
        "writable": ledger.writable,
        "oracle_peer": runtime.is_oracle_peer,
        "current_time": current_time,
        "delta_local_ms": (
            now_local - current_time if isinstance(current_time, (int, float)) else None
        ),
        "message_seq": message_seq,
        "process_seq": process_seq,
        "backlog": message_seq - process_seq,
        "next_pending_key": keys.pending_key(next_seq),
        "next_pending": (
            {
                "from": pending.get("from"),
                "type": pending.get("type"),
                "timestamp": pending.get("timestamp"),
            }
            if isinstance(pending, dict)
            else None
        ),
        "messages": _int(ledger.get(keys.MESSAGE_COUNT)),
        "features": runtime.features,
        "model": runtime.settings.oracle.model,
        "endpoint": runtime.settings.oracle.endpoint,
    }


def rate_snapshot(runtime, user: Optional[str] = None) -> Dict[str, Any]:
    """Rate counters of a user as of the trusted clock."""
    ledger = runtime.ledger
    rules = runtime.settings.contract
    address = user or runtime.settings.node_address
    current_time = ledger.get(keys.CURRENT_TIME)
    if not isinstance(current_time, (int, float)):
        return {"user": address, "error": "currentTime missing, is the timer feature running?"}

    day = day_key(current_time)
    daily = _int(ledger.get(keys.day_counter_key(address, day)))
    stored = ledger.get(keys.window_key(address))
    cutoff = current_time - rules.window_ms
    recent = [
        ts for ts in (stored if isinstance(stored, list) else [])
        if isinstance(ts, (int, float)) and ts >= cutoff
    ]
    return {
        "user": address,
        "day_key": day,
        "daily_count": daily,
        "daily_cap": rules.daily_cap,
        "window_count": len(recent),
        "window_cap": rules.window_cap,
        "window": recent,
        "oldest_age_ms": current_time - recent[0] if recent else None,
    }


def inflight_snapshot(runtime) -> Dict[str, Any]:
    ledger = runtime.ledger
    message_seq = _int(ledger.get(keys.MESSAGE_SEQ))
    process_seq = _int(ledger.get(keys.PROCESS_SEQ))
    next_seq = process_seq + 1
    current_time = ledger.get(keys.CURRENT_TIME)
    markers = runtime.inflight.snapshot()

    details = []
    for marker in markers[:INFLIGHT_SAMPLE]:
        pending = ledger.get(keys.pending_key(marker["seq"]))
        age = None
        if isinstance(pending, dict) and isinstance(current_time, (int, float)):
            timestamp = pending.get("timestamp")
            if isinstance(timestamp, (int, float)):
                age = current_time - timestamp
        details.append(
            {
                **marker,
                "has_pending": isinstance(pending, dict),
                "type": pending.get("type") if isinstance(pending, dict) else None,
                "age_ms": age,
            }
        )

    blocking = any(m["seq"] == next_seq and m["active"] for m in markers)
    return {
        "process_seq": process_seq,
        "message_seq": message_seq,
        "backlog": message_seq - process_seq,
        "inflight_count": len(markers),
        "likely_blocking_seq": next_seq if blocking and message_seq > process_seq else None,
        "consumer_state": runtime.consumer.state.value,
        "details": details,
    }


def _require_oracle_peer(runtime) -> None:
    if not runtime.is_oracle_peer:
        raise NotOraclePeer()


def ai_last(runtime) -> Dict[str, Any]:
    _require_oracle_peer(runtime)
    client = runtime.client
    last = client.last_call
    return {
        "last_call": last.to_dict() if last else None,
        "recent_attempts": [d.to_dict() for d in client.recent_calls],
        "last_success_ms": client.last_success_ms,
        "last_result": runtime.consumer.last_result,
    }


async def ping(runtime) -> Dict[str, Any]:
    """Ping the completion endpoint (oracle peer only)."""
    _require_oracle_peer(runtime)
    return await runtime.client.ping()


async def request_fast_forward(runtime, seq: Optional[int] = None) -> Dict[str, Any]:
    """Manually advance process_seq to unblock a stuck position.

    Defaults to message_seq; the value is clamped to [0, message_seq].

    Raises:
        NotOraclePeer: If this node is not the writable administrator
    """
    _require_oracle_peer(runtime)
    ledger = runtime.ledger
    message_seq = _int(ledger.get(keys.MESSAGE_SEQ))
    process_seq = _int(ledger.get(keys.PROCESS_SEQ))

    target = message_seq if seq is None else min(max(seq, 0), message_seq)
    if target <= process_seq:
        return {"requested": False, "seq": target, "process_seq": process_seq}

    await ledger.append(fast_forward_event(runtime.settings.node_address, target))
    aichat_fast_forward_total.labels(reason="manual").inc()
    logger.warning(f"Manual fast-forward requested to seq {target}")
    return {
        "requested": True,
        "seq": target,
        "process_seq": _int(ledger.get(keys.PROCESS_SEQ)),
    }
