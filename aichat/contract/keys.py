"""
Key namespace of the replicated view.

Every key the state machine reads or writes is built here so replicas and
diagnostics agree on spelling.
"""

MESSAGE_SEQ = "message_seq"
PROCESS_SEQ = "process_seq"
SUMMARY = "summary"
CURRENT_TIME = "currentTime"
ADMIN = "admin"
MESSAGE_COUNT = "msgl"

PENDING_PREFIX = "pending/"
DONE_PREFIX = "done/"


def pending_key(seq: int) -> str:
    return f"{PENDING_PREFIX}{seq}"


def done_key(seq: int) -> str:
    return f"{DONE_PREFIX}{seq}"


def day_counter_key(address: str, day_key: int) -> str:
    return f"rate/day/{address}/{day_key}"


def window_key(address: str) -> str:
    return f"rate/window/{address}"


def nick_key(address: str) -> str:
    return f"nick/{address}"


def message_timestamp_key(index: int) -> str:
    return f"msgts/{index}"
