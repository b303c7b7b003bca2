"""
Replicated queue contract.

- keys.py: Key namespace of the view
- models.py: Queue entries and log events
- rate_limiter.py: Daily and sliding-window admission limits
- classifier.py: Tagged prompt extraction and random participation
- state_machine.py: Deterministic event application
"""

from aichat.contract.models import DoneEntry, PendingEntry, QueueType
from aichat.contract.state_machine import ApplyResult, QueueStateMachine, replay

__all__ = [
    "ApplyResult",
    "DoneEntry",
    "PendingEntry",
    "QueueStateMachine",
    "QueueType",
    "replay",
]
