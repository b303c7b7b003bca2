# aichat/metrics.py
"""
Prometheus metrics for the chat oracle.

Metrics are organized by component:
- Queue: Admissions, rejections and pointer movement (recorded by the ledger
  from state machine outcomes, never inside the state machine itself)
- Completion: Endpoint requests and latency
- Oracle: Consumer loop iterations, inflight table and commits
"""

from prometheus_client import Counter, Gauge, Histogram

# ============================================================================
# QUEUE METRICS
# ============================================================================

aichat_admissions_total = Counter(
    "aichat_admissions_total",
    "Chat messages admitted to the work queue",
    ["type"],  # "tagged", "random"
)

aichat_rejections_total = Counter(
    "aichat_rejections_total",
    "Chat messages not admitted to the work queue",
    ["reason"],  # "daily_cap", "window_cap", "empty_prompt", ...
)

aichat_fast_forward_total = Counter(
    "aichat_fast_forward_total",
    "Fast-forward control ops requested by the oracle",
    ["reason"],  # "backlog", "stuck", "malformed", "self", "startup", "failures", "manual"
)

aichat_backlog = Gauge(
    "aichat_backlog",
    "Queue entries waiting for the oracle (message_seq - process_seq)",
)

# ============================================================================
# COMPLETION METRICS
# ============================================================================

aichat_completion_requests_total = Counter(
    "aichat_completion_requests_total",
    "Completion endpoint requests",
    ["status"],  # "success", "http_error", "transport_error"
)

aichat_completion_latency_seconds = Histogram(
    "aichat_completion_latency_seconds",
    "Completion endpoint request latency",
    buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, 120),
)

aichat_completion_outcomes_total = Counter(
    "aichat_completion_outcomes_total",
    "Final outcome of a completion after retries",
    ["outcome"],  # "reply", "apology", "abandoned"
)

# ============================================================================
# ORACLE LOOP METRICS
# ============================================================================

aichat_oracle_steps_total = Counter(
    "aichat_oracle_steps_total",
    "Consumer loop iterations by result",
    ["result"],
)

aichat_inflight = Gauge(
    "aichat_inflight",
    "Active entries in the oracle inflight table",
)

aichat_commits_total = Counter(
    "aichat_commits_total",
    "Results committed by the oracle",
    ["queue"],
)

aichat_loop_errors_total = Counter(
    "aichat_loop_errors_total",
    "Errors contained by the consumer and timer loops",
    ["error_type"],
)

__all__ = [
    # Queue
    "aichat_admissions_total",
    "aichat_rejections_total",
    "aichat_fast_forward_total",
    "aichat_backlog",
    # Completion
    "aichat_completion_requests_total",
    "aichat_completion_latency_seconds",
    "aichat_completion_outcomes_total",
    # Oracle
    "aichat_oracle_steps_total",
    "aichat_inflight",
    "aichat_commits_total",
    "aichat_loop_errors_total",
]
