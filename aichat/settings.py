"""
Application settings for the AI chat oracle.

Loads configuration from environment variables (.env file) with sensible defaults.
All settings can be overridden via environment variables.

ContractSettings are part of the replicated state machine's rules: every
replica replaying the same log must run with identical values.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load .env file if present
load_dotenv()


DEFAULT_PERSONA = (
    "You are a true crypto chad who knows all ins and outs. trading, tech, everything. "
    'you are good with degens and speak their "language". respond briefly and longer '
    "if required but not overly excessive. avoid dashes in responses. avoid emojis. "
    "avoid hallucinating requests that you cannot fact check via web browsing in your responses."
)


class APISettings(BaseModel):
    """API and server settings."""

    title: str = Field(default="AI Chat Oracle", description="API title")
    description: str = Field(
        default="Deterministic chat queue with a single AI oracle consumer.",
        description="API description",
    )
    version: str = Field(default="0.1.0", description="API version")


class ContractSettings(BaseModel):
    """Rules of the queue state machine (must match on every replica)."""

    trigger_token: str = Field(
        default=os.getenv("CONTRACT_TRIGGER_TOKEN", "@ai"),
        description="Mention that puts a message on the tagged queue (case-insensitive)",
    )
    reply_marker: str = Field(
        default=os.getenv("CONTRACT_REPLY_MARKER", "ai-reply"),
        description="Attachment marking a message as an automated reply",
    )
    daily_cap: int = Field(
        default=int(os.getenv("CONTRACT_DAILY_CAP", "1500")),
        description="Maximum admissions per user per UTC day",
    )
    window_ms: int = Field(
        default=int(os.getenv("CONTRACT_WINDOW_MS", "60000")),
        description="Sliding window length in milliseconds",
    )
    window_cap: int = Field(
        default=int(os.getenv("CONTRACT_WINDOW_CAP", "10")),
        description="Maximum admissions per user inside the sliding window",
    )
    selection_divisor: int = Field(
        default=int(os.getenv("CONTRACT_SELECTION_DIVISOR", "20")),
        description="Random participation selects one bucket out of this many",
    )
    msg_max_bytes: int = Field(
        default=int(os.getenv("CONTRACT_MSG_MAX_BYTES", str(1024 * 64))),
        description="Transport limit for a single chat message",
    )

    @field_validator(
        "daily_cap", "window_ms", "window_cap", "selection_divisor", "msg_max_bytes"
    )
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator("trigger_token")
    def validate_trigger_token(cls, v):
        if not v.startswith("@") or len(v) < 2:
            raise ValueError("trigger_token must be a mention such as '@ai'")
        return v

    @property
    def trigger_word(self) -> str:
        """Trigger token without the leading '@'."""
        return self.trigger_token[1:]


class OracleSettings(BaseModel):
    """Completion endpoint and consumer loop configuration."""

    model: str = Field(
        default=os.getenv("ORACLE_MODEL", "gpt-oss-120b-fp16"),
        description="Model name sent to the completion endpoint",
    )
    endpoint: str = Field(
        default=os.getenv(
            "ORACLE_ENDPOINT", "http://127.0.0.1:8000/v1/chat/completions"
        ),
        description="OpenAI-compatible chat completions URL",
    )
    max_context_tokens: int = Field(
        default=int(os.getenv("ORACLE_MAX_CONTEXT_TOKENS", "32768")),
        description="Model context window (tokens)",
    )
    max_reply_tokens: int = Field(
        default=int(os.getenv("ORACLE_MAX_REPLY_TOKENS", "1024")),
        description="Maximum number of tokens to generate",
    )
    context_headroom_tokens: int = Field(
        default=int(os.getenv("ORACLE_CONTEXT_HEADROOM_TOKENS", "512")),
        description="Tokens kept free on top of the reply budget",
    )
    max_request_bytes: int = Field(
        default=int(os.getenv("ORACLE_MAX_REQUEST_BYTES", str(256 * 1024))),
        description="Byte ceiling for the serialized completion request",
    )
    temperature: float = Field(
        default=float(os.getenv("ORACLE_TEMPERATURE", "0.7")),
        description="Sampling temperature (0.0-2.0)",
    )
    poll_interval_ms: int = Field(
        default=int(os.getenv("ORACLE_POLL_INTERVAL_MS", "1000")),
        description="Sleep between loop iterations",
    )
    history_window: int = Field(
        default=int(os.getenv("ORACLE_HISTORY_WINDOW", "64")),
        description="Number of prior Q/A turns considered for context",
    )
    max_backlog: int = Field(
        default=int(os.getenv("ORACLE_MAX_BACKLOG", "20")),
        description="Backlog size above which old entries are fast-forwarded",
    )
    inflight_ttl_ms: int = Field(
        default=int(os.getenv("ORACLE_INFLIGHT_TTL_MS", "120000")),
        description="Age after which an inflight seq counts as stuck",
    )
    inflight_max_retries: int = Field(
        default=int(os.getenv("ORACLE_INFLIGHT_MAX_RETRIES", "1")),
        description="TTL breaches tolerated before a seq is skipped",
    )
    max_process_attempts: int = Field(
        default=int(os.getenv("ORACLE_MAX_PROCESS_ATTEMPTS", "3")),
        description="Post/commit failures tolerated before a seq is skipped",
    )
    request_timeout_seconds: float = Field(
        default=float(os.getenv("ORACLE_REQUEST_TIMEOUT_SECONDS", "60")),
        description="Timeout for one completion request",
    )
    warmup_grace_ms: int = Field(
        default=int(os.getenv("ORACLE_WARMUP_GRACE_MS", "30000")),
        description="Failures this soon after a seq was first claimed are retried silently",
    )
    success_grace_ms: int = Field(
        default=int(os.getenv("ORACLE_SUCCESS_GRACE_MS", "15000")),
        description="Failures this soon after a successful call are retried silently",
    )
    commit_poll_timeout_ms: int = Field(
        default=int(os.getenv("ORACLE_COMMIT_POLL_TIMEOUT_MS", "5000")),
        description="How long to wait for a commit to become visible",
    )
    startup_fast_forward: bool = Field(
        default=os.getenv("ORACLE_STARTUP_FAST_FORWARD", "true").lower() == "true",
        description="Skip any backlog that existed before the oracle started",
    )
    api_key: Optional[str] = Field(
        default=os.getenv("ORACLE_API_KEY") or None,
        description="Optional key for the completion endpoint",
    )
    api_key_header: str = Field(
        default=os.getenv("ORACLE_API_KEY_HEADER", "Authorization"),
        description="Header carrying the endpoint key",
    )
    api_key_scheme: str = Field(
        default=os.getenv("ORACLE_API_KEY_SCHEME", "Bearer"),
        description="Scheme prefixed to the key when the header is Authorization",
    )
    persona: str = Field(
        default=os.getenv("ORACLE_PERSONA", DEFAULT_PERSONA),
        description="System persona sent with every request",
    )
    apology_text: str = Field(
        default=os.getenv("ORACLE_APOLOGY_TEXT", "Sorry, the AI endpoint failed."),
        description="Reply committed when the endpoint keeps failing",
    )

    @field_validator(
        "max_context_tokens",
        "max_reply_tokens",
        "max_request_bytes",
        "poll_interval_ms",
        "max_backlog",
        "inflight_ttl_ms",
        "max_process_attempts",
    )
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator(
        "history_window",
        "context_headroom_tokens",
        "inflight_max_retries",
        "warmup_grace_ms",
        "success_grace_ms",
        "commit_poll_timeout_ms",
    )
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("Value must not be negative")
        return v

    @field_validator("temperature")
    def validate_temperature(cls, v):
        if not 0.0 <= v <= 2.0:
            raise ValueError("Temperature must be between 0.0 and 2.0")
        return v

    @field_validator("request_timeout_seconds")
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return v


class TimerSettings(BaseModel):
    """Trusted clock feed."""

    update_interval_ms: int = Field(
        default=int(os.getenv("TIMER_UPDATE_INTERVAL_MS", "1000")),
        description="How often currentTime is appended to the log",
    )

    @field_validator("update_interval_ms")
    def validate_interval(cls, v):
        if v <= 0:
            raise ValueError("update_interval_ms must be positive")
        return v


class StoreSettings(BaseModel):
    """Replicated view storage."""

    backend: str = Field(
        default=os.getenv("STORE_BACKEND", "memory"),
        description="View storage backend: 'redis' or 'memory'",
    )
    redis_url: str = Field(
        default=os.getenv("STORE_REDIS_URL", "redis://localhost:6379/0"),
        description="Redis connection URL",
    )
    key_prefix: str = Field(
        default=os.getenv("STORE_KEY_PREFIX", "aichat:"),
        description="Prefix applied to every Redis key",
    )

    @field_validator("backend")
    def validate_backend(cls, v):
        if v not in ["redis", "memory"]:
            raise ValueError("backend must be 'redis' or 'memory'")
        return v


class Settings(BaseModel):
    """Global application configuration.

    Configuration priority:
    1. Environment variables (.env file or system)
    2. Defaults specified below
    """

    api_key: str = Field(
        default=os.getenv("API_KEY", "change-me"),
        description="API key for the admin and write endpoints",
    )
    node_address: str = Field(
        default=os.getenv("NODE_ADDRESS", "0" * 64),
        description="Address this node posts and signs as",
    )
    admin_address: Optional[str] = Field(
        default=os.getenv("ADMIN_ADDRESS") or None,
        description="Administrator address written to the log on first start",
    )
    oracle_enabled: bool = Field(
        default=os.getenv("ORACLE_ENABLED", "true").lower() == "true",
        description="Run the oracle loop when this node is the administrator",
    )

    api: APISettings = Field(default_factory=APISettings)
    contract: ContractSettings = Field(default_factory=ContractSettings)
    oracle: OracleSettings = Field(default_factory=OracleSettings)
    timer: TimerSettings = Field(default_factory=TimerSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)

    model_config = ConfigDict(
        extra="forbid",  # Prevent typos in environment variables
        validate_assignment=True,  # Validate on attribute assignment
    )


# Global settings instance
settings = Settings()
