"""
Environment variable validation for the chat oracle.

Checks that required variables are configured before the application starts
and warns about insecure or inconsistent settings.

Called automatically during application startup in aichat/main.py.
"""

import logging
import os
import re
import sys
from typing import List, Tuple

logger = logging.getLogger(__name__)

# ==============================================================================
# Required Environment Variables
# ==============================================================================

# Critical variables (MUST be set)
REQUIRED_VARS = [
    "API_KEY",
    "NODE_ADDRESS",
]

# Required when Redis holds the view
REDIS_VARS = ["STORE_REDIS_URL"]

# Production-only variables (warnings if not set in production)
PRODUCTION_VARS = [
    "ADMIN_ADDRESS",
    "ORACLE_ENDPOINT",
]

# Insecure default values that must be changed
INSECURE_DEFAULTS = {
    "API_KEY": [
        "change-me",
        "change-me-to-a-secure-random-key",
    ],
    "NODE_ADDRESS": ["0" * 64],
}

ADDRESS_PATTERN = re.compile(r"^[a-f0-9]{64}$")

# ==============================================================================
# Documentation of All Environment Variables
# ==============================================================================

ENV_VAR_DOCUMENTATION = """
# ==============================================================================
# ENVIRONMENT VARIABLES REFERENCE
# ==============================================================================

## CRITICAL (Required for application to start)
- API_KEY: Key for the X-API-Key header on write and diagnostics routes
- NODE_ADDRESS: 64-hex address this node posts as

## Node
- ADMIN_ADDRESS: Administrator address written to a fresh log
- ORACLE_ENABLED: Run the oracle loop on the administrator node

## Contract (must be identical on every replica)
- CONTRACT_TRIGGER_TOKEN: Mention that queues a prompt (default @ai)
- CONTRACT_REPLY_MARKER: Attachment marking automated replies
- CONTRACT_DAILY_CAP: Admissions per user per UTC day
- CONTRACT_WINDOW_MS: Sliding window length
- CONTRACT_WINDOW_CAP: Admissions per user inside the window
- CONTRACT_SELECTION_DIVISOR: Random participation divisor
- CONTRACT_MSG_MAX_BYTES: Chat message size limit

## Oracle
- ORACLE_MODEL, ORACLE_ENDPOINT, ORACLE_TEMPERATURE
- ORACLE_API_KEY, ORACLE_API_KEY_HEADER, ORACLE_API_KEY_SCHEME
- ORACLE_MAX_CONTEXT_TOKENS, ORACLE_MAX_REPLY_TOKENS, ORACLE_CONTEXT_HEADROOM_TOKENS
- ORACLE_MAX_REQUEST_BYTES, ORACLE_HISTORY_WINDOW, ORACLE_MAX_BACKLOG
- ORACLE_POLL_INTERVAL_MS, ORACLE_REQUEST_TIMEOUT_SECONDS
- ORACLE_INFLIGHT_TTL_MS, ORACLE_INFLIGHT_MAX_RETRIES, ORACLE_MAX_PROCESS_ATTEMPTS
- ORACLE_WARMUP_GRACE_MS, ORACLE_SUCCESS_GRACE_MS, ORACLE_COMMIT_POLL_TIMEOUT_MS
- ORACLE_STARTUP_FAST_FORWARD, ORACLE_PERSONA, ORACLE_APOLOGY_TEXT

## Timer
- TIMER_UPDATE_INTERVAL_MS: How often currentTime is appended

## Storage
- STORE_BACKEND: redis or memory
- STORE_REDIS_URL: Redis connection URL
- STORE_KEY_PREFIX: Namespace for Redis keys

## General
- ENV: Environment type (production, development)
- LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

For defaults, see aichat/settings.py.
"""


def validate_config() -> None:
    """
    Validate required environment variables are set and configured properly.

    This function:
    1. Checks that all critical variables are set
    2. Validates backend-specific variables
    3. Warns about insecure defaults
    4. Warns about missing production variables
    5. Exits with error code 1 if critical variables are missing

    Raises:
        SystemExit: If any required variables are missing
    """
    missing_vars: List[str] = []
    insecure_vars: List[Tuple[str, str]] = []

    # 1. Check required variables
    for var in REQUIRED_VARS:
        val = os.getenv(var)
        if not val:
            missing_vars.append(var)
        elif val in INSECURE_DEFAULTS.get(var, []):
            insecure_vars.append((var, val))

    # 2. Check backend-specific variables
    backend = os.getenv("STORE_BACKEND", "memory")
    if backend == "redis":
        for var in REDIS_VARS:
            if not os.getenv(var):
                missing_vars.append(f"{var} (required for STORE_BACKEND=redis)")

    # 3. Report critical errors (missing variables)
    if missing_vars:
        logger.critical("=" * 80)
        logger.critical("STARTUP FAILED: Missing required environment variables")
        logger.critical("=" * 80)
        for var in missing_vars:
            logger.error(f"  ✗ {var} is not set")
        logger.critical("")
        logger.critical(
            "For documentation, run: python -c 'from aichat.config_validator import ENV_VAR_DOCUMENTATION; print(ENV_VAR_DOCUMENTATION)'"
        )
        logger.critical("=" * 80)
        sys.exit(1)

    # 4. Warn about insecure defaults (non-fatal)
    if insecure_vars:
        logger.warning("=" * 80)
        logger.warning("SECURITY WARNING: Using insecure default values!")
        logger.warning("=" * 80)
        for var, val in insecure_vars:
            logger.warning(f"  ⚠ {var} = '{val}' (default placeholder)")
        logger.warning("  API_KEY: openssl rand -hex 32")
        logger.warning("=" * 80)

    # 5. Sanity checks on addresses
    for var in ("NODE_ADDRESS", "ADMIN_ADDRESS"):
        val = os.getenv(var)
        if val and not ADDRESS_PATTERN.match(val):
            logger.warning(f"  ⚠ {var} is not a 64-character lowercase hex address")

    # 6. Check production-specific configuration
    env = os.getenv("ENV", "development")
    if env == "production":
        missing_prod_vars = [var for var in PRODUCTION_VARS if not os.getenv(var)]
        if missing_prod_vars:
            logger.warning("=" * 80)
            logger.warning("PRODUCTION WARNING: Missing recommended production variables")
            logger.warning("=" * 80)
            for var in missing_prod_vars:
                logger.warning(f"  ⚠ {var} is not set")
            logger.warning("=" * 80)

        if backend == "memory":
            logger.warning(
                "⚠ STORE_BACKEND=memory in production - the view is rebuilt on every restart"
            )

    # 7. Success message
    logger.info("=" * 80)
    logger.info("✅ Environment configuration validated successfully")
    logger.info("=" * 80)
    logger.info(f"Environment: {env}")
    logger.info(f"View Backend: {backend}")
    logger.info(
        f"Oracle: {'enabled' if os.getenv('ORACLE_ENABLED', 'true').lower() == 'true' else 'disabled'}"
    )
    logger.info("=" * 80)


def print_env_documentation() -> None:
    """Print complete environment variable documentation."""
    print(ENV_VAR_DOCUMENTATION)


if __name__ == "__main__":
    print_env_documentation()
