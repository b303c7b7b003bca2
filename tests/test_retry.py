"""
Tests for backoff delays and grace windows.
"""

import pytest


@pytest.mark.unit
class TestRetryPolicy:
    def test_default_delays(self):
        from aichat.oracle.retry import RetryPolicy

        assert RetryPolicy().delays() == [1.0, 2.0, 4.0]

    def test_delay_capped(self):
        from aichat.oracle.retry import RetryPolicy

        assert RetryPolicy().delay(10) == 10.0

    def test_no_retries(self):
        from aichat.oracle.retry import RetryPolicy

        assert RetryPolicy(max_retries=0).delays() == []

    def test_success_grace(self):
        from aichat.oracle.retry import RetryPolicy

        policy = RetryPolicy(success_grace_ms=15000, warmup_grace_ms=0)

        assert policy.within_grace(20000, 10000, None) is True
        assert policy.within_grace(25000, 10000, None) is False
        assert policy.within_grace(25000, None, None) is False

    def test_warmup_grace(self):
        from aichat.oracle.retry import RetryPolicy

        policy = RetryPolicy(success_grace_ms=0, warmup_grace_ms=30000)

        assert policy.within_grace(40000, None, 20000) is True
        assert policy.within_grace(50000, None, 20000) is False

    def test_from_settings(self):
        from aichat.oracle.retry import RetryPolicy
        from aichat.settings import OracleSettings

        policy = RetryPolicy.from_settings(
            OracleSettings(success_grace_ms=1, warmup_grace_ms=2)
        )

        assert policy.success_grace_ms == 1
        assert policy.warmup_grace_ms == 2
        assert policy.max_retries == 3
