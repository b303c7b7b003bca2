"""
Tests for custom exception classes and handlers.
"""

import json
from unittest.mock import MagicMock

import pytest


@pytest.mark.unit
class TestAiChatException:
    def test_init(self):
        from aichat.exceptions import AiChatException

        exc = AiChatException("Test error", status_code=500)

        assert exc.message == "Test error"
        assert exc.status_code == 500
        assert str(exc) == "Test error"

    def test_default_status_code(self):
        from aichat.exceptions import AiChatException

        assert AiChatException("Test error").status_code == 500


@pytest.mark.unit
class TestDomainExceptions:
    def test_endpoint_failure(self):
        from aichat.exceptions import EndpointFailure

        exc = EndpointFailure("bad gateway", status=502)

        assert exc.status == 502
        assert exc.status_code == 502

    def test_transport_size_overflow(self):
        from aichat.exceptions import TransportSizeOverflow

        exc = TransportSizeOverflow(70000, 65536)

        assert exc.size == 70000
        assert exc.limit == 65536
        assert exc.status_code == 413
        assert "65536" in exc.message

    def test_stuck_inflight(self):
        from aichat.exceptions import StuckInflight

        exc = StuckInflight(4, 2)

        assert exc.seq == 4
        assert "stuck" in exc.message

    def test_not_oracle_peer(self):
        from aichat.exceptions import NotOraclePeer

        assert NotOraclePeer().status_code == 403

    def test_hierarchy(self):
        from aichat.exceptions import (
            AdmissionRejected,
            AiChatException,
            CommitFailure,
            ReplicationLag,
        )

        for exc in (AdmissionRejected("daily_cap"), CommitFailure("x"), ReplicationLag(3)):
            assert isinstance(exc, AiChatException)


@pytest.mark.unit
class TestExceptionHandlers:
    @pytest.mark.asyncio
    async def test_aichat_handler(self):
        from aichat.exceptions import CommitFailure, aichat_exception_handler

        request = MagicMock()
        request.url.path = "/chat"
        request.method = "POST"

        response = await aichat_exception_handler(request, CommitFailure("read-only"))

        assert response.status_code == 503
        assert json.loads(response.body) == {"detail": "read-only", "type": "CommitFailure"}

    @pytest.mark.asyncio
    async def test_generic_handler_hides_details(self):
        from aichat.exceptions import generic_exception_handler

        request = MagicMock()
        request.url.path = "/chat"
        request.method = "POST"

        response = await generic_exception_handler(request, RuntimeError("secret internals"))

        assert response.status_code == 500
        assert "secret internals" not in response.body.decode()
