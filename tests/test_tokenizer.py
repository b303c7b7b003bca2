"""
Tests for token counting.

tiktoken itself is mocked so the tests never download an encoding.
"""

from unittest.mock import MagicMock, patch

import pytest


@pytest.mark.unit
class TestHeuristicTokenCounter:
    def test_four_chars_per_token(self):
        from aichat.oracle.tokenizer import HeuristicTokenCounter

        counter = HeuristicTokenCounter()

        assert counter.count("") == 0
        assert counter.count("abc") == 1
        assert counter.count("abcd") == 1
        assert counter.count("abcde") == 2
        assert counter.count(None) == 0


@pytest.mark.unit
class TestTiktokenCounter:
    def test_known_model(self):
        from aichat.oracle.tokenizer import TiktokenCounter

        encoding = MagicMock()
        encoding.encode.return_value = [1, 2, 3]
        with patch("aichat.oracle.tokenizer.tiktoken") as mock_tiktoken:
            mock_tiktoken.encoding_for_model.return_value = encoding
            counter = TiktokenCounter("gpt-4o")

        assert counter.count("hello world") == 3
        assert counter.count("") == 0

    def test_unknown_model_uses_fallback_encoding(self):
        from aichat.oracle.tokenizer import FALLBACK_ENCODING, TiktokenCounter

        with patch("aichat.oracle.tokenizer.tiktoken") as mock_tiktoken:
            mock_tiktoken.encoding_for_model.side_effect = KeyError("gpt-oss-120b-fp16")
            TiktokenCounter("gpt-oss-120b-fp16")

        mock_tiktoken.get_encoding.assert_called_once_with(FALLBACK_ENCODING)

    def test_encode_failure_uses_heuristic(self):
        from aichat.oracle.tokenizer import TiktokenCounter

        encoding = MagicMock()
        encoding.encode.side_effect = ValueError("bad text")
        with patch("aichat.oracle.tokenizer.tiktoken") as mock_tiktoken:
            mock_tiktoken.encoding_for_model.return_value = encoding
            counter = TiktokenCounter("gpt-4o")

        assert counter.count("abcdefgh") == 2


@pytest.mark.unit
class TestCreateTokenCounter:
    def test_offline_falls_back_to_heuristic(self):
        from aichat.oracle.tokenizer import HeuristicTokenCounter, create_token_counter

        with patch("aichat.oracle.tokenizer.tiktoken") as mock_tiktoken:
            mock_tiktoken.encoding_for_model.side_effect = KeyError("unknown")
            mock_tiktoken.get_encoding.side_effect = OSError("no network")
            counter = create_token_counter("whatever")

        assert isinstance(counter, HeuristicTokenCounter)

    def test_tiktoken_when_available(self):
        from aichat.oracle.tokenizer import TiktokenCounter, create_token_counter

        with patch("aichat.oracle.tokenizer.tiktoken"):
            counter = create_token_counter("gpt-4o")

        assert isinstance(counter, TiktokenCounter)
