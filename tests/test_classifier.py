"""
Tests for prompt classification: tagged extraction and random participation.
"""

import pytest

NOW = 1_700_000_000_000


def selected_time(msg: str, divisor: int = 20) -> int:
    """A trusted time at which msg is picked by random participation."""
    from aichat.contract.classifier import MINUTE_MS, participation_score

    base_minute = NOW // MINUTE_MS
    offset = (-(participation_score(msg) + base_minute)) % divisor
    return (base_minute + offset) * MINUTE_MS


@pytest.mark.unit
class TestExtractTaggedPrompt:
    """Tests for extract_tagged_prompt()."""

    def test_text_after_trigger(self):
        from aichat.contract.classifier import extract_tagged_prompt

        assert extract_tagged_prompt("@ai price?", "@ai") == "price?"

    def test_leading_colon_dropped(self):
        from aichat.contract.classifier import extract_tagged_prompt

        assert extract_tagged_prompt("@ai:  what now ", "@ai") == "what now"

    def test_only_one_colon_dropped(self):
        from aichat.contract.classifier import extract_tagged_prompt

        assert extract_tagged_prompt("@ai :: hi", "@ai") == ": hi"

    def test_case_insensitive(self):
        from aichat.contract.classifier import extract_tagged_prompt

        assert extract_tagged_prompt("hey @AI tell me", "@ai") == "tell me"

    def test_first_occurrence_wins(self):
        from aichat.contract.classifier import extract_tagged_prompt

        assert extract_tagged_prompt("@ai one @ai two", "@ai") == "one @ai two"

    def test_no_trigger(self):
        from aichat.contract.classifier import extract_tagged_prompt

        assert extract_tagged_prompt("hello there", "@ai") is None

    def test_empty_prompt(self):
        from aichat.contract.classifier import extract_tagged_prompt

        assert extract_tagged_prompt("hi @ai   ", "@ai") == ""


@pytest.mark.unit
class TestRandomParticipation:
    """Tests for the deterministic lottery."""

    def test_score_is_char_code_sum(self):
        from aichat.contract.classifier import participation_score

        assert participation_score("ab") == ord("a") + ord("b")
        assert participation_score("") == 0

    def test_score_counts_surrogate_pairs(self):
        from aichat.contract.classifier import participation_score

        # U+1F680 is the surrogate pair 0xD83D 0xDE80
        assert participation_score("gm 🚀") == 244 + 0xD83D + 0xDE80 == 112561

    def test_selection_reproducible(self):
        from aichat.contract.classifier import is_selected

        results = {is_selected("gm frens", NOW, 20) for _ in range(5)}

        assert len(results) == 1

    def test_selected_at_computed_minute(self):
        from aichat.contract.classifier import MINUTE_MS, is_selected

        now = selected_time("gm frens")

        assert is_selected("gm frens", now, 20) is True
        assert is_selected("gm frens", now + MINUTE_MS, 20) is False

    def test_roughly_one_in_divisor_minutes(self):
        from aichat.contract.classifier import MINUTE_MS, is_selected

        hits = sum(is_selected("gm frens", NOW + i * MINUTE_MS, 20) for i in range(200))

        assert hits == 10


@pytest.mark.unit
class TestClassify:
    """Tests for classify()."""

    def test_tagged(self):
        from aichat.contract.classifier import classify
        from aichat.contract.models import QueueType

        result = classify("@ai price?", NOW, "@ai", 20)

        assert result.accepted
        assert result.queue_type == QueueType.TAGGED
        assert result.prompt == "price?"

    def test_tagged_empty_rejected(self):
        from aichat.contract.classifier import REASON_EMPTY_PROMPT, classify

        result = classify("@ai", NOW, "@ai", 20)

        assert not result.accepted
        assert result.reason == REASON_EMPTY_PROMPT

    def test_mention_blocks_random(self):
        from aichat.contract.classifier import REASON_HAS_MENTION, classify

        msg = "hello @bob"
        result = classify(msg, selected_time(msg), "@ai", 20)

        assert result.reason == REASON_HAS_MENTION

    def test_random_selected(self):
        from aichat.contract.classifier import classify
        from aichat.contract.models import QueueType

        msg = "  gm frens  "
        result = classify(msg, selected_time(msg), "@ai", 20)

        assert result.queue_type == QueueType.RANDOM
        assert result.prompt == "gm frens"

    def test_random_not_selected(self):
        from aichat.contract.classifier import MINUTE_MS, REASON_NOT_SELECTED, classify

        msg = "gm frens"
        result = classify(msg, selected_time(msg) + MINUTE_MS, "@ai", 20)

        assert result.reason == REASON_NOT_SELECTED

    def test_random_whitespace_only_rejected(self):
        from aichat.contract.classifier import REASON_EMPTY_PROMPT, classify

        msg = "   "
        result = classify(msg, selected_time(msg), "@ai", 20)

        assert result.reason == REASON_EMPTY_PROMPT
