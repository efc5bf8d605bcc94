"""Tests for token estimation and history truncation."""

import pytest

from nevra.budget import (
    PROMPT_RESERVE,
    SYSTEM_PROMPT_RESERVE,
    TRUNCATION_SUFFIX,
    estimate_history_tokens,
    estimate_tokens,
    history_budget,
    truncate,
)
from nevra.schemas import ConversationTurn
from tests.conftest import make_turn


class TestEstimate:
    """Character-based token estimate."""

    def test_empty_is_zero(self):
        assert estimate_tokens("") == 0

    def test_rounds_up(self):
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_turn_includes_code(self):
        turn = make_turn("assistant", "done", code="x" * 400)
        assert estimate_history_tokens([turn]) > 100

    def test_history_budget_reserves(self):
        assert history_budget(2000) == 2000 - SYSTEM_PROMPT_RESERVE - PROMPT_RESERVE


class TestTruncate:
    """History truncation against a ceiling."""

    @pytest.mark.parametrize("ceiling", [0, -10, 500, SYSTEM_PROMPT_RESERVE + PROMPT_RESERVE])
    def test_no_budget_returns_empty(self, ceiling):
        history = [make_turn(text="hi")]
        assert truncate(history, ceiling) == []

    def test_empty_history(self):
        assert truncate([], 6000) == []

    def test_everything_fits(self):
        history = [make_turn("user", "one"), make_turn("assistant", "two")]
        assert truncate(history, 6000) == history

    def test_keeps_newest_turns(self):
        history = [make_turn(text=f"{i}" + "x" * 396) for i in range(10)]  # 100 tokens each
        kept = truncate(history, 1400)  # 300 tokens of history
        assert [t.text[0] for t in kept] == ["7", "8", "9"]

    def test_result_is_chronological(self):
        history = [make_turn("user", "first"), make_turn("assistant", "second")]
        kept = truncate(history, 2000)
        assert [t.text for t in kept] == ["first", "second"]

    def test_does_not_mutate_input(self):
        history = [make_turn(text="x" * 8000)]
        truncate(history, 2000)
        assert len(history[0].text) == 8000
        assert history[0].truncated is False

    def test_oversized_newest_turn_is_shortened(self):
        history = [make_turn("user", "old"), make_turn("assistant", "y" * 20000, code="z" * 100)]
        kept = truncate(history, 2000)
        assert len(kept) == 1
        assert kept[0].truncated is True
        assert kept[0].code is None
        assert kept[0].text.endswith(TRUNCATION_SUFFIX)

    @pytest.mark.parametrize("ceiling", range(1101, 1127))
    def test_small_budget_still_keeps_a_shortened_turn(self, ceiling):
        available = history_budget(ceiling)
        kept = truncate([make_turn(text="x" * 300)], ceiling)
        if available * 4 <= len(TRUNCATION_SUFFIX):
            assert kept == []
        else:
            assert len(kept) == 1
            assert kept[0].truncated is True
            assert estimate_history_tokens(kept) == available

    @pytest.mark.parametrize("ceiling", [1200, 1500, 2000, 6000])
    def test_never_exceeds_ceiling(self, ceiling):
        history = [make_turn(text="w" * size) for size in (50, 3000, 120, 9000, 700)]
        kept = truncate(history, ceiling)
        assert estimate_history_tokens(kept) <= ceiling
        assert estimate_history_tokens(kept) <= history_budget(ceiling)

    def test_turns_are_conversation_turns(self):
        kept = truncate([make_turn(text="x" * 40000)], 2000)
        assert all(isinstance(t, ConversationTurn) for t in kept)
