"""
Token Budget Estimator.

Token counts are approximated as ceil(characters / 4). Fixed allowances are
reserved for the system prompt and the current prompt; what remains is the
history budget.
"""

import math
from typing import List, Sequence

from nevra.schemas import ConversationTurn


SYSTEM_PROMPT_RESERVE = 600
PROMPT_RESERVE = 500
TRUNCATION_SUFFIX = "...[truncated]"


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a string."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


def estimate_turn_tokens(turn: ConversationTurn) -> int:
    return estimate_tokens(turn.prompt_text())


def estimate_history_tokens(history: Sequence[ConversationTurn]) -> int:
    return sum(estimate_turn_tokens(turn) for turn in history)


def history_budget(ceiling: int) -> int:
    """Tokens left for history once the system prompt and prompt are reserved."""
    return ceiling - SYSTEM_PROMPT_RESERVE - PROMPT_RESERVE


def truncate(history: Sequence[ConversationTurn], ceiling: int) -> List[ConversationTurn]:
    """
    Bound a conversation history to a provider's prompt-size ceiling.

    Walks the history newest-first and keeps whole turns while they fit. If
    not even the newest turn fits, it is cut down to the budget and tagged as
    truncated.

    Args:
        history: Turns in chronological order (not modified)
        ceiling: Provider prompt-token ceiling

    Returns:
        A new list of turns in chronological order
    """
    available = history_budget(ceiling)
    if available <= 0 or not history:
        return []

    kept: List[ConversationTurn] = []
    used = 0
    for turn in reversed(history):
        cost = estimate_turn_tokens(turn)
        if used + cost > available:
            break
        kept.append(turn)
        used += cost

    if not kept:
        newest = history[-1]
        max_chars = available * 4 - len(TRUNCATION_SUFFIX)
        if max_chars <= 0:
            return []
        shortened = newest.prompt_text()[:max_chars] + TRUNCATION_SUFFIX
        return [newest.model_copy(update={"text": shortened, "code": None, "truncated": True})]

    kept.reverse()
    return kept
