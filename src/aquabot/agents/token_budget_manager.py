from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from aquabot.agents.token_counter import (
    MESSAGE_OVERHEAD_TOKENS,
    TOKEN_LIMITS,
    TokenLimits,
    estimate_message_tokens,
    estimate_tokens,
    load_token_limits,
)
from aquabot.trace import trace


MIN_KEEP_MESSAGES = 10


@dataclass(frozen=True)
class SummarizationSplit:
    keep_messages: int
    summarize_messages: int


def needs_summarization(
    total_tokens: int,
    threshold: int = TOKEN_LIMITS.summarization_threshold,
) -> bool:
    return total_tokens > threshold


def calculate_summarization_split(
    messages: Sequence[Mapping[str, Any]],
    target_tokens: int = TOKEN_LIMITS.summarization_threshold,
) -> SummarizationSplit:
    """Decide how many trailing messages stay verbatim.

    Retained history gets half of ``target_tokens``; the rest is headroom for
    the summary and the next turn. The most recent ``MIN_KEEP_MESSAGES`` are
    always kept, so histories shorter than that are never summarized.
    """
    total_messages = len(messages)
    budget = target_tokens / 2
    tokens_from_end = 0
    keep_messages = 0

    for message in reversed(messages):
        message_tokens = estimate_tokens(message["content"]) + MESSAGE_OVERHEAD_TOKENS
        if tokens_from_end + message_tokens > budget:
            break
        tokens_from_end += message_tokens
        keep_messages += 1

    keep_messages = max(keep_messages, min(MIN_KEEP_MESSAGES, total_messages))
    return SummarizationSplit(
        keep_messages=keep_messages,
        summarize_messages=total_messages - keep_messages,
    )


class TokenBudgetManager:
    def __init__(self, limits: TokenLimits | None = None) -> None:
        self._limits = limits or load_token_limits()

    @property
    def limits(self) -> TokenLimits:
        return self._limits

    @property
    def activation_threshold_tokens(self) -> int:
        return self._limits.summarization_threshold

    def plan(self, history: Sequence[Mapping[str, Any]]) -> SummarizationSplit | None:
        """Return the split to apply to ``history``, or ``None`` to keep it whole."""
        total_tokens = estimate_message_tokens(history)
        threshold = self.activation_threshold_tokens
        trace(
            "token_budget",
            event="check_performed",
            message_count=len(history),
            token_count=total_tokens,
            threshold=threshold,
        )
        if not needs_summarization(total_tokens, threshold):
            return None

        split = calculate_summarization_split(history, threshold)
        if split.summarize_messages == 0:
            return None
        return split
