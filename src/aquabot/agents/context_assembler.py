"""Bounded prompt assembly for a single chat turn.

The assembler never returns a context whose estimate (system prompt, messages
and the response reserve) exceeds ``max_context``. Older turns are folded into
one ``system`` summary entry first; if that is still too large the oldest
retained turns are dropped. The current user message always survives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

from aquabot.agents.context_builder import TankContext, build_tank_context
from aquabot.agents.summarizer import ConversationSummarizer, build_summary_message
from aquabot.agents.system_prompt import generate_system_prompt
from aquabot.agents.token_budget_manager import (
    SummarizationSplit,
    TokenBudgetManager,
    needs_summarization,
)
from aquabot.agents.token_counter import (
    TokenLimits,
    clip_to_tokens,
    estimate_message_tokens,
    estimate_tokens,
    load_token_limits,
)
from aquabot.agents.user_context import UserContextForAI, get_user_context_summary
from aquabot.state import ChatState, reset_turn_state
from aquabot.trace import trace


LOGGER = logging.getLogger(__name__)


class MessageTooLongError(ValueError):
    pass


class Summarizer(Protocol):
    def summarize(self, messages: Sequence[Mapping[str, Any]]) -> str: ...


@dataclass(frozen=True)
class AssembledContext:
    system_prompt: str
    messages: tuple[dict[str, str], ...]
    summary: str | None
    summarized_count: int
    estimated_tokens: int


class ContextAssembler:
    def __init__(
        self,
        summarizer: Summarizer,
        limits: TokenLimits | None = None,
        budget_manager: TokenBudgetManager | None = None,
    ) -> None:
        self._limits = limits or load_token_limits()
        self._budget_manager = budget_manager or TokenBudgetManager(self._limits)
        self._summarizer = summarizer

    @property
    def limits(self) -> TokenLimits:
        return self._limits

    def estimate_context_tokens(self, system_prompt: str, messages: Sequence[Mapping[str, Any]]) -> int:
        return (
            estimate_tokens(system_prompt)
            + estimate_message_tokens(messages)
            + self._limits.max_response
        )

    def assemble(
        self,
        history: Sequence[Mapping[str, Any]],
        current_input: str,
        tank_context: TankContext | None = None,
        user_preferences: UserContextForAI | None = None,
        cached_summary: str | None = None,
        cached_summarized_count: int = 0,
    ) -> AssembledContext:
        if estimate_tokens(current_input) > self._limits.max_user_message:
            raise MessageTooLongError(
                f"Message is too long. Keep it under {self._limits.max_user_message} tokens."
            )

        system_prompt = clip_to_tokens(
            generate_system_prompt(tank_context, user_preferences),
            self._limits.max_system_prompt,
        )
        turns = [_as_message(item) for item in history]
        user_message = {"role": "user", "content": current_input}

        summary: str | None = None
        summarized_count = 0
        split = self._budget_manager.plan(turns)

        if split is not None:
            summarized_count = split.summarize_messages
            if cached_summary and cached_summarized_count == summarized_count:
                summary = cached_summary
            elif cached_summary and 0 < cached_summarized_count < summarized_count:
                summary, summarized_count = self._extend_summary(
                    turns, cached_summary, cached_summarized_count, split
                )
            else:
                summary = self._summarize(turns[:summarized_count], split)
            turns = turns[summarized_count:]

        prefix = [build_summary_message(summary)] if summary else []
        messages = [*prefix, *turns, user_message]

        dropped = 0
        while self._overflows(system_prompt, messages) and len(messages) > len(prefix) + 1:
            del messages[len(prefix)]
            dropped += 1
            # Drop whole exchanges so the retained window opens on a user turn.
            while len(messages) > len(prefix) + 1 and messages[len(prefix)]["role"] == "assistant":
                del messages[len(prefix)]
                dropped += 1
        if dropped:
            LOGGER.warning("Dropped %d retained turns to fit the context window", dropped)
            trace("context_assembler", event="turns_dropped", dropped_count=dropped)

        estimated = self.estimate_context_tokens(system_prompt, messages)
        trace(
            "context_assembler",
            event="context_assembled",
            message_count=len(messages),
            summarize_count=summarized_count,
            token_count=estimated,
        )
        return AssembledContext(
            system_prompt=system_prompt,
            messages=tuple(messages),
            summary=summary,
            summarized_count=summarized_count,
            estimated_tokens=estimated,
        )

    def _overflows(self, system_prompt: str, messages: Sequence[Mapping[str, Any]]) -> bool:
        return self.estimate_context_tokens(system_prompt, messages) > self._limits.max_context

    def _extend_summary(
        self,
        turns: Sequence[dict[str, str]],
        cached_summary: str,
        cached_count: int,
        split: SummarizationSplit,
    ) -> tuple[str, int]:
        """Reuse a summary that covers an older prefix of ``turns``.

        History only grows, so the cached summary stays valid for its prefix.
        While everything after it still fits under the threshold it is reused
        as is; otherwise only the newly folded turns are summarized on top of it.
        """
        since_cache = turns[cached_count:]
        threshold = self._budget_manager.activation_threshold_tokens
        if not needs_summarization(estimate_message_tokens(since_cache), threshold):
            return cached_summary, cached_count

        LOGGER.info("Extending cached summary of %d messages", cached_count)
        fresh = turns[cached_count : split.summarize_messages]
        summary = self._summarize([build_summary_message(cached_summary), *fresh], split)
        return summary, split.summarize_messages

    def _summarize(self, messages: Sequence[dict[str, str]], split: SummarizationSplit) -> str:
        LOGGER.info(
            "Summarizing %d oldest messages, keeping %d",
            split.summarize_messages,
            split.keep_messages,
        )
        trace(
            "context_assembler",
            event="summarization_triggered",
            keep_count=split.keep_messages,
            summarize_count=split.summarize_messages,
        )
        return clip_to_tokens(self._summarizer.summarize(messages), self._limits.max_summary)


def _as_message(item: Mapping[str, Any]) -> dict[str, str]:
    content = item["content"]
    if not isinstance(content, str):
        raise TypeError(f"message content must be str, got {type(content).__name__}")
    return {"role": str(item["role"]), "content": content}


class ContextAssemblyAgent:
    def __init__(self, assembler: ContextAssembler | None = None) -> None:
        self._assembler = assembler or ContextAssembler(ConversationSummarizer())

    def run(self, state: ChatState) -> ChatState:
        snapshot = state.get("tank_snapshot")
        preferences_row = state.get("user_preferences")
        if preferences_row is None and isinstance(snapshot, dict):
            preferences_row = snapshot.get("preferences")

        preferences = UserContextForAI.from_row(preferences_row)
        LOGGER.debug("User context: %s", get_user_context_summary(preferences))

        assembled = self._assembler.assemble(
            history=list(state.get("conversation_history") or []),
            current_input=str(state.get("current_input") or ""),
            tank_context=build_tank_context(snapshot),
            user_preferences=preferences,
            cached_summary=state.get("summary"),
            cached_summarized_count=int(state.get("summarized_count") or 0),
        )
        return {
            **reset_turn_state(state),
            "system_prompt": assembled.system_prompt,
            "context_messages": list(assembled.messages),
            "summary": assembled.summary,
            "summarized_count": assembled.summarized_count,
            "token_estimate": assembled.estimated_tokens,
        }
