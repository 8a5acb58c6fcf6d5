from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

from aquabot.agents.llm import create_client, extract_text, has_api_key
from aquabot.agents.system_prompt import generate_summarizer_prompt
from aquabot.agents.token_counter import TokenLimits, clip_to_tokens, load_token_limits
from aquabot.policy import AgentPolicy, load_agent_policy
from aquabot.trace import trace


LOGGER = logging.getLogger(__name__)

SUMMARY_PREFIX = "[SUMMARY]"
_HIGHLIGHT_COUNT = 3


class ConversationSummarizer:
    def __init__(
        self,
        limits: TokenLimits | None = None,
        policy: AgentPolicy | None = None,
        prompts_dir: Path | None = None,
    ) -> None:
        self._limits = limits or load_token_limits()
        self._prompts_dir = prompts_dir
        self._policy = policy or load_agent_policy("summarizer", prompts_dir)

    def summarize(self, messages: Sequence[Mapping[str, Any]]) -> str:
        if not messages:
            return ""

        text = ""
        if has_api_key():
            text = self._summarize_with_llm(messages)
        if not text:
            LOGGER.info("Summarizing %d messages without the model", len(messages))
            text = self._extractive_summary(messages)
        return clip_to_tokens(text, self._limits.max_summary)

    def _summarize_with_llm(self, messages: Sequence[Mapping[str, Any]]) -> str:
        transcript = "\n".join(
            f"{message['role']}: {message['content']}" for message in messages
        )
        client = create_client()
        response = client.messages.create(
            model=self._policy.model,
            max_tokens=min(self._policy.max_tokens, self._limits.max_summary),
            system=generate_summarizer_prompt(self._prompts_dir),
            messages=[{"role": "user", "content": transcript}],
        )
        trace("summarizer", event="summary_generated", model=self._policy.model, message_count=len(messages))
        return extract_text(response)

    def _extractive_summary(self, messages: Sequence[Mapping[str, Any]]) -> str:
        earlier = [
            str(message.get("content") or "").removeprefix(SUMMARY_PREFIX).strip()
            for message in messages
            if message.get("role") == "system"
        ]
        user_contents = [
            str(message.get("content") or "").strip()
            for message in messages
            if message.get("role") == "user" and str(message.get("content") or "").strip()
        ]
        parts = [text for text in earlier if text]
        if user_contents:
            parts.append("Earlier the user asked about: " + "; ".join(user_contents[:_HIGHLIGHT_COUNT]))
        return " ".join(parts) or "Earlier conversation compressed."


def build_summary_message(summary: str) -> dict[str, str]:
    return {"role": "system", "content": f"{SUMMARY_PREFIX} {summary}".strip()}
