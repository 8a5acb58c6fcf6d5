from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable

from aquabot.agents.llm import create_client, extract_text, has_api_key, usage_tokens
from aquabot.agents.token_counter import TokenLimits, estimate_tokens, load_token_limits
from aquabot.policy import AgentPolicy, load_agent_policy
from aquabot.state import ChatState
from aquabot.trace import trace


LOGGER = logging.getLogger(__name__)


class MissingApiKeyError(RuntimeError):
    pass


class ChatAgent:
    def __init__(
        self,
        limits: TokenLimits | None = None,
        policy: AgentPolicy | None = None,
        prompts_dir: Path | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._limits = limits or load_token_limits()
        self._policy = policy or load_agent_policy("chat", prompts_dir)
        self._sleep = sleep or time.sleep

    @property
    def model(self) -> str:
        return self._policy.model

    def run(self, state: ChatState) -> ChatState:
        if not has_api_key():
            raise MissingApiKeyError("ANTHROPIC_API_KEY not set")

        system_prompt, messages = self._split_system_entries(
            str(state.get("system_prompt") or ""),
            list(state.get("context_messages") or []),
        )
        response = self._create_with_retries(system_prompt, messages)

        reply = extract_text(response)
        input_tokens, output_tokens = usage_tokens(response)
        current_input = str(state.get("current_input") or "")
        input_tokens = input_tokens or estimate_tokens(system_prompt + current_input)
        output_tokens = output_tokens or estimate_tokens(reply)

        history = list(state.get("conversation_history") or [])
        history.append({"role": "user", "content": current_input})
        history.append({"role": "assistant", "content": reply})

        trace(
            "chat",
            event="response_complete",
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return {
            "current_response": reply,
            "conversation_history": history,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
        }

    def _split_system_entries(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
    ) -> tuple[str, list[dict[str, str]]]:
        # The Messages API only accepts user/assistant turns; summaries move into the system prompt.
        summaries = [str(item["content"]) for item in messages if item.get("role") == "system"]
        turns = [
            {"role": str(item["role"]), "content": str(item["content"])}
            for item in messages
            if item.get("role") != "system"
        ]
        if summaries:
            system_prompt = "\n\n".join(
                [system_prompt, "## Earlier Conversation Summary", *summaries]
            ).strip()
        return system_prompt, turns

    def _create_with_retries(self, system_prompt: str, messages: list[dict[str, str]]) -> Any:
        client = create_client()
        attempts = self._policy.max_retries
        for attempt in range(attempts):
            try:
                return client.messages.create(
                    model=self.model,
                    max_tokens=min(self._policy.max_tokens, self._limits.max_response),
                    system=system_prompt,
                    messages=messages,
                )
            except Exception as exc:
                LOGGER.warning("Anthropic API attempt %d failed: %s", attempt + 1, exc)
                trace("chat", event="attempt_failed", attempt=attempt + 1)
                if attempt == attempts - 1:
                    raise
                self._sleep(2**attempt)
        raise RuntimeError("no completion attempts were made")
