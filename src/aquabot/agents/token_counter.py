"""Token estimation for context window management.

Counts are approximated at ~4 characters per token instead of running a real
tokenizer. The approximation is good enough for budget decisions, not for
billing; prompt budgets downstream are tuned against it, so keep it as is.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator


CHARS_PER_TOKEN = 4
MESSAGE_OVERHEAD_TOKENS = 4

TOKEN_LIMITS_PATH = Path(__file__).resolve().parents[3] / "config" / "token_limits.yaml"


def estimate_tokens(text: str | None) -> int:
    if text is None:
        return 0
    if not isinstance(text, str):
        raise TypeError(f"estimate_tokens expects str, got {type(text).__name__}")
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_message_tokens(messages: Iterable[Mapping[str, Any]]) -> int:
    # Per-message overhead covers role tags and delimiters.
    return sum(
        estimate_tokens(message["content"]) + MESSAGE_OVERHEAD_TOKENS
        for message in messages
    )


def clip_to_tokens(text: str, max_tokens: int) -> str:
    if estimate_tokens(text) <= max_tokens:
        return text
    return text[: max_tokens * CHARS_PER_TOKEN]


class TokenLimits(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    max_context: int = 100000
    summarization_threshold: int = 8000
    max_system_prompt: int = 4000
    max_user_message: int = 2000
    max_response: int = 2000
    max_summary: int = 300

    @field_validator("*")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @model_validator(mode="after")
    def validate_budget_fits(self) -> "TokenLimits":
        reserved = (
            self.summarization_threshold
            + self.max_system_prompt
            + self.max_user_message
            + self.max_response
        )
        if reserved > self.max_context:
            raise ValueError(
                "summarization_threshold + max_system_prompt + max_user_message "
                "+ max_response must not exceed max_context"
            )
        if self.max_summary >= self.summarization_threshold:
            raise ValueError("max_summary must be lower than summarization_threshold")
        return self


TOKEN_LIMITS = TokenLimits()


def load_token_limits(path: Path | None = None) -> TokenLimits:
    limits_path = path or TOKEN_LIMITS_PATH
    if not limits_path.exists():
        return TOKEN_LIMITS

    with limits_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)

    if data is None:
        return TOKEN_LIMITS
    if not isinstance(data, dict):
        raise ValueError(f"{limits_path} must contain a YAML mapping")
    return TokenLimits.model_validate(data)
