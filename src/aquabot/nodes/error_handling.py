from __future__ import annotations

from aquabot.agents.chat_agent import MissingApiKeyError
from aquabot.agents.context_assembler import MessageTooLongError


TIMEOUT_ERROR_MESSAGE = "AI connection timeout. Please try again."
INVALID_API_KEY_ERROR_MESSAGE = "ANTHROPIC_API_KEY not set or invalid"
AI_UNAVAILABLE_MESSAGE = "The AI service is temporarily unavailable. Please try again in a moment."
HUMAN_HANDOFF_SUFFIX = "Our support team can help if this keeps happening."


def build_node_error_message(exc: Exception) -> str:
    if isinstance(exc, MessageTooLongError):
        return str(exc)
    if isinstance(exc, MissingApiKeyError):
        return INVALID_API_KEY_ERROR_MESSAGE

    lowered = str(exc).strip().lower()
    error_type = type(exc).__name__.lower()
    if (
        "api key" in lowered
        or "api_key" in lowered
        or "authentication" in lowered
        or "authentication" in error_type
        or "unauthorized" in lowered
    ):
        return INVALID_API_KEY_ERROR_MESSAGE

    if "timeout" in lowered or "timed out" in lowered or "timeout" in error_type:
        return TIMEOUT_ERROR_MESSAGE
    return AI_UNAVAILABLE_MESSAGE


def build_node_error_update(exc: Exception) -> dict[str, object]:
    # Oversized input is the user's to fix; everything else is handed off.
    return {
        "error": build_node_error_message(exc),
        "human_handoff": not isinstance(exc, MessageTooLongError),
    }
