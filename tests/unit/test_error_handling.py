from __future__ import annotations

import pytest

from aquabot.agents.chat_agent import MissingApiKeyError
from aquabot.agents.context_assembler import MessageTooLongError
from aquabot.nodes.error_handling import (
    AI_UNAVAILABLE_MESSAGE,
    INVALID_API_KEY_ERROR_MESSAGE,
    TIMEOUT_ERROR_MESSAGE,
    build_node_error_message,
    build_node_error_update,
)


class AuthenticationError(Exception):
    pass


class APITimeoutError(Exception):
    pass


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (MissingApiKeyError("ANTHROPIC_API_KEY not set"), INVALID_API_KEY_ERROR_MESSAGE),
        (AuthenticationError("401"), INVALID_API_KEY_ERROR_MESSAGE),
        (RuntimeError("invalid x-api-key: unauthorized"), INVALID_API_KEY_ERROR_MESSAGE),
        (APITimeoutError("request"), TIMEOUT_ERROR_MESSAGE),
        (RuntimeError("read timed out"), TIMEOUT_ERROR_MESSAGE),
        (RuntimeError("overloaded"), AI_UNAVAILABLE_MESSAGE),
    ],
)
def test_errors_map_to_user_facing_messages(exc: Exception, expected: str) -> None:
    assert build_node_error_message(exc) == expected


def test_too_long_message_is_shown_verbatim_without_handoff() -> None:
    update = build_node_error_update(
        MessageTooLongError("Message is too long. Keep it under 2000 tokens.")
    )

    assert update == {
        "error": "Message is too long. Keep it under 2000 tokens.",
        "human_handoff": False,
    }


def test_service_failures_request_human_handoff() -> None:
    update = build_node_error_update(RuntimeError("boom"))

    assert update["error"] == AI_UNAVAILABLE_MESSAGE
    assert update["human_handoff"] is True
