from __future__ import annotations

from typing import Any, Literal
from typing_extensions import NotRequired, TypedDict


Role = Literal["user", "assistant", "system"]


class Message(TypedDict):
    role: Role
    content: str


class ChatState(TypedDict):
    user_id: str
    session_id: str
    turn_id: int
    # Full, uncompressed history. The bounded view sent to the model lives in
    # context_messages and is rebuilt every turn.
    conversation_history: list[dict[str, Any]]
    current_input: str
    current_response: str
    tank_snapshot: dict[str, Any] | None
    user_preferences: dict[str, Any] | None
    system_prompt: str | None
    context_messages: list[dict[str, Any]] | None
    summary: str | None
    summarized_count: int
    token_estimate: int | None
    input_tokens: int | None
    output_tokens: int | None
    human_handoff: bool
    error: str | None
    _executed_nodes: NotRequired[list[str]]


class TurnResetUpdate(TypedDict):
    system_prompt: None
    context_messages: None
    token_estimate: None
    input_tokens: None
    output_tokens: None
    human_handoff: bool
    error: None


class NodeName:
    CONTEXT = "context_assembly"
    CHAT = "chat"


def reset_turn_state(state: ChatState) -> TurnResetUpdate:
    del state
    return TurnResetUpdate(
        system_prompt=None,
        context_messages=None,
        token_estimate=None,
        input_tokens=None,
        output_tokens=None,
        human_handoff=False,
        error=None,
    )


def initialize_state(
    user_id: str,
    session_id: str,
    current_input: str = "",
    turn_id: int = 0,
) -> ChatState:
    return ChatState(
        user_id=user_id,
        session_id=session_id,
        turn_id=turn_id,
        conversation_history=[],
        current_input=current_input,
        current_response="",
        tank_snapshot=None,
        user_preferences=None,
        system_prompt=None,
        context_messages=None,
        summary=None,
        summarized_count=0,
        token_estimate=None,
        input_tokens=None,
        output_tokens=None,
        human_handoff=False,
        error=None,
    )
