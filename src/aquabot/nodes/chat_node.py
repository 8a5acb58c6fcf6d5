"""Node seam: chat node delegates to the chat agent and turns failures into a reply."""

from typing import Any

from aquabot.agents.chat_agent import ChatAgent
from aquabot.nodes.error_handling import HUMAN_HANDOFF_SUFFIX, build_node_error_update
from aquabot.state import ChatState
from aquabot.trace import trace


def chat_node(state: ChatState) -> dict[str, Any]:
    trace("chat", turn_id=state.get("turn_id"), status="start")
    try:
        return ChatAgent().run(state)
    except Exception as exc:
        update = build_node_error_update(exc)
        update["current_response"] = f"{update['error']} {HUMAN_HANDOFF_SUFFIX}"
        return update
