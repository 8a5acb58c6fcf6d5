"""Node seam: context node delegates to the context assembly agent."""

from typing import Any

from aquabot.agents.context_assembler import ContextAssemblyAgent
from aquabot.nodes.error_handling import build_node_error_update
from aquabot.state import ChatState
from aquabot.trace import trace


def context_node(state: ChatState) -> dict[str, Any]:
    trace("context_assembly", turn_id=state.get("turn_id"), status="start")
    try:
        return ContextAssemblyAgent().run(state)
    except Exception as exc:
        update = build_node_error_update(exc)
        update["current_response"] = update["error"]
        return update
