from __future__ import annotations

from copy import deepcopy
from typing import Any

from langgraph.graph import END, START, StateGraph

from aquabot.nodes.chat_node import chat_node
from aquabot.nodes.context_node import context_node
from aquabot.state import ChatState, NodeName


NODE_FUNCTIONS = {
    NodeName.CONTEXT: context_node,
    NodeName.CHAT: chat_node,
}

GRAPH_NODES = tuple(NODE_FUNCTIONS.keys())

CONDITIONAL_EDGES = {
    NodeName.CONTEXT: {
        "chat": NodeName.CHAT,
        "__end__": END,
    },
}


def should_run_chat(state: dict[str, Any]) -> bool:
    return not str(state.get("error") or "").strip()


class _CompiledGraphAdapter:
    def __init__(self, compiled: Any) -> None:
        self._compiled = compiled

    def invoke(self, state: ChatState) -> ChatState:
        return self._compiled.invoke(deepcopy(state))


def _track_node_execution(node_name: str, fn: Any) -> Any:
    def _wrapped(state: dict[str, Any]) -> dict[str, Any]:
        update = fn(state)
        executed = list(state.get("_executed_nodes") or [])
        executed.append(node_name)

        if isinstance(update, dict):
            merged = dict(update)
            merged["_executed_nodes"] = executed
            return merged

        return {"_executed_nodes": executed}

    return _wrapped


def build_graph() -> _CompiledGraphAdapter:
    graph = StateGraph(ChatState)
    for node_name, fn in NODE_FUNCTIONS.items():
        graph.add_node(node_name, _track_node_execution(node_name, fn))

    graph.add_edge(START, NodeName.CONTEXT)
    graph.add_conditional_edges(
        NodeName.CONTEXT,
        lambda s: "chat" if should_run_chat(s) else "__end__",
        CONDITIONAL_EDGES[NodeName.CONTEXT],
    )
    graph.add_edge(NodeName.CHAT, END)
    return _CompiledGraphAdapter(graph.compile())


compiled_graph = build_graph()
graph = compiled_graph
