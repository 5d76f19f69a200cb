"""LangGraph construction and node implementations for tool calling.

Only one level of tool calling is supported: the follow-up turn must
produce text.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from coach_core.domain.exceptions import UnsupportedToolRecursion
from coach_core.domain.models import ToolInvocation
from coach_core.flows.state import ToolCallState
from coach_core.infrastructure.logging.logger import logger
from coach_core.providers.gateway import ModelGateway
from coach_core.tools.definitions import ActionOutcome


class ActionRunner(Protocol):
    def execute(self, tool_name: str, arguments: Dict[str, Any], *, uid: Optional[str] = None) -> ActionOutcome:
        ...


def initial_node(state: ToolCallState, gateway: ModelGateway) -> ToolCallState:
    state["phase"] = "awaiting_initial"
    session = gateway.start_chat(state["manifest"], state.get("log_ctx"))
    state["session"] = session
    response = session.send(state["user_message"])
    if isinstance(response, ToolInvocation):
        state["invocation"] = response
        state["phase"] = "tool_requested"
        logger.info(
            "initial_node.tool_requested",
            extra={"extra": {**state.get("log_ctx", {}), "tool_name": response.tool_name}},
        )
    else:
        state["final_text"] = response.text
        logger.info("initial_node.text_response", extra={"extra": state.get("log_ctx", {})})
    return state


def execute_node(state: ToolCallState, executor: ActionRunner) -> ToolCallState:
    state["phase"] = "executing_action"
    invocation = state["invocation"]
    outcome = executor.execute(invocation.tool_name, invocation.arguments, uid=state.get("uid"))
    state["outcome"] = outcome
    logger.info(
        "execute_node.done",
        extra={"extra": {**state.get("log_ctx", {}), "tool_name": invocation.tool_name, "success": outcome.success}},
    )
    return state


def followup_node(state: ToolCallState) -> ToolCallState:
    state["phase"] = "awaiting_followup"
    response = state["session"].send_tool_result(state["outcome"])
    if isinstance(response, ToolInvocation):
        raise UnsupportedToolRecursion(
            f"Follow-up turn requested another tool call: {response.tool_name}",
            tool_name=response.tool_name,
        )
    state["final_text"] = response.text
    return state


def final_node(state: ToolCallState) -> ToolCallState:
    state["phase"] = "final"
    if state.get("final_text") is None:
        state["final_text"] = ""
    return state


def route_initial(state: ToolCallState) -> str:
    if state.get("invocation") is not None:
        return "execute"
    return "final"


def build_graph(gateway: ModelGateway, executor: ActionRunner) -> CompiledStateGraph:
    graph = StateGraph(ToolCallState)
    graph.add_node("initial", lambda s: initial_node(s, gateway))
    graph.add_node("execute", lambda s: execute_node(s, executor))
    graph.add_node("followup", followup_node)
    graph.add_node("final", final_node)
    graph.set_entry_point("initial")
    graph.add_conditional_edges("initial", route_initial, {"execute": "execute", "final": "final"})
    graph.add_edge("execute", "followup")
    graph.add_edge("followup", "final")
    graph.add_edge("final", END)
    return graph.compile()
