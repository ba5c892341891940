from __future__ import annotations

from langgraph.graph import END, StateGraph

from tuning_advisor.orchestrator.nodes import (
    entry_node,
    finish_node,
    gate_node,
    parse_node,
    profile_node,
    recommend_node,
    render_node,
    route_after_gate,
    validate_node,
)
from tuning_advisor.orchestrator.state import AssessmentState


def build_graph():
    """
    Returns a compiled LangGraph runnable:

    entry -> parse -> profile -> validate -> recommend -> gate -> (render ->) finish
    """

    graph = StateGraph(AssessmentState)

    graph.add_node("entry", entry_node)
    graph.add_node("parse", parse_node)
    graph.add_node("profile", profile_node)
    graph.add_node("validate", validate_node)
    graph.add_node("recommend", recommend_node)
    graph.add_node("gate", gate_node)
    graph.add_node("render", render_node)
    graph.add_node("finish", finish_node)

    graph.set_entry_point("entry")

    graph.add_edge("entry", "parse")
    graph.add_edge("parse", "profile")
    graph.add_edge("profile", "validate")
    graph.add_edge("validate", "recommend")
    graph.add_edge("recommend", "gate")
    graph.add_conditional_edges(
        "gate",
        route_after_gate,
        {"render": "render", "finish": "finish"},
    )
    graph.add_edge("render", "finish")
    graph.add_edge("finish", END)

    return graph.compile()
