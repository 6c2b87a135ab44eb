# engagement/agent/graph.py
from langgraph.graph import START, END, StateGraph

from engagement.agent.state import EngagementState
from engagement.agent.nodes import (
    normalize_node,
    parse_ai_node,
    route_after_normalize,
    route_after_plan,
    synthesize_node,
    validate_node,
)
from engagement.core.engagement_config import DEFAULT_CONFIG, EngagementConfig

def create_graph(config: EngagementConfig = DEFAULT_CONFIG):
    """
    normalize -> synthesize | parse_ai -> validate -> END
    Compiled without a checkpointer: nothing is persisted between calls.
    """
    builder = StateGraph(EngagementState)

    builder.add_node("normalize", normalize_node)
    builder.add_node("synthesize", lambda state: synthesize_node(state, config))
    builder.add_node("parse_ai", lambda state: parse_ai_node(state, config))
    builder.add_node("validate", lambda state: validate_node(state, config))

    builder.add_edge(START, "normalize")
    builder.add_conditional_edges("normalize", route_after_normalize, {
        "synthesize": "synthesize",
        "parse_ai": "parse_ai",
    })
    for node in ("synthesize", "parse_ai"):
        builder.add_conditional_edges(node, route_after_plan, {
            "validate": "validate",
            "end": END,
        })
    builder.add_edge("validate", END)

    return builder.compile()
