from __future__ import annotations

from typing import Any, Callable, Dict

from langgraph.graph import END, START, StateGraph

from webpilot.core.graph_state import StepState

Node = Callable[[StepState], Any]

NODE_ORDER = ("observe", "decide", "safety", "execute", "recover", "record", "pause")


def _next_or_end(target: str) -> Callable[[StepState], str]:
    return lambda state: END if state.get("stop_reason") else target


def recursion_limit(max_steps: int) -> int:
    # Seven nodes per step plus headroom for the terminal transitions.
    return max_steps * len(NODE_ORDER) + 10


def compile_graph(nodes: Dict[str, Node]) -> Any:
    workflow = StateGraph(StepState)
    for name in NODE_ORDER:
        workflow.add_node(name, nodes[name])

    workflow.add_edge(START, "observe")
    workflow.add_conditional_edges("observe", _next_or_end("decide"), {"decide": "decide", END: END})
    workflow.add_conditional_edges("decide", _next_or_end("safety"), {"safety": "safety", END: END})
    workflow.add_conditional_edges("safety", _next_or_end("execute"), {"execute": "execute", END: END})
    workflow.add_conditional_edges(
        "execute",
        lambda state: END if state.get("stop_reason") else ("recover" if state.get("exec_error") else "record"),
        {"recover": "recover", "record": "record", END: END},
    )
    workflow.add_conditional_edges("recover", _next_or_end("record"), {"record": "record", END: END})
    workflow.add_conditional_edges("record", _next_or_end("pause"), {"pause": "pause", END: END})
    workflow.add_conditional_edges("pause", _next_or_end("observe"), {"observe": "observe", END: END})

    return workflow.compile()
