"""
Flow step graphs

Renders each scripted flow's allowed step edges as a LangGraph workflow so
the regulated sequence can be compiled, inspected and replayed. The graph
carries no conversation logic; replaying a step path walks it node by node
and stops at the first edge the flow does not allow.
"""
from typing import List, TypedDict

from langgraph.graph import StateGraph, END

from assistant.orchestration.flows import FlowKind, get_machine


START_NODE = "start"


class FlowGraphState(TypedDict):
    """Replay state: steps still to walk and steps already visited."""
    path: List[str]
    visited: List[str]


def _enter(state: FlowGraphState) -> dict:
    return {}


def _step_node(step: str):
    def node(state: FlowGraphState) -> dict:
        return {
            "visited": state["visited"] + [step],
            "path": state["path"][1:],
        }
    node.__name__ = f"step_{step.lower()}"
    return node


def _route(successors: List[str]):
    def route(state: FlowGraphState) -> str:
        if state["path"] and state["path"][0] in successors:
            return state["path"][0]
        return END
    return route


def build_flow_graph(kind: FlowKind):
    """
    Build the compiled step graph for a flow.

    Args:
        kind: Flow kind

    Returns:
        Compiled LangGraph workflow
    """
    machine = get_machine(kind)
    workflow = StateGraph(FlowGraphState)

    workflow.add_node(START_NODE, _enter)
    for step in machine.step_type:
        workflow.add_node(step.value, _step_node(step.value))

    workflow.set_entry_point(START_NODE)

    entries = sorted(step.value for step in machine.entry_steps)
    workflow.add_conditional_edges(
        START_NODE,
        _route(entries),
        {**{name: name for name in entries}, END: END},
    )

    for step in machine.step_type:
        # Every step can leave the flow through cancel
        successors = sorted(s.value for s in machine.transitions[step])
        workflow.add_conditional_edges(
            step.value,
            _route(successors),
            {**{name: name for name in successors}, END: END},
        )

    return workflow.compile()


def replay_steps(kind: FlowKind, steps: List[str]) -> List[str]:
    """
    Walk a step path through the flow graph.

    Returns the steps actually visited. A path that follows the allowed edges
    is returned in full; otherwise the walk stops before the first disallowed
    step.
    """
    graph = build_flow_graph(kind)
    result = graph.invoke(
        {"path": list(steps), "visited": []},
        config={"recursion_limit": max(25, 2 * len(steps) + 5)},
    )
    return result["visited"]


def describe_flow_graph(kind: FlowKind) -> dict:
    """
    Inspectable view of a flow's compiled step graph.

    Returns nodes, edges (conditional ones marked) and a Mermaid rendering,
    alongside the entry and terminal steps the orchestrator enforces.
    """
    machine = get_machine(kind)
    graph = build_flow_graph(machine.kind).get_graph()
    return {
        "kind": machine.kind.value,
        "entry_steps": sorted(step.value for step in machine.entry_steps),
        "terminal_step": machine.terminal_step.value,
        "nodes": list(graph.nodes),
        "edges": [
            {"source": edge.source, "target": edge.target, "conditional": edge.conditional}
            for edge in graph.edges
        ],
        "mermaid": graph.draw_mermaid(),
    }
