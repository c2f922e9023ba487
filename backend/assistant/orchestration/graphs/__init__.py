"""
LangGraph renderings of the scripted flows
"""
from assistant.orchestration.graphs.flow_graph import build_flow_graph, describe_flow_graph, replay_steps

__all__ = ["build_flow_graph", "describe_flow_graph", "replay_steps"]
