"""
Orchestration package - intent routing, scripted flows and the dialogue orchestrator
"""
from assistant.orchestration.routing import get_llm, LLMProvider
from assistant.orchestration.intents import IntentClassifier, IntentSignals, TopLevelIntent, classify
from assistant.orchestration.flows import FlowKind, FlowInvariantError
from assistant.orchestration.session import ActiveMode, DialogueSession, InputSource
from assistant.orchestration.fallback import FallbackAdapter
from assistant.orchestration.orchestrator import DialogueOrchestrator, TurnResult

__all__ = [
    # Routing
    "get_llm",
    "LLMProvider",
    # Intents
    "IntentClassifier",
    "IntentSignals",
    "TopLevelIntent",
    "classify",
    # Flows and session
    "FlowKind",
    "FlowInvariantError",
    "ActiveMode",
    "DialogueSession",
    "InputSource",
    # Orchestration
    "FallbackAdapter",
    "DialogueOrchestrator",
    "TurnResult",
]
