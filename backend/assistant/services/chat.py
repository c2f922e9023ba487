"""
Chat Service - Connects the HTTP surface to per-thread dialogue orchestrators
"""
from typing import Any, Dict, List, Optional

from assistant.core.logging import logger
from assistant.orchestration.fallback import FallbackAdapter
from assistant.orchestration.flows import FlowKind
from assistant.orchestration.orchestrator import CapabilityIssue, DialogueOrchestrator
from assistant.orchestration.participant import ParticipantProfile
from assistant.orchestration.session import DialogueSession, InputSource
from assistant.services.session_store import SessionStore, get_session_store


STATE_KEY_PREFIX = "dialogue:"


class SessionNotFoundError(KeyError):
    """No dialogue session exists for the thread."""


class ChatService:
    """
    Service for routing chat events to dialogue orchestrators.

    One orchestrator is kept per thread so its input lock serialises every
    event for that thread. Sessions are written back to the store after each
    mutation and rehydrated on a cold start.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        fallback: Optional[FallbackAdapter] = None,
        participant: Optional[ParticipantProfile] = None,
    ):
        self.store = store or get_session_store()
        self.fallback = fallback or FallbackAdapter()
        self.participant = participant or ParticipantProfile.from_settings()
        self._orchestrators: Dict[str, DialogueOrchestrator] = {}

    def _key(self, thread_id: str) -> str:
        return f"{STATE_KEY_PREFIX}{thread_id}"

    def _build(self, session: DialogueSession) -> DialogueOrchestrator:
        orchestrator = DialogueOrchestrator(
            session=session,
            fallback=self.fallback,
            participant=self.participant,
        )
        self._orchestrators[session.thread_id] = orchestrator
        return orchestrator

    def _save(self, orchestrator: DialogueOrchestrator) -> None:
        self.store.set(self._key(orchestrator.thread_id), orchestrator.session.to_dict())

    def evict_expired(self) -> int:
        """Drop orchestrators whose sessions have expired from the store."""
        expired = [t for t in list(self._orchestrators) if not self.store.exists(self._key(t))]
        for thread_id in expired:
            self._orchestrators.pop(thread_id, None)
        if expired:
            logger.info(f"Evicted {len(expired)} expired dialogue sessions")
        return len(expired)

    def create_session(self) -> DialogueOrchestrator:
        """Start a new thread with the greeting."""
        self.evict_expired()
        orchestrator = self._build(DialogueSession())
        self._save(orchestrator)
        logger.info(f"Dialogue session created: {orchestrator.thread_id}")
        return orchestrator

    def get_orchestrator(self, thread_id: str) -> DialogueOrchestrator:
        """
        Get the orchestrator for a thread, rehydrating it from the store.

        Raises:
            SessionNotFoundError: If the thread is unknown or expired
        """
        orchestrator = self._orchestrators.get(thread_id)
        if orchestrator is not None and self.store.exists(self._key(thread_id)):
            return orchestrator

        data = self.store.get(self._key(thread_id))
        if not data:
            self._orchestrators.pop(thread_id, None)
            raise SessionNotFoundError(thread_id)

        logger.info(f"Retrieved existing dialogue session for thread {thread_id}")
        return self._build(DialogueSession.from_dict(data))

    async def process_message(
        self,
        thread_id: str,
        message: str,
        source: InputSource = InputSource.TEXT,
    ) -> Dict[str, Any]:
        """
        Process one input event for a thread.

        Returns:
            The turn result plus the thread ID
        """
        orchestrator = self.get_orchestrator(thread_id)
        logger.info(f"Processing {InputSource(source).value} input in thread {thread_id}")
        result = await orchestrator.submit_input(message, source)
        self._save(orchestrator)
        return {"thread_id": thread_id, **result.to_dict()}

    def get_messages(self, thread_id: str) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self.get_orchestrator(thread_id).messages]

    def get_state(self, thread_id: str) -> Dict[str, Any]:
        return self.get_orchestrator(thread_id).state_view()

    def dismiss_snapshot(self, thread_id: str, kind: FlowKind) -> bool:
        orchestrator = self.get_orchestrator(thread_id)
        dismissed = orchestrator.dismiss_snapshot(kind)
        if dismissed:
            self._save(orchestrator)
        return dismissed

    async def reset(self, thread_id: str) -> Dict[str, Any]:
        orchestrator = self.get_orchestrator(thread_id)
        await orchestrator.reset()
        self._save(orchestrator)
        return orchestrator.state_view()

    def report_capability_issue(self, thread_id: str, issue: CapabilityIssue) -> Optional[str]:
        orchestrator = self.get_orchestrator(thread_id)
        notice = orchestrator.report_capability_issue(issue)
        if notice is not None:
            self._save(orchestrator)
        return notice

    def clear_session(self, thread_id: str) -> None:
        """Forget a thread entirely."""
        self._orchestrators.pop(thread_id, None)
        self.store.delete(self._key(thread_id))


_chat_service: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    """Get chat service instance."""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service
