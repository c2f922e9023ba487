"""
Dialogue Orchestrator

The single authority deciding, for every input event, which scripted flow (if
any) receives the input, and otherwise whether the fallback adapter answers.

Dispatch order per event:
1. Pending confirmation: only yes/no is accepted
2. Chip with a top-level intent while a flow is active: full reset first
3. Active flow: hand the input to that flow's transition
4. No flow: classify and start a flow, open a pending gate, or fall back

Every event ends with exactly one assistant message and one utterance.
Events are serialised per session with an asyncio lock that is held across
the fallback call, so a late model answer can never land after a scripted
flow has taken over.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
import asyncio

from assistant.core.config import settings
from assistant.core.logging import get_logger, log_audit_event
from assistant.orchestration.fallback import FallbackAdapter, account_context
from assistant.orchestration.flows import (
    FlowInvariantError,
    FlowKind,
    FlowMachine,
    TransitionResult,
    get_machine,
    is_cancel,
)
from assistant.orchestration.flows import loan
from assistant.orchestration.flows.base import DONE_MESSAGE
from assistant.orchestration.intents import (
    ConfirmationAnswer,
    IntentClassifier,
    TopLevelIntent,
    get_intent_classifier,
)
from assistant.orchestration.participant import ParticipantProfile
from assistant.orchestration.session import (
    ActiveMode,
    CompletionSnapshot,
    DialogueSession,
    InputSource,
    Message,
    MessageLog,
    MessageRole,
    PendingConfirmation,
)
from assistant.services.speech import Utterance, UtteranceQueue


logger = get_logger("orchestrator")


GENERIC_MESSAGE = "Please continue using the options on screen."

PENDING_LOAN_PROMPT = (
    "It sounds like you might want to borrow from your 401(k). "
    "Would you like to start a loan application? Say 'yes' to continue or 'no' to cancel."
)
PENDING_LOAN_REASK = "Would you like to start a loan application? Say 'yes' to continue or 'no' to cancel."

INTENT_FLOWS = {
    TopLevelIntent.LOAN_DIRECT: FlowKind.LOAN,
    TopLevelIntent.ENROLLMENT: FlowKind.ENROLLMENT,
    TopLevelIntent.WITHDRAWAL: FlowKind.WITHDRAWAL,
    TopLevelIntent.VESTING: FlowKind.VESTING,
}

# Flows that can sit behind a pending yes/no gate
CONFIRMED_STARTS = {
    FlowKind.LOAN: (loan.start_confirmed, PENDING_LOAN_REASK),
}


class CapabilityIssue(str, Enum):
    SPEECH_INPUT_UNSUPPORTED = "speech_input_unsupported"
    MICROPHONE_DENIED = "microphone_denied"
    SPEECH_OUTPUT_UNSUPPORTED = "speech_output_unsupported"


CAPABILITY_NOTICES = {
    CapabilityIssue.SPEECH_INPUT_UNSUPPORTED: (
        "Voice input isn't supported in this browser. You can type your question instead."
    ),
    CapabilityIssue.MICROPHONE_DENIED: (
        "Microphone access was denied. Allow microphone access in your browser "
        "settings, or type your question instead."
    ),
    CapabilityIssue.SPEECH_OUTPUT_UNSUPPORTED: (
        "Spoken replies aren't available in this browser. Responses will appear as text."
    ),
}


@dataclass(frozen=True)
class TurnResult:
    """What the rendering layer needs after one input event."""
    message: Message
    active_mode: ActiveMode
    flow_state: Optional[dict]
    pending: bool
    utterance: Optional[Utterance]

    def to_dict(self) -> dict:
        return {
            "message": self.message.to_dict(),
            "active_mode": self.active_mode.value,
            "flow_state": self.flow_state,
            "pending": self.pending,
            "utterance": self.utterance.to_dict() if self.utterance else None,
        }


class DialogueOrchestrator:
    """
    Owns one dialogue session and every mutation of it.

    Flow machines only propose a next state; the orchestrator validates it
    against the flow's step graph and commits it.
    """

    def __init__(
        self,
        session: Optional[DialogueSession] = None,
        fallback: Optional[FallbackAdapter] = None,
        participant: Optional[ParticipantProfile] = None,
        classifier: Optional[IntentClassifier] = None,
        speech: Optional[UtteranceQueue] = None,
    ):
        self.session = session or DialogueSession()
        self.fallback = fallback or FallbackAdapter()
        self.participant = participant or ParticipantProfile.from_settings()
        self.classifier = classifier or get_intent_classifier()
        self.speech = speech or UtteranceQueue()
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def thread_id(self) -> str:
        return self.session.thread_id

    @property
    def active_mode(self) -> ActiveMode:
        return self.session.active_mode

    @property
    def messages(self) -> List[Message]:
        return self.session.log.messages

    @property
    def snapshots(self) -> Dict[FlowKind, CompletionSnapshot]:
        return dict(self.session.snapshots)

    def state_view(self) -> dict:
        flow = self.session.active_flow
        return {
            "thread_id": self.thread_id,
            "active_mode": self.active_mode.value,
            "flow_state": flow.to_dict() if flow is not None else None,
            "pending": self.session.pending.to_dict() if self.session.pending else None,
            "snapshots": {k.value: s.to_dict() for k, s in self.session.snapshots.items()},
        }

    # ------------------------------------------------------------------
    # Mutation entry points
    # ------------------------------------------------------------------

    async def submit_input(self, text: str, source: InputSource = InputSource.TEXT) -> TurnResult:
        """
        Process one input event to completion.

        Args:
            text: Typed text, final voice transcript, or chip phrase
            source: text, voice or chip

        Returns:
            TurnResult with the single assistant message for this event

        Raises:
            ValueError: If the input is empty or the source is unknown
        """
        source = InputSource(source)
        text = (text or "").strip()
        if not text:
            raise ValueError("Input text is empty")

        async with self._lock:
            return await self._process(text, source)

    async def reset(self) -> None:
        """Restore the greeting, clear flows and the gate, keep snapshots."""
        async with self._lock:
            self.session.log = MessageLog.with_greeting()
            self.session.active_flow = None
            self.session.pending = None
            self.speech.cancel()
            self._audit("full_reset", {})

    def dismiss_snapshot(self, kind: FlowKind) -> bool:
        """Drop a completion snapshot. Returns False when none existed."""
        kind = FlowKind(kind)
        snapshot = self.session.snapshots.pop(kind, None)
        if snapshot is None:
            return False
        self._audit("snapshot_dismissed", {"kind": kind.value})
        return True

    def report_capability_issue(self, issue: CapabilityIssue) -> Optional[str]:
        """
        User-facing notice for a missing speech capability.

        Returned once per session; None afterwards. Flow state and the
        message log are never touched.
        """
        issue = CapabilityIssue(issue)
        if issue.value in self.session.notices_shown:
            return None
        self.session.notices_shown.append(issue.value)
        logger.info(f"Capability issue reported for {self.thread_id}: {issue.value}")
        return CAPABILITY_NOTICES[issue]

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _process(self, text: str, source: InputSource) -> TurnResult:
        # Context for the fallback excludes the current input
        history = self.session.log.recent(settings.FALLBACK_CONTEXT_MESSAGES)

        if source in (InputSource.TEXT, InputSource.VOICE):
            self.session.log.append(MessageRole.USER, text)

        try:
            reply = await self._route(text, source, history)
        except FlowInvariantError as e:
            logger.error(f"Flow invariant violated in {self.thread_id}: {e}")
            reply = GENERIC_MESSAGE
        except Exception as e:
            logger.exception(f"Unexpected error while processing input for {self.thread_id}: {e}")
            reply = GENERIC_MESSAGE

        return self._reply(reply)

    async def _route(self, text: str, source: InputSource, history: List[Message]) -> str:
        # 1. Pending confirmation gate
        if self.session.pending is not None:
            if self.session.active_flow is not None:
                raise FlowInvariantError("Pending confirmation set while a flow is active")
            return self._resolve_pending(text)

        # 2. Chip-driven flow switch
        if (
            source == InputSource.CHIP
            and self.session.active_flow is not None
            and self.classifier.is_top_level(text)
        ):
            left = self.session.active_kind
            self.session.active_flow = None
            self.session.pending = None
            self._audit("chip_reset", {"left": left.value, "input": text})
            return await self._route_idle(text, history)

        # 3. Active flow
        if self.session.active_flow is not None:
            return self._advance_flow(text)

        # 4. Nothing active
        return await self._route_idle(text, history)

    async def _route_idle(self, text: str, history: List[Message]) -> str:
        signals = self.classifier.classify(text)
        intent = self.classifier.primary_intent(signals)

        if intent == TopLevelIntent.LOAN_INDIRECT:
            self.session.pending = PendingConfirmation(FlowKind.LOAN)
            self._audit("pending_opened", {"kind": FlowKind.LOAN.value, "input": text})
            return PENDING_LOAN_PROMPT

        if intent is not None:
            kind = INTENT_FLOWS[intent]
            machine = get_machine(kind)
            result = machine.transition(None, text, self.participant)
            return self._commit(machine, None, result, start_input=text)

        return await self._answer_with_fallback(text, history)

    def _resolve_pending(self, text: str) -> str:
        pending = self.session.pending
        try:
            start, reask = CONFIRMED_STARTS[pending.kind]
        except KeyError as e:
            raise FlowInvariantError(f"No confirmed start for {pending.kind.value}") from e

        answer = self.classifier.parse_confirmation(text)
        if answer == ConfirmationAnswer.UNCLEAR and is_cancel(text):
            answer = ConfirmationAnswer.NO

        if answer == ConfirmationAnswer.YES:
            self.session.pending = None
            self._audit("pending_resolved", {"kind": pending.kind.value, "answer": "yes"})
            machine = get_machine(pending.kind)
            return self._commit(machine, None, start(text, self.participant), start_input=text)

        if answer == ConfirmationAnswer.NO:
            self.session.pending = None
            self._audit("pending_resolved", {"kind": pending.kind.value, "answer": "no"})
            return DONE_MESSAGE

        return reask

    def _advance_flow(self, text: str) -> str:
        current = self.session.active_flow
        machine = get_machine(self.session.active_kind)
        result = machine.transition(current, text, self.participant)
        return self._commit(machine, current, result)

    def _commit(
        self,
        machine: FlowMachine,
        current,
        result: TransitionResult,
        start_input: Optional[str] = None,
    ) -> str:
        """Validate a proposed transition and write it into the session."""
        proposed = result.next_state
        if not machine.is_allowed(current, proposed):
            from_step = current.step.value if current is not None else None
            to_step = getattr(getattr(proposed, "step", None), "value", proposed)
            raise FlowInvariantError(
                f"{machine.kind.value}: transition {from_step} -> {to_step} is not allowed"
            )

        if result.is_cancelled:
            self.session.active_flow = None
            if current is not None:
                self._audit("flow_cancelled", {"kind": machine.kind.value, "step": current.step.value})
            return result.message

        if result.is_complete:
            self.session.active_flow = None
            if proposed is not None and proposed.step == machine.terminal_step:
                self.session.snapshots[machine.kind] = CompletionSnapshot(
                    kind=machine.kind,
                    state=proposed,
                    completed_at=datetime.utcnow(),
                )
            self._audit("flow_completed", {
                "kind": machine.kind.value,
                "step": proposed.step.value if proposed is not None else None,
                "state": proposed.to_dict() if proposed is not None else None,
            })
            return result.message

        if current is None:
            # A fresh flow replaces any earlier summary of the same kind
            self.session.snapshots.pop(machine.kind, None)
            self._audit("flow_started", {
                "kind": machine.kind.value,
                "step": proposed.step.value,
                "input": start_input,
            })
        elif proposed.step != current.step:
            logger.info(
                f"{machine.kind.value} step {current.step.value} -> {proposed.step.value} "
                f"for {self.thread_id}"
            )

        self.session.active_flow = proposed
        return result.message

    async def _answer_with_fallback(self, text: str, history: List[Message]) -> str:
        if self.session.active_flow is not None or self.session.pending is not None:
            raise FlowInvariantError("Fallback requested while a flow or confirmation is active")
        context = account_context(self.participant, self.session.snapshots)
        return await self.fallback.answer(text, history, context=context)

    def _reply(self, text: str) -> TurnResult:
        message = self.session.log.append(MessageRole.ASSISTANT, text)
        utterance = self.speech.speak(text)
        flow = self.session.active_flow
        return TurnResult(
            message=message,
            active_mode=self.active_mode,
            flow_state=flow.to_dict() if flow is not None else None,
            pending=self.session.is_pending,
            utterance=utterance,
        )

    def _audit(self, event_type: str, details: dict) -> None:
        log_audit_event(
            event_type=event_type,
            actor_id=self.thread_id,
            actor_type="participant",
            details=details,
        )
