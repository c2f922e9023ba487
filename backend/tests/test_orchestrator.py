"""
Tests for the dialogue orchestrator.
"""

import asyncio
import logging
import pytest
from dataclasses import replace

from assistant.orchestration.fallback import FallbackAdapter
from assistant.orchestration.flows import FLOW_MACHINES, FlowKind
from assistant.orchestration.flows.base import Continuing
from assistant.orchestration.flows.withdrawal import WithdrawalState, WithdrawalStep
from assistant.orchestration.orchestrator import (
    GENERIC_MESSAGE,
    PENDING_LOAN_PROMPT,
    PENDING_LOAN_REASK,
    CapabilityIssue,
    DialogueOrchestrator,
)
from assistant.orchestration.session import (
    GREETING,
    ActiveMode,
    DialogueSession,
    MessageRole,
)

NO_CHANGES = "Understood. No changes were made. You can come back anytime."

WITHDRAWAL_TO_REVIEW = [
    "how much can I withdraw?",
    "continue",
    "continue",
    "continue",
    "type:HARDSHIP",
    "amount:2000",
    "continue",
]


def assistant_messages(orchestrator):
    return [m for m in orchestrator.messages if m.role == MessageRole.ASSISTANT]


def user_messages(orchestrator):
    return [m for m in orchestrator.messages if m.role == MessageRole.USER]


class TestLoanEntry:
    """Direct and indirect loan requests."""

    def test_direct_loan_request_starts_at_rules(self, orchestrator, say):
        result = say("I want to apply for a loan")
        assert result.active_mode == ActiveMode.LOAN
        assert result.flow_state["step"] == "RULES"
        assert result.pending is False
        assert "eligib" not in result.message.content.lower()

    def test_indirect_request_opens_pending_gate(self, orchestrator, say):
        result = say("borrow from my retirement")
        assert result.pending is True
        assert result.active_mode == ActiveMode.NONE
        assert result.flow_state is None
        assert result.message.content == PENDING_LOAN_PROMPT

    def test_pending_yes_starts_loan_at_rules(self, orchestrator, say):
        say("borrow from my retirement")
        result = say("yes")
        assert result.pending is False
        assert result.active_mode == ActiveMode.LOAN
        assert result.flow_state["step"] == "RULES"

    def test_pending_no_clears_gate(self, orchestrator, say):
        say("borrow from my retirement")
        result = say("no")
        assert result.pending is False
        assert result.active_mode == ActiveMode.NONE
        assert result.message.content == NO_CHANGES

    def test_pending_unclear_reasks(self, orchestrator, say, fake_llm):
        say("borrow from my retirement")
        result = say("what's the interest rate?")
        assert result.pending is True
        assert result.message.content == PENDING_LOAN_REASK
        assert fake_llm.calls == []

    def test_pending_ignores_other_intents(self, orchestrator, say):
        say("borrow from my retirement")
        result = say("how much can I withdraw?")
        assert result.pending is True
        assert result.active_mode == ActiveMode.NONE

    def test_pending_cancel_counts_as_no(self, orchestrator, say):
        say("borrow from my retirement")
        result = say("cancel")
        assert result.pending is False
        assert result.message.content == NO_CHANGES


class TestWithdrawalThroughOrchestrator:

    def test_full_request_leaves_snapshot(self, orchestrator, say):
        for text in WITHDRAWAL_TO_REVIEW:
            result = say(text)
        assert result.flow_state == {"step": "REVIEW", "withdrawal_type": "HARDSHIP", "amount": 2000}

        result = say("submit")
        assert result.message.content == "Withdrawal request submitted."
        assert result.active_mode == ActiveMode.NONE
        assert result.flow_state is None

        snapshot = orchestrator.snapshots[FlowKind.WITHDRAWAL]
        assert snapshot.state.step == WithdrawalStep.CONFIRMED
        assert snapshot.state.amount == 2000

    def test_change_amount_from_review(self, orchestrator, say):
        for text in WITHDRAWAL_TO_REVIEW:
            say(text)
        result = say("change amount")
        assert result.flow_state == {"step": "AMOUNT", "withdrawal_type": "HARDSHIP", "amount": None}

    def test_starting_again_clears_previous_snapshot(self, orchestrator, say):
        for text in WITHDRAWAL_TO_REVIEW + ["submit"]:
            say(text)
        assert FlowKind.WITHDRAWAL in orchestrator.snapshots

        say("how much can I withdraw?")
        assert FlowKind.WITHDRAWAL not in orchestrator.snapshots

    def test_typed_intent_inside_flow_goes_to_flow(self, orchestrator, say):
        say("how much can I withdraw?")
        result = say("I want to enroll")
        assert result.active_mode == ActiveMode.WITHDRAWAL
        assert result.flow_state["step"] == "INTENT"
        assert result.message.content == "Select Continue to review your account details."


class TestChipSwitch:

    def test_chip_intent_resets_and_starts_new_flow(self, orchestrator, say):
        say("how much can I withdraw?")
        say("continue")
        result = say("I want to enroll", source="chip")
        assert result.active_mode == ActiveMode.ENROLLMENT
        assert result.flow_state["step"] == "INTENT"

    def test_chip_non_intent_goes_to_active_flow(self, orchestrator, say):
        say("how much can I withdraw?")
        result = say("continue", source="chip")
        assert result.flow_state["step"] == "SNAPSHOT"

    def test_chip_is_not_echoed(self, orchestrator, say):
        say("What is my vested balance?", source="chip")
        assert user_messages(orchestrator) == []
        assert len(assistant_messages(orchestrator)) == 2

    @pytest.mark.parametrize("source", ["text", "voice"])
    def test_text_and_voice_are_echoed(self, orchestrator, say, source):
        say("How much can I withdraw?", source=source)
        users = user_messages(orchestrator)
        assert [m.content for m in users] == ["How much can I withdraw?"]

    def test_chip_reset_is_audited(self, orchestrator, say, caplog):
        say("how much can I withdraw?")
        with caplog.at_level(logging.INFO, logger="assistant"):
            say("I want to apply for a loan", source="chip")
        assert "AUDIT: chip_reset" in caplog.text
        assert "AUDIT: flow_started" in caplog.text


class TestGlobalCancel:

    @pytest.mark.parametrize("start,mode", [
        ("I want to enroll", ActiveMode.ENROLLMENT),
        ("I want to apply for a loan", ActiveMode.LOAN),
        ("how much can I withdraw?", ActiveMode.WITHDRAWAL),
        ("What is my vested balance?", ActiveMode.VESTING),
    ])
    def test_cancel_ends_any_flow(self, orchestrator, say, start, mode):
        assert say(start).active_mode == mode
        result = say("never mind")
        assert result.active_mode == ActiveMode.NONE
        assert result.flow_state is None
        assert "no changes were made" in result.message.content
        assert orchestrator.snapshots == {}


class TestInvariants:

    SEQUENCE = [
        "borrow from my retirement",
        "maybe",
        "yes",
        "continue",
        "How much can I withdraw?",
        "15000",
        "skip",
        "2 years",
        "submit",
        "What is a 401k?",
        "how much can I withdraw?",
        "continue",
        "What is my vested balance?",
        "stop",
        "What is my vested balance?",
    ]

    def test_one_assistant_message_per_event(self, orchestrator, say):
        for i, text in enumerate(self.SEQUENCE):
            source = "chip" if i % 4 == 3 else "text"
            before = len(assistant_messages(orchestrator))
            say(text, source=source)
            assert len(assistant_messages(orchestrator)) == before + 1

    def test_pending_and_flow_are_exclusive(self, orchestrator, say):
        for text in self.SEQUENCE:
            say(text)
            session = orchestrator.session
            assert not (session.pending is not None and session.active_flow is not None)
            mode = orchestrator.active_mode
            assert (mode == ActiveMode.NONE) == (session.active_flow is None)

    def test_fallback_only_when_idle(self, orchestrator, say, fake_llm):
        for text in self.SEQUENCE:
            idle = orchestrator.active_mode == ActiveMode.NONE and orchestrator.session.pending is None
            calls = len(fake_llm.calls)
            say(text)
            if not idle:
                assert len(fake_llm.calls) == calls

    def test_one_utterance_per_event(self, orchestrator, say):
        first = say("What is a 401k?").utterance
        second = say("how much can I withdraw?").utterance
        assert first.cancelled is True
        assert second.cancelled is False
        assert orchestrator.speech.current is second

    def test_disallowed_transition_is_contained(self, orchestrator, say, monkeypatch):
        machine = FLOW_MACHINES[FlowKind.WITHDRAWAL]

        def skipping_transition(state, text, participant=None):
            return Continuing(replace(state, step=WithdrawalStep.CONFIRMED), "skipped ahead")

        say("how much can I withdraw?")
        monkeypatch.setitem(
            FLOW_MACHINES, FlowKind.WITHDRAWAL, replace(machine, transition=skipping_transition)
        )
        result = say("continue")
        assert result.message.content == GENERIC_MESSAGE
        assert orchestrator.session.active_flow == WithdrawalState(step=WithdrawalStep.INTENT)

    def test_crashing_transition_is_contained(self, orchestrator, say, monkeypatch):
        machine = FLOW_MACHINES[FlowKind.VESTING]

        def broken_transition(state, text, participant=None):
            raise KeyError("boom")

        say("What is my vested balance?")
        monkeypatch.setitem(FLOW_MACHINES, FlowKind.VESTING, replace(machine, transition=broken_transition))
        result = say("continue")
        assert result.message.content == GENERIC_MESSAGE
        assert result.active_mode == ActiveMode.VESTING

    def test_empty_input_rejected(self, orchestrator, say):
        with pytest.raises(ValueError):
            say("   ")
        assert len(orchestrator.messages) == 1


class TestFallback:

    def test_idle_question_goes_to_fallback(self, orchestrator, say, fake_llm):
        result = say("What is a 401k?")
        assert result.message.content == fake_llm.reply
        assert len(fake_llm.calls) == 1
        # system instruction, greeting, current question
        sent = fake_llm.calls[0]
        assert sent[-1].content == "What is a 401k?"
        assert [m.content for m in sent[1:-1]] == [GREETING]

    def test_keyword_answer_when_model_fails(self, participant, failing_llm):
        orchestrator = DialogueOrchestrator(
            fallback=FallbackAdapter(llm=failing_llm),
            participant=participant,
        )
        result = asyncio.run(orchestrator.submit_input("tell me about rollover", "text"))
        assert failing_llm.calls == 1
        assert "rollover" in result.message.content.lower()
        assert result.active_mode == ActiveMode.NONE

    def test_input_is_serialised_around_fallback(self, participant):
        class SlowLLM:
            async def ainvoke(self, messages, config=None):
                await asyncio.sleep(0.05)
                return type("Reply", (), {"content": "Rollovers move savings between plans."})()

        orchestrator = DialogueOrchestrator(fallback=FallbackAdapter(llm=SlowLLM()), participant=participant)

        async def race():
            await asyncio.gather(
                orchestrator.submit_input("what is a rollover", "text"),
                orchestrator.submit_input("how much can I withdraw?", "text"),
            )

        asyncio.run(race())
        contents = [m.content for m in orchestrator.messages]
        assert contents[1:] == [
            "what is a rollover",
            "Rollovers move savings between plans.",
            "how much can I withdraw?",
            "I can help you understand your withdrawal options. Let's review a few details first.",
        ]
        assert orchestrator.active_mode == ActiveMode.WITHDRAWAL


class TestSessionControls:

    def test_reset_restores_greeting_and_keeps_snapshots(self, orchestrator, say):
        for text in WITHDRAWAL_TO_REVIEW + ["submit"]:
            say(text)
        say("I want to enroll")

        asyncio.run(orchestrator.reset())
        assert [m.content for m in orchestrator.messages] == [GREETING]
        assert orchestrator.active_mode == ActiveMode.NONE
        assert orchestrator.session.pending is None
        assert FlowKind.WITHDRAWAL in orchestrator.snapshots
        assert orchestrator.speech.current is None

    def test_dismiss_snapshot(self, orchestrator, say):
        for text in WITHDRAWAL_TO_REVIEW + ["submit"]:
            say(text)
        assert orchestrator.dismiss_snapshot(FlowKind.WITHDRAWAL) is True
        assert orchestrator.dismiss_snapshot(FlowKind.WITHDRAWAL) is False

    def test_capability_notice_shown_once(self, orchestrator):
        first = orchestrator.report_capability_issue(CapabilityIssue.MICROPHONE_DENIED)
        second = orchestrator.report_capability_issue(CapabilityIssue.MICROPHONE_DENIED)
        assert first and "Microphone" in first
        assert second is None
        assert len(orchestrator.messages) == 1
        assert orchestrator.active_mode == ActiveMode.NONE

    def test_session_round_trip_mid_flow(self, orchestrator, say, participant, fake_llm):
        for text in WITHDRAWAL_TO_REVIEW[:5]:
            say(text)

        restored = DialogueOrchestrator(
            session=DialogueSession.from_dict(orchestrator.session.to_dict()),
            fallback=FallbackAdapter(llm=fake_llm),
            participant=participant,
        )
        assert restored.active_mode == ActiveMode.WITHDRAWAL
        assert len(restored.messages) == len(orchestrator.messages)

        result = asyncio.run(restored.submit_input("amount:2000", "text"))
        assert result.flow_state["step"] == "IMPACT"
