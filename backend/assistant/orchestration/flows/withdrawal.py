"""
Withdrawal flow

Walks the participant through a withdrawal request:
INTENT -> SNAPSHOT -> ELIGIBILITY -> TYPE -> AMOUNT -> IMPACT -> REVIEW -> CONFIRMED

From REVIEW the participant can jump back to TYPE or AMOUNT. The requested
amount is clamped to what the account makes available.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional
import re

from assistant.orchestration.flows.base import (
    CONTINUE_PATTERN,
    DONE_MESSAGE,
    DONE_PATTERN,
    SUBMIT_PATTERN,
    Cancelled,
    Completed,
    Continuing,
    TransitionResult,
    format_currency,
    is_affirmative,
    is_cancel,
    matches,
)
from assistant.orchestration.participant import ParticipantProfile


class WithdrawalStep(str, Enum):
    INTENT = "INTENT"
    SNAPSHOT = "SNAPSHOT"
    ELIGIBILITY = "ELIGIBILITY"
    TYPE = "TYPE"
    AMOUNT = "AMOUNT"
    IMPACT = "IMPACT"
    REVIEW = "REVIEW"
    CONFIRMED = "CONFIRMED"


class WithdrawalType(str, Enum):
    IN_SERVICE = "IN_SERVICE"
    HARDSHIP = "HARDSHIP"
    POST_EMPLOYMENT = "POST_EMPLOYMENT"


@dataclass(frozen=True)
class WithdrawalState:
    step: WithdrawalStep
    withdrawal_type: Optional[WithdrawalType] = None
    amount: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "step": self.step.value,
            "withdrawal_type": self.withdrawal_type.value if self.withdrawal_type else None,
            "amount": self.amount,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WithdrawalState":
        withdrawal_type = data.get("withdrawal_type")
        return cls(
            step=WithdrawalStep(data["step"]),
            withdrawal_type=WithdrawalType(withdrawal_type) if withdrawal_type else None,
            amount=data.get("amount"),
        )


ENTRY_STEPS = frozenset({WithdrawalStep.INTENT})

TERMINAL_STEP = WithdrawalStep.CONFIRMED

# Allowed step edges; staying on the same step is a re-prompt
TRANSITIONS = {
    WithdrawalStep.INTENT: {WithdrawalStep.INTENT, WithdrawalStep.SNAPSHOT},
    WithdrawalStep.SNAPSHOT: {WithdrawalStep.SNAPSHOT, WithdrawalStep.ELIGIBILITY},
    WithdrawalStep.ELIGIBILITY: {WithdrawalStep.ELIGIBILITY, WithdrawalStep.TYPE},
    WithdrawalStep.TYPE: {WithdrawalStep.TYPE, WithdrawalStep.AMOUNT},
    WithdrawalStep.AMOUNT: {WithdrawalStep.AMOUNT, WithdrawalStep.IMPACT},
    WithdrawalStep.IMPACT: {WithdrawalStep.IMPACT, WithdrawalStep.REVIEW},
    WithdrawalStep.REVIEW: {
        WithdrawalStep.REVIEW,
        WithdrawalStep.CONFIRMED,
        WithdrawalStep.AMOUNT,
        WithdrawalStep.TYPE,
    },
    WithdrawalStep.CONFIRMED: {WithdrawalStep.CONFIRMED},
}

INTENT_MESSAGE = "I can help you understand your withdrawal options. Let's review a few details first."
SNAPSHOT_MESSAGE = "Here's a snapshot of your account details."
ELIGIBILITY_MESSAGE = "Based on your account and plan rules, here's what withdrawals may be available."
TYPE_MESSAGE = "Which type of withdrawal do you want to request?"
IMPACT_MESSAGE = "Before you submit, here's a quick reminder about the impact."
REVIEW_MESSAGE = "Review your withdrawal request below. Do you want to submit it for processing?"
CONFIRMED_MESSAGE = "Withdrawal request submitted."

TYPE_PATTERN = re.compile(r"type\s*:\s*(in_service|hardship|post_employment)", re.IGNORECASE)
AMOUNT_PATTERN = re.compile(r"amount\s*:\s*(\d+)", re.IGNORECASE)


def amount_message(available: int) -> str:
    return (
        "How much do you want to request? "
        f"You may be able to request up to about {format_currency(available)}."
    )


def transition(
    state: Optional[WithdrawalState],
    text: str,
    participant: Optional[ParticipantProfile] = None,
) -> TransitionResult:
    """
    Advance the withdrawal flow by one input.

    Args:
        state: Current flow state, or None to start the flow
        text: User input (typed, spoken, or a chip phrase)
        participant: Account context; defaults to the configured participant

    Returns:
        Continuing, Completed or Cancelled
    """
    participant = participant or ParticipantProfile.from_settings()
    available = participant.withdrawal_available
    text = text.strip()

    if is_cancel(text):
        return Cancelled()

    if state is None:
        return Continuing(WithdrawalState(step=WithdrawalStep.INTENT), INTENT_MESSAGE)

    step = state.step

    if step == WithdrawalStep.INTENT:
        if is_affirmative(CONTINUE_PATTERN, text):
            return Continuing(replace(state, step=WithdrawalStep.SNAPSHOT), SNAPSHOT_MESSAGE)
        return Continuing(state, "Select Continue to review your account details.")

    if step == WithdrawalStep.SNAPSHOT:
        if is_affirmative(CONTINUE_PATTERN, text):
            return Continuing(replace(state, step=WithdrawalStep.ELIGIBILITY), ELIGIBILITY_MESSAGE)
        return Continuing(state, "Select Continue to review eligibility.")

    if step == WithdrawalStep.ELIGIBILITY:
        if is_affirmative(CONTINUE_PATTERN, text):
            return Continuing(replace(state, step=WithdrawalStep.TYPE), TYPE_MESSAGE)
        return Continuing(state, "Select Continue to choose a withdrawal type.")

    if step == WithdrawalStep.TYPE:
        match = TYPE_PATTERN.search(text)
        if match:
            withdrawal_type = WithdrawalType(match.group(1).upper())
            return Continuing(
                replace(state, step=WithdrawalStep.AMOUNT, withdrawal_type=withdrawal_type),
                amount_message(available),
            )
        return Continuing(state, "Please select a withdrawal type.")

    if step == WithdrawalStep.AMOUNT:
        match = AMOUNT_PATTERN.search(text)
        if match:
            amount = max(0, min(int(match.group(1)), available))
            return Continuing(
                replace(state, step=WithdrawalStep.IMPACT, amount=amount),
                IMPACT_MESSAGE,
            )
        return Continuing(state, "Please choose an amount using the slider or presets.")

    if step == WithdrawalStep.IMPACT:
        if is_affirmative(CONTINUE_PATTERN, text):
            return Continuing(replace(state, step=WithdrawalStep.REVIEW), REVIEW_MESSAGE)
        return Continuing(state, "Select Continue to review your request.")

    if step == WithdrawalStep.REVIEW:
        if is_affirmative(SUBMIT_PATTERN, text):
            return Completed(replace(state, step=WithdrawalStep.CONFIRMED), CONFIRMED_MESSAGE)
        if matches(r"change amount", text):
            return Continuing(
                replace(state, step=WithdrawalStep.AMOUNT, amount=None),
                amount_message(available),
            )
        if matches(r"change type", text):
            return Continuing(replace(state, step=WithdrawalStep.TYPE), TYPE_MESSAGE)
        return Continuing(state, "Select Submit to send your request for processing, or choose an edit option.")

    # CONFIRMED
    if matches(DONE_PATTERN, text):
        return Completed(None, DONE_MESSAGE)
    return Completed(state, CONFIRMED_MESSAGE)
