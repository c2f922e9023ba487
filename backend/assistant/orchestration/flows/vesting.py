"""
Vesting flow

OVERVIEW -> SCHEDULE -> WITHDRAWAL_IMPACT -> SUMMARY -> COMPLETE

Informational only: the participant reviews their vested balance, the plan's
vesting schedule and how vesting affects withdrawals. SUMMARY can jump back
to SCHEDULE or WITHDRAWAL_IMPACT.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from assistant.orchestration.flows.base import (
    CONTINUE_PATTERN,
    DONE_MESSAGE,
    DONE_PATTERN,
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


class VestingStep(str, Enum):
    OVERVIEW = "OVERVIEW"
    SCHEDULE = "SCHEDULE"
    WITHDRAWAL_IMPACT = "WITHDRAWAL_IMPACT"
    SUMMARY = "SUMMARY"
    COMPLETE = "COMPLETE"


@dataclass(frozen=True)
class VestingState:
    step: VestingStep
    vested_percent: Optional[int] = None
    vested_balance: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "step": self.step.value,
            "vested_percent": self.vested_percent,
            "vested_balance": self.vested_balance,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VestingState":
        return cls(
            step=VestingStep(data["step"]),
            vested_percent=data.get("vested_percent"),
            vested_balance=data.get("vested_balance"),
        )


ENTRY_STEPS = frozenset({VestingStep.OVERVIEW})

TERMINAL_STEP = VestingStep.COMPLETE

TRANSITIONS = {
    VestingStep.OVERVIEW: {VestingStep.OVERVIEW, VestingStep.SCHEDULE, VestingStep.WITHDRAWAL_IMPACT},
    VestingStep.SCHEDULE: {VestingStep.SCHEDULE, VestingStep.WITHDRAWAL_IMPACT},
    VestingStep.WITHDRAWAL_IMPACT: {VestingStep.WITHDRAWAL_IMPACT, VestingStep.SUMMARY},
    VestingStep.SUMMARY: {
        VestingStep.SUMMARY,
        VestingStep.COMPLETE,
        VestingStep.SCHEDULE,
        VestingStep.WITHDRAWAL_IMPACT,
    },
    VestingStep.COMPLETE: {VestingStep.COMPLETE},
}

SCHEDULES = {
    "graded": (
        "Your plan uses a graded vesting schedule: employer contributions vest 20% "
        "per year of service and are fully vested after 5 years. "
        "Your own contributions are always 100% vested."
    ),
    "cliff": (
        "Your plan uses a cliff vesting schedule: employer contributions become fully "
        "vested after 3 years of service. Your own contributions are always 100% vested."
    ),
}

WITHDRAWAL_IMPACT_MESSAGE = (
    "Only your vested balance can be withdrawn or borrowed against. "
    "Unvested employer contributions stay in the plan until they vest, "
    "and may be forfeited if you leave before then."
)
SUMMARY_MESSAGE = (
    "That's an overview of your vesting. Say done to finish, "
    "or review the schedule or withdrawals again."
)
COMPLETE_MESSAGE = "You're all set. Your vesting summary is available anytime."


def overview_message(participant: ParticipantProfile) -> str:
    return (
        f"You are {participant.vested_percent}% vested, with a vested balance of "
        f"{format_currency(participant.vested_balance)}. "
        "Would you like to view your vesting schedule?"
    )


def schedule_message(participant: ParticipantProfile) -> str:
    return SCHEDULES.get(participant.vesting_schedule_type, SCHEDULES["graded"])


def transition(
    state: Optional[VestingState],
    text: str,
    participant: Optional[ParticipantProfile] = None,
) -> TransitionResult:
    """Advance the vesting flow by one input."""
    participant = participant or ParticipantProfile.from_settings()
    text = text.strip()

    if is_cancel(text):
        return Cancelled()

    if state is None:
        return Continuing(
            VestingState(
                step=VestingStep.OVERVIEW,
                vested_percent=participant.vested_percent,
                vested_balance=participant.vested_balance,
            ),
            overview_message(participant),
        )

    step = state.step

    if step == VestingStep.OVERVIEW:
        if matches(r"withdraw", text):
            return Continuing(replace(state, step=VestingStep.WITHDRAWAL_IMPACT), WITHDRAWAL_IMPACT_MESSAGE)
        if is_affirmative(CONTINUE_PATTERN, text) or matches(r"schedule", text):
            return Continuing(replace(state, step=VestingStep.SCHEDULE), schedule_message(participant))
        return Continuing(state, overview_message(participant))

    if step == VestingStep.SCHEDULE:
        if is_affirmative(CONTINUE_PATTERN, text) or matches(r"withdraw", text):
            return Continuing(replace(state, step=VestingStep.WITHDRAWAL_IMPACT), WITHDRAWAL_IMPACT_MESSAGE)
        return Continuing(state, "Select Continue to see how vesting affects withdrawals.")

    if step == VestingStep.WITHDRAWAL_IMPACT:
        if is_affirmative(CONTINUE_PATTERN, text):
            return Continuing(replace(state, step=VestingStep.SUMMARY), SUMMARY_MESSAGE)
        return Continuing(state, "Select Continue to see your summary.")

    if step == VestingStep.SUMMARY:
        if matches(r"review schedule", text):
            return Continuing(replace(state, step=VestingStep.SCHEDULE), schedule_message(participant))
        if matches(r"review withdrawal", text):
            return Continuing(replace(state, step=VestingStep.WITHDRAWAL_IMPACT), WITHDRAWAL_IMPACT_MESSAGE)
        if is_affirmative(r"\b(done|got it|finish|yes)\b", text):
            return Completed(replace(state, step=VestingStep.COMPLETE), COMPLETE_MESSAGE)
        return Continuing(state, SUMMARY_MESSAGE)

    # COMPLETE
    if matches(DONE_PATTERN, text):
        return Completed(None, DONE_MESSAGE)
    return Completed(state, COMPLETE_MESSAGE)
