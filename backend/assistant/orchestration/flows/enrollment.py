"""
Enrollment flow

INTENT -> RETIREMENT_AGE -> LOCATION -> PLAN_SELECTION -> CONTRIBUTION ->
MONEY_HANDLING -> [MANUAL_RISK] -> REVIEW -> CONFIRMED

MANUAL_RISK is only visited when the participant chooses to manage their own
investments. Edits requested from REVIEW return to REVIEW once the edited
step is answered and every required field is present.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional
import re

from assistant.orchestration.flows.base import (
    DONE_MESSAGE,
    DONE_PATTERN,
    SUBMIT_PATTERN,
    Cancelled,
    Completed,
    Continuing,
    TransitionResult,
    is_affirmative,
    is_cancel,
    matches,
    parse_int,
)
from assistant.orchestration.participant import ParticipantProfile


class EnrollmentStep(str, Enum):
    INTENT = "INTENT"
    RETIREMENT_AGE = "RETIREMENT_AGE"
    LOCATION = "LOCATION"
    PLAN_SELECTION = "PLAN_SELECTION"
    CONTRIBUTION = "CONTRIBUTION"
    MONEY_HANDLING = "MONEY_HANDLING"
    MANUAL_RISK = "MANUAL_RISK"
    REVIEW = "REVIEW"
    CONFIRMED = "CONFIRMED"


@dataclass(frozen=True)
class EnrollmentState:
    step: EnrollmentStep
    retirement_age: Optional[int] = None
    location: Optional[str] = None
    plan_type: Optional[str] = None
    contribution_percent: Optional[int] = None
    money_handling: Optional[str] = None
    risk_level: Optional[str] = None

    @property
    def is_ready_for_review(self) -> bool:
        required = [
            self.retirement_age,
            self.location,
            self.plan_type,
            self.contribution_percent,
            self.money_handling,
        ]
        if any(value is None for value in required):
            return False
        return self.money_handling != "manual" or self.risk_level is not None

    def to_dict(self) -> dict:
        return {
            "step": self.step.value,
            "retirement_age": self.retirement_age,
            "location": self.location,
            "plan_type": self.plan_type,
            "contribution_percent": self.contribution_percent,
            "money_handling": self.money_handling,
            "risk_level": self.risk_level,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EnrollmentState":
        return cls(
            step=EnrollmentStep(data["step"]),
            retirement_age=data.get("retirement_age"),
            location=data.get("location"),
            plan_type=data.get("plan_type"),
            contribution_percent=data.get("contribution_percent"),
            money_handling=data.get("money_handling"),
            risk_level=data.get("risk_level"),
        )


ENTRY_STEPS = frozenset({EnrollmentStep.INTENT})

TERMINAL_STEP = EnrollmentStep.CONFIRMED

_EDITABLE = {
    EnrollmentStep.RETIREMENT_AGE,
    EnrollmentStep.LOCATION,
    EnrollmentStep.PLAN_SELECTION,
    EnrollmentStep.CONTRIBUTION,
    EnrollmentStep.MONEY_HANDLING,
    EnrollmentStep.MANUAL_RISK,
}

TRANSITIONS = {
    EnrollmentStep.INTENT: {EnrollmentStep.INTENT, EnrollmentStep.RETIREMENT_AGE},
    EnrollmentStep.RETIREMENT_AGE: {
        EnrollmentStep.RETIREMENT_AGE, EnrollmentStep.LOCATION, EnrollmentStep.REVIEW,
    },
    EnrollmentStep.LOCATION: {
        EnrollmentStep.LOCATION, EnrollmentStep.PLAN_SELECTION, EnrollmentStep.REVIEW,
    },
    EnrollmentStep.PLAN_SELECTION: {
        EnrollmentStep.PLAN_SELECTION, EnrollmentStep.CONTRIBUTION, EnrollmentStep.REVIEW,
    },
    EnrollmentStep.CONTRIBUTION: {
        EnrollmentStep.CONTRIBUTION, EnrollmentStep.MONEY_HANDLING, EnrollmentStep.REVIEW,
    },
    EnrollmentStep.MONEY_HANDLING: {
        EnrollmentStep.MONEY_HANDLING, EnrollmentStep.MANUAL_RISK, EnrollmentStep.REVIEW,
    },
    EnrollmentStep.MANUAL_RISK: {EnrollmentStep.MANUAL_RISK, EnrollmentStep.REVIEW},
    EnrollmentStep.REVIEW: _EDITABLE | {EnrollmentStep.REVIEW, EnrollmentStep.CONFIRMED},
    EnrollmentStep.CONFIRMED: {EnrollmentStep.CONFIRMED},
}

DEFAULT_RETIREMENT_AGE = 67

INTENT_MESSAGE = (
    "Let's get you enrolled in your retirement plan. "
    "I'll walk you through a few quick choices. Say start when you're ready."
)
LOCATION_MESSAGE = "Where do you plan to retire? For example, United States, United Kingdom or Canada."
PLAN_MESSAGE = (
    "Choose your plan. A Traditional 401(k) lets you pay tax later; "
    "a Roth 401(k) lets you pay tax now."
)
CONTRIBUTION_MESSAGE = "What percentage of your salary would you like to contribute? Choose between 1% and 75%."
MONEY_HANDLING_MESSAGE = (
    "How would you like your contributions invested? "
    "Choose default (system-managed), manual, or advisor."
)
RISK_MESSAGE = "How much risk are you comfortable with? Choose conservative, moderate, growth or aggressive."
CONFIRMED_MESSAGE = "Your enrollment has been submitted. Changes may take 1-2 business days to process."

LOCATIONS = [
    ("United States", r"\b(united states|usa|u\.s\.a?\.?|us)\b"),
    ("United Kingdom", r"\b(united kingdom|uk|u\.k\.|britain|england)\b"),
    ("Canada", r"\bcanada\b"),
]

MONEY_HANDLING = [
    ("default", r"\b(default|system[- ]managed|automatic|auto)\b"),
    ("manual", r"\b(manual|myself|my own)\b"),
    ("advisor", r"\b(advisor|adviser|professional)\b"),
]

RISK_LEVELS = ["conservative", "moderate", "growth", "aggressive"]

# Checked in order; "change investment" must not fall through to a plan edit
EDIT_COMMANDS = [
    (r"customi[sz]e allocation", EnrollmentStep.MANUAL_RISK),
    (r"change investment|edit investment", EnrollmentStep.MONEY_HANDLING),
    (r"change plan|edit plan", EnrollmentStep.PLAN_SELECTION),
    (r"change contribution|edit contribution", EnrollmentStep.CONTRIBUTION),
    (r"(change|edit) retirement age", EnrollmentStep.RETIREMENT_AGE),
    (r"(change|edit) location", EnrollmentStep.LOCATION),
]


def retirement_age_message(participant: ParticipantProfile) -> str:
    return (
        f"You're {participant.current_age} today. At what age would you like to retire? "
        "Choose an age between 50 and 75, or say not sure."
    )


def review_message(state: EnrollmentState) -> str:
    investments = state.money_handling
    if state.money_handling == "manual" and state.risk_level:
        investments = f"manual ({state.risk_level})"
    return (
        "Review your enrollment below. "
        f"Retire at {state.retirement_age} in {state.location}, {state.plan_type}, "
        f"contributing {state.contribution_percent}% with {investments} investments. "
        "Do you want to confirm?"
    )


def prompt_for(step: EnrollmentStep, participant: ParticipantProfile) -> str:
    return {
        EnrollmentStep.RETIREMENT_AGE: retirement_age_message(participant),
        EnrollmentStep.LOCATION: LOCATION_MESSAGE,
        EnrollmentStep.PLAN_SELECTION: PLAN_MESSAGE,
        EnrollmentStep.CONTRIBUTION: CONTRIBUTION_MESSAGE,
        EnrollmentStep.MONEY_HANDLING: MONEY_HANDLING_MESSAGE,
        EnrollmentStep.MANUAL_RISK: RISK_MESSAGE,
    }[step]


def _advance(state: EnrollmentState, next_step: EnrollmentStep, participant: ParticipantProfile) -> TransitionResult:
    """Go to the next step, or straight back to REVIEW when nothing is missing."""
    if state.is_ready_for_review:
        reviewed = replace(state, step=EnrollmentStep.REVIEW)
        return Continuing(reviewed, review_message(reviewed))
    return Continuing(replace(state, step=next_step), prompt_for(next_step, participant))


def parse_retirement_age(text: str, participant: ParticipantProfile) -> Optional[int]:
    if matches(r"not sure|don'?t know|unsure", text):
        return DEFAULT_RETIREMENT_AGE
    age = parse_int(text)
    if age is None or not (50 <= age <= 75) or age <= participant.current_age:
        return None
    return age


def parse_location(text: str) -> Optional[str]:
    match = re.search(r"location\s*:\s*(.+)", text, re.IGNORECASE)
    if match:
        return match.group(1).strip()
    for name, pattern in LOCATIONS:
        if matches(pattern, text):
            return name
    return None


def parse_plan(text: str) -> Optional[str]:
    if matches(r"roth|pay tax now", text):
        return "Roth 401(k)"
    if matches(r"traditional|pay tax later", text):
        return "Traditional 401(k)"
    return None


def transition(
    state: Optional[EnrollmentState],
    text: str,
    participant: Optional[ParticipantProfile] = None,
) -> TransitionResult:
    """Advance the enrollment flow by one input."""
    participant = participant or ParticipantProfile.from_settings()
    text = text.strip()

    if is_cancel(text):
        return Cancelled()

    if state is None:
        return Continuing(EnrollmentState(step=EnrollmentStep.INTENT), INTENT_MESSAGE)

    step = state.step

    if step == EnrollmentStep.INTENT:
        if is_affirmative(r"\b(start|begin|yes|continue|ok|okay)\b", text):
            return Continuing(
                replace(state, step=EnrollmentStep.RETIREMENT_AGE),
                retirement_age_message(participant),
            )
        return Continuing(state, "Say start when you're ready to begin your enrollment.")

    if step == EnrollmentStep.RETIREMENT_AGE:
        age = parse_retirement_age(text, participant)
        if age is None:
            return Continuing(state, retirement_age_message(participant))
        return _advance(replace(state, retirement_age=age), EnrollmentStep.LOCATION, participant)

    if step == EnrollmentStep.LOCATION:
        location = parse_location(text)
        if location is None:
            return Continuing(state, LOCATION_MESSAGE)
        return _advance(replace(state, location=location), EnrollmentStep.PLAN_SELECTION, participant)

    if step == EnrollmentStep.PLAN_SELECTION:
        plan_type = parse_plan(text)
        if plan_type is None:
            return Continuing(state, PLAN_MESSAGE)
        return _advance(replace(state, plan_type=plan_type), EnrollmentStep.CONTRIBUTION, participant)

    if step == EnrollmentStep.CONTRIBUTION:
        percent = parse_int(text)
        if percent is None or not (1 <= percent <= 75):
            return Continuing(state, CONTRIBUTION_MESSAGE)
        return _advance(
            replace(state, contribution_percent=percent),
            EnrollmentStep.MONEY_HANDLING,
            participant,
        )

    if step == EnrollmentStep.MONEY_HANDLING:
        choice = next((name for name, pattern in MONEY_HANDLING if matches(pattern, text)), None)
        if choice is None:
            return Continuing(state, MONEY_HANDLING_MESSAGE)
        updated = replace(state, money_handling=choice)
        if choice != "manual":
            updated = replace(updated, risk_level=None)
        return _advance(updated, EnrollmentStep.MANUAL_RISK, participant)

    if step == EnrollmentStep.MANUAL_RISK:
        risk = next((level for level in RISK_LEVELS if matches(level, text)), None)
        if risk is None:
            return Continuing(state, RISK_MESSAGE)
        reviewed = replace(state, step=EnrollmentStep.REVIEW, risk_level=risk)
        return Continuing(reviewed, review_message(reviewed))

    if step == EnrollmentStep.REVIEW:
        for pattern, target in EDIT_COMMANDS:
            if not matches(pattern, text):
                continue
            if target == EnrollmentStep.MANUAL_RISK and state.money_handling != "manual":
                return Continuing(state, "Custom allocation is only available when you manage your own investments.")
            return Continuing(replace(state, step=target), prompt_for(target, participant))
        if is_affirmative(SUBMIT_PATTERN, text):
            return Completed(replace(state, step=EnrollmentStep.CONFIRMED), CONFIRMED_MESSAGE)
        return Continuing(state, "Select Confirm to submit your enrollment, or choose an edit option.")

    # CONFIRMED
    if matches(DONE_PATTERN, text):
        return Completed(None, DONE_MESSAGE)
    return Completed(state, CONFIRMED_MESSAGE)
