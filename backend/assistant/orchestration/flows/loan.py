"""
Loan flow

ELIGIBILITY -> RULES -> AMOUNT -> PURPOSE -> TERM -> REVIEW -> CONFIRMED

A direct request ("I want to apply for a loan") starts at RULES when the
account context is already known. A confirmed indirect request always starts
at RULES through ``start_confirmed``. Repayment figures come from the
calculation engine, never from the model.
"""
from dataclasses import dataclass, replace
from decimal import Decimal
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
from assistant.orchestration.intents import ConfirmationAnswer, get_intent_classifier
from assistant.orchestration.participant import ParticipantProfile
from assistant.services.calculation import calculate_loan_repayment


class LoanStep(str, Enum):
    ELIGIBILITY = "ELIGIBILITY"
    RULES = "RULES"
    AMOUNT = "AMOUNT"
    PURPOSE = "PURPOSE"
    TERM = "TERM"
    REVIEW = "REVIEW"
    CONFIRMED = "CONFIRMED"


@dataclass(frozen=True)
class LoanState:
    step: LoanStep
    amount: Optional[int] = None
    purpose: Optional[str] = None
    term_years: Optional[int] = None
    monthly_payment: Optional[float] = None
    total_repayment: Optional[float] = None
    total_interest: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "step": self.step.value,
            "amount": self.amount,
            "purpose": self.purpose,
            "term_years": self.term_years,
            "monthly_payment": self.monthly_payment,
            "total_repayment": self.total_repayment,
            "total_interest": self.total_interest,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LoanState":
        return cls(
            step=LoanStep(data["step"]),
            amount=data.get("amount"),
            purpose=data.get("purpose"),
            term_years=data.get("term_years"),
            monthly_payment=data.get("monthly_payment"),
            total_repayment=data.get("total_repayment"),
            total_interest=data.get("total_interest"),
        )


ENTRY_STEPS = frozenset({LoanStep.ELIGIBILITY, LoanStep.RULES})

TERMINAL_STEP = LoanStep.CONFIRMED

TRANSITIONS = {
    LoanStep.ELIGIBILITY: {LoanStep.ELIGIBILITY, LoanStep.RULES},
    LoanStep.RULES: {LoanStep.RULES, LoanStep.AMOUNT},
    LoanStep.AMOUNT: {LoanStep.AMOUNT, LoanStep.PURPOSE, LoanStep.REVIEW},
    LoanStep.PURPOSE: {LoanStep.PURPOSE, LoanStep.TERM, LoanStep.REVIEW},
    LoanStep.TERM: {LoanStep.TERM, LoanStep.REVIEW},
    LoanStep.REVIEW: {
        LoanStep.REVIEW,
        LoanStep.CONFIRMED,
        LoanStep.AMOUNT,
        LoanStep.PURPOSE,
        LoanStep.TERM,
    },
    LoanStep.CONFIRMED: {LoanStep.CONFIRMED},
}

ELIGIBILITY_MESSAGE = (
    "I can help you explore loan options based on your account. "
    "Are you currently employed and contributing to the plan?"
)
CONFIRMED_MESSAGE = "Loan request submitted."
NOT_ELIGIBLE_MESSAGE = (
    "Loans are available to participants who are actively employed and contributing. "
    "No changes were made. You can come back anytime."
)

PURPOSES = {
    "home repair": r"home|repair|renovat",
    "debt consolidation": r"debt|credit card|consolidat",
    "emergency": r"emergenc|urgent",
    "education": r"education|tuition|school|college",
    "medical": r"medical|hospital|health",
    "other": r"\bother\b",
}

AMOUNT_PATTERN = re.compile(r"(?:amount\s*:\s*|\$\s*)?(\d[\d,]*)", re.IGNORECASE)
TERM_PATTERN = re.compile(r"(?:term\s*:\s*(\d+))|(?:(\d+)\s*(?:-\s*)?(?:years?|yrs?)\b)|^(\d+)$", re.IGNORECASE)
PURPOSE_PATTERN = re.compile(r"purpose\s*:\s*(.+)", re.IGNORECASE)


def rules_message(participant: ParticipantProfile) -> str:
    return (
        "Based on your account, you may be able to borrow from your retirement plan. "
        "Here's a quick snapshot of your account and loan availability. "
        f"You can borrow between {format_currency(participant.loan_min_amount)} and "
        f"{format_currency(participant.max_loan)}, repaid over "
        f"{participant.loan_term_years_min} to {participant.loan_term_years_max} years."
    )


def amount_message(participant: ParticipantProfile) -> str:
    return (
        "Choose a loan amount below. You can borrow between "
        f"{format_currency(participant.loan_min_amount)} and {format_currency(participant.max_loan)}."
    )


def term_message(participant: ParticipantProfile) -> str:
    return (
        "Choose a repayment term between "
        f"{participant.loan_term_years_min} and {participant.loan_term_years_max} years."
    )


def review_message(state: LoanState) -> str:
    purpose = state.purpose or "not specified"
    return (
        "Review and submit your loan request below. "
        f"Amount: {format_currency(state.amount)}. Purpose: {purpose}. "
        f"Term: {state.term_years} years, about ${state.monthly_payment:,.2f} per month."
    )


def _with_repayment(state: LoanState, participant: ParticipantProfile) -> LoanState:
    """Recompute repayment figures for the collected amount and term."""
    result = calculate_loan_repayment(
        loan_amount=Decimal(state.amount),
        annual_rate=Decimal(str(participant.loan_annual_rate)),
        term_years=state.term_years,
    )
    return replace(
        state,
        monthly_payment=float(result.payment_per_period),
        total_repayment=float(result.total_repayment),
        total_interest=float(result.total_interest),
    )


def parse_amount(text: str, participant: ParticipantProfile) -> Optional[int]:
    if matches(r"\bmax(imum)?\b", text):
        return participant.max_loan
    match = AMOUNT_PATTERN.search(text)
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


def parse_term(text: str) -> Optional[int]:
    match = TERM_PATTERN.search(text.strip())
    if not match:
        return None
    return int(next(group for group in match.groups() if group))


def parse_purpose(text: str) -> Optional[str]:
    match = PURPOSE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    for purpose, pattern in PURPOSES.items():
        if matches(pattern, text):
            return purpose
    return None


def start_confirmed(text: str, participant: Optional[ParticipantProfile] = None) -> TransitionResult:
    """Create the flow after the participant said yes to a pending loan prompt."""
    participant = participant or ParticipantProfile.from_settings()
    return Continuing(LoanState(step=LoanStep.RULES), rules_message(participant))


def transition(
    state: Optional[LoanState],
    text: str,
    participant: Optional[ParticipantProfile] = None,
) -> TransitionResult:
    """
    Advance the loan flow by one input.

    Args:
        state: Current flow state, or None for a direct start
        text: User input
        participant: Account context; defaults to the configured participant

    Returns:
        Continuing, Completed or Cancelled
    """
    participant = participant or ParticipantProfile.from_settings()
    text = text.strip()

    if is_cancel(text):
        return Cancelled()

    if state is None:
        # Eligibility is pre-satisfied when the account context is known
        if participant.account_known and participant.employment_active:
            return Continuing(LoanState(step=LoanStep.RULES), rules_message(participant))
        return Continuing(LoanState(step=LoanStep.ELIGIBILITY), ELIGIBILITY_MESSAGE)

    step = state.step

    if step == LoanStep.ELIGIBILITY:
        answer = get_intent_classifier().parse_confirmation(text)
        if answer == ConfirmationAnswer.YES:
            return Continuing(replace(state, step=LoanStep.RULES), rules_message(participant))
        if answer == ConfirmationAnswer.NO:
            return Completed(None, NOT_ELIGIBLE_MESSAGE)
        return Continuing(state, ELIGIBILITY_MESSAGE)

    if step == LoanStep.RULES:
        if is_affirmative(CONTINUE_PATTERN, text):
            return Continuing(replace(state, step=LoanStep.AMOUNT), amount_message(participant))
        return Continuing(state, "Review these loan basics below. Select Continue to choose an amount.")

    if step == LoanStep.AMOUNT:
        amount = parse_amount(text, participant)
        if amount is None:
            return Continuing(state, amount_message(participant))
        if amount < participant.loan_min_amount or amount > participant.max_loan:
            return Continuing(
                state,
                f"Please choose an amount between {format_currency(participant.loan_min_amount)} "
                f"and {format_currency(participant.max_loan)}.",
            )
        updated = replace(state, amount=amount)
        if updated.term_years is not None:
            updated = _with_repayment(replace(updated, step=LoanStep.REVIEW), participant)
            return Continuing(updated, review_message(updated))
        return Continuing(
            replace(updated, step=LoanStep.PURPOSE),
            "Select a purpose (optional), or say skip.",
        )

    if step == LoanStep.PURPOSE:
        if matches(r"\b(skip|none|no)\b", text):
            purpose = None
        else:
            purpose = parse_purpose(text)
            if purpose is None:
                return Continuing(state, "Select a purpose (optional), or say skip.")
        updated = replace(state, purpose=purpose)
        if updated.term_years is not None:
            updated = replace(updated, step=LoanStep.REVIEW)
            return Continuing(updated, review_message(updated))
        return Continuing(replace(updated, step=LoanStep.TERM), term_message(participant))

    if step == LoanStep.TERM:
        term_years = parse_term(text)
        if term_years is None or not (
            participant.loan_term_years_min <= term_years <= participant.loan_term_years_max
        ):
            return Continuing(state, term_message(participant))
        updated = _with_repayment(replace(state, step=LoanStep.REVIEW, term_years=term_years), participant)
        return Continuing(updated, review_message(updated))

    if step == LoanStep.REVIEW:
        if matches(r"change amount", text):
            return Continuing(replace(state, step=LoanStep.AMOUNT), amount_message(participant))
        if matches(r"change term", text):
            return Continuing(replace(state, step=LoanStep.TERM), term_message(participant))
        if matches(r"change purpose", text):
            return Continuing(
                replace(state, step=LoanStep.PURPOSE),
                "Select a purpose (optional), or say skip.",
            )
        if is_affirmative(SUBMIT_PATTERN, text):
            return Completed(replace(state, step=LoanStep.CONFIRMED), CONFIRMED_MESSAGE)
        return Continuing(state, "Select Submit to send your loan request, or choose an edit option.")

    # CONFIRMED
    if matches(DONE_PATTERN, text):
        return Completed(None, DONE_MESSAGE)
    return Completed(state, CONFIRMED_MESSAGE)
