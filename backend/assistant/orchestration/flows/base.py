"""
Base utilities for scripted flow machines.

Provides common pieces every flow shares:
- The closed transition result type (Continuing | Completed | Cancelled)
- The global cancel check
- Input matching helpers
- Message formatting helpers
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union
import re


class FlowKind(str, Enum):
    """The four scripted, step-ordered flows."""
    ENROLLMENT = "enrollment"
    LOAN = "loan"
    WITHDRAWAL = "withdrawal"
    VESTING = "vesting"


class FlowInvariantError(RuntimeError):
    """A dispatch reached a state combination that should be impossible."""


CANCEL_PATTERN = re.compile(r"(^|\b)(cancel|exit|stop|never mind|nevermind)\b", re.IGNORECASE)

CANCEL_MESSAGE = "Okay, no changes were made. You can come back anytime."

DONE_MESSAGE = "Understood. No changes were made. You can come back anytime."

CONTINUE_PATTERN = r"\b(continue|next|ok|okay|yes)\b"

DONE_PATTERN = r"\b(done|close|finish)\b"

SUBMIT_PATTERN = r"\b(submit|confirm|yes)\b"

# Any of these turns an otherwise affirmative phrase into a re-prompt
NEGATION_PATTERN = r"\b(no|not|never|don['’]?t|do not)\b"


@dataclass(frozen=True)
class Continuing:
    """The flow stays active with a new (or unchanged) state."""
    next_state: Any
    message: str

    @property
    def is_complete(self) -> bool:
        return False

    @property
    def is_cancelled(self) -> bool:
        return False


@dataclass(frozen=True)
class Completed:
    """
    The flow has finished.

    ``next_state`` is the terminal state when the flow just reached it (the
    orchestrator keeps it as a completion snapshot), or None when the user
    closed an already-terminal flow.
    """
    next_state: Optional[Any]
    message: str

    @property
    def is_complete(self) -> bool:
        return True

    @property
    def is_cancelled(self) -> bool:
        return False


@dataclass(frozen=True)
class Cancelled:
    """The user cancelled; nothing is kept."""
    message: str = CANCEL_MESSAGE

    @property
    def next_state(self) -> None:
        return None

    @property
    def is_complete(self) -> bool:
        return True

    @property
    def is_cancelled(self) -> bool:
        return True


TransitionResult = Union[Continuing, Completed, Cancelled]


def is_cancel(text: str) -> bool:
    """Global cancel/exit check, applied before any step logic."""
    return bool(CANCEL_PATTERN.search(text))


def matches(pattern: str, text: str) -> bool:
    """Case-insensitive search of a single pattern."""
    return bool(re.search(pattern, text, re.IGNORECASE))


def is_affirmative(pattern: str, text: str) -> bool:
    """
    Whether the text matches an advancing command and carries no negation.

    "no, don't submit yet" must never submit a request.
    """
    return matches(pattern, text) and not matches(NEGATION_PATTERN, text)


def normalize(text: str) -> str:
    return text.strip().lower()


def parse_int(text: str) -> Optional[int]:
    """First integer in the text, allowing thousands separators."""
    match = re.search(r"\d[\d,]*", text)
    if not match:
        return None
    return int(match.group(0).replace(",", ""))


def format_currency(amount: float) -> str:
    """Format whole dollars for display."""
    return f"${round(amount):,}"
