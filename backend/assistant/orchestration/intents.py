"""
Intent Classifier

Maps raw user text to the top-level intent signals that can start a
scripted flow. This is pattern matching only - no scoring and no LLM.

Signals (independent booleans):
- loan_direct: User explicitly asks to apply for a loan
- loan_indirect: User hints at borrowing (needs a yes/no before a loan starts)
- enrollment: User wants to enroll in the plan
- withdrawal: User asks about withdrawing money
- vesting: Vested balance / vesting schedule quick link

Routing precedence is applied by the caller through ``primary_intent``:
loan_direct > loan_indirect > enrollment > withdrawal > vesting.
"""
from typing import Optional, List
from enum import Enum
from dataclasses import dataclass
import re


class TopLevelIntent(str, Enum):
    """Intents that start (or gate) a scripted flow."""
    LOAN_DIRECT = "loan_direct"
    LOAN_INDIRECT = "loan_indirect"
    ENROLLMENT = "enrollment"
    WITHDRAWAL = "withdrawal"
    VESTING = "vesting"


INTENT_PRECEDENCE = [
    TopLevelIntent.LOAN_DIRECT,
    TopLevelIntent.LOAN_INDIRECT,
    TopLevelIntent.ENROLLMENT,
    TopLevelIntent.WITHDRAWAL,
    TopLevelIntent.VESTING,
]


class ConfirmationAnswer(str, Enum):
    """Answer to a pending yes/no gate."""
    YES = "yes"
    NO = "no"
    UNCLEAR = "unclear"


@dataclass(frozen=True)
class IntentSignals:
    """Result of intent classification."""
    loan_direct: bool = False
    loan_indirect: bool = False
    enrollment: bool = False
    withdrawal: bool = False
    vesting: bool = False

    @property
    def any(self) -> bool:
        return any([
            self.loan_direct,
            self.loan_indirect,
            self.enrollment,
            self.withdrawal,
            self.vesting,
        ])

    def is_set(self, intent: TopLevelIntent) -> bool:
        return getattr(self, intent.value)

    def to_dict(self) -> dict:
        return {
            "loan_direct": self.loan_direct,
            "loan_indirect": self.loan_indirect,
            "enrollment": self.enrollment,
            "withdrawal": self.withdrawal,
            "vesting": self.vesting,
        }


class IntentClassifier:
    """
    Fixed phrase-list classifier for the portal assistant.

    Case-insensitive and stateless. Overlapping phrases are not resolved
    here; every signal is computed independently.
    """

    LOAN_DIRECT_PATTERNS = [
        r"apply for (?:a )?loan",
        r"start (?:a )?loan",
        r"loan application",
        r"want to borrow",
        r"need a loan",
        r"get a loan",
        r"i want a loan",
    ]

    LOAN_INDIRECT_PATTERNS = [
        r"borrow from (?:my )?retirement",
        r"access my 401k",
        r"need cash urgently",
        r"borrow from (?:my )?401k",
        r"get money from (?:my )?401k",
        r"take money from (?:my )?401k",
        r"use my 401k",
        r"access retirement",
    ]

    ENROLLMENT_PATTERNS = [
        r"\benroll",
        r"start enrollment",
        r"begin enrollment",
        r"sign up",
        r"join the plan",
        r"new enrollment",
    ]

    WITHDRAWAL_PATTERNS = [
        r"how much can i withdraw",
        r"withdraw from (?:my )?401k?",
        r"withdrawal (?:info|rules|options)",
        r"(?:can i |may i )?withdraw",
        r"(?:what are|tell me about) (?:the )?withdrawal",
    ]

    VESTING_PATTERNS = [
        r"vested balance",
        r"vesting schedule",
        r"how much (?:is|do i have) vested",
        r"my vesting",
    ]

    # Pending-confirmation answers are anchored at the start of the input
    YES_PATTERNS = [
        r"^(yes|yeah|yep|sure|okay|ok|start|begin|go ahead|proceed|continue)",
    ]

    NO_PATTERNS = [
        r"^(no|nope|not|don'?t|cannot|never mind|forget it|not interested)",
    ]

    def classify(self, text: str) -> IntentSignals:
        """
        Compute every intent signal for the input.

        Args:
            text: Raw user input

        Returns:
            IntentSignals with one flag per top-level intent
        """
        text_lower = text.lower().strip()
        if not text_lower:
            return IntentSignals()

        return IntentSignals(
            loan_direct=self._matches_patterns(text_lower, self.LOAN_DIRECT_PATTERNS),
            loan_indirect=self._matches_patterns(text_lower, self.LOAN_INDIRECT_PATTERNS),
            enrollment=self._matches_patterns(text_lower, self.ENROLLMENT_PATTERNS),
            withdrawal=self._matches_patterns(text_lower, self.WITHDRAWAL_PATTERNS),
            vesting=self._matches_patterns(text_lower, self.VESTING_PATTERNS),
        )

    def primary_intent(self, signals: IntentSignals) -> Optional[TopLevelIntent]:
        """First satisfied intent in routing precedence order."""
        for intent in INTENT_PRECEDENCE:
            if signals.is_set(intent):
                return intent
        return None

    def is_top_level(self, text: str) -> bool:
        """Whether the input carries any top-level intent."""
        return self.classify(text).any

    def parse_confirmation(self, text: str) -> ConfirmationAnswer:
        """Interpret an answer to a pending yes/no question."""
        text_lower = text.lower().strip()
        if self._matches_patterns(text_lower, self.YES_PATTERNS):
            return ConfirmationAnswer.YES
        if self._matches_patterns(text_lower, self.NO_PATTERNS):
            return ConfirmationAnswer.NO
        return ConfirmationAnswer.UNCLEAR

    def _matches_patterns(self, text: str, patterns: List[str]) -> bool:
        """Check if text matches any of the patterns."""
        for pattern in patterns:
            if re.search(pattern, text, re.IGNORECASE):
                return True
        return False


# Singleton instance
_intent_classifier: Optional[IntentClassifier] = None


def get_intent_classifier() -> IntentClassifier:
    """Get or create intent classifier singleton."""
    global _intent_classifier
    if _intent_classifier is None:
        _intent_classifier = IntentClassifier()
    return _intent_classifier


def classify(text: str) -> IntentSignals:
    """Module-level shortcut for ``IntentClassifier.classify``."""
    return get_intent_classifier().classify(text)
