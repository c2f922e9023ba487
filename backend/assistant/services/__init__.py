"""
Services package
"""
from assistant.services.calculation import (
    calculate_max_loan,
    calculate_loan_repayment,
)
from assistant.services.speech import Utterance, UtteranceQueue

__all__ = [
    "calculate_max_loan",
    "calculate_loan_repayment",
    "Utterance",
    "UtteranceQueue",
]
