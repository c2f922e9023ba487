"""
Calculation services package
"""
from assistant.services.calculation.engine import (
    calculate_max_loan,
    calculate_loan_repayment,
    round_currency,
    LoanRepaymentResult,
)

__all__ = [
    "calculate_max_loan",
    "calculate_loan_repayment",
    "round_currency",
    "LoanRepaymentResult",
]
