"""
Deterministic Calculation Engine
All plan-limit and repayment calculations are handled here, NOT by LLM.
"""
from decimal import Decimal, ROUND_HALF_UP, ROUND_DOWN
from dataclasses import dataclass


PAYMENTS_PER_YEAR = {
    "monthly": 12,
    "semimonthly": 24,
    "biweekly": 26,
}


@dataclass
class LoanRepaymentResult:
    """Result of a participant loan repayment calculation."""
    loan_amount: Decimal
    term_years: int
    number_of_payments: int
    payment_per_period: Decimal
    total_repayment: Decimal
    total_interest: Decimal
    origination_fee: Decimal
    net_disbursement: Decimal
    breakdown: dict


def round_currency(amount: Decimal) -> Decimal:
    """Round to 2 decimal places for currency."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def calculate_max_loan(
    vested_balance: Decimal,
    max_pct_of_vested: Decimal,
    max_absolute: Decimal,
) -> Decimal:
    """
    Maximum loan available to a participant.

    Deterministic formula:
    max_loan = min(vested_balance * max_pct_of_vested, max_absolute)

    Result is rounded down to whole dollars.

    Raises:
        ValueError: If any input is negative
    """
    if vested_balance < 0:
        raise ValueError("vested_balance cannot be negative")
    if max_pct_of_vested < 0 or max_pct_of_vested > 1:
        raise ValueError("max_pct_of_vested must be between 0 and 1")
    if max_absolute < 0:
        raise ValueError("max_absolute cannot be negative")

    limit = min(vested_balance * max_pct_of_vested, max_absolute)
    return limit.quantize(Decimal("1"), rounding=ROUND_DOWN)


def calculate_loan_repayment(
    loan_amount: Decimal,
    annual_rate: Decimal,
    term_years: int,
    payroll_frequency: str = "monthly",
    origination_fee_pct: Decimal = Decimal("0.01"),
) -> LoanRepaymentResult:
    """
    Calculate level repayment for a participant loan.

    Standard amortization formula, rounded to cents at each step:
    payment = P * r * (1 + r)^n / ((1 + r)^n - 1)
    where r is the periodic rate and n the number of payments.
    A zero rate falls back to P / n.

    Args:
        loan_amount: Principal requested
        annual_rate: Annual interest rate as a decimal (0.085 = 8.5%)
        term_years: Repayment term in whole years
        payroll_frequency: monthly, semimonthly or biweekly
        origination_fee_pct: Fee withheld from the disbursement

    Returns:
        LoanRepaymentResult with breakdown

    Raises:
        ValueError: If amounts are negative, the term is not positive, or the
            payroll frequency is unknown
    """
    if loan_amount < 0:
        raise ValueError("loan_amount cannot be negative")
    if annual_rate < 0:
        raise ValueError("annual_rate cannot be negative")
    if term_years <= 0:
        raise ValueError("term_years must be positive")
    if payroll_frequency not in PAYMENTS_PER_YEAR:
        raise ValueError(f"Unknown payroll frequency: {payroll_frequency}")

    periods_per_year = PAYMENTS_PER_YEAR[payroll_frequency]
    number_of_payments = term_years * periods_per_year
    periodic_rate = annual_rate / Decimal(periods_per_year)

    if loan_amount == 0:
        payment = Decimal("0")
    elif periodic_rate == 0:
        payment = round_currency(loan_amount / Decimal(number_of_payments))
    else:
        factor = (Decimal("1") + periodic_rate) ** number_of_payments
        payment = round_currency(loan_amount * periodic_rate * factor / (factor - Decimal("1")))

    total_repayment = round_currency(payment * Decimal(number_of_payments))
    total_interest = max(round_currency(total_repayment - loan_amount), Decimal("0"))
    origination_fee = round_currency(loan_amount * origination_fee_pct)
    net_disbursement = round_currency(loan_amount - origination_fee)

    return LoanRepaymentResult(
        loan_amount=round_currency(loan_amount),
        term_years=term_years,
        number_of_payments=number_of_payments,
        payment_per_period=payment,
        total_repayment=total_repayment,
        total_interest=total_interest,
        origination_fee=origination_fee,
        net_disbursement=net_disbursement,
        breakdown={
            "loan_amount": float(loan_amount),
            "annual_rate": float(annual_rate),
            "payroll_frequency": payroll_frequency,
            "number_of_payments": number_of_payments,
            "payment_per_period": float(payment),
            "total_repayment": float(total_repayment),
            "total_interest": float(total_interest),
            "origination_fee": float(origination_fee),
            "net_disbursement": float(net_disbursement),
        },
    )
