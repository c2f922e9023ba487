"""
Participant account context consumed by the scripted flows.

The orchestrator does not compute plan numbers itself; it hands this
read-only profile to each flow. Values come from settings (demo participant)
and can be replaced per session.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from assistant.core.config import Settings, settings as default_settings
from assistant.services.calculation import calculate_max_loan


@dataclass(frozen=True)
class ParticipantProfile:
    """Known account facts for the signed-in participant."""
    vested_balance: int
    vested_percent: int
    current_age: int
    employment_active: bool
    account_known: bool
    withdrawal_available: int
    loan_max_absolute: int
    loan_max_pct_of_vested: float
    loan_min_amount: int
    loan_term_years_min: int
    loan_term_years_max: int
    loan_annual_rate: float
    vesting_schedule_type: str

    @property
    def max_loan(self) -> int:
        return int(calculate_max_loan(
            Decimal(self.vested_balance),
            Decimal(str(self.loan_max_pct_of_vested)),
            Decimal(self.loan_max_absolute),
        ))

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "ParticipantProfile":
        config = config or default_settings
        return cls(
            vested_balance=config.PARTICIPANT_VESTED_BALANCE,
            vested_percent=config.PARTICIPANT_VESTED_PERCENT,
            current_age=config.PARTICIPANT_CURRENT_AGE,
            employment_active=config.PARTICIPANT_EMPLOYMENT_ACTIVE,
            account_known=config.PARTICIPANT_ACCOUNT_KNOWN,
            withdrawal_available=config.WITHDRAWAL_AVAILABLE_MAX,
            loan_max_absolute=config.LOAN_MAX_ABSOLUTE,
            loan_max_pct_of_vested=config.LOAN_MAX_PCT_OF_VESTED,
            loan_min_amount=config.LOAN_MIN_AMOUNT,
            loan_term_years_min=config.LOAN_TERM_YEARS_MIN,
            loan_term_years_max=config.LOAN_TERM_YEARS_MAX,
            loan_annual_rate=config.LOAN_ANNUAL_RATE,
            vesting_schedule_type=config.VESTING_SCHEDULE_TYPE,
        )
