"""
Derived schedules — depreciation per Capex and amortization per Loan.
Schedules are recomputed from their record on every iteration, never cached.
"""

from .depreciation import DepreciationLine, DepreciationSchedule, capex_by_period
from .loans import (
    LoanSchedule,
    LoanScheduleLine,
    debt_by_period,
    level_payment,
    loan_schedule,
    validate_loan,
)

__all__ = [
    "DepreciationLine",
    "DepreciationSchedule",
    "capex_by_period",
    "LoanSchedule",
    "LoanScheduleLine",
    "debt_by_period",
    "level_payment",
    "loan_schedule",
    "validate_loan",
]
