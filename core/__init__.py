"""
Core package — configuration, output schema, error taxonomy and shared utilities.
No business logic lives here.
"""

from .schema import FINANCIAL_OUTPUT_COLUMNS, VALUE_COLUMNS
from .config import EngineConfig
from .errors import (
    EngineError,
    InputError,
    InvalidLoanTerms,
    ComputationError,
    ComputationInProgress,
)
from .utils import require_columns, months_between, projection_calendar, safe_div

__all__ = [
    "FINANCIAL_OUTPUT_COLUMNS",
    "VALUE_COLUMNS",
    "EngineConfig",
    "EngineError",
    "InputError",
    "InvalidLoanTerms",
    "ComputationError",
    "ComputationInProgress",
    "require_columns",
    "months_between",
    "projection_calendar",
    "safe_div",
]
