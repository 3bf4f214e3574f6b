from __future__ import annotations

from datetime import date
from typing import Iterable

import numpy as np
import pandas as pd
from dateutil.relativedelta import relativedelta


def require_columns(df: pd.DataFrame, cols: Iterable[str]) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")


def month_start(d: date) -> date:
    return date(d.year, d.month, 1)


def months_between(start: date, end: date) -> int:
    """Calendar months from start's month to end's month (day of month ignored)."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def projection_calendar(start_date: date, n_months: int) -> pd.DataFrame:
    """
    One row per projection month: period (0-based), year, month, date (month start).
    Period 0 is the month containing start_date.
    """
    first = month_start(start_date)
    dates = [first + relativedelta(months=k) for k in range(n_months)]
    return pd.DataFrame(
        {
            "period": np.arange(n_months, dtype=int),
            "year": [d.year for d in dates],
            "month": [d.month for d in dates],
            "date": pd.to_datetime(dates),
        }
    )


def safe_div(numerator, denominator) -> np.ndarray:
    """Elementwise division where a zero denominator yields 0 (never NaN/inf)."""
    num = np.asarray(numerator, dtype=float)
    den = np.asarray(denominator, dtype=float)
    num, den = np.broadcast_arrays(num, den)
    out = np.zeros(num.shape, dtype=float)
    np.divide(num, den, out=out, where=den != 0)
    return out
