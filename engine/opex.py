"""
Operating cost module — fixed, variable and payroll costs per month.

  fixed     amount spread into equal monthly instalments (quarterly / 3,
            annual / 12) inside the [start_date, end_date] window,
            inflated by (1 + inflation_rate)^(months_elapsed / 12) when the
            line carries an inflation index
  variable  var_pct_of_sales × revenue of the month, inside the window
  payroll   Σ (gross × (1 + employer charges) + benefits) × headcount
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
import pandas as pd

from data_prep.records import HeadcountPlan, Opex, PayrollRole

logger = logging.getLogger(__name__)

_INSTALMENTS = {"monthly": 1, "quarterly": 3, "annual": 12}


def _active_mask(expense: Opex, calendar: pd.DataFrame) -> np.ndarray:
    ym = calendar["year"].to_numpy() * 12 + calendar["month"].to_numpy()
    mask = np.ones(len(calendar), dtype=bool)
    if expense.start_date is not None:
        mask &= ym >= expense.start_date.year * 12 + expense.start_date.month
    if expense.end_date is not None:
        mask &= ym <= expense.end_date.year * 12 + expense.end_date.month
    return mask


def compute_opex(
    opex: Sequence[Opex],
    calendar: pd.DataFrame,
    revenue: np.ndarray,
    *,
    inflation_rate: float = 0.0,
) -> pd.DataFrame:
    """Returns fixed_opex and variable_opex aligned with `calendar`."""
    n = len(calendar)
    months_elapsed = calendar["period"].to_numpy(dtype=float)
    revenue = np.asarray(revenue, dtype=float)
    fixed = np.zeros(n, dtype=float)
    variable = np.zeros(n, dtype=float)

    for expense in opex:
        active = _active_mask(expense, calendar)
        if expense.is_variable:
            variable += np.where(active, expense.var_pct_of_sales * revenue, 0.0)
            continue
        monthly = expense.amount / _INSTALMENTS[expense.periodicity]
        if expense.inflation_index:
            factor = np.power(1.0 + inflation_rate, months_elapsed / 12.0)
        else:
            factor = np.ones(n, dtype=float)
        fixed += np.where(active, monthly * factor, 0.0)

    return pd.DataFrame({"fixed_opex": fixed, "variable_opex": variable})


def compute_payroll(
    roles: Sequence[PayrollRole],
    headcount: Sequence[HeadcountPlan],
    calendar: pd.DataFrame,
) -> np.ndarray:
    """Monthly payroll cost aligned with `calendar`; rows for unknown roles are ignored."""
    n = len(calendar)
    if not roles or not headcount:
        return np.zeros(n, dtype=float)

    cost_per_head = {r.id: r.cost_per_head for r in roles}
    hc = pd.DataFrame(
        {
            "role_id": [h.role_id for h in headcount],
            "year": [h.year for h in headcount],
            "month": [h.month for h in headcount],
            "headcount": [float(h.headcount) for h in headcount],
        }
    )
    known = hc["role_id"].isin(cost_per_head)
    if not known.all():
        logger.warning("Ignored %d headcount rows for unknown roles", int((~known).sum()))
    hc = hc[known]
    if hc.empty:
        return np.zeros(n, dtype=float)

    hc = hc.assign(cost=hc["headcount"] * hc["role_id"].map(cost_per_head))
    agg = hc.groupby(["year", "month"], as_index=False)["cost"].sum()
    merged = calendar[["year", "month"]].merge(agg, on=["year", "month"], how="left")
    return merged["cost"].fillna(0.0).to_numpy(dtype=float)
