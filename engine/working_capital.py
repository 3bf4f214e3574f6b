"""
Working capital (BFR) module.

  receivables = revenue × DSO / 30
  inventory   = COGS × inventory_days / 30      (stock valued at cost)
  payables    = COGS × DPO / 30
  BFR         = receivables + inventory − payables − client advances + supplier advances

Only the change in BFR hits cash; the month before period 0 has BFR = 0.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from data_prep.records import WorkingCapital


def compute_working_capital(
    revenue: np.ndarray,
    cogs: np.ndarray,
    policy: WorkingCapital,
    *,
    days_per_month: int = 30,
) -> pd.DataFrame:
    revenue = np.asarray(revenue, dtype=float)
    cogs = np.asarray(cogs, dtype=float)

    receivables = revenue * policy.dso_days / days_per_month
    inventory = cogs * policy.inventory_days / days_per_month
    payables = cogs * policy.dpo_days / days_per_month

    bfr = (
        receivables
        + inventory
        - payables
        - policy.advances_clients
        + policy.advances_suppliers
    )
    bfr_change = np.diff(bfr, prepend=0.0)

    return pd.DataFrame(
        {
            "receivables": receivables,
            "inventory": inventory,
            "payables": payables,
            "bfr": bfr,
            "bfr_change": bfr_change,
        }
    )
