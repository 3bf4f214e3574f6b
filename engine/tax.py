"""
Corporate tax module.

taxable income = EBIT − interest expense; tax = max(0, taxable) × rate.
Losses are not refunded. Carrying losses forward is an opt-in extension
(TaxSettings.carry_forward_losses or EngineConfig.carry_forward_losses).
"""

from __future__ import annotations

import numpy as np
import pandas as pd


def compute_taxes(
    ebit: np.ndarray,
    interest_expense: np.ndarray,
    rate: float,
    *,
    carry_forward: bool = False,
) -> pd.DataFrame:
    taxable = np.asarray(ebit, dtype=float) - np.asarray(interest_expense, dtype=float)

    if not carry_forward:
        taxes = np.maximum(taxable, 0.0) * rate
        return pd.DataFrame(
            {"taxable_income": taxable, "taxes": taxes, "loss_pool": np.zeros_like(taxable)}
        )

    taxes = np.zeros_like(taxable)
    pool = np.zeros_like(taxable)
    losses = 0.0
    for t, income in enumerate(taxable):
        if income < 0:
            losses += -income
        else:
            used = min(losses, income)
            losses -= used
            taxes[t] = (income - used) * rate
        pool[t] = losses
    return pd.DataFrame({"taxable_income": taxable, "taxes": taxes, "loss_pool": pool})
