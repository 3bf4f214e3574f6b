"""
Engine configuration.
Per-project policy (tax rate, WACC, DSO/DPO...) lives in data_prep/records.py;
this object only carries numerical conventions shared by every project.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class EngineConfig:
    # discounting: "nominal" -> annual/12, "effective" -> (1+annual)^(1/12) - 1
    discount_convention: Literal["nominal", "effective"] = "nominal"

    # IRR search bracket (annual rates) and root-finder controls
    irr_lower: float = -0.99
    irr_upper: float = 10.0
    irr_xtol: float = 1e-10
    irr_maxiter: int = 200

    # revenue scaling used for the optimistic / pessimistic sensitivity runs
    sensitivity_pct: float = 0.20

    # declining-balance coefficient: monthly rate = factor / life_months
    degressive_factor: float = 2.0

    # day-count convention for DSO / DPO / inventory days
    days_per_month: int = 30

    # second trigger for a key already computing: raise, or wait for the first
    busy_policy: Literal["reject", "queue"] = "reject"

    # tax-loss carry-forward (off unless TaxSettings overrides it)
    carry_forward_losses: bool = False

    def monthly_rate(self, annual_rate: float) -> float:
        if self.discount_convention == "effective":
            return (1.0 + annual_rate) ** (1.0 / 12.0) - 1.0
        return annual_rate / 12.0
