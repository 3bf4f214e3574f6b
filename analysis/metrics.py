"""
Project-level summary metrics computed from a monthly ledger, and a side-by-side
comparison of scenarios.

Computes totals, margins and cash-flow milestones for ONE ledger. The scenario
comparison tabulates these per scenario and adds variance and best / worst case
by NPV.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import numpy as np
import pandas as pd

from core.config import EngineConfig
from core.utils import require_columns

from .investment import investment_inputs, irr, npv

_REQUIRED = [
    "revenue", "cogs", "opex_total", "net_income", "net_cash_flow", "cash_balance",
    "gross_margin", "ebitda_margin", "debt_to_equity", "current_ratio",
    "dscr", "debt_service", "investing_cash_flow", "loan_fees",
]


def _first_month(mask: np.ndarray) -> Optional[int]:
    """1-based index of the first True, None when there is none."""
    idx = np.flatnonzero(mask)
    return int(idx[0]) + 1 if idx.size else None


def _growth_rate(values: np.ndarray) -> float:
    if len(values) < 2 or values[0] == 0:
        return 0.0
    ratio = values[-1] / values[0]
    if ratio <= 0:
        return 0.0
    return float(ratio ** (1.0 / (len(values) - 1)) - 1.0)


def compute_project_metrics(frame: pd.DataFrame) -> Dict[str, Any]:
    """
    Summary metrics for one ledger.

    Returns
    -------
    dict with:
      total_revenue, total_costs (COGS + opex), net_profit, roi (net profit / total costs),
      payback_month (first month with positive cumulative net cash flow),
      gross_margin_avg, ebitda_margin_avg, debt_to_equity_avg, current_ratio_avg,
      dscr_min (over months with debt service; None without debt),
      peak_funding_need, cash_generation_start, break_even_month,
      burn_rate (mean outflow over months with negative net cash flow),
      revenue_growth_rate (compound monthly)

    Month indices are 1-based and None when the milestone is never reached.
    """
    require_columns(frame, _REQUIRED)
    if frame.empty:
        raise ValueError("No ledger rows to compute metrics from.")

    revenue = frame["revenue"].to_numpy(dtype=float)
    net_income = frame["net_income"].to_numpy(dtype=float)
    net_cf = frame["net_cash_flow"].to_numpy(dtype=float)
    cash = frame["cash_balance"].to_numpy(dtype=float)

    total_revenue = float(revenue.sum())
    total_costs = float(frame["cogs"].sum() + frame["opex_total"].sum())
    net_profit = float(net_income.sum())

    serviced = frame["debt_service"].to_numpy(dtype=float) > 0
    dscr = frame["dscr"].to_numpy(dtype=float)
    outflows = net_cf[net_cf < 0]

    return {
        "total_revenue": total_revenue,
        "total_costs": total_costs,
        "net_profit": net_profit,
        "roi": net_profit / total_costs if total_costs > 0 else 0.0,
        "payback_month": _first_month(np.cumsum(net_cf) > 0),
        "gross_margin_avg": float(frame["gross_margin"].mean()),
        "ebitda_margin_avg": float(frame["ebitda_margin"].mean()),
        "debt_to_equity_avg": float(frame["debt_to_equity"].mean()),
        "current_ratio_avg": float(frame["current_ratio"].mean()),
        "dscr_min": float(dscr[serviced].min()) if serviced.any() else None,
        "peak_funding_need": float(abs(min(0.0, cash.min()))),
        "cash_generation_start": _first_month(cash > 0),
        "break_even_month": _first_month(np.cumsum(net_income) > 0),
        "burn_rate": float(-outflows.mean()) if outflows.size else 0.0,
        "revenue_growth_rate": _growth_rate(revenue),
    }


def compare_scenarios(
    frames: Mapping[str, pd.DataFrame],
    annual_rate: float,
    config: EngineConfig = EngineConfig(),
) -> Dict[str, Any]:
    """
    Compare several ledgers of the same project.

    Parameters
    ----------
    frames : mapping of scenario label -> ledger
    annual_rate : discount rate used for each scenario's NPV / IRR

    Returns
    -------
    Dict with:
      "table":      one row per scenario (metrics + npv + irr)
      "comparison": revenue / profit / NPV variance, best_case and worst_case labels
    """
    if not frames:
        raise ValueError("No scenarios to compare.")

    rows = []
    for label, frame in frames.items():
        m = compute_project_metrics(frame)
        flows, investment = investment_inputs(frame)
        rate_of_return = irr(flows, investment, config)
        m["npv"] = npv(flows, annual_rate, investment, config)
        m["irr"] = rate_of_return.value
        rows.append({"scenario": label, **m})

    table = pd.DataFrame(rows).set_index("scenario")
    comparison = {
        "revenue_variance": float(np.var(table["total_revenue"].to_numpy(dtype=float))),
        "profit_variance": float(np.var(table["net_profit"].to_numpy(dtype=float))),
        "npv_variance": float(np.var(table["npv"].to_numpy(dtype=float))),
        "best_case": table["npv"].idxmax(),
        "worst_case": table["npv"].idxmin(),
    }
    return {"table": table, "comparison": comparison}
