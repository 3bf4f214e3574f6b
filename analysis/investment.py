"""
Investment analysis — NPV, IRR, discounted payback (DRCI), profitability index and
revenue sensitivity over a committed monthly ledger.

Timing convention: the initial investment I sits at t = 0 and the net cash flow
of projection month k (0-based) at t = k + 1, discounted with the monthly rate
given by EngineConfig.discount_convention.

  NPV = −I + Σ cf_t / (1 + i)^t
  IRR = annual rate r such that NPV(r) = 0, bracketed on [irr_lower, irr_upper]
  PI  = PV(cf) / I

A metric that cannot be computed (no sign change, payback never reached, I = 0)
is returned as MetricValue(None, reason): it is never an exception and never 0.
Only malformed input raises InputError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import brentq

from core.config import EngineConfig
from core.errors import InputError
from core.utils import require_columns
from data_prep.records import AssumptionBundle, Scenario
from engine.consolidation import consolidate

logger = logging.getLogger(__name__)

NO_SIGN_CHANGE = "no_sign_change"
NO_ROOT_IN_BRACKET = "no_root_in_bracket"
NOT_CONVERGED = "not_converged"
NEVER_RECOVERED = "never_recovered"
ZERO_INVESTMENT = "zero_investment"


@dataclass(frozen=True)
class MetricValue:
    value: Optional[float]
    reason: Optional[str] = None

    @property
    def is_defined(self) -> bool:
        return self.value is not None

    @classmethod
    def undefined(cls, reason: str) -> "MetricValue":
        return cls(value=None, reason=reason)


@dataclass(frozen=True)
class Payback:
    """Discounted payback; `months` is fractional (interpolated within the month)."""

    months: Optional[float]
    years_part: Optional[int] = None
    months_part: Optional[int] = None
    days_part: Optional[int] = None
    reason: Optional[str] = None

    @property
    def is_defined(self) -> bool:
        return self.months is not None

    @property
    def decimal_years(self) -> Optional[float]:
        return None if self.months is None else self.months / 12.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "years": self.years_part,
            "months": self.months_part,
            "days": self.days_part,
            "decimal_years": self.decimal_years,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class SensitivityBands:
    revenue_low: float   # revenue multiplier of the pessimistic run
    revenue_high: float  # revenue multiplier of the optimistic run
    npv_optimistic: float
    npv_pessimistic: float
    irr_optimistic: MetricValue
    irr_pessimistic: MetricValue

    def to_dict(self) -> Dict[str, Any]:
        return {
            "npv_optimistic": self.npv_optimistic,
            "npv_pessimistic": self.npv_pessimistic,
            "irr_optimistic": self.irr_optimistic.value,
            "irr_pessimistic": self.irr_pessimistic.value,
        }


@dataclass(frozen=True)
class InvestmentAnalysis:
    discount_rate: float
    investment: float
    npv: float
    irr: MetricValue
    drci: Payback
    profitability_index: MetricValue
    sensitivity: Optional[SensitivityBands] = None

    def undefined_reasons(self) -> Dict[str, str]:
        out = {}
        if not self.irr.is_defined:
            out["irr"] = self.irr.reason
        if not self.drci.is_defined:
            out["drci"] = self.drci.reason
        if not self.profitability_index.is_defined:
            out["profitability_index"] = self.profitability_index.reason
        if self.sensitivity is not None:
            if not self.sensitivity.irr_optimistic.is_defined:
                out["irr_optimistic"] = self.sensitivity.irr_optimistic.reason
            if not self.sensitivity.irr_pessimistic.is_defined:
                out["irr_pessimistic"] = self.sensitivity.irr_pessimistic.reason
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "npv": self.npv,
            "irr": self.irr.value,
            "drci": self.drci.to_dict(),
            "profitability_index": self.profitability_index.value,
            "sensitivity": self.sensitivity.to_dict() if self.sensitivity else None,
            "undefined": self.undefined_reasons(),
        }


# ---------------------------------------------------------------------------
# Core metrics
# ---------------------------------------------------------------------------


def _check_inputs(cashflows, investment: float) -> np.ndarray:
    cf = np.asarray(cashflows, dtype=float).ravel()
    if cf.size == 0:
        raise InputError("Empty cash-flow series")
    if not np.isfinite(cf).all():
        raise InputError("Cash-flow series contains non-finite values")
    if not np.isfinite(investment) or investment < 0:
        raise InputError(f"Initial investment must be a finite non-negative amount, got {investment}")
    return cf


def _discount_factors(n: int, monthly_rate: float) -> np.ndarray:
    t = np.arange(1, n + 1, dtype=float)
    return np.power(1.0 + monthly_rate, -t)


def npv(
    cashflows,
    annual_rate: float,
    investment: float = 0.0,
    config: EngineConfig = EngineConfig(),
) -> float:
    cf = _check_inputs(cashflows, investment)
    i = config.monthly_rate(annual_rate)
    return float(-investment + np.sum(cf * _discount_factors(cf.size, i)))


def _npv_unchecked(annual_rate: float, cf: np.ndarray, investment: float, config: EngineConfig) -> float:
    i = config.monthly_rate(annual_rate)
    with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
        return float(-investment + np.sum(cf * _discount_factors(cf.size, i)))


def irr(
    cashflows,
    investment: float = 0.0,
    config: EngineConfig = EngineConfig(),
) -> MetricValue:
    """Annual internal rate of return under the configured discount convention."""
    cf = _check_inputs(cashflows, investment)
    series = np.concatenate([[-investment], cf])
    if not ((series > 0).any() and (series < 0).any()):
        return MetricValue.undefined(NO_SIGN_CHANGE)

    lo, hi = config.irr_lower, config.irr_upper
    f_lo = _npv_unchecked(lo, cf, investment, config)
    f_hi = _npv_unchecked(hi, cf, investment, config)
    if not (np.isfinite(f_lo) and np.isfinite(f_hi)):
        return MetricValue.undefined(NO_ROOT_IN_BRACKET)
    if f_lo == 0.0:
        return MetricValue(lo)
    if f_hi == 0.0:
        return MetricValue(hi)
    if np.sign(f_lo) == np.sign(f_hi):
        return MetricValue.undefined(NO_ROOT_IN_BRACKET)

    root, result = brentq(
        _npv_unchecked,
        lo,
        hi,
        args=(cf, investment, config),
        xtol=config.irr_xtol,
        maxiter=config.irr_maxiter,
        full_output=True,
        disp=False,
    )
    if not result.converged:
        return MetricValue.undefined(NOT_CONVERGED)
    return MetricValue(float(root))


def _split_months(months: float, days_per_month: int) -> Tuple[int, int, int]:
    years = int(months // 12)
    rest = months - 12 * years
    whole = int(rest)
    days = int(round((rest - whole) * days_per_month))
    if days >= days_per_month:
        whole, days = whole + 1, 0
    if whole >= 12:
        years, whole = years + 1, whole - 12
    return years, whole, days


def discounted_payback(
    cashflows,
    annual_rate: float,
    investment: float = 0.0,
    config: EngineConfig = EngineConfig(),
) -> Payback:
    """
    DRCI: first point where the cumulative discounted cash flow, starting at −I,
    is non-negative. Linear interpolation inside the crossing month.
    """
    cf = _check_inputs(cashflows, investment)
    disc = cf * _discount_factors(cf.size, config.monthly_rate(annual_rate))
    cumulative = -investment + np.cumsum(disc)

    hits = np.flatnonzero(cumulative >= 0)
    if hits.size == 0:
        return Payback(months=None, reason=NEVER_RECOVERED)

    t = int(hits[0])  # 0-based index; cash of index t arrives at the end of month t + 1
    before = cumulative[t - 1] if t > 0 else -investment
    frac = float(np.clip(-before / disc[t], 0.0, 1.0)) if disc[t] != 0 else 1.0
    months = t + frac
    years_part, months_part, days_part = _split_months(months, config.days_per_month)
    return Payback(
        months=months,
        years_part=years_part,
        months_part=months_part,
        days_part=days_part,
    )


def profitability_index(
    cashflows,
    annual_rate: float,
    investment: float = 0.0,
    config: EngineConfig = EngineConfig(),
) -> MetricValue:
    cf = _check_inputs(cashflows, investment)
    if investment == 0:
        return MetricValue.undefined(ZERO_INVESTMENT)
    pv = float(np.sum(cf * _discount_factors(cf.size, config.monthly_rate(annual_rate))))
    return MetricValue(pv / investment)


# ---------------------------------------------------------------------------
# From a ledger
# ---------------------------------------------------------------------------


def investment_inputs(frame: pd.DataFrame) -> Tuple[np.ndarray, float]:
    """
    Split a ledger into (monthly flows, initial investment).

    The investment is period 0's capex outflow plus loan fees; it is added back to
    period 0's net cash flow so it is not counted twice.
    """
    require_columns(frame, ["net_cash_flow", "investing_cash_flow", "loan_fees"])
    if frame.empty:
        raise InputError("Empty ledger")
    flows = frame["net_cash_flow"].to_numpy(dtype=float).copy()
    investment = float(-frame["investing_cash_flow"].iloc[0] + frame["loan_fees"].iloc[0])
    investment = max(investment, 0.0)
    flows[0] += investment
    return flows, investment


def analyze_cash_flows(
    cashflows,
    investment: float,
    annual_rate: float,
    config: EngineConfig = EngineConfig(),
) -> InvestmentAnalysis:
    result = InvestmentAnalysis(
        discount_rate=annual_rate,
        investment=investment,
        npv=npv(cashflows, annual_rate, investment, config),
        irr=irr(cashflows, investment, config),
        drci=discounted_payback(cashflows, annual_rate, investment, config),
        profitability_index=profitability_index(cashflows, annual_rate, investment, config),
    )
    for metric, reason in result.undefined_reasons().items():
        logger.warning("%s undefined: %s", metric, reason)
    return result


def sensitivity_multipliers(bundle: AssumptionBundle, config: EngineConfig) -> Tuple[float, float]:
    """(pessimistic, optimistic) revenue multipliers; a project's own bounds win."""
    bounds = bundle.assumptions.sensitivity_bounds.get("revenue")
    if bounds is not None:
        low, high = bounds
        return 1.0 + low, 1.0 + high
    return 1.0 - config.sensitivity_pct, 1.0 + config.sensitivity_pct


def run_investment_analysis(
    bundle: AssumptionBundle,
    scenario: Optional[Scenario] = None,
    config: EngineConfig = EngineConfig(),
    rate: Optional[float] = None,
    *,
    base_frame: Optional[pd.DataFrame] = None,
) -> InvestmentAnalysis:
    """
    Full analysis for one (project, scenario): base metrics plus revenue sensitivity.

    Parameters
    ----------
    rate : float, optional
        Annual discount rate; defaults to the project's WACC
    base_frame : pd.DataFrame, optional
        Committed ledger to analyse; recomputed when not given

    The sensitivity runs re-invoke the consolidation engine with scaled revenue.
    """
    annual_rate = bundle.assumptions.wacc if rate is None else rate
    if base_frame is None:
        base_frame = consolidate(bundle, scenario, config).frame

    flows, investment = investment_inputs(base_frame)
    base = analyze_cash_flows(flows, investment, annual_rate, config)

    low, high = sensitivity_multipliers(bundle, config)
    runs = {}
    for label, mult in (("optimistic", high), ("pessimistic", low)):
        frame = consolidate(bundle, scenario, config, revenue_multiplier=mult).frame
        s_flows, s_inv = investment_inputs(frame)
        runs[label] = (
            npv(s_flows, annual_rate, s_inv, config),
            irr(s_flows, s_inv, config),
        )

    bands = SensitivityBands(
        revenue_low=low,
        revenue_high=high,
        npv_optimistic=runs["optimistic"][0],
        npv_pessimistic=runs["pessimistic"][0],
        irr_optimistic=runs["optimistic"][1],
        irr_pessimistic=runs["pessimistic"][1],
    )
    logger.info(
        "investment analysis project=%s scenario=%s rate=%.4f npv=%.2f irr=%s",
        bundle.project.id,
        scenario.id if scenario else None,
        annual_rate,
        base.npv,
        base.irr.value if base.irr.is_defined else base.irr.reason,
    )
    return InvestmentAnalysis(
        discount_rate=base.discount_rate,
        investment=base.investment,
        npv=base.npv,
        irr=base.irr,
        drci=base.drci,
        profitability_index=base.profitability_index,
        sensitivity=bands,
    )
