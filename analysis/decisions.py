"""
Decision support — ratings, risk indicators and a financing recommendation.

Translates a ledger and its investment analysis into answers a credit officer can act on:
  Q1: "Is the project worth it?"      → NPV / IRR ratings
  Q2: "How fast is the money back?"   → DRCI rating
  Q3: "Can it carry its debt?"        → DSCR indicator, loan covenant breaches
  Q4: "Does it run out of cash?"      → negative cash, loss months, consecutive losses
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from core.utils import require_columns
from data_prep.records import Loan

from .investment import InvestmentAnalysis

EXCELLENT = "Excellent"
GOOD = "Good"
ACCEPTABLE = "Acceptable"
POOR = "Poor"

_RANK = {POOR: 0, ACCEPTABLE: 1, GOOD: 2, EXCELLENT: 3}


@dataclass(frozen=True)
class DecisionThresholds:
    # NPV in project currency
    npv_excellent: float = 500_000_000.0
    npv_good: float = 100_000_000.0
    npv_acceptable: float = 0.0
    # annual IRR
    irr_excellent: float = 0.30
    irr_good: float = 0.20
    irr_acceptable: float = 0.12
    # DRCI in years
    drci_excellent: float = 2.0
    drci_good: float = 3.0
    drci_acceptable: float = 4.0
    # monthly ledger
    dscr_warning: float = 1.2
    dscr_critical: float = 1.0
    loss_month_share: float = 0.5
    loss_month_share_high: float = 0.8
    consecutive_losses: int = 3


@dataclass(frozen=True)
class RiskIndicator:
    type: str
    level: str  # "medium" | "high"
    message: str
    value: float


@dataclass
class DecisionReport:
    """Structured decision output for one (project, scenario)."""
    project_id: str
    scenario_id: Optional[str]

    npv: float
    irr: Optional[float]
    drci_years: Optional[float]

    npv_rating: str
    irr_rating: str
    drci_rating: str

    risk_level: str  # "low" | "medium" | "high"
    indicators: List[RiskIndicator] = field(default_factory=list)
    covenant_breaches: Dict[str, List[int]] = field(default_factory=dict)  # loan id -> 1-based months
    max_consecutive_losses: int = 0
    recommendation: str = ""
    flags: List[str] = field(default_factory=list)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to a display-friendly table."""
        rows = [
            {"Metric": "Project", "Value": self.project_id, "Rating": ""},
            {"Metric": "Scenario", "Value": self.scenario_id or "base", "Rating": ""},
            {"Metric": "NPV", "Value": f"{self.npv:,.0f}", "Rating": self.npv_rating},
            {
                "Metric": "IRR",
                "Value": f"{self.irr:.2%}" if self.irr is not None else "undefined",
                "Rating": self.irr_rating,
            },
            {
                "Metric": "DRCI",
                "Value": f"{self.drci_years:.2f} years" if self.drci_years is not None else "never",
                "Rating": self.drci_rating,
            },
            {"Metric": "Risk Level", "Value": self.risk_level, "Rating": ""},
            {"Metric": "Recommendation", "Value": self.recommendation, "Rating": ""},
        ]
        for ind in self.indicators:
            rows.append({"Metric": f"Risk: {ind.type}", "Value": ind.message, "Rating": ind.level})
        if self.flags:
            rows.append({"Metric": "FLAGS", "Value": " | ".join(self.flags), "Rating": ""})
        return pd.DataFrame(rows)


def rate_npv(value: float, t: DecisionThresholds = DecisionThresholds()) -> str:
    if value >= t.npv_excellent:
        return EXCELLENT
    if value >= t.npv_good:
        return GOOD
    if value >= t.npv_acceptable:
        return ACCEPTABLE
    return POOR


def rate_irr(value: Optional[float], t: DecisionThresholds = DecisionThresholds()) -> str:
    if value is None:
        return POOR
    if value >= t.irr_excellent:
        return EXCELLENT
    if value >= t.irr_good:
        return GOOD
    if value >= t.irr_acceptable:
        return ACCEPTABLE
    return POOR


def rate_drci(years: Optional[float], t: DecisionThresholds = DecisionThresholds()) -> str:
    if years is None:
        return POOR
    if years <= t.drci_excellent:
        return EXCELLENT
    if years <= t.drci_good:
        return GOOD
    if years <= t.drci_acceptable:
        return ACCEPTABLE
    return POOR


def max_consecutive_losses(net_income) -> int:
    longest = run = 0
    for value in np.asarray(net_income, dtype=float):
        run = run + 1 if value < 0 else 0
        longest = max(longest, run)
    return longest


def risk_indicators(frame: pd.DataFrame, t: DecisionThresholds = DecisionThresholds()) -> List[RiskIndicator]:
    require_columns(frame, ["dscr", "debt_service", "cash_balance", "net_income"])
    out: List[RiskIndicator] = []

    serviced = frame["debt_service"].to_numpy(dtype=float) > 0
    if serviced.any():
        min_dscr = float(frame["dscr"].to_numpy(dtype=float)[serviced].min())
        if min_dscr < t.dscr_warning:
            out.append(RiskIndicator(
                type="dscr_risk",
                level="high" if min_dscr < t.dscr_critical else "medium",
                message=f"Minimum DSCR {min_dscr:.2f} below {t.dscr_warning}",
                value=min_dscr,
            ))

    min_cash = float(frame["cash_balance"].min())
    if min_cash < 0:
        out.append(RiskIndicator(
            type="cash_risk",
            level="high",
            message=f"Negative cash balance, minimum {min_cash:,.0f}",
            value=min_cash,
        ))

    loss_share = float((frame["net_income"] < 0).mean()) if len(frame) else 0.0
    if loss_share > t.loss_month_share:
        out.append(RiskIndicator(
            type="profitability_risk",
            level="high" if loss_share > t.loss_month_share_high else "medium",
            message=f"{loss_share:.0%} of months with a net loss",
            value=loss_share,
        ))
    return out


def covenant_breaches(frame: pd.DataFrame, loans: Sequence[Loan]) -> Dict[str, List[int]]:
    """
    Months (1-based) where the project DSCR is below a loan's covenant.
    Only months with debt service are tested.
    """
    serviced = frame["debt_service"].to_numpy(dtype=float) > 0
    dscr = frame["dscr"].to_numpy(dtype=float)
    out = {}
    for loan in loans:
        if loan.covenant_dscr is None:
            continue
        months = np.flatnonzero(serviced & (dscr < loan.covenant_dscr)) + 1
        if months.size:
            out[loan.id] = [int(m) for m in months]
    return out


def _overall_risk(indicators: List[RiskIndicator]) -> str:
    high = sum(1 for i in indicators if i.level == "high")
    medium = sum(1 for i in indicators if i.level == "medium")
    if high > 0:
        return "high"
    if medium > 1:
        return "medium"
    return "low"


def generate_decision_report(
    frame: pd.DataFrame,
    analysis: InvestmentAnalysis,
    *,
    loans: Sequence[Loan] = (),
    thresholds: DecisionThresholds = DecisionThresholds(),
) -> DecisionReport:
    """
    Parameters
    ----------
    frame : pd.DataFrame
        Committed ledger (FINANCIAL_OUTPUT_COLUMNS)
    analysis : InvestmentAnalysis
        Output of analysis.investment.run_investment_analysis()
    loans : sequence of Loan
        Used for covenant checks
    """
    if frame.empty:
        raise ValueError("No ledger rows to generate report from.")
    t = thresholds

    npv_rating = rate_npv(analysis.npv, t)
    irr_rating = rate_irr(analysis.irr.value, t)
    drci_rating = rate_drci(analysis.drci.decimal_years, t)

    indicators = risk_indicators(frame, t)
    breaches = covenant_breaches(frame, loans)
    streak = max_consecutive_losses(frame["net_income"])
    risk_level = _overall_risk(indicators)

    flags = []
    if streak >= t.consecutive_losses:
        flags.append(f"CONSECUTIVE_LOSSES: {streak} months in a row with a net loss")
    for loan_id, months in breaches.items():
        flags.append(f"COVENANT_BREACH: loan {loan_id} DSCR below covenant in {len(months)} months")
    for metric, reason in analysis.undefined_reasons().items():
        flags.append(f"UNDEFINED_{metric.upper()}: {reason}")

    weakest = min((npv_rating, irr_rating, drci_rating), key=_RANK.__getitem__)
    if weakest == POOR or risk_level == "high":
        recommendation = "To review"
    else:
        recommendation = weakest

    return DecisionReport(
        project_id=str(frame["project_id"].iloc[0]) if "project_id" in frame.columns else "",
        scenario_id=frame["scenario_id"].iloc[0] if "scenario_id" in frame.columns else None,
        npv=analysis.npv,
        irr=analysis.irr.value,
        drci_years=analysis.drci.decimal_years,
        npv_rating=npv_rating,
        irr_rating=irr_rating,
        drci_rating=drci_rating,
        risk_level=risk_level,
        indicators=indicators,
        covenant_breaches=breaches,
        max_consecutive_losses=streak,
        recommendation=recommendation,
        flags=flags,
    )
