"""
Analysis outputs — investment metrics, project summary metrics, and decision support.
"""

from .investment import (
    InvestmentAnalysis,
    MetricValue,
    Payback,
    SensitivityBands,
    discounted_payback,
    investment_inputs,
    irr,
    npv,
    profitability_index,
    run_investment_analysis,
)
from .metrics import compare_scenarios, compute_project_metrics
from .decisions import DecisionReport, generate_decision_report

__all__ = [
    "InvestmentAnalysis",
    "MetricValue",
    "Payback",
    "SensitivityBands",
    "discounted_payback",
    "investment_inputs",
    "irr",
    "npv",
    "profitability_index",
    "run_investment_analysis",
    "compare_scenarios",
    "compute_project_metrics",
    "DecisionReport",
    "generate_decision_report",
]
