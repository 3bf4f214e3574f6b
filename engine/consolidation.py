"""
Consolidation engine — runs every module over the projection horizon and assembles
the monthly ledger (income statement, cash flow, working capital, balance sheet, ratios).

  gross_profit  = revenue − cogs
  opex_total    = fixed + variable opex + payroll
  ebitda        = gross_profit − opex_total
  ebit          = ebitda − depreciation
  net_income    = ebit − interest_expense − taxes

  operating CF  = net_income + depreciation + capitalised interest − ΔBFR
  investing CF  = − capex paid (non-recoverable VAT included)
  financing CF  = equity contribution + disbursements − principal − balloon − fees

Balance sheet: assets are cash, receivables, inventory, supplier advances and net
fixed assets; liabilities are payables, client advances and outstanding debt;
equity is the difference.

Any ratio with a zero denominator is 0. ROE and debt-to-equity are 0 while equity ≤ 0.

The function is pure: identical inputs give an identical frame. Persisting the
result is the job of engine.service.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from core.config import EngineConfig
from core.errors import ComputationError, InputError
from core.schema import FINANCIAL_OUTPUT_COLUMNS, VALUE_COLUMNS
from core.utils import projection_calendar, safe_div
from data_prep.records import AssumptionBundle, Scenario
from scenarios import apply_scenario
from schedules import capex_by_period, debt_by_period

from .opex import compute_opex, compute_payroll
from .revenue import compute_revenue
from .tax import compute_taxes
from .working_capital import compute_working_capital

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinancialOutput:
    """One immutable ledger row per (project_id, scenario_id, year, month)."""

    project_id: str
    scenario_id: Optional[str]
    year: int
    month: int
    # income statement
    revenue: float
    cogs: float
    gross_profit: float
    opex_total: float
    ebitda: float
    depreciation: float
    ebit: float
    interest_expense: float
    taxes: float
    net_income: float
    # cash flow
    operating_cash_flow: float
    investing_cash_flow: float
    financing_cash_flow: float
    net_cash_flow: float
    cash_balance: float
    # working capital
    bfr: float
    bfr_change: float
    # ratios
    gross_margin: float
    ebitda_margin: float
    net_margin: float
    roa: float
    roe: float
    current_ratio: float
    debt_to_equity: float
    dscr: float
    # support
    debt_service: float
    loan_fees: float
    vat_collected: float
    vat_deductible: float
    fixed_assets_net: float
    total_assets: float
    total_debt: float
    equity: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProjectionResult:
    """
    frame   ledger in FINANCIAL_OUTPUT_COLUMNS order, one row per month
    rows    the same ledger as immutable FinancialOutput records
    detail  intermediate per-month figures (receivables, payroll, capex paid, ...)
    """

    frame: pd.DataFrame
    rows: Tuple[FinancialOutput, ...]
    detail: pd.DataFrame

    @property
    def n_months(self) -> int:
        return len(self.rows)


def _carry_forward(bundle: AssumptionBundle, config: EngineConfig) -> bool:
    if bundle.tax.carry_forward_losses is not None:
        return bundle.tax.carry_forward_losses
    return config.carry_forward_losses


def consolidate(
    bundle: AssumptionBundle,
    scenario: Optional[Scenario] = None,
    config: EngineConfig = EngineConfig(),
    *,
    revenue_multiplier: float = 1.0,
) -> ProjectionResult:
    """
    Build the monthly ledger for one (project, scenario).

    Parameters
    ----------
    bundle : AssumptionBundle
        Base assumptions of the project
    scenario : Scenario, optional
        Overlay applied before the pipeline runs; None = base case
    config : EngineConfig
        Numerical conventions
    revenue_multiplier : float
        Scales revenue only (sensitivity runs)

    Raises
    ------
    InputError        invalid horizon or loan terms
    ComputationError  a numeric failure or any non-finite value in the ledger
    """
    project = bundle.project
    n = project.horizon_months
    if n <= 0:
        raise InputError(f"Project {project.id!r} has a non-positive horizon")

    effective = apply_scenario(bundle, scenario)
    scenario_id = scenario.id if scenario is not None else None

    try:
        with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
            frame, detail = _build_ledger(effective, config, revenue_multiplier)
    except (OverflowError, FloatingPointError, ZeroDivisionError) as exc:
        raise ComputationError(
            f"Numeric failure while consolidating project={project.id!r} "
            f"scenario={scenario_id!r}: {exc}"
        ) from exc

    values = frame[list(VALUE_COLUMNS)].to_numpy(dtype=float)
    if not np.isfinite(values).all():
        bad = [c for c in VALUE_COLUMNS if not np.isfinite(frame[c].to_numpy(dtype=float)).all()]
        raise ComputationError(
            f"Non-finite values in columns {bad} for project={project.id!r} scenario={scenario_id!r}"
        )

    frame.insert(0, "project_id", project.id)
    frame.insert(1, "scenario_id", scenario_id)
    frame = frame[list(FINANCIAL_OUTPUT_COLUMNS)]

    rows = tuple(
        FinancialOutput(
            project_id=project.id,
            scenario_id=scenario_id,
            year=int(rec["year"]),
            month=int(rec["month"]),
            **{c: float(rec[c]) for c in VALUE_COLUMNS},
        )
        for rec in frame.to_dict(orient="records")
    )

    logger.debug(
        "consolidated project=%s scenario=%s months=%d revenue_multiplier=%.3f",
        project.id, scenario_id, n, revenue_multiplier,
    )
    return ProjectionResult(frame=frame, rows=rows, detail=detail)


def _build_ledger(
    bundle: AssumptionBundle,
    config: EngineConfig,
    revenue_multiplier: float,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    project = bundle.project
    n = project.horizon_months
    cal = projection_calendar(project.start_date, n)

    # --- Modules ---
    rev = compute_revenue(
        bundle.products, bundle.sales, cal, revenue_multiplier=revenue_multiplier
    )
    revenue = rev["revenue"].to_numpy(dtype=float)
    cogs = rev["cogs"].to_numpy(dtype=float)

    costs = compute_opex(
        bundle.opex, cal, revenue, inflation_rate=bundle.assumptions.inflation_rate
    )
    payroll = compute_payroll(bundle.payroll_roles, bundle.headcount, cal)
    opex_total = (
        costs["fixed_opex"].to_numpy(dtype=float)
        + costs["variable_opex"].to_numpy(dtype=float)
        + payroll
    )

    assets = capex_by_period(
        bundle.capex, project.start_date, n, degressive_factor=config.degressive_factor
    )
    debt = debt_by_period(bundle.loans, project.start_date, n)
    wc = compute_working_capital(
        revenue, cogs, bundle.working_capital, days_per_month=config.days_per_month
    )

    depreciation = assets["depreciation"].to_numpy(dtype=float)
    interest = debt["interest_expense"].to_numpy(dtype=float)

    # --- Income statement ---
    gross_profit = revenue - cogs
    ebitda = gross_profit - opex_total
    ebit = ebitda - depreciation
    tax = compute_taxes(
        ebit,
        interest,
        bundle.tax.corporate_tax_rate,
        carry_forward=_carry_forward(bundle, config),
    )
    taxes = tax["taxes"].to_numpy(dtype=float)
    net_income = ebit - interest - taxes

    # --- Cash flow ---
    bfr = wc["bfr"].to_numpy(dtype=float)
    bfr_change = wc["bfr_change"].to_numpy(dtype=float)
    capex_paid = assets["capex_paid"].to_numpy(dtype=float)
    loan_fees = debt["loan_fees"].to_numpy(dtype=float)

    equity_in = np.zeros(n, dtype=float)
    equity_in[0] = bundle.assumptions.equity_contribution

    operating_cf = (
        net_income
        + depreciation
        + debt["capitalized_interest"].to_numpy(dtype=float)
        - bfr_change
    )
    investing_cf = -capex_paid
    financing_cf = (
        equity_in
        + debt["disbursement"].to_numpy(dtype=float)
        - debt["principal_repaid"].to_numpy(dtype=float)
        - debt["balloon"].to_numpy(dtype=float)
        - loan_fees
    )
    net_cf = operating_cf + investing_cf + financing_cf
    cash = np.cumsum(net_cf)

    # --- Balance sheet ---
    policy = bundle.working_capital
    receivables = wc["receivables"].to_numpy(dtype=float)
    inventory = wc["inventory"].to_numpy(dtype=float)
    payables = wc["payables"].to_numpy(dtype=float)
    fixed_assets_net = (
        assets["fixed_assets_gross"].to_numpy(dtype=float)
        - assets["accumulated_depreciation"].to_numpy(dtype=float)
    )
    total_debt = debt["debt_balance"].to_numpy(dtype=float)

    current_assets = cash + receivables + inventory + policy.advances_suppliers
    current_liabilities = (
        payables + policy.advances_clients + debt["principal_due_12m"].to_numpy(dtype=float)
    )
    total_assets = current_assets + fixed_assets_net
    total_liabilities = payables + policy.advances_clients + total_debt
    equity = total_assets - total_liabilities
    positive_equity = np.where(equity > 0, equity, 0.0)

    debt_service = debt["debt_service"].to_numpy(dtype=float)

    frame = pd.DataFrame(
        {
            "year": cal["year"].to_numpy(),
            "month": cal["month"].to_numpy(),
            "revenue": revenue,
            "cogs": cogs,
            "gross_profit": gross_profit,
            "opex_total": opex_total,
            "ebitda": ebitda,
            "depreciation": depreciation,
            "ebit": ebit,
            "interest_expense": interest,
            "taxes": taxes,
            "net_income": net_income,
            "operating_cash_flow": operating_cf,
            "investing_cash_flow": investing_cf,
            "financing_cash_flow": financing_cf,
            "net_cash_flow": net_cf,
            "cash_balance": cash,
            "bfr": bfr,
            "bfr_change": bfr_change,
            "gross_margin": safe_div(gross_profit, revenue),
            "ebitda_margin": safe_div(ebitda, revenue),
            "net_margin": safe_div(net_income, revenue),
            "roa": safe_div(net_income, total_assets),
            "roe": safe_div(net_income, positive_equity),
            "current_ratio": safe_div(current_assets, current_liabilities),
            "debt_to_equity": safe_div(total_debt, positive_equity),
            "dscr": safe_div(operating_cf, debt_service),
            "debt_service": debt_service,
            "loan_fees": loan_fees,
            "vat_collected": rev["vat_collected"].to_numpy(dtype=float),
            "vat_deductible": assets["vat_deductible"].to_numpy(dtype=float),
            "fixed_assets_net": fixed_assets_net,
            "total_assets": total_assets,
            "total_debt": total_debt,
            "equity": equity,
        }
    )

    detail = pd.concat(
        [
            cal,
            rev[["units"]],
            costs,
            pd.DataFrame({"payroll": payroll, "capex_paid": capex_paid}),
            wc[["receivables", "inventory", "payables"]],
            tax[["taxable_income", "loss_pool"]],
            debt[["disbursement", "interest_paid", "principal_repaid", "balloon", "principal_due_12m"]],
        ],
        axis=1,
    )
    return frame, detail
