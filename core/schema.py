from __future__ import annotations

from typing import Tuple

# Canonical FinancialOutput columns, in ledger order.
# The consolidation engine emits exactly these columns (after the key columns).
KEY_COLUMNS: Tuple[str, ...] = (
    "project_id",
    "scenario_id",
    "year",
    "month",
)

INCOME_STATEMENT_COLUMNS: Tuple[str, ...] = (
    "revenue",
    "cogs",
    "gross_profit",
    "opex_total",
    "ebitda",
    "depreciation",
    "ebit",
    "interest_expense",
    "taxes",
    "net_income",
)

CASH_FLOW_COLUMNS: Tuple[str, ...] = (
    "operating_cash_flow",
    "investing_cash_flow",
    "financing_cash_flow",
    "net_cash_flow",
    "cash_balance",
)

WORKING_CAPITAL_COLUMNS: Tuple[str, ...] = (
    "bfr",
    "bfr_change",
)

RATIO_COLUMNS: Tuple[str, ...] = (
    "gross_margin",
    "ebitda_margin",
    "net_margin",
    "roa",
    "roe",
    "current_ratio",
    "debt_to_equity",
    "dscr",
)

# Supporting figures (debt service, VAT, balance sheet)
SUPPORT_COLUMNS: Tuple[str, ...] = (
    "debt_service",
    "loan_fees",
    "vat_collected",
    "vat_deductible",
    "fixed_assets_net",
    "total_assets",
    "total_debt",
    "equity",
)

VALUE_COLUMNS: Tuple[str, ...] = (
    INCOME_STATEMENT_COLUMNS
    + CASH_FLOW_COLUMNS
    + WORKING_CAPITAL_COLUMNS
    + RATIO_COLUMNS
    + SUPPORT_COLUMNS
)

FINANCIAL_OUTPUT_COLUMNS: Tuple[str, ...] = KEY_COLUMNS + VALUE_COLUMNS
