"""
Data quality validation for assumption bundles before they enter the engine.

Catches problems early:
- Missing products or sales forecasts
- Duplicate sales keys and orphan rows (sales / headcount pointing at nothing)
- Rates that look like percentages instead of decimals
- Assets that will never depreciate
- Loan terms the amortization module would reject
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import List

import pandas as pd

from core.errors import InputError, InvalidLoanTerms
from schedules.loans import validate_loan

from .records import AssumptionBundle


@dataclass
class ValidationResult:
    """Collects all validation warnings/errors for a bundle."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        lines = []
        if self.errors:
            lines.append(f"ERRORS ({len(self.errors)}):")
            for e in self.errors:
                lines.append(f"  ✗ {e}")
        if self.warnings:
            lines.append(f"WARNINGS ({len(self.warnings)}):")
            for w in self.warnings:
                lines.append(f"  ⚠ {w}")
        if not lines:
            lines.append("✓ All checks passed.")
        return "\n".join(lines)


def validate_bundle(bundle: AssumptionBundle) -> ValidationResult:
    """
    Run all validation checks on an assumption bundle.
    Returns a ValidationResult with errors (blocking) and warnings (informational).
    """
    result = ValidationResult()
    product_ids = {p.id for p in bundle.products}

    # --- Products / sales ---
    if not bundle.products:
        result.warnings.append("No products or services defined: revenue will be zero.")
    if not bundle.sales:
        result.warnings.append("No sales projections defined: revenue will be zero.")

    n_dup_products = len(bundle.products) - len(product_ids)
    if n_dup_products > 0:
        result.errors.append(f"{n_dup_products} duplicate product IDs found.")

    keys = Counter((s.product_id, s.year, s.month) for s in bundle.sales)
    dups = sorted(k for k, n in keys.items() if n > 1)
    if dups:
        result.errors.append(
            f"{len(dups)} duplicate sales projection keys (product_id, year, month), e.g. {dups[0]}."
        )

    n_orphan_sales = sum(1 for s in bundle.sales if s.product_id not in product_ids)
    if n_orphan_sales > 0:
        result.warnings.append(
            f"{n_orphan_sales} sales projection rows reference unknown products and will be excluded."
        )

    # --- Payroll ---
    role_ids = {r.id for r in bundle.payroll_roles}
    n_orphan_hc = sum(1 for h in bundle.headcount if h.role_id not in role_ids)
    if n_orphan_hc > 0:
        result.warnings.append(
            f"{n_orphan_hc} headcount rows reference unknown payroll roles and will be excluded."
        )
    hc_keys = Counter((h.role_id, h.year, h.month) for h in bundle.headcount)
    n_dup_hc = sum(1 for n in hc_keys.values() if n > 1)
    if n_dup_hc > 0:
        result.warnings.append(f"{n_dup_hc} duplicate headcount keys: headcounts will be summed.")

    # --- Rates: decimals, not percentages ---
    rates = [
        ("corporate tax rate", bundle.tax.corporate_tax_rate),
        ("VAT standard rate", bundle.tax.vat_standard_rate),
        ("inflation rate", bundle.assumptions.inflation_rate),
        ("WACC", bundle.assumptions.wacc),
    ]
    rates += [(f"VAT rate of product {p.id}", p.vat_rate) for p in bundle.products]
    rates += [(f"rate of loan {ln.id}", ln.annual_rate) for ln in bundle.loans]
    rates += [(f"employer charges of role {r.id}", r.employer_charges_pct) for r in bundle.payroll_roles]
    rates += [(f"variable share of opex {o.id}", o.var_pct_of_sales) for o in bundle.opex if o.is_variable]
    for label, value in rates:
        if value > 1.0:
            result.warnings.append(
                f"{label} is {value} (> 1.0): check if rates are in percent vs decimal form."
            )

    # --- Capex ---
    for asset in bundle.capex:
        if asset.life_months <= 0 or asset.cost <= asset.salvage_value:
            result.warnings.append(
                f"Capex {asset.id} will not be depreciated (life_months <= 0 or cost <= salvage value)."
            )

    # --- Loans ---
    for loan in bundle.loans:
        try:
            validate_loan(loan)
        except InvalidLoanTerms as exc:
            result.errors.append(str(exc))

    # --- Horizon ---
    if bundle.project.horizon_months <= 0:
        result.errors.append("Projection horizon is not positive.")

    return result


def require_valid(bundle: AssumptionBundle) -> ValidationResult:
    """Validate and raise InputError on any blocking error; warnings are returned."""
    result = validate_bundle(bundle)
    if not result.is_valid:
        raise InputError(
            f"Assumptions for project {bundle.project.id!r} are invalid: " + "; ".join(result.errors)
        )
    return result


def find_orphan_projections(bundle: AssumptionBundle) -> pd.DataFrame:
    """
    Sales projection rows whose product does not exist.

    Returns
    -------
    DataFrame with columns product_id, year, month, volume (empty when clean)
    """
    product_ids = {p.id for p in bundle.products}
    rows = [
        {"product_id": s.product_id, "year": s.year, "month": s.month, "volume": s.volume}
        for s in bundle.sales
        if s.product_id not in product_ids
    ]
    return pd.DataFrame(rows, columns=["product_id", "year", "month", "volume"])
