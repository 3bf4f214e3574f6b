"""
Data preparation — assumption records and loading.
Bundle validation lives in data_prep.validators.
"""

from .records import (
    AssumptionBundle,
    Assumptions,
    CalculationTrigger,
    Capex,
    HeadcountPlan,
    Loan,
    Opex,
    PayrollRole,
    ProductService,
    Project,
    SalesProjection,
    Scenario,
    TaxSettings,
    WorkingCapital,
)
from .loader import bundle_from_dict, load_bundle, load_sales_csv

__all__ = [
    "AssumptionBundle",
    "Assumptions",
    "CalculationTrigger",
    "Capex",
    "HeadcountPlan",
    "Loan",
    "Opex",
    "PayrollRole",
    "ProductService",
    "Project",
    "SalesProjection",
    "Scenario",
    "TaxSettings",
    "WorkingCapital",
    "bundle_from_dict",
    "load_bundle",
    "load_sales_csv",
]
