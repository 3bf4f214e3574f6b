"""
Assumption records — the plain input surface of the engine.

Records are immutable pydantic models. Rates and percentages are decimal
fractions (0.05 = 5%). Records are owned by one project; how they are stored
is the caller's business.
"""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Multipliers a Scenario may carry in `parameters`. Anything else is rejected.
SCENARIO_PARAMETERS: Tuple[str, ...] = (
    "volume",
    "price",
    "unit_cost",
    "opex",
    "payroll",
    "capex",
    "interest_rate",
    "inflation_rate",
    "dso_days",
    "dpo_days",
)


class Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class Project(Record):
    id: str
    name: str = ""
    start_date: date
    horizon_years: int = Field(default=3, ge=1)
    currency: str = "XOF"
    mode: Literal["simple", "advanced"] = "simple"

    @property
    def horizon_months(self) -> int:
        return self.horizon_years * 12


class ProductService(Record):
    id: str
    name: str = ""
    price: float = Field(ge=0)
    unit_cost: float = Field(default=0.0, ge=0)
    vat_rate: float = Field(default=0.0, ge=0)
    seasonality: Optional[List[float]] = None

    @field_validator("seasonality")
    @classmethod
    def _twelve_weights(cls, v):
        if v is None:
            return v
        if len(v) != 12:
            raise ValueError(f"seasonality needs 12 monthly weights, got {len(v)}")
        if any(w < 0 for w in v):
            raise ValueError("seasonality weights must be non-negative")
        return v

    def weight(self, month: int) -> float:
        if not self.seasonality:
            return 1.0
        return float(self.seasonality[month - 1])


class SalesProjection(Record):
    product_id: str
    year: int
    month: int = Field(ge=1, le=12)
    volume: float = Field(ge=0)
    price: Optional[float] = Field(default=None, ge=0)  # per-row override of the product price


class Capex(Record):
    id: str
    label: str = ""
    amount: float = Field(ge=0)
    acquisition_date: date
    life_months: int = 60
    method: Literal["linear", "degressive"] = "linear"
    salvage_value: float = Field(default=0.0, ge=0)
    vat_rate: float = Field(default=0.0, ge=0)
    vat_recoverable: bool = True

    @property
    def cost(self) -> float:
        """Depreciable cost basis: non-recoverable VAT is capitalised."""
        if self.vat_recoverable:
            return float(self.amount)
        return float(self.amount) * (1.0 + self.vat_rate)

    @property
    def recoverable_vat(self) -> float:
        return float(self.amount) * self.vat_rate if self.vat_recoverable else 0.0


class Opex(Record):
    id: str
    label: str = ""
    amount: float = 0.0
    periodicity: Literal["monthly", "quarterly", "annual"] = "monthly"
    is_variable: bool = False
    var_pct_of_sales: float = Field(default=0.0, ge=0)
    inflation_index: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def _window_order(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError(f"opex {self.id!r}: end_date before start_date")
        return self


class PayrollRole(Record):
    id: str
    role: str = ""
    gross_monthly: float = Field(ge=0)
    employer_charges_pct: float = Field(default=0.0, ge=0)
    benefits: float = Field(default=0.0, ge=0)  # per employee per month

    @property
    def cost_per_head(self) -> float:
        return self.gross_monthly * (1.0 + self.employer_charges_pct) + self.benefits


class HeadcountPlan(Record):
    role_id: str
    year: int
    month: int = Field(ge=1, le=12)
    headcount: float = Field(ge=0)


class Loan(Record):
    # rate / term are checked by schedules.loans (InvalidLoanTerms), not here
    id: str
    lender: str = ""
    principal: float = Field(ge=0)
    annual_rate: float
    term_months: int
    grace_principal_months: int = Field(default=0, ge=0)
    grace_interest_months: int = Field(default=0, ge=0)
    fees_pct: float = Field(default=0.0, ge=0)
    insurance_pct: float = Field(default=0.0, ge=0)
    balloon_pct: float = Field(default=0.0, ge=0, le=1)
    disbursement_date: date
    covenant_dscr: Optional[float] = None


class TaxSettings(Record):
    corporate_tax_rate: float = Field(default=0.30, ge=0, le=1)
    vat_standard_rate: float = Field(default=0.18, ge=0)
    carry_forward_losses: Optional[bool] = None  # None -> EngineConfig default


class WorkingCapital(Record):
    dso_days: float = Field(default=30.0, ge=0)
    dpo_days: float = Field(default=30.0, ge=0)
    inventory_days: float = Field(default=0.0, ge=0)
    advances_clients: float = Field(default=0.0, ge=0)
    advances_suppliers: float = Field(default=0.0, ge=0)


class Assumptions(Record):
    inflation_rate: float = 0.02
    wacc: float = 0.12
    fx_rates: Dict[str, float] = Field(default_factory=dict)
    sensitivity_bounds: Dict[str, Tuple[float, float]] = Field(default_factory=dict)
    equity_contribution: float = Field(default=0.0, ge=0)


class Scenario(Record):
    id: str
    name: str = ""
    type: Literal["base", "optimistic", "pessimistic", "stress"] = "base"
    parameters: Dict[str, float] = Field(default_factory=dict)

    @field_validator("parameters")
    @classmethod
    def _known_multipliers(cls, v):
        unknown = sorted(set(v) - set(SCENARIO_PARAMETERS))
        if unknown:
            raise ValueError(f"unknown scenario parameters: {unknown}")
        if any(m < 0 for m in v.values()):
            raise ValueError("scenario multipliers must be non-negative")
        return v


class AssumptionBundle(Record):
    """Everything the engine needs for one project, already loaded."""

    project: Project
    products: List[ProductService] = Field(default_factory=list)
    sales: List[SalesProjection] = Field(default_factory=list)
    capex: List[Capex] = Field(default_factory=list)
    opex: List[Opex] = Field(default_factory=list)
    payroll_roles: List[PayrollRole] = Field(default_factory=list)
    headcount: List[HeadcountPlan] = Field(default_factory=list)
    loans: List[Loan] = Field(default_factory=list)
    tax: TaxSettings = Field(default_factory=TaxSettings)
    working_capital: WorkingCapital = Field(default_factory=WorkingCapital)
    assumptions: Assumptions = Field(default_factory=Assumptions)
    scenarios: List[Scenario] = Field(default_factory=list)

    def scenario(self, scenario_id: Optional[str]) -> Optional[Scenario]:
        """Look up a scenario; None means the implicit base scenario."""
        if scenario_id is None:
            return None
        for s in self.scenarios:
            if s.id == scenario_id:
                return s
        return None


class CalculationTrigger(Record):
    project_id: str
    scenario_id: Optional[str] = None
    force_recalculation: bool = False
