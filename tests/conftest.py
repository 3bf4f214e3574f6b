from datetime import date

import pytest

from data_prep.records import (
    AssumptionBundle,
    Assumptions,
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


@pytest.fixture
def start():
    return date(2025, 1, 1)


@pytest.fixture
def simple_bundle(start):
    """One product at 10 000 / 4 000, 10 units a month, 3 000 fixed opex, no tax, no BFR, one year."""
    return AssumptionBundle(
        project=Project(id="p1", name="Bakery", start_date=start, horizon_years=1),
        products=[ProductService(id="bread", price=10_000, unit_cost=4_000)],
        sales=[
            SalesProjection(product_id="bread", year=2025, month=m, volume=10)
            for m in range(1, 13)
        ],
        opex=[Opex(id="rent", amount=3_000, periodicity="monthly")],
        tax=TaxSettings(corporate_tax_rate=0.0),
        working_capital=WorkingCapital(dso_days=0, dpo_days=0, inventory_days=0),
    )


@pytest.fixture
def full_bundle(start):
    """Two-year plan exercising capex, a loan with grace and balloon, payroll and working capital."""
    return AssumptionBundle(
        project=Project(id="p2", name="Workshop", start_date=start, horizon_years=2),
        products=[
            ProductService(id="chair", price=150, unit_cost=60, vat_rate=0.18),
            ProductService(
                id="table",
                price=400,
                unit_cost=180,
                vat_rate=0.18,
                seasonality=[0.5, 0.5, 1, 1, 1, 1.5, 1.5, 1, 1, 1, 1.2, 1.8],
            ),
        ],
        sales=[
            SalesProjection(product_id=pid, year=y, month=m, volume=vol)
            for y in (2025, 2026)
            for m in range(1, 13)
            for pid, vol in (("chair", 200), ("table", 40))
        ],
        capex=[
            Capex(id="machine", amount=60_000, acquisition_date=start, life_months=60),
            Capex(
                id="van",
                amount=24_000,
                acquisition_date=date(2025, 4, 15),
                life_months=48,
                method="degressive",
                salvage_value=4_000,
                vat_rate=0.18,
                vat_recoverable=False,
            ),
        ],
        opex=[
            Opex(id="rent", amount=9_000, periodicity="quarterly", inflation_index="cpi"),
            Opex(id="insurance", amount=6_000, periodicity="annual"),
            Opex(id="commissions", is_variable=True, var_pct_of_sales=0.03),
            Opex(
                id="marketing",
                amount=2_000,
                start_date=date(2025, 3, 1),
                end_date=date(2025, 8, 31),
            ),
        ],
        payroll_roles=[
            PayrollRole(id="craft", role="Craftsman", gross_monthly=1_500, employer_charges_pct=0.2, benefits=100),
        ],
        headcount=[
            HeadcountPlan(role_id="craft", year=y, month=m, headcount=3)
            for y in (2025, 2026)
            for m in range(1, 13)
        ],
        loans=[
            Loan(
                id="bank",
                lender="Bank",
                principal=50_000,
                annual_rate=0.09,
                term_months=36,
                grace_principal_months=6,
                grace_interest_months=2,
                fees_pct=0.01,
                insurance_pct=0.005,
                balloon_pct=0.2,
                disbursement_date=start,
                covenant_dscr=1.3,
            )
        ],
        tax=TaxSettings(corporate_tax_rate=0.25),
        working_capital=WorkingCapital(dso_days=45, dpo_days=30, inventory_days=15, advances_clients=1_000),
        assumptions=Assumptions(inflation_rate=0.03, wacc=0.12, equity_contribution=40_000),
        scenarios=[
            Scenario(id="opt", name="Optimistic", type="optimistic"),
            Scenario(id="stress", name="Stress", type="stress"),
        ],
    )
