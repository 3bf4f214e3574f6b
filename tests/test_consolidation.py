from datetime import date

import numpy as np
import pandas as pd
import pytest

from analysis.investment import investment_inputs, npv
from core.config import EngineConfig
from core.errors import ComputationError, InvalidLoanTerms
from core.schema import FINANCIAL_OUTPUT_COLUMNS
from data_prep.records import Loan, ProductService, TaxSettings
from engine import FinancialOutput, consolidate


class TestEndToEnd:
    """Horizon 1 year, one product (10 000 / 4 000), 10 units a month, 3 000 opex, no tax."""

    def test_monthly_figures(self, simple_bundle):
        result = consolidate(simple_bundle)
        df = result.frame
        assert list(df.columns) == list(FINANCIAL_OUTPUT_COLUMNS)
        assert len(df) == 12
        np.testing.assert_allclose(df["revenue"], 100_000.0)
        np.testing.assert_allclose(df["cogs"], 40_000.0)
        np.testing.assert_allclose(df["gross_profit"], 60_000.0)
        np.testing.assert_allclose(df["ebitda"], 57_000.0)
        np.testing.assert_allclose(df["net_income"], 57_000.0)
        np.testing.assert_allclose(df["net_cash_flow"], 57_000.0)
        np.testing.assert_allclose(df["cash_balance"], 57_000.0 * np.arange(1, 13))
        np.testing.assert_allclose(df["gross_margin"], 0.6)

    def test_npv_nominal_monthly_compounding(self, simple_bundle):
        df = consolidate(simple_bundle).frame
        flows, investment = investment_inputs(df)
        assert investment == 0.0
        expected = sum(57_000.0 / (1 + 0.10 / 12) ** t for t in range(1, 13))
        assert npv(flows, 0.10, investment, EngineConfig()) == pytest.approx(expected, rel=1e-12)
        # ~ 648 000 at 10% a year, discounted monthly at 0.8333%
        assert 647_000 < expected < 649_000

    def test_rows_are_immutable_records(self, simple_bundle):
        result = consolidate(simple_bundle)
        assert result.n_months == 12
        row = result.rows[0]
        assert isinstance(row, FinancialOutput)
        assert (row.project_id, row.scenario_id, row.year, row.month) == ("p1", None, 2025, 1)
        assert row.to_dict()["ebitda"] == 57_000.0
        with pytest.raises(Exception):
            row.revenue = 0.0


class TestIdentities:
    def test_ebit_identity(self, full_bundle):
        df = consolidate(full_bundle).frame
        assert (df["ebit"] == df["ebitda"] - df["depreciation"]).all()

    def test_income_statement_chain(self, full_bundle):
        df = consolidate(full_bundle).frame
        np.testing.assert_allclose(df["gross_profit"], df["revenue"] - df["cogs"])
        np.testing.assert_allclose(df["ebitda"], df["gross_profit"] - df["opex_total"])
        np.testing.assert_allclose(df["net_income"], df["ebit"] - df["interest_expense"] - df["taxes"])

    def test_cash_is_running_sum(self, full_bundle):
        df = consolidate(full_bundle).frame
        np.testing.assert_allclose(df["cash_balance"], df["net_cash_flow"].cumsum())
        np.testing.assert_allclose(
            df["net_cash_flow"],
            df["operating_cash_flow"] + df["investing_cash_flow"] + df["financing_cash_flow"],
        )

    def test_balance_sheet_balances(self, full_bundle):
        df = consolidate(full_bundle).frame
        expected_equity = 40_000 + df["net_income"].cumsum() - df["loan_fees"].cumsum()
        np.testing.assert_allclose(df["equity"], expected_equity, rtol=1e-9, atol=1e-6)

    def test_bfr_change(self, full_bundle):
        df = consolidate(full_bundle).frame
        np.testing.assert_allclose(df["bfr_change"], df["bfr"].diff().fillna(df["bfr"].iloc[0]))

    def test_dscr_is_cash_over_debt_service(self, full_bundle):
        df = consolidate(full_bundle).frame
        serviced = df["debt_service"] > 0
        np.testing.assert_allclose(
            df.loc[serviced, "dscr"], df.loc[serviced, "operating_cash_flow"] / df.loc[serviced, "debt_service"]
        )
        assert (df.loc[~serviced, "dscr"] == 0.0).all()

    def test_zero_revenue_ratios_are_zero(self, simple_bundle):
        bundle = simple_bundle.model_copy(update={"sales": []})
        df = consolidate(bundle).frame
        assert (df[["gross_margin", "ebitda_margin", "net_margin"]] == 0.0).all().all()
        assert np.isfinite(df.drop(columns=["project_id", "scenario_id"]).to_numpy(dtype=float)).all()


class TestBehaviour:
    def test_idempotent(self, full_bundle):
        a = consolidate(full_bundle)
        b = consolidate(full_bundle)
        pd.testing.assert_frame_equal(a.frame, b.frame)
        assert a.rows == b.rows

    def test_scenario_overlay(self, full_bundle):
        base = consolidate(full_bundle).frame
        opt = consolidate(full_bundle, full_bundle.scenario("opt")).frame
        assert (opt["scenario_id"] == "opt").all()
        assert opt["revenue"].sum() > base["revenue"].sum()

    def test_overflow_is_a_computation_error(self, simple_bundle):
        bundle = simple_bundle.model_copy(
            update={"products": [ProductService(id="bread", price=1e308, unit_cost=4_000)]}
        )
        with pytest.raises(ComputationError):
            consolidate(bundle)

    def test_invalid_loan_rejected(self, full_bundle):
        bad = Loan(id="bad", principal=1_000, annual_rate=0.1, term_months=0, disbursement_date=date(2025, 1, 1))
        with pytest.raises(InvalidLoanTerms):
            consolidate(full_bundle.model_copy(update={"loans": [bad]}))

    def test_tax_carry_forward_opt_in(self, full_bundle):
        carrying = full_bundle.model_copy(
            update={"tax": TaxSettings(corporate_tax_rate=0.25, carry_forward_losses=True)}
        )
        default = consolidate(full_bundle).frame
        carried = consolidate(carrying).frame
        assert carried["taxes"].sum() <= default["taxes"].sum()
        np.testing.assert_allclose(carried["ebit"], default["ebit"])

    def test_sensitivity_multiplier(self, simple_bundle):
        df = consolidate(simple_bundle, revenue_multiplier=1.2).frame
        np.testing.assert_allclose(df["revenue"], 120_000.0)
        np.testing.assert_allclose(df["cogs"], 40_000.0)
