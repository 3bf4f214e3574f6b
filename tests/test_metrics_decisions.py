import pandas as pd
import pytest

from analysis.decisions import (
    ACCEPTABLE,
    EXCELLENT,
    GOOD,
    POOR,
    DecisionThresholds,
    covenant_breaches,
    generate_decision_report,
    max_consecutive_losses,
    rate_drci,
    rate_irr,
    rate_npv,
    risk_indicators,
)
from analysis.investment import run_investment_analysis
from analysis.metrics import compare_scenarios, compute_project_metrics
from data_prep.records import Loan
from engine import consolidate


def _ledger(**cols):
    """Small synthetic ledger; unspecified columns are zero."""
    n = len(next(iter(cols.values())))
    base = {
        c: [0.0] * n
        for c in (
            "revenue", "cogs", "opex_total", "net_income", "net_cash_flow", "cash_balance",
            "gross_margin", "ebitda_margin", "debt_to_equity", "current_ratio",
            "dscr", "debt_service", "investing_cash_flow", "loan_fees",
        )
    }
    base.update(cols)
    return pd.DataFrame(base)


class TestProjectMetrics:
    def test_simple_project(self, simple_bundle):
        m = compute_project_metrics(consolidate(simple_bundle).frame)
        assert m["total_revenue"] == 1_200_000.0
        assert m["total_costs"] == 516_000.0
        assert m["net_profit"] == 684_000.0
        assert m["roi"] == pytest.approx(684_000 / 516_000)
        assert m["payback_month"] == 1
        assert m["dscr_min"] is None
        assert m["peak_funding_need"] == 0.0
        assert m["burn_rate"] == 0.0
        assert m["revenue_growth_rate"] == 0.0

    def test_milestones(self):
        frame = _ledger(
            revenue=[100.0, 200.0, 400.0],
            net_income=[-50.0, 20.0, 40.0],
            net_cash_flow=[-100.0, 40.0, 80.0],
            cash_balance=[-100.0, -60.0, 20.0],
        )
        m = compute_project_metrics(frame)
        assert m["payback_month"] == 3
        assert m["cash_generation_start"] == 3
        assert m["break_even_month"] == 3
        assert m["peak_funding_need"] == 100.0
        assert m["burn_rate"] == 100.0
        assert m["revenue_growth_rate"] == pytest.approx(1.0)

    def test_never_reached(self):
        m = compute_project_metrics(_ledger(net_cash_flow=[-1.0, -1.0], cash_balance=[-1.0, -2.0]))
        assert m["payback_month"] is None
        assert m["cash_generation_start"] is None

    def test_dscr_min_over_serviced_months(self):
        m = compute_project_metrics(_ledger(dscr=[0.0, 1.5, 0.9], debt_service=[0.0, 10.0, 10.0]))
        assert m["dscr_min"] == 0.9

    def test_empty(self):
        with pytest.raises(ValueError):
            compute_project_metrics(_ledger(revenue=[]))


class TestCompareScenarios:
    def test_best_and_worst(self, simple_bundle):
        frames = {
            "base": consolidate(simple_bundle).frame,
            "high": consolidate(simple_bundle, revenue_multiplier=1.2).frame,
            "low": consolidate(simple_bundle, revenue_multiplier=0.8).frame,
        }
        out = compare_scenarios(frames, 0.10)
        assert list(out["table"].index) == ["base", "high", "low"]
        assert out["comparison"]["best_case"] == "high"
        assert out["comparison"]["worst_case"] == "low"
        assert out["comparison"]["revenue_variance"] > 0
        assert out["table"]["irr"].isna().all()

    def test_empty(self):
        with pytest.raises(ValueError):
            compare_scenarios({}, 0.1)


class TestRatings:
    @pytest.mark.parametrize(
        "value,expected",
        [(600e6, EXCELLENT), (100e6, GOOD), (0.0, ACCEPTABLE), (-1.0, POOR)],
    )
    def test_npv(self, value, expected):
        assert rate_npv(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [(0.35, EXCELLENT), (0.25, GOOD), (0.12, ACCEPTABLE), (0.05, POOR), (None, POOR)],
    )
    def test_irr(self, value, expected):
        assert rate_irr(value) == expected

    @pytest.mark.parametrize(
        "years,expected",
        [(1.5, EXCELLENT), (3.0, GOOD), (3.5, ACCEPTABLE), (6.0, POOR), (None, POOR)],
    )
    def test_drci(self, years, expected):
        assert rate_drci(years) == expected


class TestRisk:
    def test_consecutive_losses(self):
        assert max_consecutive_losses([1, -1, -1, 2, -1, -1, -1, 0]) == 3
        assert max_consecutive_losses([]) == 0

    def test_indicators(self):
        frame = _ledger(
            dscr=[0.0, 0.8, 1.5],
            debt_service=[0.0, 10.0, 10.0],
            cash_balance=[-5.0, 1.0, 2.0],
            net_income=[-1.0, -1.0, 1.0],
        )
        by_type = {i.type: i for i in risk_indicators(frame)}
        assert by_type["dscr_risk"].level == "high"
        assert by_type["cash_risk"].value == -5.0
        assert by_type["profitability_risk"].level == "medium"

    def test_covenant_breaches(self):
        frame = _ledger(dscr=[0.0, 1.1, 1.4, 1.2], debt_service=[0.0, 5.0, 5.0, 5.0])
        loans = [
            Loan(id="a", principal=1, annual_rate=0.1, term_months=12,
                 disbursement_date="2025-01-01", covenant_dscr=1.3),
            Loan(id="b", principal=1, annual_rate=0.1, term_months=12, disbursement_date="2025-01-01"),
        ]
        assert covenant_breaches(frame, loans) == {"a": [2, 4]}


class TestDecisionReport:
    def test_simple_project(self, simple_bundle):
        frame = consolidate(simple_bundle).frame
        analysis = run_investment_analysis(simple_bundle, rate=0.10)
        report = generate_decision_report(frame, analysis)

        assert report.project_id == "p1"
        assert report.npv_rating == ACCEPTABLE
        assert report.irr_rating == POOR
        assert report.drci_rating == EXCELLENT
        assert report.risk_level == "low"
        assert report.recommendation == "To review"
        assert any(f.startswith("UNDEFINED_IRR") for f in report.flags)

        table = report.to_dataframe()
        assert list(table.columns) == ["Metric", "Value", "Rating"]
        assert table.loc[table["Metric"] == "IRR", "Value"].iloc[0] == "undefined"

    def test_custom_thresholds(self, simple_bundle):
        frame = consolidate(simple_bundle).frame
        analysis = run_investment_analysis(simple_bundle, rate=0.10)
        t = DecisionThresholds(npv_excellent=500_000.0)
        assert generate_decision_report(frame, analysis, thresholds=t).npv_rating == EXCELLENT

    def test_covenant_flag(self, full_bundle):
        frame = consolidate(full_bundle).frame
        analysis = run_investment_analysis(full_bundle)
        report = generate_decision_report(frame, analysis, loans=full_bundle.loans)
        assert report.covenant_breaches == covenant_breaches(frame, full_bundle.loans)
        has_flag = any(f.startswith("COVENANT_BREACH") for f in report.flags)
        assert has_flag == bool(report.covenant_breaches)
