import numpy as np
import pytest

from analysis.investment import (
    NEVER_RECOVERED,
    NO_ROOT_IN_BRACKET,
    NO_SIGN_CHANGE,
    ZERO_INVESTMENT,
    discounted_payback,
    investment_inputs,
    irr,
    npv,
    profitability_index,
    run_investment_analysis,
    sensitivity_multipliers,
)
from core.config import EngineConfig
from core.errors import InputError
from data_prep.records import Assumptions
from engine import consolidate

EFFECTIVE = EngineConfig(discount_convention="effective")


class TestNPV:
    def test_investment_at_t0_flows_from_t1(self):
        assert npv([110.0], 0.12, 100.0) == pytest.approx(-100 + 110 / 1.01)

    def test_zero_rate_is_plain_sum(self):
        assert npv([100.0] * 12, 0.0, 1_000.0) == pytest.approx(200.0)

    def test_effective_convention(self):
        value = npv([100.0] * 12, 0.12, 0.0, EFFECTIVE)
        i = 1.12 ** (1 / 12) - 1
        assert value == pytest.approx(sum(100 / (1 + i) ** t for t in range(1, 13)))

    @pytest.mark.parametrize(
        "flows,investment",
        [([], 0.0), ([1.0, np.nan], 0.0), ([1.0, np.inf], 0.0), ([1.0], -5.0), ([1.0], np.nan)],
    )
    def test_malformed_input(self, flows, investment):
        with pytest.raises(InputError):
            npv(flows, 0.1, investment)


class TestIRR:
    def test_single_period(self):
        result = irr([1_100.0], 1_000.0)
        assert result.is_defined
        assert result.value == pytest.approx(1.2, abs=1e-8)

    def test_single_period_effective(self):
        assert irr([1_100.0], 1_000.0, EFFECTIVE).value == pytest.approx(1.1 ** 12 - 1, rel=1e-8)

    def test_npv_is_zero_at_irr(self):
        flows = [-500.0, 200.0, 300.0, 400.0, 400.0]
        result = irr(flows, 800.0)
        assert npv(flows, result.value, 800.0) == pytest.approx(0.0, abs=1e-6)

    def test_no_sign_change(self):
        result = irr([-10.0, -20.0], 0.0)
        assert not result.is_defined
        assert result.value is None
        assert result.reason == NO_SIGN_CHANGE

    def test_all_positive_without_investment(self):
        assert irr([10.0, 20.0]).reason == NO_SIGN_CHANGE

    def test_root_outside_bracket(self):
        result = irr([1e6], 1_000.0)
        assert result.value is None
        assert result.reason == NO_ROOT_IN_BRACKET


class TestDiscountedPayback:
    def test_exact_month(self):
        pb = discounted_payback([100.0] * 24, 0.0, 1_200.0)
        assert pb.months == pytest.approx(12.0)
        assert (pb.years_part, pb.months_part, pb.days_part) == (1, 0, 0)
        assert pb.decimal_years == pytest.approx(1.0)

    def test_interpolated_within_month(self):
        pb = discounted_payback([100.0] * 24, 0.0, 1_250.0)
        assert pb.months == pytest.approx(12.5)
        assert (pb.years_part, pb.months_part, pb.days_part) == (1, 0, 15)
        assert pb.to_dict()["days"] == 15

    def test_discounting_lengthens_payback(self):
        plain = discounted_payback([100.0] * 36, 0.0, 1_200.0)
        discounted = discounted_payback([100.0] * 36, 0.12, 1_200.0)
        assert discounted.months > plain.months

    def test_never_recovered(self):
        pb = discounted_payback([10.0] * 12, 0.05, 1_000.0)
        assert not pb.is_defined
        assert pb.reason == NEVER_RECOVERED
        assert pb.decimal_years is None


class TestProfitabilityIndex:
    def test_ratio(self):
        assert profitability_index([1_200.0], 0.0, 1_000.0).value == pytest.approx(1.2)

    def test_zero_investment_is_undefined(self):
        result = profitability_index([1_200.0], 0.1, 0.0)
        assert result.value is None
        assert result.reason == ZERO_INVESTMENT


class TestFromLedger:
    def test_investment_inputs(self, full_bundle):
        frame = consolidate(full_bundle).frame
        flows, investment = investment_inputs(frame)
        # machine bought in month 1 plus loan fees and insurance
        assert investment == pytest.approx(60_000 + 750)
        assert flows[0] == pytest.approx(frame["net_cash_flow"].iloc[0] + investment)
        np.testing.assert_allclose(flows[1:], frame["net_cash_flow"].to_numpy()[1:])

    def test_sensitivity_defaults(self, simple_bundle):
        assert sensitivity_multipliers(simple_bundle, EngineConfig()) == pytest.approx((0.8, 1.2))

    def test_sensitivity_bounds_override(self, simple_bundle):
        bundle = simple_bundle.model_copy(
            update={"assumptions": Assumptions(sensitivity_bounds={"revenue": (-0.1, 0.3)})}
        )
        assert sensitivity_multipliers(bundle, EngineConfig()) == pytest.approx((0.9, 1.3))

    def test_full_analysis(self, simple_bundle):
        result = run_investment_analysis(simple_bundle, rate=0.10)
        annuity = sum(1 / (1 + 0.10 / 12) ** t for t in range(1, 13))
        assert result.investment == 0.0
        assert result.npv == pytest.approx(57_000 * annuity)
        assert result.sensitivity.npv_optimistic == pytest.approx(77_000 * annuity)
        assert result.sensitivity.npv_pessimistic == pytest.approx(37_000 * annuity)
        # positive flows and nothing invested: no rate of return exists
        assert result.irr.reason == NO_SIGN_CHANGE
        assert result.sensitivity.irr_optimistic.value is None
        assert result.profitability_index.reason == ZERO_INVESTMENT
        assert result.drci.months == 0.0

        out = result.to_dict()
        assert out["irr"] is None
        assert out["undefined"] == {
            "irr": NO_SIGN_CHANGE,
            "profitability_index": ZERO_INVESTMENT,
            "irr_optimistic": NO_SIGN_CHANGE,
            "irr_pessimistic": NO_SIGN_CHANGE,
        }

    def test_rate_defaults_to_wacc(self, full_bundle):
        result = run_investment_analysis(full_bundle)
        assert result.discount_rate == 0.12
        assert result.investment > 0
        assert result.sensitivity.npv_optimistic > result.npv > result.sensitivity.npv_pessimistic
