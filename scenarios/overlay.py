"""
MultiplicativeOverlay — perturbs a bundle by scaling its drivers.

Usage by engine/consolidation.py:
    effective = apply_scenario(bundle, bundle.scenario(scenario_id))
    # ... every module then runs on `effective`

A multiplier of 1.0 leaves its driver untouched; the base scenario
(scenario=None) returns the bundle itself.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Optional

from data_prep.records import AssumptionBundle, Scenario

from .base import ScenarioOverlay
from .presets import preset_multipliers


@dataclass(frozen=True)
class MultiplicativeOverlay(ScenarioOverlay):
    volume: float = 1.0
    price: float = 1.0
    unit_cost: float = 1.0
    opex: float = 1.0
    payroll: float = 1.0
    capex: float = 1.0
    interest_rate: float = 1.0
    inflation_rate: float = 1.0
    dso_days: float = 1.0
    dpo_days: float = 1.0

    @classmethod
    def from_scenario(cls, scenario: Scenario) -> "MultiplicativeOverlay":
        multipliers = preset_multipliers(scenario.type)
        multipliers.update(scenario.parameters)
        return cls(**multipliers)

    @property
    def is_identity(self) -> bool:
        return all(getattr(self, f.name) == 1.0 for f in fields(self))

    def apply(self, bundle: AssumptionBundle) -> AssumptionBundle:
        if self.is_identity:
            return bundle

        products = [
            p.model_copy(update={"price": p.price * self.price, "unit_cost": p.unit_cost * self.unit_cost})
            for p in bundle.products
        ]
        sales = [
            s.model_copy(
                update={
                    "volume": s.volume * self.volume,
                    "price": None if s.price is None else s.price * self.price,
                }
            )
            for s in bundle.sales
        ]
        opex = [
            o.model_copy(
                update={"amount": o.amount * self.opex, "var_pct_of_sales": o.var_pct_of_sales * self.opex}
            )
            for o in bundle.opex
        ]
        roles = [
            r.model_copy(
                update={"gross_monthly": r.gross_monthly * self.payroll, "benefits": r.benefits * self.payroll}
            )
            for r in bundle.payroll_roles
        ]
        capex = [
            c.model_copy(update={"amount": c.amount * self.capex, "salvage_value": c.salvage_value * self.capex})
            for c in bundle.capex
        ]
        loans = [
            loan.model_copy(update={"annual_rate": loan.annual_rate * self.interest_rate})
            for loan in bundle.loans
        ]
        wc = bundle.working_capital.model_copy(
            update={
                "dso_days": bundle.working_capital.dso_days * self.dso_days,
                "dpo_days": bundle.working_capital.dpo_days * self.dpo_days,
            }
        )
        assumptions = bundle.assumptions.model_copy(
            update={"inflation_rate": bundle.assumptions.inflation_rate * self.inflation_rate}
        )

        return bundle.model_copy(
            update={
                "products": products,
                "sales": sales,
                "opex": opex,
                "payroll_roles": roles,
                "capex": capex,
                "loans": loans,
                "working_capital": wc,
                "assumptions": assumptions,
            }
        )


def apply_scenario(bundle: AssumptionBundle, scenario: Optional[Scenario]) -> AssumptionBundle:
    """Resolve the effective assumptions for a scenario (None = base)."""
    if scenario is None:
        return bundle
    return MultiplicativeOverlay.from_scenario(scenario).apply(bundle)
