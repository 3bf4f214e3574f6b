"""
Default multipliers per scenario type.

A Scenario's own `parameters` override these key by key, so a record of type
"optimistic" with parameters={"volume": 1.3} keeps the other optimistic defaults.
"""

from __future__ import annotations

from typing import Dict

NAMED_SCENARIOS: Dict[str, Dict[str, float]] = {
    "base": {},
    "optimistic": {
        "volume": 1.20,
        "price": 1.05,
    },
    "pessimistic": {
        "volume": 0.80,
        "unit_cost": 1.05,
    },
    "stress": {
        "volume": 0.70,
        "price": 0.95,
        "unit_cost": 1.10,
        "opex": 1.10,
        "interest_rate": 1.25,
        "dso_days": 1.50,
    },
}


def preset_multipliers(scenario_type: str) -> Dict[str, float]:
    if scenario_type not in NAMED_SCENARIOS:
        raise ValueError(f"Unknown scenario type: {scenario_type!r}")
    return dict(NAMED_SCENARIOS[scenario_type])
