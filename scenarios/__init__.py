"""
Scenario overlays — named multiplicative perturbations of a project's assumptions.
"""

from .base import ScenarioOverlay
from .overlay import MultiplicativeOverlay, apply_scenario
from .presets import NAMED_SCENARIOS, preset_multipliers

__all__ = [
    "ScenarioOverlay",
    "MultiplicativeOverlay",
    "apply_scenario",
    "NAMED_SCENARIOS",
    "preset_multipliers",
]
