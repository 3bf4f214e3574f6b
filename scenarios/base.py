"""
Base class for scenario overlays.
An overlay is a pure transform of an AssumptionBundle; the consolidation engine
only ever sees the transformed bundle and knows nothing about scenarios.
"""

from __future__ import annotations

from data_prep.records import AssumptionBundle


class ScenarioOverlay:
    """Interface: return a new bundle, never mutate the input."""

    def apply(self, bundle: AssumptionBundle) -> AssumptionBundle:
        raise NotImplementedError
