"""
Projection service — the per-(project, scenario) state machine around consolidation.

  Idle → Computing → Committed
                   ↘ Failed

A trigger validates its input first (InputError, state unchanged), skips when a
committed set exists and no recalculation is forced, otherwise computes the full
ledger and hands it to the output store in one `replace` call. A failed run
leaves the previously committed set in place.

At most one computation per key is in flight. A second trigger for a busy key
is rejected (ComputationInProgress) or waits, depending on EngineConfig.busy_policy.
Different keys compute in parallel.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Sequence

from analysis.investment import InvestmentAnalysis, run_investment_analysis
from core.config import EngineConfig
from core.errors import ComputationError, ComputationInProgress, EngineError, InputError
from data_prep.records import AssumptionBundle, CalculationTrigger, Scenario
from data_prep.validators import require_valid
from storage import InMemoryOutputStore, OutputKey, OutputStore

from .consolidation import consolidate

logger = logging.getLogger(__name__)


class ComputationState(str, Enum):
    IDLE = "idle"
    COMPUTING = "computing"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(frozen=True)
class TriggerOutcome:
    project_id: str
    scenario_id: Optional[str]
    recalculated: bool
    version: Optional[int]
    total_months: int
    state: ComputationState


@dataclass(frozen=True)
class ProjectionStatus:
    project_id: str
    scenario_id: Optional[str]
    state: ComputationState
    has_calculations: bool
    last_calculation: Optional[datetime]
    version: Optional[int]
    total_months: int
    last_error: Optional[str]


@dataclass
class RecalculationReport:
    outcomes: Dict[Optional[str], TriggerOutcome] = field(default_factory=dict)
    failures: Dict[Optional[str], str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failures


class ProjectionService:
    def __init__(self, store: Optional[OutputStore] = None, config: EngineConfig = EngineConfig()):
        self.store = store if store is not None else InMemoryOutputStore()
        self.config = config
        self._registry_lock = threading.Lock()
        self._locks: Dict[OutputKey, threading.Lock] = {}
        self._states: Dict[OutputKey, ComputationState] = {}
        self._errors: Dict[OutputKey, str] = {}

    # ------------------------------------------------------------------
    # state bookkeeping
    # ------------------------------------------------------------------

    def _key_lock(self, key: OutputKey) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(key, threading.Lock())

    def _set_state(self, key: OutputKey, state: ComputationState, error: Optional[str] = None) -> None:
        with self._registry_lock:
            self._states[key] = state
            if error is not None:
                self._errors[key] = error
            elif state is ComputationState.COMMITTED:
                self._errors.pop(key, None)
        logger.info("project=%s scenario=%s -> %s", key[0], key[1], state.value)

    def state(self, project_id: str, scenario_id: Optional[str] = None) -> ComputationState:
        with self._registry_lock:
            return self._states.get((project_id, scenario_id), ComputationState.IDLE)

    # ------------------------------------------------------------------
    # triggers
    # ------------------------------------------------------------------

    def _resolve(self, bundle: AssumptionBundle, trigger: CalculationTrigger) -> Optional[Scenario]:
        if trigger.project_id != bundle.project.id:
            raise InputError(
                f"Trigger is for project {trigger.project_id!r} but the bundle holds {bundle.project.id!r}"
            )
        scenario = None
        if trigger.scenario_id is not None:
            scenario = bundle.scenario(trigger.scenario_id)
            if scenario is None:
                raise InputError(
                    f"Unknown scenario {trigger.scenario_id!r} for project {trigger.project_id!r}"
                )
        require_valid(bundle)
        return scenario

    def trigger(self, bundle: AssumptionBundle, trigger: CalculationTrigger) -> TriggerOutcome:
        """
        Compute and commit the ledger for (trigger.project_id, trigger.scenario_id).

        Raises
        ------
        InputError             invalid bundle or trigger (state unchanged)
        ComputationInProgress  key busy and busy_policy == "reject"
        ComputationError       numeric failure (state Failed, committed set untouched)
        """
        scenario = self._resolve(bundle, trigger)
        key: OutputKey = (trigger.project_id, trigger.scenario_id)

        lock = self._key_lock(key)
        if self.config.busy_policy == "reject":
            if not lock.acquire(blocking=False):
                raise ComputationInProgress(trigger.project_id, trigger.scenario_id)
        else:
            lock.acquire()

        try:
            if not trigger.force_recalculation:
                existing = self.store.read(key)
                if existing is not None:
                    logger.info(
                        "skipping project=%s scenario=%s: version %d already committed",
                        key[0], key[1], existing.version,
                    )
                    return TriggerOutcome(
                        project_id=key[0],
                        scenario_id=key[1],
                        recalculated=False,
                        version=existing.version,
                        total_months=len(existing),
                        state=self.state(*key),
                    )

            previous = self.state(*key)
            self._set_state(key, ComputationState.COMPUTING)
            try:
                result = consolidate(bundle, scenario, self.config)
                version = self.store.replace(key, result.rows)
            except InputError:
                self._set_state(key, previous)
                raise
            except ComputationError as exc:
                self._set_state(key, ComputationState.FAILED, error=str(exc))
                logger.error("computation failed for project=%s scenario=%s: %s", key[0], key[1], exc)
                raise
            except Exception as exc:
                self._set_state(key, ComputationState.FAILED, error=repr(exc))
                logger.exception("computation failed for project=%s scenario=%s", key[0], key[1])
                raise ComputationError(
                    f"Computation failed for project={key[0]!r} scenario={key[1]!r}: {exc!r}"
                ) from exc

            self._set_state(key, ComputationState.COMMITTED)
            return TriggerOutcome(
                project_id=key[0],
                scenario_id=key[1],
                recalculated=True,
                version=version,
                total_months=result.n_months,
                state=ComputationState.COMMITTED,
            )
        finally:
            lock.release()

    def recalculate_scenarios(
        self,
        bundle: AssumptionBundle,
        scenario_ids: Optional[Sequence[Optional[str]]] = None,
    ) -> RecalculationReport:
        """
        Force a recalculation of several scenarios (default: base + every scenario
        of the bundle). A failing scenario is recorded and the batch continues.
        """
        if scenario_ids is None:
            scenario_ids = [None] + [s.id for s in bundle.scenarios]

        report = RecalculationReport()
        for scenario_id in scenario_ids:
            trig = CalculationTrigger(
                project_id=bundle.project.id,
                scenario_id=scenario_id,
                force_recalculation=True,
            )
            try:
                report.outcomes[scenario_id] = self.trigger(bundle, trig)
            except EngineError as exc:
                logger.warning("recalculation of scenario %s failed: %s", scenario_id, exc)
                report.failures[scenario_id] = str(exc)
        return report

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def status(self, project_id: str, scenario_id: Optional[str] = None) -> ProjectionStatus:
        key: OutputKey = (project_id, scenario_id)
        committed = self.store.read(key)
        with self._registry_lock:
            last_error = self._errors.get(key)
        return ProjectionStatus(
            project_id=project_id,
            scenario_id=scenario_id,
            state=self.state(project_id, scenario_id),
            has_calculations=committed is not None,
            last_calculation=committed.committed_at if committed else None,
            version=committed.version if committed else None,
            total_months=len(committed) if committed else 0,
            last_error=last_error,
        )

    def analyze(
        self,
        bundle: AssumptionBundle,
        scenario_id: Optional[str] = None,
        rate: Optional[float] = None,
    ) -> InvestmentAnalysis:
        """Investment analysis over the committed ledger of a key."""
        key: OutputKey = (bundle.project.id, scenario_id)
        committed = self.store.read(key)
        if committed is None:
            raise InputError(
                f"No committed output for project={key[0]!r} scenario={key[1]!r}; trigger a calculation first"
            )
        scenario = bundle.scenario(scenario_id)
        if scenario_id is not None and scenario is None:
            raise InputError(f"Unknown scenario {scenario_id!r} for project {key[0]!r}")
        return run_investment_analysis(
            bundle,
            scenario,
            self.config,
            rate,
            base_frame=committed.to_frame(),
        )
