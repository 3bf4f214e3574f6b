"""
Error taxonomy shared by every layer.

InputError          rejected before any computation starts (caller fixes input)
ComputationError    numeric failure mid-run; committed output is left untouched
ComputationInProgress  a key is already computing and the busy policy is "reject"

Undefined investment metrics (IRR with no root, payback never reached) are not
errors: see analysis.investment.MetricValue.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine errors."""


class InputError(EngineError, ValueError):
    """Invalid assumptions or trigger."""


class InvalidLoanTerms(InputError):
    """Loan rejected before schedule generation."""

    def __init__(self, loan_id: str, reason: str):
        self.loan_id = loan_id
        self.reason = reason
        super().__init__(f"Invalid terms for loan {loan_id!r}: {reason}")


class ComputationError(EngineError):
    """Unexpected numeric failure during consolidation."""


class ComputationInProgress(EngineError):
    """A computation for the same (project_id, scenario_id) is already running."""

    def __init__(self, project_id: str, scenario_id):
        self.project_id = project_id
        self.scenario_id = scenario_id
        super().__init__(
            f"Computation already in flight for project={project_id!r} scenario={scenario_id!r}"
        )
