"""
Projection engine — monthly revenue / cost / working-capital / tax modules and the
consolidation that turns them into a FinancialOutput ledger.

The stateful projection service lives in engine.service.
"""

from .consolidation import FinancialOutput, ProjectionResult, consolidate

__all__ = ["FinancialOutput", "ProjectionResult", "consolidate"]
