"""
Output-store contract.

The engine hands a complete ledger to `replace`; the store must make it visible
as one unit. A reader gets either the previous set or the new one, never a mix
and never a partially written set.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence, Tuple

import pandas as pd

OutputKey = Tuple[str, Optional[str]]  # (project_id, scenario_id); None = base


@dataclass(frozen=True)
class OutputSet:
    """One committed ledger snapshot."""

    version: int
    rows: Tuple[Any, ...]
    committed_at: datetime

    def __len__(self) -> int:
        return len(self.rows)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([r.to_dict() for r in self.rows])


class OutputStore:
    """Interface for FinancialOutput persistence."""

    def replace(self, key: OutputKey, rows: Sequence[Any]) -> int:
        """Atomically swap the rows stored for `key`; returns the new version id."""
        raise NotImplementedError

    def read(self, key: OutputKey) -> Optional[OutputSet]:
        raise NotImplementedError

    def has_output(self, key: OutputKey) -> bool:
        return self.read(key) is not None
