"""
In-memory output store using a versioned swap.

`replace` first materialises the new rows as an immutable OutputSet under a
fresh version id, then flips the key's current-version pointer while holding
the lock. Readers only ever dereference the pointer, so they see the old set
or the new set in full.
"""

from __future__ import annotations

import itertools
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from .base import OutputKey, OutputSet, OutputStore

logger = logging.getLogger(__name__)


class InMemoryOutputStore(OutputStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._versions = itertools.count(1)
        self._sets: Dict[OutputKey, Dict[int, OutputSet]] = {}
        self._current: Dict[OutputKey, int] = {}

    def replace(self, key: OutputKey, rows: Sequence[Any]) -> int:
        snapshot = tuple(rows)
        with self._lock:
            version = next(self._versions)
        new_set = OutputSet(
            version=version,
            rows=snapshot,
            committed_at=datetime.now(timezone.utc),
        )

        with self._lock:
            versions = self._sets.setdefault(key, {})
            versions[version] = new_set
            previous = self._current.get(key)
            self._current[key] = version
            # superseded snapshots stay valid for readers already holding them
            if previous is not None:
                versions.pop(previous, None)

        logger.info(
            "committed %d rows for %s as version %d (replaced %s)",
            len(snapshot), key, version, previous,
        )
        return version

    def read(self, key: OutputKey) -> Optional[OutputSet]:
        with self._lock:
            version = self._current.get(key)
            if version is None:
                return None
            return self._sets[key][version]

    def keys(self) -> List[OutputKey]:
        with self._lock:
            return list(self._current)
