"""
Depreciation schedules, derived on demand from a Capex record.

A schedule is never stored: DepreciationSchedule is a small immutable view over
its Capex that regenerates the lines every time it is iterated, so an edited
Capex can never leave a stale schedule behind.

Methods:
  linear      constant (cost - salvage) / life; the last month absorbs the
              rounding remainder so the total equals cost - salvage.
  degressive  declining balance at degressive_factor / life_months per month on
              net book value, switching for good to straight-line on the
              remaining life once straight-line is at least as large
              (standard crossover). Fully written down to salvage at end of life.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterator, Sequence

import numpy as np
import pandas as pd

from core.utils import months_between
from data_prep.records import Capex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DepreciationLine:
    period_index: int  # months since acquisition, 0 = acquisition month
    amount: float
    net_book_value: float


@dataclass(frozen=True)
class DepreciationSchedule:
    capex: Capex
    degressive_factor: float = 2.0

    @property
    def depreciable_base(self) -> float:
        return self.capex.cost - float(self.capex.salvage_value)

    @property
    def is_empty(self) -> bool:
        return self.capex.life_months <= 0 or self.depreciable_base <= 0

    def __len__(self) -> int:
        return 0 if self.is_empty else int(self.capex.life_months)

    def __iter__(self) -> Iterator[DepreciationLine]:
        if self.is_empty:
            return
        if self.capex.method == "degressive":
            yield from self._degressive()
        else:
            yield from self._linear()

    def _linear(self) -> Iterator[DepreciationLine]:
        life = int(self.capex.life_months)
        cost = self.capex.cost
        salvage = float(self.capex.salvage_value)
        base = cost - salvage
        per_month = base / life

        taken = 0.0
        for k in range(life):
            if k == life - 1:
                amount = base - taken
                nbv = salvage
            else:
                amount = per_month
                nbv = cost - (taken + amount)
            taken += amount
            yield DepreciationLine(period_index=k, amount=amount, net_book_value=nbv)

    def _degressive(self) -> Iterator[DepreciationLine]:
        life = int(self.capex.life_months)
        salvage = float(self.capex.salvage_value)
        rate = self.degressive_factor / life
        nbv = self.capex.cost
        straight_line = False

        for k in range(life):
            remaining = life - k
            if k == life - 1:
                amount = nbv - salvage
            else:
                sl_amount = (nbv - salvage) / remaining
                db_amount = nbv * rate
                if not straight_line and sl_amount >= db_amount:
                    straight_line = True
                    logger.debug(
                        "capex %s switches to straight-line at month %d", self.capex.id, k
                    )
                amount = sl_amount if straight_line else min(db_amount, nbv - salvage)
            nbv = salvage if k == life - 1 else nbv - amount
            yield DepreciationLine(period_index=k, amount=amount, net_book_value=nbv)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(line.period_index, line.amount, line.net_book_value) for line in self],
            columns=["period_index", "depreciation", "net_book_value"],
        )


def booking_offset(start_date: date, event_date: date) -> int:
    """Projection period of an event; events dated before the start land in period 0."""
    return max(months_between(start_date, event_date), 0)


def capex_by_period(
    capex: Sequence[Capex],
    start_date: date,
    n_months: int,
    *,
    degressive_factor: float = 2.0,
) -> pd.DataFrame:
    """
    Map every asset's schedule onto the projection calendar.

    Returns one row per period with:
      capex_paid, vat_deductible, depreciation, fixed_assets_gross, accumulated_depreciation
    """
    paid = np.zeros(n_months, dtype=float)
    vat = np.zeros(n_months, dtype=float)
    dep = np.zeros(n_months, dtype=float)

    for asset in capex:
        offset = booking_offset(start_date, asset.acquisition_date)
        if offset >= n_months:
            continue
        paid[offset] += asset.cost
        vat[offset] += asset.recoverable_vat

        schedule = DepreciationSchedule(asset, degressive_factor=degressive_factor)
        if schedule.is_empty:
            logger.debug("capex %s has no depreciation (life or base <= 0)", asset.id)
        for line in schedule:
            p = offset + line.period_index
            if p >= n_months:
                break
            dep[p] += line.amount

    gross = np.cumsum(paid)
    accumulated = np.cumsum(dep)
    return pd.DataFrame(
        {
            "capex_paid": paid,
            "vat_deductible": vat,
            "depreciation": dep,
            "fixed_assets_gross": gross,
            "accumulated_depreciation": accumulated,
        }
    )
