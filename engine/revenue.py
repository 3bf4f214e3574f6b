"""
Revenue module — aggregates unit-level sales forecasts into monthly revenue and COGS.

  revenue = Σ volume × price × seasonality_weight(month)
  cogs    = Σ volume × unit_cost

Price is the row's own price when set, else the product list price. Seasonality
weights are direct multipliers (default 1). Rows whose product does not exist
are dropped by an inner join: they never become zero-cost phantom revenue.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
import pandas as pd

from data_prep.records import ProductService, SalesProjection

logger = logging.getLogger(__name__)

REVENUE_COLUMNS = ("revenue", "cogs", "vat_collected", "units")


def compute_revenue(
    products: Sequence[ProductService],
    sales: Sequence[SalesProjection],
    calendar: pd.DataFrame,
    *,
    revenue_multiplier: float = 1.0,
) -> pd.DataFrame:
    """
    Parameters
    ----------
    products, sales : records of the (already scenario-adjusted) bundle
    calendar : output of core.utils.projection_calendar
    revenue_multiplier : scales revenue only (sensitivity runs), not COGS

    Returns
    -------
    DataFrame aligned with `calendar`: revenue, cogs, vat_collected, units
    """
    out = calendar[["period", "year", "month"]].copy()
    for c in REVENUE_COLUMNS:
        out[c] = 0.0
    if not sales or not products:
        return out

    by_id = {p.id: p for p in products}
    s = pd.DataFrame(
        {
            "product_id": [r.product_id for r in sales],
            "year": [r.year for r in sales],
            "month": [r.month for r in sales],
            "volume": [float(r.volume) for r in sales],
            "price": [np.nan if r.price is None else float(r.price) for r in sales],
        }
    )
    p = pd.DataFrame(
        {
            "product_id": list(by_id),
            "list_price": [float(x.price) for x in by_id.values()],
            "unit_cost": [float(x.unit_cost) for x in by_id.values()],
            "vat_rate": [float(x.vat_rate) for x in by_id.values()],
        }
    )

    merged = s.merge(p, on="product_id", how="inner")
    n_orphans = len(s) - len(merged)
    if n_orphans:
        orphan_ids = sorted(set(s["product_id"]) - set(by_id))
        logger.warning(
            "Excluded %d sales projection rows referencing unknown products %s",
            n_orphans, orphan_ids,
        )
    if merged.empty:
        return out

    weight = np.array(
        [by_id[pid].weight(m) for pid, m in zip(merged["product_id"], merged["month"])],
        dtype=float,
    )
    price = merged["price"].fillna(merged["list_price"]).to_numpy(dtype=float)
    volume = merged["volume"].to_numpy(dtype=float)

    merged["revenue"] = volume * price * weight * revenue_multiplier
    merged["cogs"] = volume * merged["unit_cost"].to_numpy(dtype=float)
    merged["vat_collected"] = merged["revenue"] * merged["vat_rate"]
    merged["units"] = volume

    agg = merged.groupby(["year", "month"], as_index=False)[list(REVENUE_COLUMNS)].sum()
    out = out.drop(columns=list(REVENUE_COLUMNS)).merge(agg, on=["year", "month"], how="left")
    out[list(REVENUE_COLUMNS)] = out[list(REVENUE_COLUMNS)].fillna(0.0)
    return out
