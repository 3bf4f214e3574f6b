from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd
from pydantic import ValidationError

from core.errors import InputError

from .records import AssumptionBundle, SalesProjection

_SALES_COLUMNS = ["product_id", "year", "month", "volume"]


def load_bundle(path: Union[str, Path]) -> AssumptionBundle:
    """
    Load a project's assumption bundle from a JSON file.
    Schema errors surface as InputError, before anything is computed.
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        return AssumptionBundle.model_validate_json(text)
    except ValidationError as exc:
        raise InputError(f"Invalid assumption bundle {path}: {exc}") from exc


def bundle_from_dict(data: Dict[str, Any]) -> AssumptionBundle:
    try:
        return AssumptionBundle.model_validate(data)
    except ValidationError as exc:
        raise InputError(f"Invalid assumption bundle: {exc}") from exc


def load_sales_csv(path: Union[str, Path], *, low_memory: bool = False) -> List[SalesProjection]:
    """
    Load a sales forecast sheet (one row per product and month).

    Required columns: product_id, year, month, volume. An optional `price`
    column overrides the product list price where it is filled in.
    """
    df = pd.read_csv(path, low_memory=low_memory)
    missing = [c for c in _SALES_COLUMNS if c not in df.columns]
    if missing:
        raise InputError(f"Sales sheet {path} is missing columns: {missing}")

    records = []
    for row in df.to_dict(orient="records"):
        if "price" in row and pd.isna(row["price"]):
            row["price"] = None
        try:
            records.append(SalesProjection.model_validate(row))
        except ValidationError as exc:
            raise InputError(f"Invalid sales row {row}: {exc}") from exc
    return records
