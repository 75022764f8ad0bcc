from __future__ import annotations

import datetime as dt
import math
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping

import orjson
import pandas as pd


def json_safe_value(value: Any) -> Any:
    """Convert a warehouse scalar into something JSON can carry."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(k): json_safe_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe_value(v) for v in value]
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        # numpy scalar
        try:
            return json_safe_value(value.item())
        except (TypeError, ValueError):
            return str(value)
    return value


def json_safe_records(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [{str(k): json_safe_value(v) for k, v in row.items()} for row in rows]


def records_from_dataframe(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Turn a query result frame into JSON-safe row dicts, NaN/NaT as None."""
    cleaned = df.astype(object).where(pd.notna(df), None)
    return json_safe_records(cleaned.to_dict(orient="records"))


def dumps_rows(rows: List[Dict[str, Any]]) -> str:
    return orjson.dumps(rows, default=str).decode()
