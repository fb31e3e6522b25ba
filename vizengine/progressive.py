"""
Zoom-driven point budgets and x-range restriction for progressive disclosure.

Zoom 0.0 shows a coarse overview at a fraction of the chart budget; zoom 1.0
shows the full budget. Budgets never shrink as zoom grows.
"""
from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any

import pandas as pd

from vizengine.config import MIN_POINT_BUDGET, MIN_ZOOM_RATIO
from vizengine.dataset import Dataset
from vizengine.errors import TypeMismatch
from vizengine.filters import to_timestamp
from vizengine.models import ColumnType, Filter, FilterOperator, QuerySpec


def clamp_zoom(zoom_level: float) -> float:
    try:
        zoom = float(zoom_level)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(zoom):
        return 0.0
    return min(1.0, max(0.0, zoom))


def point_budget(base_budget: int, zoom_level: float) -> int:
    zoom = clamp_zoom(zoom_level)
    scaled = base_budget * (MIN_ZOOM_RATIO + (1.0 - MIN_ZOOM_RATIO) * zoom)
    # strip float noise (300.00000000000006) before ceil
    return max(MIN_POINT_BUDGET, math.ceil(round(scaled, 9)))


def _datetime_bound(field: str, value: Any) -> pd.Timestamp:
    if isinstance(value, bool):
        raise TypeMismatch(field, "an ISO-8601 string or epoch milliseconds", "boolean")
    if isinstance(value, (int, float)):
        try:
            return pd.Timestamp(int(value), unit="ms")
        except (OverflowError, ValueError) as exc:
            raise TypeMismatch(field, "an ISO-8601 string or epoch milliseconds", repr(value)) from exc
    if isinstance(value, (str, datetime, date, pd.Timestamp)):
        try:
            return to_timestamp(value)
        except (TypeError, ValueError) as exc:
            raise TypeMismatch(field, "an ISO-8601 string or epoch milliseconds", repr(value)) from exc
    raise TypeMismatch(field, "an ISO-8601 string or epoch milliseconds", type(value).__name__)


def _numeric_bound(field: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeMismatch(field, "a numeric range bound", type(value).__name__)
    if isinstance(value, float) and not math.isfinite(value):
        raise TypeMismatch(field, "a finite numeric range bound", repr(value))
    return value


def range_filters(dataset: Dataset, spec: QuerySpec, range_start: Any = None, range_end: Any = None) -> list[Filter]:
    """Inclusive x-domain filters; a missing bound leaves that side open."""
    if range_start is None and range_end is None:
        return []

    dtype = dataset.column(spec.x_field).dtype
    if dtype == ColumnType.DATETIME:
        convert = _datetime_bound
    elif dtype.is_numeric:
        convert = _numeric_bound
    else:
        raise TypeMismatch(spec.x_field, "a numeric or datetime x field for range selection", dtype.value)

    start = convert(spec.x_field, range_start) if range_start is not None else None
    end = convert(spec.x_field, range_end) if range_end is not None else None
    if start is not None and end is not None and start > end:
        start, end = end, start

    bounds: list[Filter] = []
    if start is not None:
        bounds.append(Filter(column=spec.x_field, operator=FilterOperator.GTE, value=_wire(start)))
    if end is not None:
        bounds.append(Filter(column=spec.x_field, operator=FilterOperator.LTE, value=_wire(end)))
    return bounds


def _wire(value: Any) -> Any:
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    return value
