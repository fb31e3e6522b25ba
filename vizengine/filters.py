from __future__ import annotations

from typing import Any, Iterable

import pandas as pd

from vizengine.dataset import Dataset
from vizengine.models import ColumnType, Filter, FilterOperator


def to_timestamp(value: Any) -> pd.Timestamp:
    stamp = pd.Timestamp(value)
    if stamp.tzinfo is not None:
        stamp = stamp.tz_convert("UTC").tz_localize(None)
    return stamp


def _coerce(dtype: ColumnType, value: Any) -> Any:
    if dtype == ColumnType.DATETIME:
        return to_timestamp(value)
    if dtype == ColumnType.FLOAT:
        return float(value)
    return value


def _predicate(series: pd.Series, dtype: ColumnType, flt: Filter) -> pd.Series:
    operator = flt.operator
    if operator == FilterOperator.IS_NULL:
        return series.isna()

    present = series.notna()
    if operator == FilterOperator.IS_NOT_NULL:
        return present

    if operator in (FilterOperator.IN, FilterOperator.NOT_IN):
        values = [_coerce(dtype, item) for item in flt.value]
        matched = series.isin(values)
        mask = matched if operator == FilterOperator.IN else ~matched
    elif operator == FilterOperator.CONTAINS:
        mask = series.str.contains(str(flt.value), regex=False, na=False)
    elif operator == FilterOperator.STARTS_WITH:
        mask = series.str.startswith(str(flt.value), na=False)
    elif operator == FilterOperator.ENDS_WITH:
        mask = series.str.endswith(str(flt.value), na=False)
    else:
        value = _coerce(dtype, flt.value)
        if operator == FilterOperator.EQUALS:
            mask = series == value
        elif operator == FilterOperator.NOT_EQUALS:
            mask = series != value
        elif operator == FilterOperator.GT:
            mask = series > value
        elif operator == FilterOperator.GTE:
            mask = series >= value
        elif operator == FilterOperator.LT:
            mask = series < value
        else:
            mask = series <= value

    # null cells fail every operator except is_null
    return (present & mask.fillna(False).astype(bool)).astype(bool)


def apply_filters(dataset: Dataset, filters: Iterable[Filter], frame: pd.DataFrame | None = None) -> pd.DataFrame:
    """
    AND all filters together.

    Each filter only looks at rows that survived the previous ones, so a row
    is dropped at its first failing predicate.
    """
    scoped = dataset.frame if frame is None else frame
    schema = dataset.schema
    for flt in filters:
        if scoped.empty:
            break
        mask = _predicate(scoped[flt.column], schema[flt.column].dtype, flt)
        scoped = scoped[mask.to_numpy()]
    return scoped
