"""
Group filtered rows by the x key (and optionally a series key) and reduce the
y field per group.

Keys are factorized in first-seen order so that every later ordering step can
fall back to "order of first appearance in the filtered data" for ties.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from vizengine.dataset import Dataset
from vizengine.models import (
    Aggregation,
    ColumnType,
    DateBinGranularity,
    QuerySpec,
    SortField,
    SortOrder,
)

NULL_LABEL = "(null)"

# finest first, so "auto" can stop at the first one that fits
_BIN_ORDER = (
    DateBinGranularity.HOUR,
    DateBinGranularity.DAY,
    DateBinGranularity.WEEK,
    DateBinGranularity.MONTH,
    DateBinGranularity.QUARTER,
    DateBinGranularity.YEAR,
)
_PERIOD_CODES = {
    DateBinGranularity.YEAR: "Y",
    DateBinGranularity.QUARTER: "Q",
    DateBinGranularity.MONTH: "M",
    DateBinGranularity.WEEK: "W",
}

AGGREGATION_LABELS = {
    Aggregation.SUM: "Sum of {}",
    Aggregation.AVG: "Average of {}",
    Aggregation.COUNT: "Count of {}",
    Aggregation.MIN: "Min of {}",
    Aggregation.MAX: "Max of {}",
    Aggregation.MEDIAN: "Median of {}",
}


def aggregation_label(spec: QuerySpec) -> str:
    return AGGREGATION_LABELS[spec.aggregation].format(spec.y_field)


def _is_null(value: Any) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def format_key(value: Any, granularity: DateBinGranularity | None = None) -> str:
    if _is_null(value):
        return NULL_LABEL
    if isinstance(value, (pd.Timestamp, np.datetime64)):
        stamp = pd.Timestamp(value)
        if granularity == DateBinGranularity.YEAR:
            return f"{stamp.year:04d}"
        if granularity == DateBinGranularity.QUARTER:
            return f"{stamp.year:04d}-Q{stamp.quarter}"
        if granularity == DateBinGranularity.MONTH:
            return f"{stamp.year:04d}-{stamp.month:02d}"
        if granularity == DateBinGranularity.HOUR:
            return stamp.strftime("%Y-%m-%dT%H:00")
        if stamp == stamp.normalize():
            return stamp.strftime("%Y-%m-%d")
        return stamp.isoformat()
    if isinstance(value, (bool, np.bool_)):
        return "true" if value else "false"
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    if isinstance(value, (np.integer, np.floating)):
        return str(value.item())
    return str(value)


def _to_number(value: Any) -> float | None:
    if _is_null(value):
        return None
    number = float(value)
    if math.isnan(number):
        return None
    return number


def bin_datetimes(series: pd.Series, granularity: DateBinGranularity) -> pd.Series:
    if granularity == DateBinGranularity.DAY:
        return series.dt.floor("D")
    if granularity == DateBinGranularity.HOUR:
        return series.dt.floor("h")
    return series.dt.to_period(_PERIOD_CODES[granularity]).dt.start_time


def choose_granularity(series: pd.Series, budget: int) -> DateBinGranularity:
    for granularity in _BIN_ORDER:
        if bin_datetimes(series, granularity).nunique(dropna=False) <= budget:
            return granularity
    return DateBinGranularity.YEAR


def _numeric_y(series: pd.Series, dtype: ColumnType) -> pd.Series:
    if dtype == ColumnType.DATETIME:
        # datetimes reduce as epoch milliseconds
        return series.astype("datetime64[ns]").astype("int64") // 1_000_000
    if dtype == ColumnType.BOOLEAN:
        return series.astype(float)
    return pd.to_numeric(series, errors="coerce")


def _reduce(grouped: Any, aggregation: Aggregation) -> pd.Series:
    if aggregation == Aggregation.SUM:
        return grouped.sum()
    if aggregation == Aggregation.AVG:
        return grouped.mean()
    if aggregation == Aggregation.COUNT:
        return grouped.size()
    if aggregation == Aggregation.MIN:
        return grouped.min()
    if aggregation == Aggregation.MAX:
        return grouped.max()
    return grouped.median()


@dataclass(frozen=True)
class PointSet:
    """Aggregated chart points: one label per x key, one value list per series."""

    aggregation: Aggregation
    keys: list[Any]
    codes: list[int]
    series_labels: list[str]
    values: list[list[float | None]]
    granularity: DateBinGranularity | None = None
    rows: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=["x", "g", "y"]), repr=False)

    def __len__(self) -> int:
        return len(self.keys)

    @property
    def labels(self) -> list[str]:
        return [format_key(key, self.granularity) for key in self.keys]

    def magnitude(self, index: int) -> float:
        return math.fsum(abs(series[index]) for series in self.values if series[index] is not None)

    def take(self, indices: list[int]) -> "PointSet":
        return PointSet(
            aggregation=self.aggregation,
            keys=[self.keys[i] for i in indices],
            codes=[self.codes[i] for i in indices],
            series_labels=list(self.series_labels),
            values=[[series[i] for i in indices] for series in self.values],
            granularity=self.granularity,
            rows=self.rows,
        )

    def fold(self, indices: list[int]) -> list[float | None]:
        """Combine the given labels into one value per series."""
        folded: list[float | None] = []
        if self.aggregation in (Aggregation.AVG, Aggregation.MEDIAN):
            codes = [self.codes[i] for i in indices]
            subset = self.rows[self.rows["x"].isin(codes)]
            reduced = _reduce(subset.groupby("g", sort=True)["y"], self.aggregation)
            for position in range(len(self.series_labels)):
                folded.append(_to_number(reduced.get(position)) if position in reduced.index else None)
            return folded

        for series in self.values:
            present = [series[i] for i in indices if series[i] is not None]
            if not present:
                folded.append(None)
            elif self.aggregation == Aggregation.MIN:
                folded.append(min(present))
            elif self.aggregation == Aggregation.MAX:
                folded.append(max(present))
            else:
                folded.append(math.fsum(present))
        return folded


def _order(point_keys: list[Any], scores: list[float], spec: QuerySpec) -> list[int]:
    positions = list(range(len(point_keys)))
    if spec.sort_by == SortField.NONE or spec.sort_order == SortOrder.NONE:
        return positions
    descending = spec.sort_order == SortOrder.DESC
    if spec.sort_by == SortField.Y:
        return sorted(positions, key=lambda i: scores[i], reverse=descending)
    present = [i for i in positions if not _is_null(point_keys[i])]
    missing = [i for i in positions if _is_null(point_keys[i])]
    return sorted(present, key=lambda i: point_keys[i], reverse=descending) + missing


def aggregate(
    dataset: Dataset,
    spec: QuerySpec,
    frame: pd.DataFrame,
    granularity: DateBinGranularity | None = None,
) -> PointSet:
    schema = dataset.schema
    y_type = schema[spec.y_field].dtype
    base_label = aggregation_label(spec)

    scoped = frame[frame[spec.y_field].notna()]
    if scoped.empty:
        return PointSet(aggregation=spec.aggregation, keys=[], codes=[], series_labels=[], values=[], granularity=granularity)

    x_values = scoped[spec.x_field]
    if granularity is not None:
        x_values = bin_datetimes(x_values, granularity)
    x_codes, x_keys = pd.factorize(x_values, sort=False, use_na_sentinel=False)

    if spec.group_by_field:
        g_codes, g_keys = pd.factorize(scoped[spec.group_by_field], sort=False, use_na_sentinel=False)
        series_labels = [format_key(key) for key in g_keys]
    else:
        g_codes = np.zeros(len(scoped), dtype=np.int64)
        series_labels = [base_label]

    rows = pd.DataFrame(
        {
            "x": x_codes,
            "g": g_codes,
            "y": _numeric_y(scoped[spec.y_field], y_type).to_numpy(),
        }
    )
    reduced = _reduce(rows.groupby(["g", "x"], sort=False)["y"], spec.aggregation)
    table = reduced.unstack("x").reindex(index=range(len(series_labels)), columns=range(len(x_keys)))

    keys = list(x_keys)
    matrix = [[_to_number(value) for value in table.iloc[row].tolist()] for row in range(len(series_labels))]
    scores = [math.fsum(series[i] for series in matrix if series[i] is not None) for i in range(len(keys))]
    ordered = _order(keys, scores, spec)

    return PointSet(
        aggregation=spec.aggregation,
        keys=[keys[i] for i in ordered],
        codes=ordered,
        series_labels=series_labels,
        values=[[series[i] for i in ordered] for series in matrix],
        granularity=granularity,
        rows=rows,
    )
