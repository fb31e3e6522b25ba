"""
Bound the number of chart points to a rendering budget.

- categorical charts keep the top N = B-1 categories and fold the rest into a
  synthetic "Other" bucket
- continuous charts use systematic sampling (every k-th point, first and last
  always present)

Selection is a pure function of the ordered point set and the budget, so the
same query against the same dataset version always returns the same subset.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from vizengine.aggregator import PointSet, _is_null
from vizengine.config import MAX_GROUP_CARDINALITY, MIN_POINT_BUDGET
from vizengine.models import DateBinGranularity, ReductionInfo, ReductionReason

logger = logging.getLogger(__name__)

OTHER_LABEL = "Other"


@dataclass(frozen=True)
class Binning:
    granularity: DateBinGranularity
    distinct_before: int


@dataclass(frozen=True)
class ReducedPoints:
    labels: list[str]
    values: list[list[float | None]]
    info: ReductionInfo


def systematic_indices(count: int, budget: int) -> list[int]:
    """Every k-th index with k = ceil(count / budget); index 0 and count-1 always kept."""
    if count <= budget:
        return list(range(count))
    stride = math.ceil(count / budget)
    indices = list(range(0, count, stride))
    last = count - 1
    if indices[-1] != last:
        if len(indices) < budget:
            indices.append(last)
        else:
            indices[-1] = last
    return indices


def _key_order(key: Any) -> tuple[bool, Any]:
    return (_is_null(key), key if not _is_null(key) else 0)


def _other_label(labels: list[str]) -> str:
    label = OTHER_LABEL
    while label in labels:
        label = f"{label} (grouped)"
    return label


def _binning_note(binning: Binning | None, count: int) -> str | None:
    if binning is None or count >= binning.distinct_before:
        return None
    return (
        f"Dates binned by {binning.granularity.value} "
        f"({binning.distinct_before:,} distinct values into {count:,} buckets)."
    )


def top_n_with_other(points: PointSet, budget: int) -> tuple[list[str], list[list[float | None]], float, int]:
    keep = budget - 1
    ranked = sorted(range(len(points)), key=lambda i: (-points.magnitude(i), _key_order(points.keys[i])))
    kept = set(ranked[:keep])
    folded = ranked[keep:]
    kept_in_order = [i for i in range(len(points)) if i in kept]

    last_kept = ranked[keep - 1]
    cutoff = points.magnitude(last_kept)

    head = points.take(kept_in_order)
    labels = head.labels
    labels.append(_other_label(labels))
    other_values = points.fold(folded)
    values = [series + [other_values[position]] for position, series in enumerate(head.values)]
    return labels, values, cutoff, len(folded)


def reduce_points(
    points: PointSet,
    budget: int,
    categorical: bool,
    binning: Binning | None = None,
) -> ReducedPoints:
    budget = max(MIN_POINT_BUDGET, budget)
    count = len(points)
    overflow = count > MAX_GROUP_CARDINALITY
    bin_note = _binning_note(binning, count)
    granularity = binning.granularity if binning is not None else None

    if count <= budget:
        if bin_note is None:
            info = ReductionInfo(original_count=count, returned_points=count, bin_granularity=granularity)
        else:
            info = ReductionInfo(
                reduced=True,
                reason=ReductionReason.AGGREGATED_BINNED,
                original_count=binning.distinct_before,
                returned_points=count,
                bin_granularity=granularity,
                warning_message=bin_note,
            )
        return ReducedPoints(labels=points.labels, values=[list(series) for series in points.values], info=info)

    notes = [bin_note] if bin_note else []
    if categorical:
        labels, values, cutoff, folded = top_n_with_other(points, budget)
        keep = budget - 1
        notes.append(
            f"Showing top {keep:,} of {count:,} categories; "
            f"{folded:,} smaller categories grouped into '{labels[-1]}'."
        )
        if overflow:
            notes.append(
                f"Category count {count:,} exceeds the safety ceiling of {MAX_GROUP_CARDINALITY:,}; "
                "consider filtering before charting."
            )
            logger.warning("Group count %d exceeds cardinality ceiling %d", count, MAX_GROUP_CARDINALITY)
        info = ReductionInfo(
            reduced=True,
            reason=ReductionReason.TOP_N,
            original_count=count,
            returned_points=len(labels),
            top_n=keep,
            top_n_cutoff=cutoff,
            bin_granularity=granularity,
            cardinality_overflow=overflow,
            warning_message=" ".join(notes),
        )
        return ReducedPoints(labels=labels, values=values, info=info)

    indices = systematic_indices(count, budget)
    sampled = points.take(indices)
    ratio = len(indices) / count
    notes.append(
        f"Showing {ratio * 100:.1f}% systematic sample ({len(indices):,} of {count:,} points) for performance."
    )
    info = ReductionInfo(
        reduced=True,
        reason=ReductionReason.SAMPLED,
        original_count=count,
        returned_points=len(indices),
        sample_ratio=ratio,
        bin_granularity=granularity,
        cardinality_overflow=overflow,
        warning_message=" ".join(notes),
    )
    return ReducedPoints(labels=sampled.labels, values=[list(series) for series in sampled.values], info=info)
