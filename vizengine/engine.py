"""
Query engine: validate -> filter -> (bin) -> aggregate -> reduce -> ChartResult.

Every operation reads one immutable Dataset snapshot and is side-effect free,
so the same request against the same dataset version yields the same result.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Iterable

from vizengine.aggregator import aggregate, aggregation_label, choose_granularity
from vizengine.cache import CacheManager, cache_key
from vizengine.config import (
    BAR_LINE_MAX_POINTS,
    DEFAULT_PAGE_SIZE,
    MAX_VISUAL_POINTS,
    MIN_POINT_BUDGET,
    PIE_MAX_POINTS,
    SCATTER_MAX_POINTS,
)
from vizengine.dataset import Dataset, DatasetStore
from vizengine.filters import apply_filters
from vizengine.models import (
    ChartKind,
    ChartMetadata,
    ChartResult,
    ChartSeries,
    DateBinGranularity,
    Filter,
    QuerySpec,
    ReductionInfo,
    TablePage,
)
from vizengine.pager import paginate
from vizengine.progressive import clamp_zoom, point_budget, range_filters
from vizengine.reduction import Binning, reduce_points
from vizengine.validator import validate_spec

logger = logging.getLogger(__name__)

DEFAULT_BUDGETS: dict[ChartKind, int] = {
    ChartKind.BAR: BAR_LINE_MAX_POINTS,
    ChartKind.LINE: BAR_LINE_MAX_POINTS,
    ChartKind.AREA: BAR_LINE_MAX_POINTS,
    ChartKind.PIE: PIE_MAX_POINTS,
    ChartKind.SCATTER: SCATTER_MAX_POINTS,
}


def _clamp_budget(budget: int) -> int:
    return min(MAX_VISUAL_POINTS, max(MIN_POINT_BUDGET, int(budget)))


class QueryEngine:
    def __init__(
        self,
        store: DatasetStore,
        budgets: dict[ChartKind, int] | None = None,
        cache: CacheManager | None = None,
    ) -> None:
        self.store = store
        self.budgets = {**DEFAULT_BUDGETS, **(budgets or {})}
        self.cache = cache

    def budget_for(self, kind: ChartKind) -> int:
        return _clamp_budget(self.budgets[kind])

    def execute_chart_query(self, spec: QuerySpec, budget: int | None = None) -> ChartResult:
        dataset = self.store.current()
        validate_spec(dataset, spec)
        limit = _clamp_budget(budget) if budget is not None else self.budget_for(spec.chart_kind)
        return self._cached(dataset, "chart", spec, limit, spec.chart_kind.is_categorical, [])

    def execute_scatter_query(self, spec: QuerySpec, budget: int | None = None) -> ChartResult:
        dataset = self.store.current()
        validate_spec(dataset, spec)
        limit = _clamp_budget(budget) if budget is not None else self.budget_for(ChartKind.SCATTER)
        return self._cached(dataset, "scatter", spec, limit, False, [])

    def execute_progressive_query(
        self,
        spec: QuerySpec,
        zoom_level: float,
        range_start: Any = None,
        range_end: Any = None,
    ) -> ChartResult:
        dataset = self.store.current()
        validate_spec(dataset, spec)
        bounds = range_filters(dataset, spec, range_start, range_end)
        limit = point_budget(self.budget_for(spec.chart_kind), clamp_zoom(zoom_level))
        return self._cached(dataset, "progressive", spec, limit, spec.chart_kind.is_categorical, bounds)

    def execute_table_query(
        self,
        columns: Iterable[str],
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort_column: str | None = None,
        sort_desc: bool = False,
        filters: Iterable[Filter] = (),
    ) -> TablePage:
        dataset = self.store.current()
        return paginate(dataset, columns, page, page_size, sort_column, sort_desc, filters)

    def _cached(
        self,
        dataset: Dataset,
        artifact: str,
        spec: QuerySpec,
        budget: int,
        categorical: bool,
        bounds: list[Filter],
    ) -> ChartResult:
        if self.cache is None:
            return self._run(dataset, spec, budget, categorical, bounds)

        key = cache_key(
            dataset.fingerprint,
            artifact,
            {
                "spec": spec.model_dump(mode="json"),
                "budget": budget,
                "categorical": categorical,
                "bounds": [bound.model_dump(mode="json") for bound in bounds],
            },
        )
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return ChartResult.model_validate(cached)
        result = self._run(dataset, spec, budget, categorical, bounds)
        self.cache.set(key, result.model_dump(mode="json", by_alias=True))
        return result

    def _run(
        self,
        dataset: Dataset,
        spec: QuerySpec,
        budget: int,
        categorical: bool,
        bounds: list[Filter],
    ) -> ChartResult:
        started = time.perf_counter()
        frame = apply_filters(dataset, tuple(spec.filters) + tuple(bounds))

        binning = None
        granularity = None
        if spec.x_bin is not None and not frame.empty:
            x_values = frame.loc[frame[spec.y_field].notna(), spec.x_field]
            if not x_values.empty:
                granularity = spec.x_bin
                if granularity == DateBinGranularity.AUTO:
                    granularity = choose_granularity(x_values, budget)
                binning = Binning(granularity=granularity, distinct_before=int(x_values.nunique(dropna=False)))

        points = aggregate(dataset, spec, frame, granularity)
        reduced = reduce_points(points, budget, categorical, binning)
        result = ChartResult(
            labels=reduced.labels,
            series=[
                ChartSeries(label=label, values=values)
                for label, values in zip(points.series_labels, reduced.values)
            ],
            metadata=ChartMetadata(
                title=spec.title or _default_title(spec),
                x_label=spec.x_field,
                y_label=aggregation_label(spec),
                total_records=int(len(frame)),
                reduction=reduced.info if len(points) else ReductionInfo(),
            ),
        )
        logger.info(
            "%s query on '%s' v%d: %d rows -> %d points (%s) in %.1f ms",
            spec.chart_kind.value,
            dataset.name,
            dataset.version,
            len(frame),
            len(result.labels),
            reduced.info.reason.value,
            (time.perf_counter() - started) * 1000,
        )
        return result


def _default_title(spec: QuerySpec) -> str:
    title = f"{aggregation_label(spec)} by {spec.x_field}"
    if spec.group_by_field:
        title += f" and {spec.group_by_field}"
    return title
