from __future__ import annotations

import logging
import math
from typing import Any, Iterable

import numpy as np
import pandas as pd

from vizengine.config import LARGE_DATASET_ROWS, MAX_PAGE_SIZE
from vizengine.dataset import Dataset
from vizengine.filters import apply_filters
from vizengine.models import Filter, TablePage
from vizengine.validator import validate_table_request

logger = logging.getLogger(__name__)


def _json_cell(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    return value


def _to_json_compatible_rows(df: pd.DataFrame) -> list[list[Any]]:
    page = df.copy()
    for column in page.columns:
        if pd.api.types.is_datetime64_any_dtype(page[column]):
            page[column] = page[column].map(lambda value: None if pd.isna(value) else value.isoformat())
    cells = page.astype(object).where(page.notna(), None)
    return [[_json_cell(value) for value in row] for row in cells.itertuples(index=False, name=None)]


def clamp_page_size(page_size: int) -> tuple[int, str | None]:
    if page_size > MAX_PAGE_SIZE:
        return MAX_PAGE_SIZE, f"Page size limited to {MAX_PAGE_SIZE:,} rows (requested {page_size:,})."
    if page_size < 1:
        return 1, f"Page size must be at least 1 (requested {page_size:,})."
    return page_size, None


def paginate(
    dataset: Dataset,
    columns: Iterable[str],
    page: int,
    page_size: int,
    sort_column: str | None = None,
    sort_desc: bool = False,
    filters: Iterable[Filter] = (),
) -> TablePage:
    """
    Return one page of raw rows.

    Sorting is stable and places nulls last in both directions. An
    out-of-range page is clamped to the nearest valid page and reported in the
    warning instead of failing.
    """
    selected = list(columns) or dataset.column_names
    filters = tuple(filters)
    validate_table_request(dataset, selected, sort_column, filters)

    warnings: list[str] = []
    size, size_warning = clamp_page_size(int(page_size))
    if size_warning:
        warnings.append(size_warning)

    scoped = apply_filters(dataset, filters)
    if sort_column is not None:
        scoped = scoped.sort_values(
            by=sort_column,
            ascending=not sort_desc,
            kind="mergesort",
            na_position="last",
        )

    total_rows = int(len(scoped))
    total_pages = math.ceil(total_rows / size)
    requested = int(page)
    last_page = max(0, total_pages - 1)
    current = min(max(requested, 0), last_page)
    if current != requested:
        warnings.append(
            f"Page index {requested:,} is out of range; showing page index {current:,} ({total_pages:,} pages)."
        )
        logger.debug("Clamped table page %d to %d (total pages %d)", requested, current, total_pages)

    if dataset.row_count > LARGE_DATASET_ROWS:
        warnings.append(
            f"Large dataset ({dataset.row_count:,} rows). Use filters to narrow results for faster paging."
        )

    start = current * size
    window = scoped.iloc[start : start + size][selected]
    return TablePage(
        columns=selected,
        rows=_to_json_compatible_rows(window),
        total_rows=total_rows,
        page=current,
        page_size=size,
        total_pages=total_pages,
        warning=" ".join(warnings) or None,
    )
