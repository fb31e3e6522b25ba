from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from vizengine.cache import CacheManager
from vizengine.config import DEFAULT_PAGE_SIZE, MAX_UPLOAD_BYTES, SUPPORTED_EXTENSIONS, configure_logging, validate_config
from vizengine.dataset import Dataset, DatasetStore, read_table
from vizengine.engine import QueryEngine
from vizengine.errors import DatasetLoadError, EngineError, InvalidField, NoDataLoaded, TypeMismatch
from vizengine.models import QuerySpec
from vizengine.runner import QueryRunner
from vizengine.spec_gate import parse_filters, parse_query_spec

configure_logging()
validate_config()
logger = logging.getLogger(__name__)

app = FastAPI(title="Visualization Query Engine", version="0.1.0")
cache = CacheManager()
store = DatasetStore()
engine = QueryEngine(store, cache=cache)
runner = QueryRunner()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten this in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _on_dataset_published(dataset: Dataset) -> None:
    runner.sequencer.advance_all()
    removed = cache.invalidate_prefix("cache:")
    logger.info("Dataset version %d published; dropped %d cached results", dataset.version, removed)


store.subscribe(_on_dataset_published)


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class ChartQueryRequest(_Request):
    surface: str = "default"
    spec: dict[str, Any]
    budget: int | None = Field(default=None, ge=1)


class ProgressiveQueryRequest(_Request):
    surface: str = "default"
    spec: dict[str, Any]
    zoom_level: float = 0.0
    range_start: Any = None
    range_end: Any = None


class TableQueryRequest(_Request):
    surface: str = "table"
    columns: list[str] = Field(default_factory=list)
    page: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    sort_column: str | None = None
    sort_desc: bool = False
    filters: list[dict[str, Any]] = Field(default_factory=list)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_detail(exc: EngineError) -> dict[str, Any]:
    detail: dict[str, Any] = {"message": str(exc), "error": type(exc).__name__}
    if isinstance(exc, (InvalidField, TypeMismatch)):
        detail["field"] = exc.field
    if isinstance(exc, InvalidField):
        detail["available"] = exc.available
    return detail


def _current_dataset() -> Dataset:
    try:
        return store.current()
    except NoDataLoaded as exc:
        raise HTTPException(status_code=409, detail=_error_detail(exc)) from exc


def _run_query(surface: str, query: Callable[[], Any]) -> dict[str, Any]:
    dataset = _current_dataset()
    try:
        outcome = runner.run(surface, query, dataset_version=dataset.version)
    except NoDataLoaded as exc:
        raise HTTPException(status_code=409, detail=_error_detail(exc)) from exc
    except EngineError as exc:
        raise HTTPException(status_code=422, detail=_error_detail(exc)) from exc

    result = outcome.result.model_dump(mode="json", by_alias=True) if outcome.result is not None else None
    return {
        "surface": surface,
        "generation": outcome.ticket.generation,
        "datasetVersion": outcome.ticket.dataset_version,
        "current": outcome.delivered,
        "result": result,
    }


@app.get("/health")
def health_check() -> dict[str, Any]:
    return {
        "status": "ok",
        "timestamp": _utc_now_iso(),
        "datasetLoaded": store.has_data(),
        "cache": cache.backend,
    }


@app.post("/datasets")
async def upload_dataset(
    file: UploadFile = File(...),
    sheet_name: str | None = Query(default=None, description="Excel sheet to load. Defaults to first sheet."),
) -> dict[str, Any]:
    filename = file.filename or "uploaded_file"
    extension = Path(filename).suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise HTTPException(status_code=400, detail="Only .csv, .xlsx and .json files are supported.")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail=f"File too large (max {MAX_UPLOAD_BYTES // (1024 * 1024)}MB).")

    try:
        frame = read_table(content, filename, sheet_name=sheet_name)
    except DatasetLoadError as exc:
        raise HTTPException(status_code=400, detail=f"File validation failed: {exc}") from exc

    dataset = store.publish(frame, name=filename)
    return dataset.describe()


@app.get("/datasets/current")
def current_dataset() -> dict[str, Any]:
    return _current_dataset().describe()


@app.post("/query/chart")
def chart_query(payload: ChartQueryRequest) -> dict[str, Any]:
    spec = _parse_spec(payload.spec)
    return _run_query(payload.surface, lambda: engine.execute_chart_query(spec, budget=payload.budget))


@app.post("/query/scatter")
def scatter_query(payload: ChartQueryRequest) -> dict[str, Any]:
    spec = _parse_spec(payload.spec)
    return _run_query(payload.surface, lambda: engine.execute_scatter_query(spec, budget=payload.budget))


@app.post("/query/progressive")
def progressive_query(payload: ProgressiveQueryRequest) -> dict[str, Any]:
    spec = _parse_spec(payload.spec)
    return _run_query(
        payload.surface,
        lambda: engine.execute_progressive_query(
            spec,
            payload.zoom_level,
            range_start=payload.range_start,
            range_end=payload.range_end,
        ),
    )


@app.post("/query/table")
def table_query(payload: TableQueryRequest) -> dict[str, Any]:
    try:
        filters = parse_filters(payload.filters)
    except EngineError as exc:
        raise HTTPException(status_code=422, detail=_error_detail(exc)) from exc
    return _run_query(
        payload.surface,
        lambda: engine.execute_table_query(
            payload.columns,
            page=payload.page,
            page_size=payload.page_size,
            sort_column=payload.sort_column,
            sort_desc=payload.sort_desc,
            filters=filters,
        ),
    )


@app.delete("/surfaces/{surface}")
def release_surface(surface: str) -> dict[str, Any]:
    runner.sequencer.release(surface)
    return {"surface": surface, "released": True}


def _parse_spec(raw: dict[str, Any]) -> QuerySpec:
    try:
        return parse_query_spec(raw)
    except EngineError as exc:
        raise HTTPException(status_code=422, detail=_error_detail(exc)) from exc
