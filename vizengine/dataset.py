"""
Immutable, versioned dataset snapshots and the loaders that produce them.

A Dataset is never mutated after construction. Reloading data publishes a new
Dataset with a higher version through DatasetStore; queries that are still
running keep reading the snapshot they started with.
"""
from __future__ import annotations

import hashlib
import io
import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import pandas as pd

from vizengine.config import CSV_ENCODINGS, DATETIME_PARSE_THRESHOLD, SUPPORTED_EXTENSIONS
from vizengine.errors import DatasetLoadError, InvalidField, NoDataLoaded
from vizengine.models import ColumnInfo, ColumnType

logger = logging.getLogger(__name__)


def _infer_column_type(series: pd.Series) -> ColumnType:
    if pd.api.types.is_bool_dtype(series):
        return ColumnType.BOOLEAN
    if pd.api.types.is_integer_dtype(series):
        return ColumnType.INTEGER
    if pd.api.types.is_float_dtype(series):
        return ColumnType.FLOAT
    if pd.api.types.is_datetime64_any_dtype(series):
        return ColumnType.DATETIME
    non_null = series.dropna()
    if not non_null.empty and non_null.map(lambda value: isinstance(value, bool)).all():
        return ColumnType.BOOLEAN
    return ColumnType.STRING


def _try_parse_datetimes(series: pd.Series) -> pd.Series | None:
    non_null = series.dropna()
    if non_null.empty:
        return None
    probe = non_null.head(100).astype(str)
    parsed_probe = pd.to_datetime(probe, errors="coerce", format="mixed")
    if parsed_probe.notna().mean() < DATETIME_PARSE_THRESHOLD:
        return None
    parsed = pd.to_datetime(series.astype("string"), errors="coerce", format="mixed")
    if parsed.notna().sum() / len(non_null) < DATETIME_PARSE_THRESHOLD:
        return None
    return parsed


def normalize_frame(frame: pd.DataFrame) -> tuple[pd.DataFrame, tuple[ColumnInfo, ...]]:
    """Coerce a raw DataFrame into one of the five declared column types."""
    normalized = pd.DataFrame(index=pd.RangeIndex(len(frame)))
    columns: list[ColumnInfo] = []
    for raw_name in frame.columns:
        name = str(raw_name)
        series = frame[raw_name].reset_index(drop=True)
        if pd.api.types.is_object_dtype(series) or pd.api.types.is_string_dtype(series):
            parsed = _try_parse_datetimes(series)
            if parsed is not None:
                series = parsed
        dtype = _infer_column_type(series)
        if dtype == ColumnType.STRING:
            series = series.astype(object).where(series.notna(), None)
            series = series.map(lambda value: value if value is None else str(value))
        elif dtype == ColumnType.DATETIME and getattr(series.dt, "tz", None) is not None:
            series = series.dt.tz_convert("UTC").dt.tz_localize(None)
        normalized[name] = series
        columns.append(ColumnInfo(name=name, dtype=dtype, nullable=bool(series.isna().any())))
    return normalized, tuple(columns)


def _fingerprint(frame: pd.DataFrame, columns: tuple[ColumnInfo, ...]) -> str:
    digest = hashlib.sha256()
    schema = [{"name": column.name, "dtype": column.dtype.value} for column in columns]
    digest.update(json.dumps(schema, sort_keys=True, ensure_ascii=True).encode("utf-8"))
    if len(frame):
        digest.update(pd.util.hash_pandas_object(frame, index=False).values.tobytes())
    return digest.hexdigest()


@dataclass(frozen=True)
class Dataset:
    name: str
    version: int
    frame: pd.DataFrame = field(repr=False)
    columns: tuple[ColumnInfo, ...]
    fingerprint: str

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, name: str = "default", version: int = 1) -> "Dataset":
        normalized, columns = normalize_frame(frame)
        return cls(
            name=name,
            version=version,
            frame=normalized,
            columns=columns,
            fingerprint=_fingerprint(normalized, columns),
        )

    @property
    def row_count(self) -> int:
        return int(len(self.frame))

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    @property
    def schema(self) -> dict[str, ColumnInfo]:
        return {column.name: column for column in self.columns}

    def column(self, name: str) -> ColumnInfo:
        info = self.schema.get(name)
        if info is None:
            raise InvalidField(name, self.column_names)
        return info

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "fingerprint": self.fingerprint,
            "rowCount": self.row_count,
            "columns": [column.model_dump(by_alias=True, mode="json") for column in self.columns],
        }


class DatasetStore:
    """Holds the current Dataset and publishes replacements atomically."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: Dataset | None = None
        self._version = 0
        self._listeners: list[Callable[[Dataset], None]] = []

    def subscribe(self, listener: Callable[[Dataset], None]) -> None:
        self._listeners.append(listener)

    def publish(self, frame: pd.DataFrame, name: str = "default") -> Dataset:
        with self._lock:
            self._version += 1
            dataset = Dataset.from_frame(frame, name=name, version=self._version)
            self._current = dataset
        logger.info(
            "Published dataset '%s' version %d (%d rows, %d columns)",
            dataset.name,
            dataset.version,
            dataset.row_count,
            len(dataset.columns),
        )
        for listener in list(self._listeners):
            listener(dataset)
        return dataset

    def current(self) -> Dataset:
        dataset = self._current
        if dataset is None:
            raise NoDataLoaded()
        return dataset

    def has_data(self) -> bool:
        return self._current is not None

    def clear(self) -> None:
        with self._lock:
            self._current = None


def _detect_csv_encoding(content: bytes) -> str:
    last_error: Exception | None = None
    for encoding in CSV_ENCODINGS:
        try:
            decoded = content.decode(encoding)
            pd.read_csv(io.StringIO(decoded), nrows=200)
            return encoding
        except Exception as exc:  # noqa: PERF203
            last_error = exc
    raise DatasetLoadError(f"Could not parse CSV with supported encodings. Last error: {last_error}")


def read_table(content: bytes, filename: str, sheet_name: str | None = None) -> pd.DataFrame:
    extension = Path(filename).suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise DatasetLoadError(f"Unsupported file format: {extension or filename}")
    if not content:
        raise DatasetLoadError("Uploaded file is empty.")

    try:
        if extension == ".csv":
            encoding = _detect_csv_encoding(content)
            return pd.read_csv(io.BytesIO(content), encoding=encoding, encoding_errors="replace")
        if extension == ".xlsx":
            with pd.ExcelFile(io.BytesIO(content), engine="openpyxl") as workbook:
                sheets = workbook.sheet_names
                if not sheets:
                    raise DatasetLoadError("The Excel workbook does not contain sheets.")
                if sheet_name and sheet_name not in sheets:
                    raise DatasetLoadError(f"Selected sheet '{sheet_name}' not found. Available: {sheets}")
                return workbook.parse(sheet_name or sheets[0])
        return pd.read_json(io.BytesIO(content))
    except DatasetLoadError:
        raise
    except Exception as exc:
        raise DatasetLoadError(f"Failed to read {filename}: {exc}") from exc


def read_path(path: str | Path, sheet_name: str | None = None) -> pd.DataFrame:
    resolved = Path(path).expanduser()
    if not resolved.exists():
        raise DatasetLoadError(f"File not found: {resolved}")
    return read_table(resolved.read_bytes(), resolved.name, sheet_name=sheet_name)
