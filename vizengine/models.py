"""
Typed request/response models for the visualization query engine.

Python attributes are snake_case; the wire format is camelCase so payloads
from the chart/table views round-trip unchanged.
"""
from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class ColumnType(str, Enum):
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    BOOLEAN = "boolean"
    DATETIME = "datetime"

    @property
    def is_numeric(self) -> bool:
        return self in (ColumnType.INTEGER, ColumnType.FLOAT)

    @property
    def is_orderable(self) -> bool:
        return self in (ColumnType.INTEGER, ColumnType.FLOAT, ColumnType.DATETIME)


class ChartKind(str, Enum):
    BAR = "bar"
    LINE = "line"
    AREA = "area"
    PIE = "pie"
    SCATTER = "scatter"

    @property
    def is_categorical(self) -> bool:
        return self in (ChartKind.BAR, ChartKind.PIE)


class Aggregation(str, Enum):
    SUM = "sum"
    AVG = "avg"
    COUNT = "count"
    MIN = "min"
    MAX = "max"
    MEDIAN = "median"


class SortField(str, Enum):
    X = "x"
    Y = "y"
    NONE = "none"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"
    NONE = "none"


class FilterOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"


# Spellings the chat layer emits for the same operators.
OPERATOR_ALIASES: dict[str, FilterOperator] = {
    "eq": FilterOperator.EQUALS,
    "=": FilterOperator.EQUALS,
    "==": FilterOperator.EQUALS,
    "neq": FilterOperator.NOT_EQUALS,
    "ne": FilterOperator.NOT_EQUALS,
    "!=": FilterOperator.NOT_EQUALS,
    "notequals": FilterOperator.NOT_EQUALS,
    ">": FilterOperator.GT,
    ">=": FilterOperator.GTE,
    "<": FilterOperator.LT,
    "<=": FilterOperator.LTE,
    "notin": FilterOperator.NOT_IN,
    "startswith": FilterOperator.STARTS_WITH,
    "endswith": FilterOperator.ENDS_WITH,
    "isnull": FilterOperator.IS_NULL,
    "isnotnull": FilterOperator.IS_NOT_NULL,
}

VALUELESS_OPERATORS = {FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL}
MEMBERSHIP_OPERATORS = {FilterOperator.IN, FilterOperator.NOT_IN}
COMPARISON_OPERATORS = {FilterOperator.GT, FilterOperator.GTE, FilterOperator.LT, FilterOperator.LTE}
TEXT_OPERATORS = {FilterOperator.CONTAINS, FilterOperator.STARTS_WITH, FilterOperator.ENDS_WITH}


class DateBinGranularity(str, Enum):
    AUTO = "auto"
    YEAR = "year"
    QUARTER = "quarter"
    MONTH = "month"
    WEEK = "week"
    DAY = "day"
    HOUR = "hour"


class ReductionReason(str, Enum):
    NONE = "none"
    SAMPLED = "sampled"
    TOP_N = "top_n"
    AGGREGATED_BINNED = "aggregated_binned"


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class ColumnInfo(_WireModel):
    name: str
    dtype: ColumnType
    nullable: bool = True


class Filter(_WireModel):
    column: str
    operator: FilterOperator
    value: Any = None

    @field_validator("operator", mode="before")
    @classmethod
    def _normalize_operator(cls, value: Any) -> Any:
        if isinstance(value, str):
            key = value.strip()
            try:
                return FilterOperator(key.lower())
            except ValueError:
                compact = key.replace("_", "").replace("-", "").lower()
                if compact in OPERATOR_ALIASES:
                    return OPERATOR_ALIASES[compact]
                if key in OPERATOR_ALIASES:
                    return OPERATOR_ALIASES[key]
        return value


class QuerySpec(_WireModel):
    chart_kind: ChartKind = ChartKind.BAR
    x_field: str
    y_field: str
    aggregation: Aggregation = Aggregation.SUM
    group_by_field: str | None = None
    sort_by: SortField = SortField.NONE
    sort_order: SortOrder = SortOrder.NONE
    title: str = ""
    filters: tuple[Filter, ...] = ()
    x_bin: DateBinGranularity | None = None


class ReductionInfo(_WireModel):
    reduced: bool = False
    reason: ReductionReason = ReductionReason.NONE
    original_count: int = 0
    returned_points: int = 0
    sample_ratio: float | None = None
    top_n: int | None = None
    top_n_cutoff: float | None = None
    bin_granularity: DateBinGranularity | None = None
    cardinality_overflow: bool = False
    warning_message: str | None = None


class ChartSeries(_WireModel):
    label: str
    values: list[float | None] = Field(default_factory=list)
    color: str | None = None


class ChartMetadata(_WireModel):
    title: str
    x_label: str
    y_label: str
    total_records: int
    reduction: ReductionInfo = Field(default_factory=ReductionInfo)


class ChartResult(_WireModel):
    labels: list[str] = Field(default_factory=list)
    series: list[ChartSeries] = Field(default_factory=list)
    metadata: ChartMetadata

    @model_validator(mode="after")
    def _aligned(self) -> "ChartResult":
        for series in self.series:
            if len(series.values) != len(self.labels):
                raise ValueError(
                    f"Series '{series.label}' has {len(series.values)} values for {len(self.labels)} labels."
                )
        return self


class TablePage(_WireModel):
    columns: list[str] = Field(default_factory=list)
    rows: list[list[Any]] = Field(default_factory=list)
    total_rows: int
    page: int = Field(ge=0)
    page_size: int = Field(ge=1, le=1000)
    total_pages: int = Field(ge=0)
    warning: str | None = None
