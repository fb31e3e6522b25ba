"""
Schema/field validation for chart and table requests.

Validation is terminal: callers must not start filtering or aggregating until
validate_spec / validate_table_request returned without raising.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable

import pandas as pd

from vizengine.dataset import Dataset
from vizengine.errors import InvalidField, TypeMismatch
from vizengine.models import (
    COMPARISON_OPERATORS,
    MEMBERSHIP_OPERATORS,
    TEXT_OPERATORS,
    VALUELESS_OPERATORS,
    Aggregation,
    ColumnType,
    Filter,
    QuerySpec,
)

_NUMERIC_AGG_TYPES = {ColumnType.INTEGER, ColumnType.FLOAT, ColumnType.BOOLEAN}
_AGGREGATION_TYPES: dict[Aggregation, set[ColumnType] | None] = {
    Aggregation.COUNT: None,
    Aggregation.SUM: _NUMERIC_AGG_TYPES,
    Aggregation.AVG: _NUMERIC_AGG_TYPES,
    Aggregation.MEDIAN: _NUMERIC_AGG_TYPES,
    Aggregation.MIN: _NUMERIC_AGG_TYPES | {ColumnType.DATETIME},
    Aggregation.MAX: _NUMERIC_AGG_TYPES | {ColumnType.DATETIME},
}


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "list"
    return type(value).__name__


def _is_datetime_literal(value: Any) -> bool:
    if isinstance(value, (datetime, date, pd.Timestamp)):
        return True
    if isinstance(value, str):
        return not pd.isna(pd.to_datetime(value, errors="coerce"))
    return False


def value_matches(dtype: ColumnType, value: Any) -> bool:
    if dtype == ColumnType.BOOLEAN:
        return isinstance(value, bool)
    if dtype == ColumnType.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if dtype == ColumnType.FLOAT:
        # integer literals widen to float
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if dtype == ColumnType.STRING:
        return isinstance(value, str)
    return _is_datetime_literal(value)


def validate_field(dataset: Dataset, field: str | None, role: str) -> None:
    if not field or not isinstance(field, str):
        raise InvalidField(f"<missing {role}>", dataset.column_names)
    dataset.column(field)


def validate_filters(dataset: Dataset, filters: Iterable[Filter]) -> None:
    for flt in filters:
        dtype = dataset.column(flt.column).dtype
        operator = flt.operator
        if operator in VALUELESS_OPERATORS:
            continue
        if operator in COMPARISON_OPERATORS and not dtype.is_orderable:
            raise TypeMismatch(flt.column, "a numeric or datetime column", f"operator '{operator.value}' on {dtype.value}")
        if operator in TEXT_OPERATORS and dtype != ColumnType.STRING:
            raise TypeMismatch(flt.column, "a string column", f"operator '{operator.value}' on {dtype.value}")
        if operator in MEMBERSHIP_OPERATORS:
            if not isinstance(flt.value, (list, tuple)):
                raise TypeMismatch(flt.column, "a list value", _type_name(flt.value))
            for item in flt.value:
                if not value_matches(dtype, item):
                    raise TypeMismatch(flt.column, f"{dtype.value} values", _type_name(item))
            continue
        if not value_matches(dtype, flt.value):
            raise TypeMismatch(flt.column, f"a {dtype.value} value", _type_name(flt.value))


def validate_spec(dataset: Dataset, spec: QuerySpec) -> None:
    validate_field(dataset, spec.x_field, "xField")
    validate_field(dataset, spec.y_field, "yField")
    if spec.group_by_field is not None:
        validate_field(dataset, spec.group_by_field, "groupByField")

    y_type = dataset.column(spec.y_field).dtype
    allowed = _AGGREGATION_TYPES[spec.aggregation]
    if allowed is not None and y_type not in allowed:
        expected = " or ".join(sorted(item.value for item in allowed))
        raise TypeMismatch(spec.y_field, f"{expected} for '{spec.aggregation.value}'", y_type.value)

    if spec.x_bin is not None:
        x_type = dataset.column(spec.x_field).dtype
        if x_type != ColumnType.DATETIME:
            raise TypeMismatch(spec.x_field, f"a datetime column for xBin '{spec.x_bin.value}'", x_type.value)

    validate_filters(dataset, spec.filters)


def validate_table_request(
    dataset: Dataset, columns: Iterable[str], sort_column: str | None, filters: Iterable[Filter]
) -> None:
    for column in columns:
        validate_field(dataset, column, "column")
    if sort_column is not None:
        validate_field(dataset, sort_column, "sortColumn")
    validate_filters(dataset, filters)
