import pytest

from vizengine.errors import InvalidField, TypeMismatch
from vizengine.models import Aggregation, ColumnType, DateBinGranularity, Filter, QuerySpec
from vizengine.validator import validate_spec, validate_table_request, value_matches


def test_unknown_field_names_the_column(sales_dataset) -> None:
    spec = QuerySpec(x_field="region", y_field="revenue")
    with pytest.raises(InvalidField) as excinfo:
        validate_spec(sales_dataset, spec)
    assert excinfo.value.field == "revenue"
    assert "sales" in excinfo.value.available


def test_unknown_group_by_field_rejected(sales_dataset) -> None:
    spec = QuerySpec(x_field="region", y_field="sales", group_by_field="segment")
    with pytest.raises(InvalidField):
        validate_spec(sales_dataset, spec)


def test_numeric_aggregation_on_string_column_rejected(sales_dataset) -> None:
    spec = QuerySpec(x_field="product", y_field="region", aggregation=Aggregation.SUM)
    with pytest.raises(TypeMismatch) as excinfo:
        validate_spec(sales_dataset, spec)
    assert excinfo.value.field == "region"


def test_count_accepts_any_column_type(sales_dataset) -> None:
    validate_spec(sales_dataset, QuerySpec(x_field="product", y_field="region", aggregation=Aggregation.COUNT))


def test_min_max_accept_datetime(sales_dataset) -> None:
    validate_spec(sales_dataset, QuerySpec(x_field="region", y_field="order_date", aggregation=Aggregation.MIN))
    with pytest.raises(TypeMismatch):
        validate_spec(sales_dataset, QuerySpec(x_field="region", y_field="order_date", aggregation=Aggregation.AVG))


def test_date_binning_requires_datetime_x(sales_dataset) -> None:
    spec = QuerySpec(x_field="region", y_field="sales", x_bin=DateBinGranularity.MONTH)
    with pytest.raises(TypeMismatch):
        validate_spec(sales_dataset, spec)


def test_filter_on_unknown_column_rejected(sales_dataset) -> None:
    spec = QuerySpec(
        x_field="region",
        y_field="sales",
        filters=(Filter(column="country", operator="equals", value="NA"),),
    )
    with pytest.raises(InvalidField) as excinfo:
        validate_spec(sales_dataset, spec)
    assert excinfo.value.field == "country"


def test_filter_value_type_checked(sales_dataset) -> None:
    spec = QuerySpec(
        x_field="region",
        y_field="sales",
        filters=(Filter(column="units", operator="gt", value="ten"),),
    )
    with pytest.raises(TypeMismatch):
        validate_spec(sales_dataset, spec)


def test_comparison_on_string_column_rejected(sales_dataset) -> None:
    spec = QuerySpec(
        x_field="region",
        y_field="sales",
        filters=(Filter(column="region", operator="gt", value="A"),),
    )
    with pytest.raises(TypeMismatch):
        validate_spec(sales_dataset, spec)


def test_membership_requires_list(sales_dataset) -> None:
    spec = QuerySpec(
        x_field="region",
        y_field="sales",
        filters=(Filter(column="region", operator="in", value="NA"),),
    )
    with pytest.raises(TypeMismatch):
        validate_spec(sales_dataset, spec)


def test_valid_filters_pass(sales_dataset) -> None:
    spec = QuerySpec(
        x_field="region",
        y_field="sales",
        filters=(
            Filter(column="sales", operator="gte", value=10),
            Filter(column="order_date", operator="lt", value="2024-03-01"),
            Filter(column="product", operator="in", value=["A", "B"]),
            Filter(column="region", operator="is_null"),
        ),
    )
    validate_spec(sales_dataset, spec)


def test_value_matches_widens_int_to_float() -> None:
    assert value_matches(ColumnType.FLOAT, 3)
    assert not value_matches(ColumnType.INTEGER, 3.5)
    assert not value_matches(ColumnType.INTEGER, True)
    assert value_matches(ColumnType.DATETIME, "2024-01-01T10:00:00Z")
    assert not value_matches(ColumnType.DATETIME, "not a date")


def test_table_request_validates_sort_column(sales_dataset) -> None:
    validate_table_request(sales_dataset, ["region", "sales"], "sales", ())
    with pytest.raises(InvalidField):
        validate_table_request(sales_dataset, ["region"], "missing", ())
