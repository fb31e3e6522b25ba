from vizengine.filters import apply_filters
from vizengine.models import Filter, FilterOperator


def _regions(frame) -> list:
    return frame["region"].tolist()


def test_equals_filter(sales_dataset) -> None:
    result = apply_filters(sales_dataset, [Filter(column="region", operator="equals", value="NA")])
    assert _regions(result) == ["NA", "NA", "NA"]


def test_nulls_fail_every_operator_but_is_null(sales_dataset) -> None:
    not_na = apply_filters(sales_dataset, [Filter(column="region", operator="not_equals", value="NA")])
    assert _regions(not_na) == ["EU", "LATAM", "EU"]

    nulls = apply_filters(sales_dataset, [Filter(column="region", operator="is_null")])
    assert len(nulls) == 1
    assert nulls["region"].iloc[0] is None


def test_datetime_comparison_accepts_iso_string(sales_dataset) -> None:
    result = apply_filters(sales_dataset, [Filter(column="order_date", operator="gte", value="2024-03-01")])
    assert len(result) == 4


def test_membership_and_text_operators(sales_dataset) -> None:
    members = apply_filters(sales_dataset, [Filter(column="product", operator="in", value=["A", "C"])])
    assert members["product"].tolist() == ["A", "A", "A", "C"]

    excluded = apply_filters(sales_dataset, [Filter(column="product", operator="not_in", value=["A"])])
    assert excluded["product"].tolist() == ["B", "B", "B", "C"]

    contains = apply_filters(sales_dataset, [Filter(column="region", operator="contains", value="A")])
    assert _regions(contains) == ["NA", "NA", "LATAM", "NA"]

    prefix = apply_filters(sales_dataset, [Filter(column="region", operator="starts_with", value="LA")])
    assert _regions(prefix) == ["LATAM"]


def test_filters_are_anded(sales_dataset) -> None:
    result = apply_filters(
        sales_dataset,
        [
            Filter(column="region", operator="equals", value="NA"),
            Filter(column="sales", operator="gt", value=50),
        ],
    )
    assert result["sales"].tolist() == [100.0, 75.0]


def test_filter_that_matches_nothing_returns_empty_frame(sales_dataset) -> None:
    result = apply_filters(sales_dataset, [Filter(column="region", operator="equals", value="APAC")])
    assert result.empty
    assert list(result.columns) == sales_dataset.column_names


def test_operator_aliases_normalize() -> None:
    assert Filter(column="a", operator="==", value=1).operator == FilterOperator.EQUALS
    assert Filter(column="a", operator="notIn", value=[1]).operator == FilterOperator.NOT_IN
    assert Filter(column="a", operator="GTE", value=1).operator == FilterOperator.GTE
    assert Filter(column="a", operator="isNull").operator == FilterOperator.IS_NULL
