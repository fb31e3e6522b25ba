import pandas as pd
import pytest

from vizengine.dataset import Dataset
from vizengine.errors import InvalidField
from vizengine.models import Filter
from vizengine.pager import paginate


@pytest.fixture
def numbers() -> Dataset:
    return Dataset.from_frame(pd.DataFrame({"n": range(2500), "label": [f"row-{i}" for i in range(2500)]}))


def test_page_size_is_capped(numbers) -> None:
    page = paginate(numbers, ["n"], page=0, page_size=5000)
    assert page.page_size == 1000
    assert len(page.rows) == 1000
    assert "limited to 1,000" in page.warning


def test_total_pages_and_last_partial_page(numbers) -> None:
    page = paginate(numbers, ["n"], page=2, page_size=1000)
    assert page.total_rows == 2500
    assert page.total_pages == 3
    assert len(page.rows) == 500
    assert page.rows[0] == [2000]
    assert page.warning is None


def test_out_of_range_page_is_clamped(numbers) -> None:
    page = paginate(numbers, ["n"], page=5, page_size=1000)
    assert page.page == 2
    assert len(page.rows) == 500
    assert "Page index 5 is out of range; showing page index 2 (3 pages)." in page.warning


def test_negative_page_clamps_to_first(numbers) -> None:
    page = paginate(numbers, ["n"], page=-1, page_size=10)
    assert page.page == 0
    assert page.rows[0] == [0]


def test_empty_columns_selects_all(numbers) -> None:
    page = paginate(numbers, [], page=0, page_size=1)
    assert page.columns == ["n", "label"]
    assert page.rows == [[0, "row-0"]]


def test_sort_puts_nulls_last_both_directions() -> None:
    dataset = Dataset.from_frame(pd.DataFrame({"k": ["a", "b", "c", "d", "e"], "v": [3.0, None, 1.0, 2.0, 1.0]}))
    ascending = paginate(dataset, ["k", "v"], page=0, page_size=10, sort_column="v")
    descending = paginate(dataset, ["k", "v"], page=0, page_size=10, sort_column="v", sort_desc=True)

    assert [row[0] for row in ascending.rows] == ["c", "e", "d", "a", "b"]
    assert [row[0] for row in descending.rows] == ["a", "d", "c", "e", "b"]
    assert ascending.rows[-1][1] is None


def test_filters_apply_before_paging(numbers) -> None:
    page = paginate(numbers, ["n"], page=0, page_size=100, filters=[Filter(column="n", operator="gte", value=2450)])
    assert page.total_rows == 50
    assert page.total_pages == 1
    assert page.rows[-1] == [2499]


def test_empty_result_has_zero_pages(numbers) -> None:
    page = paginate(numbers, ["n"], page=0, page_size=100, filters=[Filter(column="n", operator="lt", value=0)])
    assert page.total_rows == 0
    assert page.total_pages == 0
    assert page.page == 0
    assert page.rows == []


def test_cells_are_json_compatible(sales_dataset) -> None:
    page = paginate(sales_dataset, ["order_date", "sales", "priority", "region"], page=0, page_size=7)
    assert page.rows[0] == ["2024-01-05T00:00:00", 100.0, True, "NA"]
    assert page.rows[4][1] is None
    assert page.rows[5][3] is None


def test_large_dataset_warning(numbers, monkeypatch) -> None:
    monkeypatch.setattr("vizengine.pager.LARGE_DATASET_ROWS", 1000)
    page = paginate(numbers, ["n"], page=0, page_size=10)
    assert "Large dataset (2,500 rows)" in page.warning


def test_unknown_column_rejected(numbers) -> None:
    with pytest.raises(InvalidField):
        paginate(numbers, ["missing"], page=0, page_size=10)


def test_float_cells_keep_full_precision() -> None:
    dataset = Dataset.from_frame(pd.DataFrame({"v": [0.1 + 0.2, 1.2345678901234567]}))
    page = paginate(dataset, ["v"], page=0, page_size=10)
    assert page.rows == [[0.30000000000000004], [1.2345678901234567]]
    assert all(type(row[0]) is float for row in page.rows)
