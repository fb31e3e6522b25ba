import asyncio
import os

import pandas as pd
import pytest
import uvloop

# Keep the result cache in-process for tests (no Redis dependency).
os.environ["REDIS_URL"] = ""

from vizengine.dataset import Dataset, DatasetStore  # noqa: E402
from vizengine.engine import QueryEngine  # noqa: E402

# This environment blocks writes to the default asyncio selector wakeup socket.
# uvloop uses a different mechanism that keeps TestClient responsive.
asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())


def sales_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "region": ["NA", "EU", "NA", "LATAM", "EU", None, "NA"],
            "product": ["A", "A", "B", "B", "B", "A", "C"],
            "sales": [100.0, 50.0, 25.0, 10.0, None, 5.0, 75.0],
            "units": [10, 5, 3, 1, 2, 1, 8],
            "order_date": pd.to_datetime(
                [
                    "2024-01-05",
                    "2024-01-20",
                    "2024-02-11",
                    "2024-03-02",
                    "2024-03-15",
                    "2024-04-01",
                    "2024-04-30",
                ]
            ),
            "priority": [True, False, True, False, True, False, True],
        }
    )


@pytest.fixture
def sales_dataset() -> Dataset:
    return Dataset.from_frame(sales_frame(), name="sales")


@pytest.fixture
def store() -> DatasetStore:
    store = DatasetStore()
    store.publish(sales_frame(), name="sales")
    return store


@pytest.fixture
def engine(store: DatasetStore) -> QueryEngine:
    return QueryEngine(store)
