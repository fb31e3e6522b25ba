import threading

import pytest

from vizengine.errors import InvalidField
from vizengine.runner import QueryRunner


def test_run_delivers_latest_result() -> None:
    runner = QueryRunner(workers=2)
    applied: list[int] = []
    try:
        outcome = runner.run("chart", lambda: 42, applied.append)
    finally:
        runner.shutdown()

    assert outcome.delivered is True
    assert outcome.result == 42
    assert outcome.ticket.generation == 1
    assert applied == [42]


def test_superseded_query_result_is_dropped() -> None:
    runner = QueryRunner(workers=2)
    applied: list[str] = []
    release = threading.Event()

    def slow() -> str:
        release.wait(timeout=5)
        return "old"

    try:
        first = runner.submit("chart", slow, applied.append)
        second = runner.submit("chart", lambda: "new", applied.append)
        newer = second.result(timeout=5)
        release.set()
        older = first.result(timeout=5)
    finally:
        runner.shutdown()

    assert newer.delivered is True
    assert older.delivered is False
    assert applied == ["new"]


def test_queued_query_is_skipped_once_superseded() -> None:
    runner = QueryRunner(workers=1)
    release = threading.Event()
    calls: list[str] = []

    def blocker() -> None:
        release.wait(timeout=5)

    def record(name: str):
        def query() -> str:
            calls.append(name)
            return name

        return query

    try:
        runner.submit("busy", blocker)
        skipped = runner.submit("chart", record("second"))
        latest = runner.submit("chart", record("third"))
        release.set()
        skipped_outcome = skipped.result(timeout=5)
        latest_outcome = latest.result(timeout=5)
    finally:
        runner.shutdown()

    assert skipped_outcome.skipped is True
    assert latest_outcome.delivered is True
    assert calls == ["third"]


def test_query_errors_propagate() -> None:
    runner = QueryRunner(workers=1)

    def failing() -> None:
        raise InvalidField("revenue", ["sales"])

    try:
        with pytest.raises(InvalidField):
            runner.run("chart", failing)
    finally:
        runner.shutdown()
