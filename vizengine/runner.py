from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable

from vizengine.config import QUERY_WORKERS
from vizengine.sequencer import RequestSequencer, Ticket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOutcome:
    ticket: Ticket
    result: Any = None
    delivered: bool = False
    skipped: bool = False


def _discard(_: Any) -> None:
    return None


class QueryRunner:
    """
    Run engine queries off the caller's thread.

    Each submission takes a ticket for its surface. The ticket is checked
    before the query starts and again before its result is applied, so a
    superseded request never overwrites a newer one.
    """

    def __init__(self, sequencer: RequestSequencer | None = None, workers: int = QUERY_WORKERS) -> None:
        self.sequencer = sequencer or RequestSequencer()
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="vizengine-query")

    def submit(
        self,
        surface: str,
        query: Callable[[], Any],
        apply: Callable[[Any], None] = _discard,
        dataset_version: int = 0,
    ) -> Future:
        ticket = self.sequencer.issue(surface, dataset_version)
        return self._executor.submit(self._execute, ticket, query, apply)

    def run(
        self,
        surface: str,
        query: Callable[[], Any],
        apply: Callable[[Any], None] = _discard,
        dataset_version: int = 0,
    ) -> RunOutcome:
        return self.submit(surface, query, apply, dataset_version).result()

    def _execute(self, ticket: Ticket, query: Callable[[], Any], apply: Callable[[Any], None]) -> RunOutcome:
        if not self.sequencer.is_current(ticket):
            logger.debug("Skipping superseded request %s#%d", ticket.surface, ticket.generation)
            return RunOutcome(ticket=ticket, skipped=True)
        result = query()
        delivered = self.sequencer.deliver(ticket, result, apply)
        return RunOutcome(ticket=ticket, result=result, delivered=delivered)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
