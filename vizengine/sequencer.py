"""
Per-surface generation counters.

Every chart or table view ("surface") gets a strictly increasing generation
number per request. Only the result carrying the surface's latest generation
may be applied; anything older is stale and dropped.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ticket:
    surface: str
    generation: int
    dataset_version: int = 0


class RequestSequencer:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generations: dict[str, int] = {}

    def issue(self, surface: str, dataset_version: int = 0) -> Ticket:
        with self._lock:
            generation = self._generations.get(surface, 0) + 1
            self._generations[surface] = generation
        return Ticket(surface=surface, generation=generation, dataset_version=dataset_version)

    def current(self, surface: str) -> int:
        with self._lock:
            return self._generations.get(surface, 0)

    def is_current(self, ticket: Ticket) -> bool:
        with self._lock:
            return self._generations.get(ticket.surface) == ticket.generation

    def deliver(self, ticket: Ticket, result: Any, apply: Callable[[Any], None]) -> bool:
        """Call apply(result) only if the ticket is still the latest for its surface."""
        with self._lock:
            latest = self._generations.get(ticket.surface)
            if latest != ticket.generation:
                logger.debug(
                    "Dropping stale result for surface '%s' (generation %d, latest %s)",
                    ticket.surface,
                    ticket.generation,
                    latest,
                )
                return False
        # apply runs unlocked so callbacks may issue the next request
        apply(result)
        return True

    def release(self, surface: str) -> None:
        with self._lock:
            self._generations.pop(surface, None)

    def advance_all(self) -> None:
        with self._lock:
            for surface in self._generations:
                self._generations[surface] += 1
        logger.info("Advanced %d surface generations after dataset reload", len(self._generations))

    def surfaces(self) -> list[str]:
        with self._lock:
            return sorted(self._generations)
