# session.py
"""Latest-wins bookkeeping for recomputations driven by one user session.

Each recomputation takes a ticket. Taking a new ticket sets the previous
ticket's cancel event, so a download or loop that checks it can stop early,
and only the current ticket may publish a result.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .errors import Superseded

logger = logging.getLogger(__name__)


@dataclass
class Ticket:
    generation: int
    cancel: threading.Event = field(default_factory=threading.Event)

    def check(self) -> None:
        if self.cancel.is_set():
            raise Superseded(f"generation {self.generation}")


class QuerySession:
    def __init__(self):
        self._lock = threading.Lock()
        self._current: Optional[Ticket] = None
        self._generation = 0
        self.latest: Any = None

    def begin(self) -> Ticket:
        with self._lock:
            if self._current is not None:
                self._current.cancel.set()
            self._generation += 1
            self._current = Ticket(self._generation)
            return self._current

    def is_current(self, ticket: Ticket) -> bool:
        with self._lock:
            return self._current is ticket and not ticket.cancel.is_set()

    def publish(self, ticket: Ticket, result: Any) -> bool:
        with self._lock:
            if self._current is not ticket or ticket.cancel.is_set():
                logger.debug("Discarding superseded result (generation %d)", ticket.generation)
                return False
            self.latest = result
            return True

    def run(self, fn: Callable[[threading.Event], Any]) -> Optional[Any]:
        """Run fn(cancel_event) under a fresh ticket; None if it was superseded."""
        ticket = self.begin()
        try:
            result = fn(ticket.cancel)
        except Superseded:
            logger.debug("Generation %d superseded mid-flight", ticket.generation)
            return None
        return result if self.publish(ticket, result) else None
