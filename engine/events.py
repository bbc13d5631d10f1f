import logging
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple

__all__ = [
    'Event', 'EventBus', 'LEDGER_MUTATIONS',
    'TRANSACTION_ADDED', 'TRANSACTION_UPDATED', 'TRANSACTION_DELETED',
    'BUDGET_SAVED', 'GOAL_SAVED', 'RECURRING_RULE_SAVED',
]

logger = logging.getLogger(__name__)


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], object]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

    def subscribe_many(self, names, handler: Handler) -> None:
        for name in names:
            self.subscribe(name, handler)

    def publish(self, name: str, payload: dict) -> List[object]:
        if name not in self._subscribers:
            return []

        event = Event(
            name=name,
            ts=datetime.now().isoformat(),
            payload=payload
        )

        # a failing subscriber must not undo the mutation that published
        results = []
        for handler in list(self._subscribers[name]):
            try:
                results.append(handler(event, payload))
            except Exception:
                logger.exception("Handler %r failed for %s", handler, name)
        return results

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)


TRANSACTION_ADDED = "TRANSACTION_ADDED"
TRANSACTION_UPDATED = "TRANSACTION_UPDATED"
TRANSACTION_DELETED = "TRANSACTION_DELETED"
BUDGET_SAVED = "BUDGET_SAVED"
GOAL_SAVED = "GOAL_SAVED"
RECURRING_RULE_SAVED = "RECURRING_RULE_SAVED"

LEDGER_MUTATIONS = (
    TRANSACTION_ADDED,
    TRANSACTION_UPDATED,
    TRANSACTION_DELETED,
    BUDGET_SAVED,
    GOAL_SAVED,
    RECURRING_RULE_SAVED,
)
