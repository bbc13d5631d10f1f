"""Ledger Store collaborator.

The engine only reads from the ledger and writes two kinds of record into it
(materialized transactions and advanced recurring rules). ``LedgerStore`` is
that contract; ``InMemoryLedger`` is the reference implementation used by the
host app and the tests. It also carries the user-facing mutations (add, edit,
duplicate ...) which publish events so the orchestrator can schedule a pass.
"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from engine.domain import Budget, Frequency, Goal, RecurringRule, Transaction
from engine.events import (
    BUDGET_SAVED,
    GOAL_SAVED,
    RECURRING_RULE_SAVED,
    TRANSACTION_ADDED,
    TRANSACTION_DELETED,
    TRANSACTION_UPDATED,
    EventBus,
)

logger = logging.getLogger(__name__)


def by_category(category: str):
    def _filter(t: Transaction) -> bool:
        return t.category == category

    return _filter


def by_date_range(start: datetime, end: datetime):
    def _filter(t: Transaction) -> bool:
        return start <= t.date < end

    return _filter


def expenses_only(t: Transaction) -> bool:
    return t.is_expense


@dataclass(frozen=True)
class TransactionFilter:
    """Query for ``LedgerStore.query_transactions``.

    ``start`` is inclusive and ``end`` exclusive; ``None`` fields match anything.
    """
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    category: Optional[str] = None
    is_expense: Optional[bool] = None

    def predicates(self) -> List[Callable[[Transaction], bool]]:
        preds: List[Callable[[Transaction], bool]] = []
        if self.start is not None or self.end is not None:
            preds.append(by_date_range(self.start or datetime.min, self.end or datetime.max))
        if self.category is not None:
            preds.append(by_category(self.category))
        if self.is_expense is True:
            preds.append(expenses_only)
        elif self.is_expense is False:
            preds.append(lambda t: not t.is_expense)
        return preds


def iter_transactions(trans: Iterable[Transaction], flt: TransactionFilter) -> Iterable[Transaction]:
    preds = flt.predicates()
    for t in trans:
        if all(p(t) for p in preds):
            yield t


class LedgerStore(ABC):

    @abstractmethod
    def query_transactions(self, flt: TransactionFilter) -> List[Transaction]:
        pass

    @abstractmethod
    def query_budgets(self, month_key: str) -> List[Budget]:
        pass

    @abstractmethod
    def query_active_goals(self) -> List[Goal]:
        pass

    @abstractmethod
    def query_active_recurring_rules(self) -> List[RecurringRule]:
        pass

    @abstractmethod
    def insert_transaction(self, t: Transaction) -> None:
        pass

    @abstractmethod
    def update_recurring_rule(self, r: RecurringRule) -> None:
        pass


class InMemoryLedger(LedgerStore):

    def __init__(self, bus: Optional[EventBus] = None):
        self.bus = bus or EventBus()
        self._lock = threading.RLock()
        self._transactions: Dict[str, Transaction] = {}
        self._budgets: Dict[Tuple[str, str], Budget] = {}
        self._goals: Dict[str, Goal] = {}
        self._rules: Dict[str, RecurringRule] = {}

    # --- LedgerStore contract

    def query_transactions(self, flt: TransactionFilter) -> List[Transaction]:
        with self._lock:
            found = list(iter_transactions(self._transactions.values(), flt))
        return sorted(found, key=lambda t: t.date)

    def query_budgets(self, month_key: str) -> List[Budget]:
        with self._lock:
            return [b for (_, month), b in self._budgets.items() if month == month_key]

    def query_active_goals(self) -> List[Goal]:
        with self._lock:
            return [g for g in self._goals.values() if not g.is_completed and g.target_date is not None]

    def query_active_recurring_rules(self) -> List[RecurringRule]:
        with self._lock:
            return [r for r in self._rules.values() if r.is_active]

    def insert_transaction(self, t: Transaction) -> None:
        # keyed by id, so re-inserting a materialized occurrence overwrites it
        with self._lock:
            self._transactions[t.id] = t

    def update_recurring_rule(self, r: RecurringRule) -> None:
        with self._lock:
            self._rules[r.id] = r

    # --- host operations

    @property
    def transactions(self) -> Tuple[Transaction, ...]:
        with self._lock:
            return tuple(sorted(self._transactions.values(), key=lambda t: t.date))

    @property
    def budgets(self) -> Tuple[Budget, ...]:
        with self._lock:
            return tuple(self._budgets.values())

    @property
    def goals(self) -> Tuple[Goal, ...]:
        with self._lock:
            return tuple(self._goals.values())

    @property
    def recurring_rules(self) -> Tuple[RecurringRule, ...]:
        with self._lock:
            return tuple(self._rules.values())

    def get_transaction(self, tx_id: str) -> Optional[Transaction]:
        with self._lock:
            return self._transactions.get(tx_id)

    def get_recurring_rule(self, rule_id: str) -> Optional[RecurringRule]:
        with self._lock:
            return self._rules.get(rule_id)

    def add_transaction(self, t: Transaction) -> Transaction:
        self.insert_transaction(t)
        self.bus.publish(TRANSACTION_ADDED, {"id": t.id, "category": t.category, "amount": t.amount})
        return t

    def edit_transaction(self, tx_id: str, **changes) -> Transaction:
        with self._lock:
            if tx_id not in self._transactions:
                raise KeyError(tx_id)
            t = replace(self._transactions[tx_id], **changes)
            self._transactions[tx_id] = t
        self.bus.publish(TRANSACTION_UPDATED, {"id": t.id, "category": t.category, "amount": t.amount})
        return t

    def delete_transaction(self, tx_id: str) -> None:
        with self._lock:
            t = self._transactions.pop(tx_id)
        self.bus.publish(TRANSACTION_DELETED, {"id": t.id, "category": t.category, "amount": t.amount})

    def duplicate_transaction(self, tx_id: str, now: Optional[datetime] = None) -> Transaction:
        """Copy a transaction under a fresh id, dated now."""
        original = self.get_transaction(tx_id)
        if original is None:
            raise KeyError(tx_id)
        copy = replace(original, id=str(uuid4()), date=now or datetime.now(), recurring_id=None)
        return self.add_transaction(copy)

    def save_budget(self, category_name: str, monthly_limit: Decimal, month: str) -> Budget:
        """Create or overwrite the budget of (category, month)."""
        key = (category_name, month)
        with self._lock:
            existing = self._budgets.get(key)
            if existing is not None:
                budget = replace(existing, monthly_limit=monthly_limit)
            else:
                budget = Budget(id=str(uuid4()), category_name=category_name,
                                monthly_limit=monthly_limit, month=month)
            self._budgets[key] = budget
        self.bus.publish(BUDGET_SAVED, {"id": budget.id, "category": category_name, "month": month})
        return budget

    def save_goal(self, goal: Goal) -> Goal:
        with self._lock:
            self._goals[goal.id] = goal
        self.bus.publish(GOAL_SAVED, {"id": goal.id})
        return goal

    def add_recurring_rule(self, rule: RecurringRule) -> RecurringRule:
        self.update_recurring_rule(rule)
        self.bus.publish(RECURRING_RULE_SAVED, {"id": rule.id})
        return rule

    def deactivate_recurring_rule(self, rule_id: str) -> RecurringRule:
        """Soft delete; the rule stays so its materialized history keeps a source."""
        with self._lock:
            rule = replace(self._rules[rule_id], is_active=False)
            self._rules[rule_id] = rule
        self.bus.publish(RECURRING_RULE_SAVED, {"id": rule_id, "is_active": False})
        return rule

    def load_seed(self, path: str) -> None:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        with self._lock:
            for t in data.get("transactions", []):
                tx = Transaction(
                    id=t["id"],
                    amount=Decimal(str(t["amount"])),
                    is_expense=t.get("is_expense", True),
                    category=t["category"],
                    date=datetime.fromisoformat(t["date"]),
                    note=t.get("note"),
                )
                self._transactions[tx.id] = tx
            for b in data.get("budgets", []):
                budget = Budget(id=b["id"], category_name=b["category_name"],
                                monthly_limit=Decimal(str(b["monthly_limit"])), month=b["month"])
                self._budgets[(budget.category_name, budget.month)] = budget
            for g in data.get("goals", []):
                goal = Goal(
                    id=g["id"],
                    name=g["name"],
                    target_amount=Decimal(str(g["target_amount"])),
                    current_amount=Decimal(str(g.get("current_amount", 0))),
                    category=g.get("category", ""),
                    created_date=datetime.fromisoformat(g["created_date"]),
                    target_date=datetime.fromisoformat(g["target_date"]) if g.get("target_date") else None,
                    is_completed=g.get("is_completed", False),
                )
                self._goals[goal.id] = goal
            for r in data.get("recurring_rules", []):
                rule = RecurringRule(
                    id=r["id"],
                    amount=Decimal(str(r["amount"])),
                    category=r["category"],
                    is_expense=r.get("is_expense", True),
                    frequency=Frequency.parse(r.get("frequency", "Monthly")),
                    next_date=datetime.fromisoformat(r["next_date"]),
                    note=r.get("note", ""),
                    is_active=r.get("is_active", True),
                )
                self._rules[rule.id] = rule
        logger.info("Loaded seed %s: %d transactions", path, len(self._transactions))
