import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import List, Optional
from uuid import NAMESPACE_URL, uuid5

from engine.calendar import advance
from engine.domain import RecurringRule, Transaction
from engine.errors import CalendarArithmeticFailure, LedgerQueryFailure
from engine.functional import validate_rule
from engine.ledger import LedgerStore

logger = logging.getLogger(__name__)


def occurrence_id(rule: RecurringRule, when: datetime) -> str:
    """Stable transaction id for one occurrence of a rule."""
    return str(uuid5(NAMESPACE_URL, f"recurring:{rule.id}:{when.isoformat()}"))


def materialize(rule: RecurringRule) -> Transaction:
    return Transaction(
        id=occurrence_id(rule, rule.next_date),
        amount=rule.amount,
        is_expense=rule.is_expense,
        category=rule.category,
        date=rule.next_date,
        note=rule.note,
        recurring_id=rule.id,
    )


class RecurringScheduleEngine:
    """Turns due recurring rules into ledger transactions.

    Every missed occurrence is materialized with its own scheduled date, so a
    weekly rule left alone for ten weeks produces ten transactions. Each
    occurrence is written before the rule is advanced past it.
    """

    def __init__(self, ledger: LedgerStore, lock: Optional[threading.RLock] = None):
        self.ledger = ledger
        self.lock = lock or threading.RLock()
        self.flagged: dict[str, str] = {}

    def process(self, now: datetime) -> List[Transaction]:
        with self.lock:
            created: List[Transaction] = []
            for rule in self.ledger.query_active_recurring_rules():
                try:
                    created.extend(self.process_rule(rule, now))
                except Exception as e:
                    self.flagged[rule.id] = str(e)
                    logger.exception("Recurring rule %s failed, skipped this pass", rule.id)
            return created

    def process_rule(self, rule: RecurringRule, now: datetime) -> List[Transaction]:
        checked = validate_rule(rule)
        if checked.is_left():
            logger.warning("Skipping recurring rule %s: %s", rule.id, checked.get_error()["message"])
            return []

        created: List[Transaction] = []
        while rule.next_date <= now:
            try:
                following = advance(rule.next_date, rule.frequency)
            except CalendarArithmeticFailure as e:
                self.flagged[rule.id] = str(e)
                logger.warning("Recurring rule %s flagged, retrying next pass: %s", rule.id, e)
                break

            tx = materialize(rule)
            try:
                self.ledger.insert_transaction(tx)
                rule = replace(rule, next_date=following)
                self.ledger.update_recurring_rule(rule)
            except LedgerQueryFailure as e:
                logger.warning("Ledger write failed for recurring rule %s: %s", rule.id, e)
                break
            created.append(tx)
            logger.info("Materialized %s %s on %s from rule %s",
                        tx.category, tx.amount, tx.date.date(), rule.id)
        else:
            self.flagged.pop(rule.id, None)
        return created
