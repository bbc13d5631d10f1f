from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from engine.calendar import month_range
from engine.ledger import LedgerStore, TransactionFilter


class SpendAggregator:
    """Expense sums read straight from the ledger on every call."""

    def __init__(self, ledger: LedgerStore):
        self.ledger = ledger

    def spent_between(self, start: datetime, end: datetime, category: Optional[str] = None) -> Decimal:
        flt = TransactionFilter(start=start, end=end, category=category, is_expense=True)
        return sum((t.amount for t in self.ledger.query_transactions(flt)), Decimal(0))

    def spent_amount(self, category: str, month_key: str) -> Decimal:
        start, end = month_range(month_key)
        return self.spent_between(start, end, category)

    def spent_by_category(self, start: datetime, end: datetime) -> Dict[str, Decimal]:
        totals: Dict[str, Decimal] = defaultdict(Decimal)
        flt = TransactionFilter(start=start, end=end, is_expense=True)
        for t in self.ledger.query_transactions(flt):
            totals[t.category] += t.amount
        return dict(sorted(totals.items(), key=lambda item: item[1], reverse=True))
