import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from engine.aggregator import SpendAggregator
from engine.calendar import month_key
from engine.config import EngineConfig
from engine.domain import AlertIntent, AlertKind, Budget
from engine.functional import validate_budget
from engine.ledger import LedgerStore
from engine.notifications import AlertDispatcher, format_currency

logger = logging.getLogger(__name__)

CRITICAL = "critical"
WARNING = "warning"


PREFIX = "budget-"


def budget_identifier(category: str) -> str:
    return f"{PREFIX}{category}"


def classify(percentage: Decimal, config: EngineConfig) -> Optional[Tuple[str, int]]:
    """Return (level, threshold percent) for a spend ratio, or None below the warning line."""
    if percentage >= config.budget_critical_threshold:
        return CRITICAL, int(config.budget_critical_threshold * 100)
    if percentage >= config.budget_warning_threshold:
        return WARNING, int(config.budget_warning_threshold * 100)
    return None


class BudgetAlertEvaluator:

    def __init__(self, ledger: LedgerStore, aggregator: SpendAggregator, dispatcher: AlertDispatcher):
        self.ledger = ledger
        self.aggregator = aggregator
        self.dispatcher = dispatcher

    def evaluate(self, now: datetime, config: EngineConfig) -> List[AlertIntent]:
        current = month_key(now)
        sent = []
        budgeted = set()
        for budget in self.ledger.query_budgets(current):
            budgeted.add(budget_identifier(budget.category_name))
            intent = self.check_budget(budget, config)
            if intent is not None:
                sent.append(intent)

        # categories without a budget this month keep no alert from an earlier one
        for ident in self.dispatcher.registry.identifiers(PREFIX):
            if ident not in budgeted:
                self.dispatcher.withdraw(ident)
        return sent

    def check_budget(self, budget: Budget, config: EngineConfig) -> Optional[AlertIntent]:
        ident = budget_identifier(budget.category_name)
        checked = validate_budget(budget)
        if checked.is_left():
            logger.warning("Skipping budget %s: %s", budget.id, checked.get_error()["message"])
            self.dispatcher.withdraw(ident)
            return None

        spent = self.aggregator.spent_amount(budget.category_name, budget.month)
        percentage = spent / budget.monthly_limit
        level = classify(percentage, config)
        if level is None:
            # spend fell back under the line (edit/delete), drop the stale alert
            self.dispatcher.withdraw(ident)
            return None

        name, threshold = level
        intent = self.compose(budget, spent, percentage, name, threshold, config.currency_symbol)
        if self.dispatcher.replace(intent, (budget.month, name)):
            return intent
        return None

    @staticmethod
    def compose(budget: Budget, spent: Decimal, percentage: Decimal, level: str,
                threshold: int, symbol: str) -> AlertIntent:
        pct = int(percentage * 100)
        return AlertIntent(
            identifier=budget_identifier(budget.category_name),
            kind=AlertKind.BUDGET_ALERT,
            title="💰 Budget Alert",
            body=(
                f"You've spent {pct}% ({format_currency(spent, symbol)}) of your "
                f"{budget.category_name} budget ({format_currency(budget.monthly_limit, symbol)})"
            ),
            payload={
                "type": "budget_alert",
                "category": budget.category_name,
                "month": budget.month,
                "spent": spent,
                "limit": budget.monthly_limit,
                "percentage": pct,
                "threshold": threshold,
                "level": level,
            },
        )
