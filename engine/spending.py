from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from engine.aggregator import SpendAggregator
from engine.calendar import day_window, week_key
from engine.config import EngineConfig
from engine.domain import AlertIntent, AlertKind
from engine.notifications import AlertDispatcher, format_currency


HIGH = "high"
MEDIUM = "medium"


def spending_level(total: Decimal, config: EngineConfig) -> Optional[str]:
    if total > config.daily_spending_high:
        return HIGH
    if total > config.daily_spending_medium:
        return MEDIUM
    return None


class DailySpendingEvaluator:
    """Flags heavy spending days. The first alert of a day wins, later passes never resend it."""

    prefix = "daily-spending-"

    def __init__(self, aggregator: SpendAggregator, dispatcher: AlertDispatcher):
        self.aggregator = aggregator
        self.dispatcher = dispatcher

    def evaluate(self, now: datetime, config: EngineConfig) -> List[AlertIntent]:
        start, end = day_window(now)
        identifier = f"{self.prefix}{start:%Y-%m-%d}"
        self.dispatcher.registry.prune(self.prefix, keep=identifier)

        total = self.aggregator.spent_between(start, end)
        level = spending_level(total, config)
        if level is None:
            return []

        symbol = config.currency_symbol
        if level == HIGH:
            body = (f"High spending day! You've spent {format_currency(total, symbol)} today. "
                    f"Consider reviewing your purchases.")
        else:
            body = f"You've spent {format_currency(total, symbol)} today. Keep track of your expenses!"

        intent = AlertIntent(
            identifier=identifier,
            kind=AlertKind.SPENDING_ALERT,
            title="💸 Spending Alert",
            body=body,
            payload={"type": "spending_alert", "amount": total, "level": level},
        )
        if self.dispatcher.first_fire(intent):
            return [intent]
        return []


class WeeklyReportEvaluator:
    """Once per ISO week, summarize the last seven days of spending."""

    top_n = 3
    prefix = "weekly-report-"

    def __init__(self, aggregator: SpendAggregator, dispatcher: AlertDispatcher):
        self.aggregator = aggregator
        self.dispatcher = dispatcher

    def is_due(self, now: datetime, config: EngineConfig) -> bool:
        return (now.weekday(), now.hour) >= (config.weekly_report_weekday, config.weekly_report_hour)

    def evaluate(self, now: datetime, config: EngineConfig) -> List[AlertIntent]:
        identifier = f"{self.prefix}{week_key(now)}"
        self.dispatcher.registry.prune(self.prefix, keep=identifier)
        if not self.is_due(now, config):
            return []
        if identifier in self.dispatcher.registry:
            return []

        end, _ = day_window(now)
        start = end - timedelta(days=7)
        by_category = self.aggregator.spent_by_category(start, end)
        total = sum(by_category.values(), Decimal(0))
        top = list(by_category.items())[: self.top_n]

        symbol = config.currency_symbol
        if top:
            highlights = ", ".join(f"{cat} {format_currency(amount, symbol)}" for cat, amount in top)
            body = f"You spent {format_currency(total, symbol)} in the last 7 days. Top: {highlights}."
        else:
            body = "No expenses recorded in the last 7 days."

        intent = AlertIntent(
            identifier=identifier,
            kind=AlertKind.WEEKLY_REPORT,
            title="📊 Weekly Financial Report",
            body=body,
            payload={
                "type": "weekly_report",
                "start": start.isoformat(),
                "end": end.isoformat(),
                "total": total,
                "by_category": by_category,
            },
        )
        if self.dispatcher.first_fire(intent):
            return [intent]
        return []
