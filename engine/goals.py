import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from engine.config import EngineConfig
from engine.domain import AlertIntent, AlertKind, Goal
from engine.functional import days_until, validate_goal
from engine.ledger import LedgerStore
from engine.notifications import AlertDispatcher, format_currency

logger = logging.getLogger(__name__)

REMINDER_DAYS = (7, 1)


def goal_progress(goal: Goal) -> float:
    """Share of the target saved, capped at 1.0 for display."""
    if goal.target_amount <= 0:
        return 0.0
    return min(float(goal.current_amount / goal.target_amount), 1.0)


def remaining_amount(goal: Goal) -> Decimal:
    return max(goal.target_amount - goal.current_amount, Decimal(0))


class GoalDeadlineEvaluator:

    def __init__(self, ledger: LedgerStore, dispatcher: AlertDispatcher):
        self.ledger = ledger
        self.dispatcher = dispatcher

    def evaluate(self, now: datetime, config: EngineConfig) -> List[AlertIntent]:
        sent = []
        for goal in self.ledger.query_active_goals():
            if goal.is_completed:
                continue
            checked = validate_goal(goal)
            if checked.is_left():
                logger.warning("Skipping goal %s: %s", goal.id, checked.get_error()["message"])
                continue
            intent = self.check_goal(goal, now, config.currency_symbol)
            if intent is not None:
                sent.append(intent)
        return sent

    def check_goal(self, goal: Goal, now: datetime, symbol: str = "$") -> Optional[AlertIntent]:
        days_left = days_until(goal, now).get_or_else(None)
        if days_left is None:
            return None

        if days_left in REMINDER_DAYS:
            intent = self.reminder(goal, days_left, symbol)
            signature = days_left
        elif days_left == 0:
            intent = self.deadline(goal, symbol)
            signature = "deadline"
        else:
            return None

        if self.dispatcher.replace(intent, signature):
            return intent
        return None

    @staticmethod
    def reminder(goal: Goal, days_left: int, symbol: str) -> AlertIntent:
        remaining = remaining_amount(goal)
        if days_left == 7:
            body = (f"Your goal '{goal.name}' is due in 1 week! {format_currency(remaining, symbol)} "
                    f"left to reach {format_currency(goal.target_amount, symbol)}")
        else:
            body = f"⏰ Your goal '{goal.name}' is due tomorrow! {format_currency(remaining, symbol)} remaining"
        return AlertIntent(
            identifier=f"goal-{goal.id}",
            kind=AlertKind.GOAL_REMINDER,
            title="🎯 Goal Reminder",
            body=body,
            payload={
                "type": "goal_reminder",
                "goal_id": goal.id,
                "goal_name": goal.name,
                "days_left": days_left,
            },
        )

    @staticmethod
    def deadline(goal: Goal, symbol: str) -> AlertIntent:
        reached = goal.current_amount >= goal.target_amount
        if reached:
            body = f"🎉 Congratulations! You've reached your '{goal.name}' goal!"
        else:
            body = (f"Your goal '{goal.name}' deadline is today. You're "
                    f"{format_currency(remaining_amount(goal), symbol)} away from your target.")
        return AlertIntent(
            identifier=f"goal-deadline-{goal.id}",
            kind=AlertKind.GOAL_DEADLINE,
            title="🚨 Goal Deadline",
            body=body,
            payload={
                "type": "goal_deadline",
                "goal_id": goal.id,
                "goal_name": goal.name,
                "reached": reached,
                "remaining": remaining_amount(goal),
            },
        )
