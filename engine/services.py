import logging
import threading
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from engine.aggregator import SpendAggregator
from engine.budgets import BudgetAlertEvaluator
from engine.config import EngineConfig
from engine.domain import AlertIntent, Transaction
from engine.errors import ConfigurationInvalid, LedgerQueryFailure
from engine.goals import GoalDeadlineEvaluator
from engine.ledger import LedgerStore
from engine.notifications import AlertDispatcher, AlertRegistry, NotificationGateway
from engine.recurring import RecurringScheduleEngine
from engine.spending import DailySpendingEvaluator, WeeklyReportEvaluator

logger = logging.getLogger(__name__)

Evaluate = Callable[[datetime, EngineConfig], List[AlertIntent]]


class EventEngine:
    """Facade running one evaluation pass over injected collaborators.

    ledger: the Ledger Store collaborator (read/query + insert/update)
    gateway: the Notification Gateway collaborator
    config: default configuration, overridable per pass
    """

    def __init__(self, ledger: LedgerStore, gateway: NotificationGateway,
                 config: Optional[EngineConfig] = None, registry: Optional[AlertRegistry] = None):
        self.ledger = ledger
        self.gateway = gateway
        self.config = (config or EngineConfig()).validate()
        self.registry = registry or AlertRegistry()
        self._lock = threading.RLock()

        dispatcher = AlertDispatcher(gateway, self.registry)
        aggregator = SpendAggregator(ledger)
        self.aggregator = aggregator
        self.recurring = RecurringScheduleEngine(ledger, lock=self._lock)
        self.budgets = BudgetAlertEvaluator(ledger, aggregator, dispatcher)
        self.goals = GoalDeadlineEvaluator(ledger, dispatcher)
        self.spending = DailySpendingEvaluator(aggregator, dispatcher)
        self.weekly = WeeklyReportEvaluator(aggregator, dispatcher)

    def evaluators(self, config: EngineConfig) -> Sequence[Tuple[str, Evaluate]]:
        steps = []
        if config.budget_alerts_enabled:
            steps.append(("budget_alerts", self.budgets.evaluate))
        if config.goal_reminders_enabled:
            steps.append(("goal_reminders", self.goals.evaluate))
        if config.spending_alerts_enabled:
            steps.append(("spending_alerts", self.spending.evaluate))
        if config.weekly_reports_enabled:
            steps.append(("weekly_reports", self.weekly.evaluate))
        return steps

    def pass_config(self, config: Optional[EngineConfig]) -> EngineConfig:
        if config is None:
            return self.config
        try:
            return config.validate()
        except ConfigurationInvalid as e:
            logger.warning("Ignoring invalid pass configuration, using defaults: %s", e)
            return self.config

    def process_recurring(self, now: datetime) -> List[Transaction]:
        try:
            return self.recurring.process(now)
        except LedgerQueryFailure as e:
            logger.warning("Recurring processing skipped this pass: %s", e)
        except Exception:
            logger.exception("Recurring processing failed")
        return []

    def run_evaluation_pass(self, now: datetime, config: Optional[EngineConfig] = None) -> List[AlertIntent]:
        """Materialize due recurring transactions, then run every enabled evaluator.

        Returns the alert intents dispatched during this pass. A failing
        evaluator is logged and skipped; the others still run. An invalid
        per-pass ``config`` is logged and the engine's own config used instead.
        """
        config = self.pass_config(config)
        with self._lock:
            created = self.process_recurring(now)
            if created:
                logger.info("Pass at %s materialized %d recurring transactions", now, len(created))

            sent: List[AlertIntent] = []
            for name, evaluate in self.evaluators(config):
                try:
                    sent.extend(evaluate(now, config))
                except LedgerQueryFailure as e:
                    logger.warning("Evaluator %s skipped this pass: %s", name, e)
                except Exception:
                    logger.exception("Evaluator %s failed", name)
            return sent
