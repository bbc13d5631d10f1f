import threading
from datetime import datetime, timedelta
from decimal import Decimal

from engine.config import EngineConfig
from engine.domain import AlertKind, Frequency, Goal, RecurringRule, Transaction
from engine.errors import DispatchFailure, LedgerQueryFailure
from engine.ledger import InMemoryLedger
from engine.notifications import RecordingGateway
from engine.services import EventEngine

NOW = datetime(2025, 3, 24, 10, 0)  # Monday


def make_tx(id, category, amount, date, is_expense=True):
    return Transaction(id=id, amount=Decimal(str(amount)), is_expense=is_expense,
                       category=category, date=date, note="")


def seeded_ledger(ledger=None):
    ledger = ledger or InMemoryLedger()
    ledger.save_budget("Food", Decimal("500"), "2025-03")
    ledger.insert_transaction(make_tx("t1", "Food", 425, datetime(2025, 3, 2)))
    ledger.insert_transaction(make_tx("t2", "Shopping", 230, NOW.replace(hour=8)))
    ledger.save_goal(Goal(id="g1", name="Trip", target_amount=Decimal("2000"), current_amount=Decimal("500"),
                          category="Travel", created_date=datetime(2025, 1, 1), target_date=NOW + timedelta(days=7)))
    return ledger


def test_full_pass_emits_every_alert_kind():
    engine = EventEngine(seeded_ledger(), RecordingGateway())

    sent = engine.run_evaluation_pass(NOW)

    kinds = {i.kind for i in sent}
    assert kinds == {AlertKind.BUDGET_ALERT, AlertKind.GOAL_REMINDER,
                     AlertKind.SPENDING_ALERT, AlertKind.WEEKLY_REPORT}


def test_pass_is_idempotent():
    gateway = RecordingGateway()
    engine = EventEngine(seeded_ledger(), gateway)

    first = engine.run_evaluation_pass(NOW)
    second = engine.run_evaluation_pass(NOW + timedelta(minutes=5))

    assert len(first) == 4
    assert second == []
    assert len(gateway.delivered) == 4


def test_pass_materializes_recurring_before_budget_evaluation():
    ledger = InMemoryLedger()
    ledger.save_budget("Rent", Decimal("1000"), "2025-03")
    ledger.add_recurring_rule(RecurringRule(id="rent", amount=Decimal("950"), category="Rent", is_expense=True,
                                            frequency=Frequency.MONTHLY, next_date=datetime(2025, 3, 1)))
    engine = EventEngine(ledger, RecordingGateway())

    sent = engine.run_evaluation_pass(NOW)

    budget_alerts = [i for i in sent if i.kind is AlertKind.BUDGET_ALERT]
    assert budget_alerts[0].payload["level"] == "critical"
    assert engine.process_recurring(NOW) == []


def test_disabled_categories_are_skipped_and_keep_dedup_state():
    gateway = RecordingGateway()
    engine = EventEngine(seeded_ledger(), gateway)
    engine.run_evaluation_pass(NOW)

    quiet = EngineConfig(budget_alerts_enabled=False, goal_reminders_enabled=False,
                         spending_alerts_enabled=False, weekly_reports_enabled=False)
    assert engine.run_evaluation_pass(NOW + timedelta(hours=1), config=quiet) == []
    assert engine.run_evaluation_pass(NOW + timedelta(hours=2)) == []
    assert len(gateway.delivered) == 4


def test_only_enabled_evaluators_run():
    engine = EventEngine(seeded_ledger(), RecordingGateway(),
                         EngineConfig(goal_reminders_enabled=False, weekly_reports_enabled=False))
    kinds = {i.kind for i in engine.run_evaluation_pass(NOW)}
    assert kinds == {AlertKind.BUDGET_ALERT, AlertKind.SPENDING_ALERT}


class FlakyGateway(RecordingGateway):
    def __init__(self, fail_prefix):
        super().__init__()
        self.fail_prefix = fail_prefix

    def dispatch(self, intent):
        if intent.identifier.startswith(self.fail_prefix):
            raise DispatchFailure("delivery error")
        super().dispatch(intent)


def test_dispatch_failure_does_not_block_other_alerts_and_is_retried():
    gateway = FlakyGateway("budget-")
    engine = EventEngine(seeded_ledger(), gateway)

    sent = engine.run_evaluation_pass(NOW)
    assert AlertKind.BUDGET_ALERT not in {i.kind for i in sent}
    assert len(sent) == 3

    gateway.fail_prefix = "nothing-matches"
    retried = engine.run_evaluation_pass(NOW + timedelta(hours=1))
    assert [i.identifier for i in retried] == ["budget-Food"]


def test_unauthorized_gateway_never_crashes_the_pass():
    engine = EventEngine(seeded_ledger(), RecordingGateway(authorized=False))
    assert engine.run_evaluation_pass(NOW) == []


class BrokenBudgetQueries(InMemoryLedger):
    def query_budgets(self, month_key):
        raise LedgerQueryFailure("budgets table locked")


class BrokenGoalQueries(InMemoryLedger):
    def query_active_goals(self):
        raise RuntimeError("unexpected")


def test_ledger_failure_skips_only_that_evaluator():
    engine = EventEngine(seeded_ledger(BrokenBudgetQueries()), RecordingGateway())
    kinds = {i.kind for i in engine.run_evaluation_pass(NOW)}
    assert AlertKind.BUDGET_ALERT not in kinds
    assert AlertKind.GOAL_REMINDER in kinds

    engine = EventEngine(seeded_ledger(BrokenGoalQueries()), RecordingGateway())
    kinds = {i.kind for i in engine.run_evaluation_pass(NOW)}
    assert AlertKind.GOAL_REMINDER not in kinds
    assert AlertKind.BUDGET_ALERT in kinds


class BrokenRecurringQueries(InMemoryLedger):
    def query_active_recurring_rules(self):
        raise LedgerQueryFailure("rules unavailable")


def test_recurring_failure_does_not_stop_alerts():
    engine = EventEngine(seeded_ledger(BrokenRecurringQueries()), RecordingGateway())
    assert engine.process_recurring(NOW) == []
    assert len(engine.run_evaluation_pass(NOW)) == 4


def test_invalid_pass_config_falls_back_to_engine_config():
    engine = EventEngine(seeded_ledger(), RecordingGateway())
    bad = EngineConfig(budget_warning_threshold=Decimal("0.95"), budget_alerts_enabled=False)

    sent = engine.run_evaluation_pass(NOW, config=bad)

    assert AlertKind.BUDGET_ALERT in {i.kind for i in sent}


def test_concurrent_recurring_processing_materializes_each_occurrence_once():
    ledger = InMemoryLedger()
    start = datetime(2025, 1, 6)
    ledger.add_recurring_rule(RecurringRule(id="w", amount=Decimal("20"), category="Lunch", is_expense=True,
                                            frequency=Frequency.WEEKLY, next_date=start))
    engine = EventEngine(ledger, RecordingGateway())
    now = start + timedelta(weeks=9, days=3)
    results = []
    barrier = threading.Barrier(2)

    def worker():
        barrier.wait()
        results.append(engine.process_recurring(now))

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    dates = [tx.date for created in results for tx in created]
    assert sorted(dates) == [start + timedelta(weeks=i) for i in range(10)]
    assert len(ledger.transactions) == 10
    assert ledger.get_recurring_rule("w").next_date == start + timedelta(weeks=10)
