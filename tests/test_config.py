import os
from decimal import Decimal

import pytest

from engine.config import EngineConfig
from engine.errors import ConfigurationInvalid


def test_defaults_match_reference_constants():
    config = EngineConfig()
    assert config.budget_warning_threshold == Decimal("0.8")
    assert config.budget_critical_threshold == Decimal("0.9")
    assert config.daily_spending_medium == Decimal("100")
    assert config.daily_spending_high == Decimal("200")
    assert config.evaluation_interval == 3600
    assert config.validate() is config


def test_from_env_reads_prefixed_variables(monkeypatch):
    monkeypatch.setenv("FINANCE_BUDGET_ALERTS_ENABLED", "false")
    monkeypatch.setenv("FINANCE_DAILY_SPENDING_HIGH", "350")
    monkeypatch.setenv("FINANCE_WEEKLY_REPORT_HOUR", "7")
    monkeypatch.setenv("FINANCE_CURRENCY_SYMBOL", "€")

    config = EngineConfig.from_env()

    assert config.budget_alerts_enabled is False
    assert config.goal_reminders_enabled is True
    assert config.daily_spending_high == Decimal("350")
    assert config.weekly_report_hour == 7
    assert config.currency_symbol == "€"


def test_from_env_ignores_unparsable_values(monkeypatch):
    monkeypatch.setenv("FINANCE_SPENDING_ALERTS_ENABLED", "maybe")
    monkeypatch.setenv("FINANCE_DAILY_SPENDING_MEDIUM", "lots")
    config = EngineConfig.from_env()
    assert config.spending_alerts_enabled is True
    assert config.daily_spending_medium == Decimal("100")


def test_from_env_reads_dotenv_file(tmp_path, monkeypatch):
    monkeypatch.delenv("FINANCE_WEEKLY_REPORTS_ENABLED", raising=False)
    env = tmp_path / ".env"
    env.write_text("FINANCE_WEEKLY_REPORTS_ENABLED=no\n", encoding="utf-8")
    try:
        assert EngineConfig.from_env(str(env)).weekly_reports_enabled is False
    finally:
        os.environ.pop("FINANCE_WEEKLY_REPORTS_ENABLED", None)


@pytest.mark.parametrize("changes", [
    {"budget_warning_threshold": Decimal("0.95")},
    {"budget_warning_threshold": Decimal("0")},
    {"daily_spending_medium": Decimal("300")},
    {"weekly_report_weekday": 7},
    {"weekly_report_hour": 24},
    {"evaluation_interval": 0},
])
def test_validate_rejects_inconsistent_values(changes):
    with pytest.raises(ConfigurationInvalid):
        EngineConfig(**changes).validate()


def test_with_toggles_keeps_thresholds():
    config = EngineConfig(daily_spending_high=Decimal("500"))
    toggled = config.with_toggles(spending_alerts_enabled=False)
    assert toggled.spending_alerts_enabled is False
    assert toggled.daily_spending_high == Decimal("500")


def test_from_env_falls_back_to_defaults_on_inconsistent_thresholds(monkeypatch):
    monkeypatch.setenv("FINANCE_BUDGET_WARNING_THRESHOLD", "0.95")
    monkeypatch.setenv("FINANCE_SPENDING_ALERTS_ENABLED", "false")

    config = EngineConfig.from_env()

    assert config == EngineConfig()
