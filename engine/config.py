import logging
import os
from dataclasses import dataclass, fields, replace
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

from engine.errors import ConfigurationInvalid

logger = logging.getLogger(__name__)

ENV_PREFIX = "FINANCE_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class EngineConfig:
    budget_alerts_enabled: bool = True
    goal_reminders_enabled: bool = True
    spending_alerts_enabled: bool = True
    weekly_reports_enabled: bool = True

    budget_warning_threshold: Decimal = Decimal("0.8")
    budget_critical_threshold: Decimal = Decimal("0.9")
    daily_spending_medium: Decimal = Decimal("100")
    daily_spending_high: Decimal = Decimal("200")

    weekly_report_weekday: int = 0  # Monday
    weekly_report_hour: int = 9
    evaluation_interval: float = 3600.0  # seconds between timer passes
    currency_symbol: str = "$"

    def validate(self) -> "EngineConfig":
        if not (0 < self.budget_warning_threshold <= self.budget_critical_threshold):
            raise ConfigurationInvalid(
                f"budget thresholds must satisfy 0 < warning <= critical, got "
                f"{self.budget_warning_threshold} / {self.budget_critical_threshold}"
            )
        if not (0 <= self.daily_spending_medium <= self.daily_spending_high):
            raise ConfigurationInvalid(
                f"daily spending limits must satisfy 0 <= medium <= high, got "
                f"{self.daily_spending_medium} / {self.daily_spending_high}"
            )
        if not 0 <= self.weekly_report_weekday <= 6:
            raise ConfigurationInvalid(f"weekly_report_weekday out of range: {self.weekly_report_weekday}")
        if not 0 <= self.weekly_report_hour <= 23:
            raise ConfigurationInvalid(f"weekly_report_hour out of range: {self.weekly_report_hour}")
        if self.evaluation_interval <= 0:
            raise ConfigurationInvalid(f"evaluation_interval must be positive: {self.evaluation_interval}")
        return self

    def with_toggles(self, **toggles: bool) -> "EngineConfig":
        return replace(self, **toggles)

    @classmethod
    def from_env(cls, env_file: str | None = None) -> "EngineConfig":
        """Build a config from FINANCE_* environment variables (and an optional .env file).

        Values that cannot be parsed are logged and left at their defaults.
        A combination that fails ``validate()`` falls back to the defaults.
        """
        load_dotenv(env_file)
        defaults = cls()
        values = {}
        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            default = getattr(defaults, f.name)
            try:
                values[f.name] = _coerce(raw, default)
            except ValueError:
                logger.warning("Ignoring invalid value %r for %s%s", raw, ENV_PREFIX, f.name.upper())
        try:
            return cls(**values).validate()
        except ConfigurationInvalid as e:
            logger.warning("Environment configuration rejected, using defaults: %s", e)
            return defaults


def _coerce(raw: str, default):
    text = raw.strip()
    if isinstance(default, bool):
        if text.lower() in _TRUE:
            return True
        if text.lower() in _FALSE:
            return False
        raise ValueError(raw)
    if isinstance(default, Decimal):
        try:
            return Decimal(text)
        except InvalidOperation as e:
            raise ValueError(raw) from e
    if isinstance(default, int):
        return int(text)
    if isinstance(default, float):
        return float(text)
    return text
