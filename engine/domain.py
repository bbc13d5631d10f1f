from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class Frequency(str, Enum):
    WEEKLY = "Weekly"
    BIWEEKLY = "Bi-weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"

    @classmethod
    def parse(cls, label: str) -> "Frequency":
        # unknown labels are treated as monthly
        normalized = (label or "").strip().lower().replace("-", "").replace("_", "")
        for freq in cls:
            if freq.value.lower().replace("-", "") == normalized or freq.name.lower() == normalized:
                return freq
        return cls.MONTHLY


class AlertKind(str, Enum):
    BUDGET_ALERT = "BUDGET_ALERT"
    GOAL_REMINDER = "GOAL_REMINDER"
    GOAL_DEADLINE = "GOAL_DEADLINE"
    SPENDING_ALERT = "SPENDING_ALERT"
    WEEKLY_REPORT = "WEEKLY_REPORT"


@dataclass(frozen=True)
class Transaction:
    id: str
    amount: Decimal        # always >= 0, direction is in is_expense
    is_expense: bool
    category: str
    date: datetime
    note: Optional[str] = None
    recurring_id: Optional[str] = None  # rule that materialized it


@dataclass(frozen=True)
class Budget:
    id: str
    category_name: str
    monthly_limit: Decimal
    month: str  # "YYYY-MM"


@dataclass(frozen=True)
class Goal:
    id: str
    name: str
    target_amount: Decimal
    current_amount: Decimal
    category: str
    created_date: datetime
    target_date: Optional[datetime] = None
    is_completed: bool = False


@dataclass(frozen=True)
class RecurringRule:
    id: str
    amount: Decimal
    category: str
    is_expense: bool
    frequency: Frequency
    next_date: datetime
    note: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class AlertIntent:
    identifier: str
    kind: AlertKind
    title: str
    body: str
    payload: dict = field(default_factory=dict)
