from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Generic, TypeVar

from engine.calendar import parse_month_key
from engine.domain import Budget, Goal, RecurringRule

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_some(self) -> bool:
        pass


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Some(f(self._value))

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_some(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Some({self._value})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Nothing()

    def get_or_else(self, default: T) -> T:
        return default

    def is_some(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):

    @abstractmethod
    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    @abstractmethod
    def get_error(self) -> E:
        pass

    def is_left(self) -> bool:
        return not self.is_right()


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_right(self) -> bool:
        return True

    def get_error(self) -> E:
        raise ValueError("Cannot get error from Right")

    def __repr__(self) -> str:
        return f"Right({self._value})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return Left(self._error)

    def get_or_else(self, default: T) -> T:
        return default

    def is_right(self) -> bool:
        return False

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def days_until(goal: Goal, now: datetime) -> Maybe[int]:
    """Whole days from now to the goal's target date, floored."""
    target = Some(goal.target_date) if goal.target_date is not None else Nothing()
    return target.map(lambda d: (d - now) // timedelta(days=1))


def _positive_limit(b: Budget) -> Either[dict, Budget]:
    if b.monthly_limit <= 0:
        return Left({
            "error": "non_positive_limit",
            "message": f"Budget for {b.category_name} has limit {b.monthly_limit}",
            "category": b.category_name,
            "limit": b.monthly_limit,
        })
    return Right(b)


def _known_month(b: Budget) -> Either[dict, Budget]:
    try:
        parse_month_key(b.month)
    except ValueError as e:
        return Left({
            "error": "invalid_month",
            "message": str(e),
            "category": b.category_name,
            "month": b.month,
        })
    return Right(b)


def validate_budget(b: Budget) -> Either[dict, Budget]:
    return _positive_limit(b).bind(_known_month)


def _active(r: RecurringRule) -> Either[dict, RecurringRule]:
    if not r.is_active:
        return Left({
            "error": "inactive_rule",
            "message": f"Recurring rule {r.id} is inactive",
            "rule_id": r.id,
        })
    return Right(r)


def _non_negative_amount(r: RecurringRule) -> Either[dict, RecurringRule]:
    if r.amount < 0:
        return Left({
            "error": "negative_amount",
            "message": f"Recurring rule {r.id} has negative amount {r.amount}",
            "rule_id": r.id,
            "amount": r.amount,
        })
    return Right(r)


def validate_rule(r: RecurringRule) -> Either[dict, RecurringRule]:
    return _active(r).bind(_non_negative_amount)


def _positive_target(g: Goal) -> Either[dict, Goal]:
    if g.target_amount <= 0:
        return Left({
            "error": "non_positive_target",
            "message": f"Goal {g.name} has target {g.target_amount}",
            "goal_id": g.id,
        })
    return Right(g)


def _saved_amount(g: Goal) -> Either[dict, Goal]:
    if g.current_amount < Decimal(0):
        return Left({
            "error": "negative_progress",
            "message": f"Goal {g.name} has negative saved amount",
            "goal_id": g.id,
        })
    return Right(g)


def validate_goal(g: Goal) -> Either[dict, Goal]:
    return _positive_target(g).bind(_saved_amount)
