import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Generic, Iterable, Mapping, TypeVar

from gastos.domain import (
    CATEGORIES,
    DEFAULT_USER_NAME,
    Budget,
    Category,
    Expense,
    RecurringExpense,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    def is_some(self) -> bool:
        return isinstance(self, Some)

    def is_none(self) -> bool:
        return not self.is_some()


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Some(f(self._value))

    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def __repr__(self) -> str:
        return f"Some({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Nothing()

    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        return Nothing()

    def get_or_else(self, default: T) -> T:
        return default

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):
    """Outcome of an operation that can fail in an expected way.

    ``Right`` carries the value, ``Left`` carries an error dict with at least
    ``error`` (a stable code) and ``message`` keys.
    """

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        pass

    @abstractmethod
    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def get_error(self) -> E:
        pass

    def is_right(self) -> bool:
        return isinstance(self, Right)

    def is_left(self) -> bool:
        return not self.is_right()


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return Right(f(self._value))

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def get_error(self) -> E:
        raise ValueError("Cannot get error from Right")

    def __repr__(self) -> str:
        return f"Right({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return Left(self._error)

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return Left(self._error)

    def get_or_else(self, default: T) -> T:
        return default

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def failure(error: str, message: str, **details: Any) -> Left:
    return Left({"error": error, "message": message, **details})


def safe_category(category_id: str, cats: tuple[Category, ...] = CATEGORIES) -> Maybe[Category]:
    for cat in cats:
        if cat.id == category_id:
            return Some(cat)
    return Nothing()


def parse_amount(value: Any) -> Either[dict, float]:
    """Coerce user or store input into a finite, strictly positive amount.

    Strings may use either ``,`` or ``.`` as the decimal separator.
    """
    if isinstance(value, bool) or value is None:
        return failure("invalid_amount", f"Amount {value!r} is not a number", amount=value)
    if isinstance(value, str):
        text = value.strip().replace(",", ".")
        try:
            amount = float(text)
        except ValueError:
            return failure("invalid_amount", f"Amount {value!r} is not a number", amount=value)
    elif isinstance(value, (int, float, Decimal)):
        amount = float(value)
    else:
        return failure("invalid_amount", f"Amount {value!r} is not a number", amount=value)

    if not math.isfinite(amount) or amount <= 0:
        return failure("invalid_amount", f"Amount must be a finite positive number, got {value!r}", amount=value)
    return Right(amount)


def parse_timestamp(value: Any) -> Either[dict, datetime]:
    if isinstance(value, datetime):
        return Right(value)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        # fromisoformat only learned the trailing Z in 3.11
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return Right(datetime.fromisoformat(text))
        except ValueError:
            pass
    return failure("invalid_date", f"Cannot parse timestamp {value!r}", date=value)


def _owner_name(row: Mapping[str, Any]) -> str:
    name = row.get("user_name")
    profile = row.get("profiles")
    if not name and isinstance(profile, Mapping):
        name = profile.get("name")
    return name or DEFAULT_USER_NAME


def parse_expense_row(row: Mapping[str, Any]) -> Either[dict, Expense]:
    """Map an untyped store row into an ``Expense``.

    Unknown categories are kept; the aggregation layer skips them where a
    category key is needed.
    """
    if row.get("id") is None:
        return failure("missing_id", "Expense row has no id", row=dict(row))

    def build(amount: float) -> Either[dict, Expense]:
        return parse_timestamp(row.get("date")).map(lambda ts: Expense(
            id=str(row["id"]),
            amount=amount,
            category=str(row.get("category") or ""),
            date=ts,
            necessary=bool(row.get("necessary", False)),
            user_id=str(row.get("user_id") or ""),
            user_name=_owner_name(row),
            description=row.get("description") or "",
        ))

    return parse_amount(row.get("amount")).bind(build)


def parse_recurring_row(row: Mapping[str, Any]) -> Either[dict, RecurringExpense]:
    if row.get("id") is None:
        return failure("missing_id", "Recurring row has no id", row=dict(row))
    try:
        day = int(row.get("day_of_month"))
    except (TypeError, ValueError):
        day = 0
    if not 1 <= day <= 28:
        return failure("invalid_day", f"Day of month must be within 1..28, got {row.get('day_of_month')!r}",
                       day_of_month=row.get("day_of_month"))

    return parse_amount(row.get("amount")).map(lambda amount: RecurringExpense(
        id=str(row["id"]),
        amount=amount,
        category=str(row.get("category") or ""),
        day_of_month=day,
        necessary=bool(row.get("necessary", False)),
        user_id=str(row.get("user_id") or ""),
        user_name=_owner_name(row),
        description=row.get("description") or "",
        active=bool(row.get("active", True)),
    ))


def parse_budget_row(row: Mapping[str, Any]) -> Either[dict, Budget]:
    try:
        month = int(row.get("month"))
        year = int(row.get("year"))
    except (TypeError, ValueError):
        return failure("invalid_period", "Budget row has no usable month/year", row=dict(row))
    if not 1 <= month <= 12:
        return failure("invalid_period", f"Budget month must be within 1..12, got {month}", month=month)

    return parse_amount(row.get("amount")).map(lambda amount: Budget(
        id=str(row.get("id") or f"{year:04d}-{month:02d}"),
        amount=amount,
        month=month,
        year=year,
    ))


def _collect(rows: Iterable[Mapping[str, Any]], parse: Callable[[Mapping[str, Any]], Either]) -> tuple:
    parsed = []
    for row in rows:
        result = parse(row)
        if result.is_right():
            parsed.append(result.get_or_else(None))
        else:
            logger.warning("Dropping malformed row: %s", result.get_error()["message"])
    return tuple(parsed)


def parse_expense_rows(rows: Iterable[Mapping[str, Any]]) -> tuple[Expense, ...]:
    return _collect(rows, parse_expense_row)


def parse_recurring_rows(rows: Iterable[Mapping[str, Any]]) -> tuple[RecurringExpense, ...]:
    return _collect(rows, parse_recurring_row)


def parse_budget_rows(rows: Iterable[Mapping[str, Any]]) -> tuple[Budget, ...]:
    return _collect(rows, parse_budget_row)

