from datetime import datetime
from typing import Callable, Iterable, Optional

from gastos.domain import Expense

Predicate = Callable[[Expense], bool]


def local_time(ts: datetime) -> datetime:
    """Return ``ts`` on the observer's local calendar.

    Naive timestamps are taken to be local already.
    """
    if ts.tzinfo is None:
        return ts
    return ts.astimezone()


def by_category(cat_id: str) -> Predicate:
    def _filter(e: Expense) -> bool:
        return e.category == cat_id

    return _filter


def by_user(user_id: str) -> Predicate:
    def _filter(e: Expense) -> bool:
        return e.user_id == user_id

    return _filter


def by_necessity(necessary: bool) -> Predicate:
    def _filter(e: Expense) -> bool:
        return e.necessary is necessary

    return _filter


def in_period(month: int, year: int) -> Predicate:
    # calendar month equality, not a rolling window
    def _filter(e: Expense) -> bool:
        ts = local_time(e.date)
        return ts.month == month and ts.year == year

    return _filter


def filter_by_period(
    records: Iterable[Expense], month: int, year: int, user_id: Optional[str] = None
) -> tuple[Expense, ...]:
    """Records whose occurrence falls in (month, year), optionally for one user.

    Input order is preserved. A month outside 1..12 simply matches nothing.
    """
    preds = [in_period(month, year)]
    if user_id is not None:
        preds.append(by_user(user_id))
    return tuple(e for e in records if all(p(e) for p in preds))
