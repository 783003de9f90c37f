"""Derived views over a snapshot of expense records.

Every function here is pure: the same records and arguments always give the
same output, nothing is cached and nothing is mutated, so the presentation
layer simply re-runs them whenever the snapshot or the filter selection
changes.
"""
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, NamedTuple, Optional, Sequence

from gastos.domain import CATEGORIES, Category, Expense
from gastos.filters import by_necessity, filter_by_period, local_time
from gastos.formatting import MONTH_LABELS

WARNING_THRESHOLD = 80.0
EXCEEDED_THRESHOLD = 100.0

STATUS_OK = "ok"
STATUS_WARNING = "warning"
STATUS_EXCEEDED = "exceeded"


class CategoryTotal(NamedTuple):
    category: Category
    total: float


class CategoryShare(NamedTuple):
    category: Category
    total: float
    percent: float


class UserRef(NamedTuple):
    user_id: str
    name: str


class UserTotal(NamedTuple):
    user_id: str
    name: str
    total: float


class DayTotal(NamedTuple):
    day: int
    total: float


class MonthTotal(NamedTuple):
    month: int
    year: int
    label: str
    total: float


@dataclass(frozen=True)
class BudgetUtilization:
    percent: float      # clamped to 100 for progress bars
    ratio: float        # unclamped percentage
    remaining: float    # negative once the budget is exceeded
    status: str

    @property
    def exceeded_by(self) -> float:
        return max(0.0, -self.remaining)


def is_countable(e: Expense) -> bool:
    """Legacy rows with a non-finite or non-positive amount never reach a sum."""
    amount = e.amount
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return False
    return math.isfinite(amount) and amount > 0


def total(records: Iterable[Expense]) -> float:
    return math.fsum(e.amount for e in records if is_countable(e))


def count(records: Iterable[Expense]) -> int:
    return sum(1 for _ in records)


def necessary_split(records: Iterable[Expense]) -> tuple[float, float]:
    records = tuple(records)
    overall = total(records)
    necessary = total(filter(by_necessity(True), records))
    # derived, so the two halves always add back up to the total
    return necessary, overall - necessary


def by_category(
    records: Iterable[Expense], categories: Sequence[Category] = CATEGORIES
) -> list[CategoryTotal]:
    buckets: dict[str, list[float]] = defaultdict(list)
    for e in records:
        if is_countable(e):
            buckets[e.category].append(e.amount)

    result = []
    for cat in categories:
        cat_total = math.fsum(buckets.get(cat.id, ()))
        if cat_total != 0:
            result.append(CategoryTotal(cat, cat_total))
    return result


def category_share(
    records: Iterable[Expense], categories: Sequence[Category] = CATEGORIES
) -> list[CategoryShare]:
    grouped = by_category(records, categories)
    grand = math.fsum(ct.total for ct in grouped)
    if grand == 0:
        return []
    return [CategoryShare(ct.category, ct.total, ct.total / grand * 100) for ct in grouped]


def known_users(records: Iterable[Expense]) -> list[UserRef]:
    """Distinct owners in first-appearance order.

    Feed this the full history, not a filtered period, so that a user keeps
    the same position (and chart colour) across every report.
    """
    seen: dict[str, str] = {}
    for e in records:
        if e.user_id not in seen:
            seen[e.user_id] = e.user_name
    return [UserRef(uid, name) for uid, name in seen.items()]


def by_user(records: Iterable[Expense], users: Sequence[UserRef]) -> list[UserTotal]:
    buckets: dict[str, list[float]] = defaultdict(list)
    for e in records:
        if is_countable(e):
            buckets[e.user_id].append(e.amount)

    result = []
    for user in users:
        user_total = math.fsum(buckets.get(user.user_id, ()))
        if user_total != 0:
            result.append(UserTotal(user.user_id, user.name, user_total))
    return result


def daily_series(records: Iterable[Expense]) -> list[DayTotal]:
    buckets: dict[int, list[float]] = defaultdict(list)
    for e in records:
        if is_countable(e):
            buckets[local_time(e.date).day].append(e.amount)
    return [DayTotal(day, math.fsum(buckets[day])) for day in sorted(buckets)]


def shift_month(month: int, year: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index % 12 + 1, index // 12


def trailing_months(
    records: Iterable[Expense],
    n: int = 6,
    anchor: Optional[date] = None,
    labels: Sequence[str] = MONTH_LABELS,
) -> list[MonthTotal]:
    """Per-month totals for the ``n`` months ending at ``anchor``, oldest first.

    The series covers every user; callers should not pass a user-filtered
    list here.
    """
    records = tuple(records)
    if anchor is None:
        anchor = datetime.now()
    elif isinstance(anchor, datetime):
        anchor = local_time(anchor)

    series = []
    for offset in range(-(n - 1), 1):
        month, year = shift_month(anchor.month, anchor.year, offset)
        month_total = total(filter_by_period(records, month, year))
        series.append(MonthTotal(month, year, labels[month - 1], month_total))
    return series


def budget_utilization(period_total: float, budget_amount: Optional[float]) -> Optional[BudgetUtilization]:
    """Compare spending against the month's budget.

    Returns ``None`` when no usable budget is set; the caller shows a "set a
    budget" prompt rather than a number in that case.
    """
    if budget_amount is None or isinstance(budget_amount, bool):
        return None
    if not math.isfinite(budget_amount) or budget_amount <= 0:
        return None

    ratio = period_total / budget_amount * 100
    if ratio >= EXCEEDED_THRESHOLD:
        status = STATUS_EXCEEDED
    elif ratio >= WARNING_THRESHOLD:
        status = STATUS_WARNING
    else:
        status = STATUS_OK

    return BudgetUtilization(
        percent=min(ratio, 100.0),
        ratio=ratio,
        remaining=budget_amount - period_total,
        status=status,
    )
