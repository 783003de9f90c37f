import logging
from datetime import date
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from gastos import aggregation as agg
from gastos.domain import CATEGORIES, Budget, Category, Expense, FilterSelection
from gastos.events import BUDGET_ALERT, EventBus, event_bus
from gastos.filters import filter_by_period
from gastos.functional import Either, parse_amount
from gastos.store import RecordStore
from gastos.transforms import find_budget

logger = logging.getLogger(__name__)

# (period_records, all_records, selection, acc) -> partial view model
Aggregator = Callable[[Tuple[Expense, ...], Tuple[Expense, ...], FilterSelection, Dict[str, Any]], Dict[str, Any]]


def period_totals(period, history, selection, acc):
    necessary, unnecessary = agg.necessary_split(period)
    return {
        "count": agg.count(period),
        "total": agg.total(period),
        "necessary": necessary,
        "unnecessary": unnecessary,
    }


def user_totals(period, history, selection, acc):
    return {"by_user": agg.by_user(period, agg.known_users(history))}


def daily_totals(period, history, selection, acc):
    return {"daily": agg.daily_series(period)}


class ReportService:
    """Builds the report view model for one filter selection.

    aggregators: sequence of functions taking
    (period_records, all_records, selection, acc) -> dict (partial results).
    Each runs on the output of the previous ones via ``acc``.
    """

    def __init__(
        self,
        categories: Sequence[Category] = CATEGORIES,
        window: int = 6,
        aggregators: Optional[Sequence[Aggregator]] = None,
    ):
        self.categories = tuple(categories)
        self.window = window
        self.aggregators = list(aggregators) if aggregators is not None else [
            period_totals,
            self.category_totals,
            user_totals,
            daily_totals,
        ]

    def category_totals(self, period, history, selection, acc):
        return {
            "by_category": agg.by_category(period, self.categories),
            "category_share": agg.category_share(period, self.categories),
        }

    def monthly_report(
        self,
        records: Sequence[Expense],
        selection: FilterSelection,
        budget_amount: Optional[float] = None,
        anchor: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Run every aggregator and return the report with intermediate steps.

        The trailing-month series and budget utilisation are whole-system
        figures, so they ignore ``selection.user_id``.
        """
        history = tuple(records)
        period = filter_by_period(history, selection.month, selection.year, selection.user_id)
        report: Dict[str, Any] = {
            "month": selection.month,
            "year": selection.year,
            "user_id": selection.user_id,
            "steps": [],
            "result": {},
        }

        acc: Dict[str, Any] = {}
        for aggregate in self.aggregators:
            out = aggregate(period, history, selection, acc)
            report["steps"].append({"aggregator": getattr(aggregate, "__name__", str(aggregate)), "output": out})
            acc.update(out)

        if anchor is None:
            anchor = date(selection.year, selection.month, 1) if 1 <= selection.month <= 12 else None
        acc["trailing"] = agg.trailing_months(history, self.window, anchor)

        household_total = agg.total(filter_by_period(history, selection.month, selection.year))
        acc["household_total"] = household_total
        acc["utilization"] = agg.budget_utilization(household_total, budget_amount)

        report["result"] = acc
        return report


class BudgetService:
    """Monthly budget lookups and updates on top of a record store."""

    def __init__(self, store: RecordStore, bus: EventBus = event_bus):
        self.store = store
        self.bus = bus

    def budget_for(self, month: int, year: int) -> Optional[Budget]:
        return find_budget(self.store.fetch_budgets(), month, year)

    def set_budget(self, month: int, year: int, amount: Any) -> Either[dict, Budget]:
        checked = parse_amount(amount)
        if checked.is_left():
            return checked
        result = self.store.upsert_budget(month, year, checked.get_or_else(None))
        if result.is_left():
            logger.warning("Could not save budget for %02d/%d: %s", month, year, result.get_error()["message"])
        return result

    def utilization(self, period_total: float, month: int, year: int) -> Optional[agg.BudgetUtilization]:
        budget = self.budget_for(month, year)
        return agg.budget_utilization(period_total, budget.amount if budget else None)

    def alerts(self, period_total: float, month: int, year: int) -> list[str]:
        budget = self.budget_for(month, year)
        results = self.bus.publish(BUDGET_ALERT, {
            "period_total": period_total,
            "budget_amount": budget.amount if budget else None,
        })
        return [r["alert"] for r in results if r and "alert" in r]
