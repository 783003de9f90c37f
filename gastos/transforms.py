import json
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from gastos.domain import Budget, Expense, RecurringExpense

EDITABLE_EXPENSE_FIELDS = frozenset({"amount", "category", "necessary", "description"})


def load_seed(path: str) -> Dict[str, List[Dict[str, Any]]]:
    """Read a JSON seed file with ``profiles``, ``expenses``, ``recurring`` and ``budgets`` rows.

    Rows are returned untyped; they go through the parse boundary in
    :mod:`gastos.functional` before anything else sees them.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return {key: list(data.get(key, [])) for key in ("profiles", "expenses", "recurring", "budgets")}


def add_expense(records: Tuple[Expense, ...], e: Expense) -> Tuple[Expense, ...]:
    return records + (e,)


def update_expense(records: Tuple[Expense, ...], expense_id: str, **fields: Any) -> Tuple[Expense, ...]:
    # occurrence date and owner are fixed at creation
    illegal = set(fields) - EDITABLE_EXPENSE_FIELDS
    if illegal:
        raise ValueError(f"Cannot edit expense fields: {', '.join(sorted(illegal))}")
    return tuple(replace(e, **fields) if e.id == expense_id else e for e in records)


def remove_expense(records: Tuple[Expense, ...], expense_id: str) -> Tuple[Expense, ...]:
    return tuple(filter(lambda e: e.id != expense_id, records))


def newest_first(records: Tuple[Expense, ...]) -> Tuple[Expense, ...]:
    return tuple(sorted(records, key=lambda e: e.date.timestamp(), reverse=True))


def find_budget(budgets: Tuple[Budget, ...], month: int, year: int) -> Optional[Budget]:
    return next((b for b in budgets if b.month == month and b.year == year), None)


def upsert_budget(budgets: Tuple[Budget, ...], budget: Budget) -> Tuple[Budget, ...]:
    """Replace the budget for ``budget``'s month, or append it if there is none."""
    existing = find_budget(budgets, budget.month, budget.year)
    if existing is None:
        return budgets + (budget,)
    return tuple(
        replace(b, amount=budget.amount) if b is existing else b
        for b in budgets
    )


def deactivate_template(
    templates: Tuple[RecurringExpense, ...], template_id: str
) -> Tuple[RecurringExpense, ...]:
    return tuple(
        replace(t, active=False) if t.id == template_id else t
        for t in templates
    )


def active_templates(templates: Tuple[RecurringExpense, ...]) -> Tuple[RecurringExpense, ...]:
    return tuple(filter(lambda t: t.active, templates))
