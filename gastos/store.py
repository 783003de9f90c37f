"""Record Store collaborators.

The aggregation layer only ever sees complete snapshots returned by
``fetch_expenses``; every write goes through the store, which publishes a
change event on its :class:`~gastos.events.EventBus` once the write is
committed.

Mutations report expected failures as ``Left({"error": ..., "message": ...})``
instead of raising. Fetches raise :class:`StoreError` so callers keep their
previous snapshot.
"""

from __future__ import annotations

import itertools
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Protocol, Tuple

from gastos import transforms
from gastos.domain import (
    CATEGORY_IDS,
    DEFAULT_USER_NAME,
    Budget,
    Expense,
    Profile,
    RecurringExpense,
)
from gastos.events import (
    BUDGETS_CHANGED,
    EXPENSES_CHANGED,
    TEMPLATES_CHANGED,
    EventBus,
    Handler,
)
from gastos.functional import (
    Either,
    Right,
    failure,
    parse_amount,
    parse_budget_rows,
    parse_expense_rows,
    parse_recurring_rows,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """A fetch could not be completed."""


class RecordStore(Protocol):
    events: EventBus

    def fetch_expenses(self) -> Tuple[Expense, ...]: ...

    def insert_expense(self, amount: Any, category: str, user_id: str, necessary: bool = False,
                       description: str = "", date: Optional[datetime] = None) -> Either[dict, Expense]: ...

    def update_expense(self, expense_id: str, **fields: Any) -> Either[dict, str]: ...

    def delete_expense(self, expense_id: str, hard: bool = False) -> Either[dict, str]: ...

    def fetch_templates(self, include_inactive: bool = False) -> Tuple[RecurringExpense, ...]: ...

    def insert_template(self, amount: Any, category: str, day_of_month: int, user_id: str,
                        necessary: bool = False, description: str = "") -> Either[dict, RecurringExpense]: ...

    def deactivate_template(self, template_id: str) -> Either[dict, str]: ...

    def fetch_budgets(self) -> Tuple[Budget, ...]: ...

    def upsert_budget(self, month: int, year: int, amount: Any) -> Either[dict, Budget]: ...

    def get_profile(self, user_id: str) -> Optional[Profile]: ...

    def insert_profile(self, user_id: str, name: str) -> Either[dict, Profile]: ...

    def get_credentials(self, email: str) -> Optional[Dict[str, str]]: ...

    def insert_credentials(self, user_id: str, email: str, password_hash: str) -> Either[dict, str]: ...

    def subscribe(self, name: str, handler: Handler): ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_category(category: str) -> Either[dict, str]:
    if category not in CATEGORY_IDS:
        return failure("unknown_category", f"Unknown category {category!r}", category=category)
    return Right(category)


def _check_day(day_of_month: Any) -> Either[dict, int]:
    if isinstance(day_of_month, bool) or not isinstance(day_of_month, int) or not 1 <= day_of_month <= 28:
        return failure("invalid_day", f"Day of month must be within 1..28, got {day_of_month!r}",
                       day_of_month=day_of_month)
    return Right(day_of_month)


def _check_period(month: Any, year: Any) -> Either[dict, Tuple[int, int]]:
    if not isinstance(month, int) or not 1 <= month <= 12 or not isinstance(year, int):
        return failure("invalid_period", f"Invalid budget period {month!r}/{year!r}", month=month, year=year)
    return Right((month, year))


def check_expense_edit(fields: Dict[str, Any]) -> Either[dict, Dict[str, Any]]:
    """Validate a partial expense update and return the cleaned field set."""
    illegal = set(fields) - transforms.EDITABLE_EXPENSE_FIELDS
    if illegal:
        return failure("illegal_fields", f"Cannot edit expense fields: {', '.join(sorted(illegal))}",
                       fields=sorted(illegal))
    if not fields:
        return failure("empty_update", "Nothing to update")

    cleaned = dict(fields)
    if "amount" in cleaned:
        amount = parse_amount(cleaned["amount"])
        if amount.is_left():
            return amount
        cleaned["amount"] = amount.get_or_else(None)
    if "category" in cleaned:
        category = _check_category(cleaned["category"])
        if category.is_left():
            return category
    if "necessary" in cleaned:
        cleaned["necessary"] = bool(cleaned["necessary"])
    if "description" in cleaned:
        cleaned["description"] = (cleaned["description"] or "").strip()
    return Right(cleaned)


class InMemoryStore:
    """Process-local store, used for demos and tests."""

    def __init__(self, events: Optional[EventBus] = None):
        self.events = events or EventBus()
        self._ids = itertools.count(1)
        self._expenses: Tuple[Expense, ...] = ()
        self._deleted: set[str] = set()
        self._templates: Tuple[RecurringExpense, ...] = ()
        self._budgets: Tuple[Budget, ...] = ()
        self._profiles: Dict[str, Profile] = {}
        self._credentials: Dict[str, Dict[str, str]] = {}

    @classmethod
    def from_seed(cls, path: str, events: Optional[EventBus] = None) -> "InMemoryStore":
        rows = transforms.load_seed(path)
        store = cls(events)
        for row in rows["profiles"]:
            created = parse_timestamp(row.get("created_at")).get_or_else(_utcnow())
            store._profiles[str(row["id"])] = Profile(str(row["id"]), row.get("name") or DEFAULT_USER_NAME, created)
        store._expenses = parse_expense_rows(rows["expenses"])
        store._templates = parse_recurring_rows(rows["recurring"])
        store._budgets = parse_budget_rows(rows["budgets"])
        numeric = [int(e.id) for e in store._expenses if e.id.isdigit()]
        store._ids = itertools.count(max(numeric, default=0) + 1)
        logger.info("Seeded in-memory store from %s: %d expenses", path, len(store._expenses))
        return store

    def subscribe(self, name: str, handler: Handler):
        return self.events.subscribe(name, handler)

    def _owner_name(self, user_id: str) -> str:
        profile = self._profiles.get(user_id)
        return profile.name if profile else DEFAULT_USER_NAME

    # expenses

    def fetch_expenses(self) -> Tuple[Expense, ...]:
        live = (e for e in self._expenses if e.id not in self._deleted)
        return transforms.newest_first(tuple(replace(e, user_name=self._owner_name(e.user_id)) for e in live))

    def insert_expense(self, amount, category, user_id, necessary=False, description="", date=None):
        def build(value: float) -> Either[dict, Expense]:
            return _check_category(category).map(lambda _: Expense(
                id=str(next(self._ids)),
                amount=value,
                category=category,
                date=date or _utcnow(),
                necessary=bool(necessary),
                user_id=user_id,
                user_name=self._owner_name(user_id),
                description=(description or "").strip(),
            ))

        result = parse_amount(amount).bind(build)
        if result.is_right():
            expense = result.get_or_else(None)
            self._expenses = transforms.add_expense(self._expenses, expense)
            self.events.publish(EXPENSES_CHANGED, {"type": "INSERT", "id": expense.id})
        return result

    def _live_expense(self, expense_id: str) -> Optional[Expense]:
        return next((e for e in self._expenses if e.id == expense_id and e.id not in self._deleted), None)

    def update_expense(self, expense_id, **fields):
        checked = check_expense_edit(fields)
        if checked.is_left():
            return checked
        if self._live_expense(expense_id) is None:
            return failure("not_found", f"Expense {expense_id} does not exist", id=expense_id)
        self._expenses = transforms.update_expense(self._expenses, expense_id, **checked.get_or_else({}))
        self.events.publish(EXPENSES_CHANGED, {"type": "UPDATE", "id": expense_id})
        return Right(expense_id)

    def delete_expense(self, expense_id, hard=False):
        if self._live_expense(expense_id) is None:
            return failure("not_found", f"Expense {expense_id} does not exist", id=expense_id)
        if hard:
            self._expenses = transforms.remove_expense(self._expenses, expense_id)
        else:
            self._deleted.add(expense_id)
        self.events.publish(EXPENSES_CHANGED, {"type": "DELETE", "id": expense_id})
        return Right(expense_id)

    # recurring templates

    def fetch_templates(self, include_inactive=False):
        templates = tuple(replace(t, user_name=self._owner_name(t.user_id)) for t in self._templates)
        return templates if include_inactive else transforms.active_templates(templates)

    def insert_template(self, amount, category, day_of_month, user_id, necessary=False, description=""):
        def build(value: float) -> Either[dict, RecurringExpense]:
            return (_check_category(category)
                    .bind(lambda _: _check_day(day_of_month))
                    .map(lambda day: RecurringExpense(
                        id=str(next(self._ids)),
                        amount=value,
                        category=category,
                        day_of_month=day,
                        necessary=bool(necessary),
                        user_id=user_id,
                        user_name=self._owner_name(user_id),
                        description=(description or "").strip(),
                    )))

        result = parse_amount(amount).bind(build)
        if result.is_right():
            template = result.get_or_else(None)
            self._templates = self._templates + (template,)
            self.events.publish(TEMPLATES_CHANGED, {"type": "INSERT", "id": template.id})
        return result

    def deactivate_template(self, template_id):
        if not any(t.id == template_id and t.active for t in self._templates):
            return failure("not_found", f"Active template {template_id} does not exist", id=template_id)
        self._templates = transforms.deactivate_template(self._templates, template_id)
        self.events.publish(TEMPLATES_CHANGED, {"type": "UPDATE", "id": template_id})
        return Right(template_id)

    # budgets

    def fetch_budgets(self):
        return self._budgets

    def upsert_budget(self, month, year, amount):
        def build(value: float) -> Either[dict, Budget]:
            return _check_period(month, year).map(
                lambda period: Budget(id=f"{period[1]:04d}-{period[0]:02d}", amount=value,
                                      month=period[0], year=period[1]))

        result = parse_amount(amount).bind(build)
        if result.is_right():
            self._budgets = transforms.upsert_budget(self._budgets, result.get_or_else(None))
            self.events.publish(BUDGETS_CHANGED, {"month": month, "year": year})
            result = Right(transforms.find_budget(self._budgets, month, year))
        return result

    # profiles and credentials

    def get_profile(self, user_id):
        return self._profiles.get(user_id)

    def insert_profile(self, user_id, name):
        if user_id in self._profiles:
            return failure("duplicate", f"Profile {user_id} already exists", id=user_id)
        profile = Profile(user_id, name, _utcnow())
        self._profiles[user_id] = profile
        return Right(profile)

    def get_credentials(self, email):
        return self._credentials.get(email.lower())

    def insert_credentials(self, user_id, email, password_hash):
        key = email.lower()
        if key in self._credentials:
            return failure("duplicate", f"An account for {email} already exists", email=email)
        self._credentials[key] = {"user_id": user_id, "email": key, "password_hash": password_hash}
        return Right(user_id)


SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS credentials (
    email TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    password_hash TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    amount REAL NOT NULL,
    category TEXT NOT NULL,
    date TEXT NOT NULL,
    necessary INTEGER NOT NULL DEFAULT 0,
    user_id TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    deleted INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS recurring_expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    amount REAL NOT NULL,
    category TEXT NOT NULL,
    day_of_month INTEGER NOT NULL CHECK (day_of_month BETWEEN 1 AND 28),
    necessary INTEGER NOT NULL DEFAULT 0,
    user_id TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS budgets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    amount REAL NOT NULL,
    month INTEGER NOT NULL CHECK (month BETWEEN 1 AND 12),
    year INTEGER NOT NULL,
    UNIQUE (month, year)
);

CREATE INDEX IF NOT EXISTS ix_expenses_date ON expenses (date);
CREATE INDEX IF NOT EXISTS ix_expenses_user ON expenses (user_id);
"""


class SqliteStore:
    """SQLite-backed store; one short-lived connection per operation."""

    def __init__(self, db_path: Path | str, events: Optional[EventBus] = None):
        self.db_path = Path(db_path)
        self.events = events or EventBus()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self.connect() as conn:
            conn.executescript(SCHEMA_SQL)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def subscribe(self, name: str, handler: Handler):
        return self.events.subscribe(name, handler)

    def _query(self, sql: str, params: tuple = ()) -> list[dict]:
        try:
            with self.connect() as conn:
                return [dict(row) for row in conn.execute(sql, params).fetchall()]
        except sqlite3.Error as exc:
            logger.error("Query failed: %s", exc)
            raise StoreError(str(exc)) from exc

    def _write(self, sql: str, params: tuple = ()) -> Either[dict, Dict[str, int]]:
        try:
            with self.connect() as conn:
                cursor = conn.execute(sql, params)
                return Right({"rowcount": cursor.rowcount, "lastrowid": cursor.lastrowid})
        except sqlite3.IntegrityError as exc:
            logger.warning("Write rejected: %s", exc)
            return failure("constraint", str(exc))
        except sqlite3.Error as exc:
            logger.error("Write failed: %s", exc)
            return failure("store_error", str(exc))

    # expenses

    def fetch_expenses(self) -> Tuple[Expense, ...]:
        rows = self._query(
            """
            SELECT e.id, e.amount, e.category, e.date, e.necessary, e.user_id,
                   e.description, p.name AS user_name
            FROM expenses e
            LEFT JOIN profiles p ON p.id = e.user_id
            WHERE e.deleted = 0
            ORDER BY e.date DESC
            """
        )
        # stored timestamps may carry different offsets, so order on the parsed values
        return transforms.newest_first(parse_expense_rows(rows))

    def insert_expense(self, amount, category, user_id, necessary=False, description="", date=None):
        checked = parse_amount(amount).bind(lambda value: _check_category(category).map(lambda _: value))
        if checked.is_left():
            return checked

        value = checked.get_or_else(None)
        ts = date or _utcnow()
        written = self._write(
            "INSERT INTO expenses (amount, category, date, necessary, user_id, description, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (value, category, ts.isoformat(), int(bool(necessary)), user_id,
             (description or "").strip(), _utcnow().isoformat()),
        )
        if written.is_left():
            return written

        expense_id = str(written.get_or_else(None)["lastrowid"])
        profile = self.get_profile(user_id)
        self.events.publish(EXPENSES_CHANGED, {"type": "INSERT", "id": expense_id})
        return Right(Expense(
            id=expense_id,
            amount=value,
            category=category,
            date=ts,
            necessary=bool(necessary),
            user_id=user_id,
            user_name=profile.name if profile else DEFAULT_USER_NAME,
            description=(description or "").strip(),
        ))

    def update_expense(self, expense_id, **fields):
        checked = check_expense_edit(fields)
        if checked.is_left():
            return checked

        cleaned = checked.get_or_else({})
        columns = sorted(cleaned)
        values = tuple(int(cleaned[c]) if c == "necessary" else cleaned[c] for c in columns)
        assignments = ", ".join(f"{c} = ?" for c in columns)
        written = self._write(
            f"UPDATE expenses SET {assignments} WHERE id = ? AND deleted = 0",
            values + (expense_id,),
        )
        return self._after_expense_write(written, "UPDATE", expense_id)

    def delete_expense(self, expense_id, hard=False):
        if hard:
            written = self._write("DELETE FROM expenses WHERE id = ? AND deleted = 0", (expense_id,))
        else:
            written = self._write("UPDATE expenses SET deleted = 1 WHERE id = ? AND deleted = 0", (expense_id,))
        return self._after_expense_write(written, "DELETE", expense_id)

    def _after_expense_write(self, written: Either, kind: str, expense_id: str) -> Either[dict, str]:
        if written.is_left():
            return written
        if written.get_or_else(None)["rowcount"] == 0:
            return failure("not_found", f"Expense {expense_id} does not exist", id=expense_id)
        self.events.publish(EXPENSES_CHANGED, {"type": kind, "id": str(expense_id)})
        return Right(str(expense_id))

    # recurring templates

    def fetch_templates(self, include_inactive=False):
        where = "" if include_inactive else "WHERE r.active = 1"
        rows = self._query(
            f"""
            SELECT r.*, p.name AS user_name
            FROM recurring_expenses r
            LEFT JOIN profiles p ON p.id = r.user_id
            {where}
            ORDER BY r.day_of_month, r.id
            """
        )
        return parse_recurring_rows(rows)

    def insert_template(self, amount, category, day_of_month, user_id, necessary=False, description=""):
        checked = (parse_amount(amount)
                   .bind(lambda value: _check_category(category).map(lambda _: value))
                   .bind(lambda value: _check_day(day_of_month).map(lambda _: value)))
        if checked.is_left():
            return checked

        value = checked.get_or_else(None)
        written = self._write(
            "INSERT INTO recurring_expenses (amount, category, day_of_month, necessary, user_id, description) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (value, category, day_of_month, int(bool(necessary)), user_id, (description or "").strip()),
        )
        if written.is_left():
            return written

        template_id = str(written.get_or_else(None)["lastrowid"])
        profile = self.get_profile(user_id)
        self.events.publish(TEMPLATES_CHANGED, {"type": "INSERT", "id": template_id})
        return Right(RecurringExpense(
            id=template_id,
            amount=value,
            category=category,
            day_of_month=day_of_month,
            necessary=bool(necessary),
            user_id=user_id,
            user_name=profile.name if profile else DEFAULT_USER_NAME,
            description=(description or "").strip(),
        ))

    def deactivate_template(self, template_id):
        written = self._write(
            "UPDATE recurring_expenses SET active = 0 WHERE id = ? AND active = 1", (template_id,)
        )
        if written.is_left():
            return written
        if written.get_or_else(None)["rowcount"] == 0:
            return failure("not_found", f"Active template {template_id} does not exist", id=template_id)
        self.events.publish(TEMPLATES_CHANGED, {"type": "UPDATE", "id": str(template_id)})
        return Right(str(template_id))

    # budgets

    def fetch_budgets(self):
        return parse_budget_rows(self._query("SELECT * FROM budgets ORDER BY year, month"))

    def upsert_budget(self, month, year, amount):
        checked = parse_amount(amount).bind(lambda value: _check_period(month, year).map(lambda _: value))
        if checked.is_left():
            return checked

        written = self._write(
            "INSERT INTO budgets (amount, month, year) VALUES (?, ?, ?) "
            "ON CONFLICT (month, year) DO UPDATE SET amount = excluded.amount",
            (checked.get_or_else(None), month, year),
        )
        if written.is_left():
            return written

        self.events.publish(BUDGETS_CHANGED, {"month": month, "year": year})
        try:
            budget = transforms.find_budget(self.fetch_budgets(), month, year)
        except StoreError as exc:
            return failure("store_error", str(exc))
        return Right(budget)

    # profiles and credentials

    def get_profile(self, user_id):
        rows = self._query("SELECT * FROM profiles WHERE id = ?", (user_id,))
        if not rows:
            return None
        row = rows[0]
        created = parse_timestamp(row["created_at"]).get_or_else(_utcnow())
        return Profile(row["id"], row["name"], created)

    def insert_profile(self, user_id, name):
        created = _utcnow()
        written = self._write(
            "INSERT INTO profiles (id, name, created_at) VALUES (?, ?, ?)",
            (user_id, name, created.isoformat()),
        )
        return written.map(lambda _: Profile(user_id, name, created))

    def get_credentials(self, email):
        rows = self._query("SELECT * FROM credentials WHERE email = ?", (email.lower(),))
        return rows[0] if rows else None

    def insert_credentials(self, user_id, email, password_hash):
        written = self._write(
            "INSERT INTO credentials (email, user_id, password_hash) VALUES (?, ?, ?)",
            (email.lower(), user_id, password_hash),
        )
        return written.map(lambda _: user_id)
