from datetime import datetime, timezone

from gastos.domain import DEFAULT_USER_NAME
from gastos.functional import (
    Left,
    Nothing,
    Right,
    Some,
    parse_amount,
    parse_budget_row,
    parse_expense_row,
    parse_expense_rows,
    parse_recurring_row,
    safe_category,
)


def test_maybe_map_and_bind():
    assert Some(5).map(lambda x: x * 2).get_or_else(0) == 10
    assert Nothing().map(lambda x: x * 2).get_or_else(0) == 0
    assert Some(2).bind(lambda x: Nothing() if x == 0 else Some(10 // x)) == Some(5)
    assert Some(0).bind(lambda x: Nothing() if x == 0 else Some(10 // x)).is_none()


def test_either_map_and_bind():
    assert Right(5).map(lambda x: x * 2).get_or_else(0) == 10
    left = Left("error").map(lambda x: x * 2)
    assert left.is_left()
    assert left.get_error() == "error"
    assert Right(0).bind(lambda x: Left("div") if x == 0 else Right(1)).get_error() == "div"


def test_safe_category():
    assert safe_category("comida").get_or_else(None).name == "Comida"
    assert safe_category("ocio").map(lambda cat: cat.color) == Some("#ec4899")
    assert safe_category("mascotas").is_none()


def test_parse_amount_accepts_comma_decimal():
    assert parse_amount("12,50") == Right(12.5)
    assert parse_amount(" 7.25 ") == Right(7.25)
    assert parse_amount(3) == Right(3.0)


def test_parse_amount_rejects_bad_values():
    for value in ["", "abc", "0", "-4", "nan", "inf", None, True, 0, -1.5, float("nan"), [1]]:
        result = parse_amount(value)
        assert result.is_left(), value
        assert result.get_error()["error"] == "invalid_amount"


def test_parse_expense_row_maps_profile_name():
    row = {
        "id": 7,
        "amount": "45.5",
        "category": "salud",
        "date": "2024-03-05T10:00:00Z",
        "necessary": True,
        "user_id": "u1",
        "profiles": {"name": "Ana"},
    }
    expense = parse_expense_row(row).get_or_else(None)
    assert expense.id == "7"
    assert expense.amount == 45.5
    assert expense.date == datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)
    assert expense.user_name == "Ana"
    assert expense.description == ""


def test_parse_expense_row_defaults_missing_profile():
    row = {"id": 1, "amount": 10, "category": "comida", "date": "2024-03-05T10:00:00", "user_id": "u1",
           "profiles": None}
    assert parse_expense_row(row).get_or_else(None).user_name == DEFAULT_USER_NAME


def test_parse_expense_row_keeps_unknown_category():
    row = {"id": 1, "amount": 10, "category": "mascotas", "date": "2024-03-05T10:00:00", "user_id": "u1"}
    assert parse_expense_row(row).get_or_else(None).category == "mascotas"


def test_parse_expense_row_rejects_bad_date_and_amount():
    bad_date = {"id": 1, "amount": 10, "category": "comida", "date": "ayer", "user_id": "u1"}
    bad_amount = {"id": 2, "amount": "NaN", "category": "comida", "date": "2024-03-05", "user_id": "u1"}
    assert parse_expense_row(bad_date).get_error()["error"] == "invalid_date"
    assert parse_expense_row(bad_amount).get_error()["error"] == "invalid_amount"


def test_parse_expense_rows_drops_malformed(caplog):
    rows = [
        {"id": 1, "amount": 10, "category": "comida", "date": "2024-03-05T10:00:00", "user_id": "u1"},
        {"id": 2, "amount": float("inf"), "category": "comida", "date": "2024-03-05T10:00:00", "user_id": "u1"},
        {"amount": 10, "category": "comida", "date": "2024-03-05T10:00:00", "user_id": "u1"},
    ]
    with caplog.at_level("WARNING", logger="gastos.functional"):
        parsed = parse_expense_rows(rows)
    assert [e.id for e in parsed] == ["1"]
    assert len([r for r in caplog.records if "Dropping" in r.getMessage()]) == 2


def test_parse_recurring_row_validates_day():
    row = {"id": 1, "amount": 10, "category": "servicios", "day_of_month": 15, "user_id": "u1", "active": False}
    template = parse_recurring_row(row).get_or_else(None)
    assert template.day_of_month == 15
    assert template.active is False
    assert parse_recurring_row({**row, "day_of_month": 31}).get_error()["error"] == "invalid_day"


def test_parse_budget_row():
    budget = parse_budget_row({"amount": 500, "month": 3, "year": 2024}).get_or_else(None)
    assert (budget.id, budget.amount, budget.month, budget.year) == ("2024-03", 500, 3, 2024)
    assert parse_budget_row({"amount": 500, "month": 13, "year": 2024}).is_left()

