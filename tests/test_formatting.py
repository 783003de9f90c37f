from datetime import datetime

from gastos.formatting import (
    format_money,
    format_relative_date,
    month_label,
    month_name,
    pluralize_expenses,
)


def test_format_money():
    assert format_money(1234.5) == "1.234,50"
    assert format_money(0) == "0,00"
    assert format_money(1234567.891, include_sign=True) == "$1.234.567,89"


def test_month_labels():
    assert month_label(1) == "Ene"
    assert month_label(12) == "Dic"
    assert month_name(3, 2024) == "Marzo 2024"
    assert month_name(8) == "Agosto"


def test_format_relative_date():
    now = datetime(2024, 3, 10, 20, 0)
    assert format_relative_date(datetime(2024, 3, 10, 14, 5), now) == "Hoy 14:05"
    assert format_relative_date(datetime(2024, 3, 9, 9, 10), now) == "Ayer 09:10"
    assert format_relative_date(datetime(2024, 3, 5, 14, 5), now) == "05/03 14:05"
    assert format_relative_date(datetime(2024, 2, 29, 23, 0), datetime(2024, 3, 1, 8, 0)) == "Ayer 23:00"


def test_pluralize_expenses():
    assert pluralize_expenses(1) == "1 gasto"
    assert pluralize_expenses(0) == "0 gastos"
    assert pluralize_expenses(3) == "3 gastos"
