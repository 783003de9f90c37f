from datetime import datetime, timedelta, timezone

from gastos.domain import Expense
from gastos.filters import (
    by_category,
    by_necessity,
    by_user,
    filter_by_period,
    in_period,
    local_time,
)


def make_exp(id, ts, user_id="u1", category="comida", necessary=False):
    return Expense(id=id, amount=10, category=category, date=ts, necessary=necessary,
                   user_id=user_id, user_name="Ana")


def test_by_category():
    e1 = make_exp("e1", datetime(2024, 5, 1), category="comida")
    e2 = make_exp("e2", datetime(2024, 5, 2), category="ocio")
    result = list(filter(by_category("comida"), [e1, e2]))
    assert [e.id for e in result] == ["e1"]


def test_by_user_and_necessity():
    e1 = make_exp("e1", datetime(2024, 5, 1), user_id="u1", necessary=True)
    e2 = make_exp("e2", datetime(2024, 5, 1), user_id="u2")
    assert [e.id for e in filter(by_user("u2"), [e1, e2])] == ["e2"]
    assert [e.id for e in filter(by_necessity(True), [e1, e2])] == ["e1"]


def test_in_period_uses_calendar_month_not_rolling_window():
    last_second = make_exp("e1", datetime(2024, 2, 29, 23, 59, 59))
    first_second = make_exp("e2", datetime(2024, 3, 1, 0, 0, 0))
    march = in_period(3, 2024)
    assert not march(last_second)
    assert march(first_second)


def test_in_period_checks_year():
    assert not in_period(3, 2024)(make_exp("e1", datetime(2023, 3, 10)))


def test_filter_by_period_preserves_order_and_filters_user():
    records = (
        make_exp("a", datetime(2024, 3, 20), user_id="u1"),
        make_exp("b", datetime(2024, 2, 20), user_id="u1"),
        make_exp("c", datetime(2024, 3, 2), user_id="u2"),
        make_exp("d", datetime(2024, 3, 1), user_id="u1"),
    )
    assert [e.id for e in filter_by_period(records, 3, 2024)] == ["a", "c", "d"]
    assert [e.id for e in filter_by_period(records, 3, 2024, "u1")] == ["a", "d"]


def test_filter_by_period_out_of_range_is_empty():
    records = (make_exp("a", datetime(2024, 3, 20)),)
    assert filter_by_period(records, 13, 2024) == ()
    assert filter_by_period(records, 0, 2024) == ()
    assert filter_by_period((), 3, 2024) == ()


def test_local_time_converts_aware_timestamps():
    naive = datetime(2024, 3, 1, 12, 0)
    assert local_time(naive) is naive

    aware = datetime(2024, 3, 1, 12, 0, tzinfo=timezone(timedelta(hours=5)))
    converted = local_time(aware)
    assert converted == aware
    assert converted.tzinfo is not None
