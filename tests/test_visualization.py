from datetime import date, datetime

from gastos.aggregation import UserRef, by_category, by_user, daily_series, trailing_months
from gastos.domain import Expense
from gastos.visualization import category_pie, daily_line, trailing_bar, user_bar, user_colors


def make_exp(id, amount, category, ts, user_id="u1", user_name="Ana"):
    return Expense(id=id, amount=amount, category=category, date=ts, necessary=False,
                   user_id=user_id, user_name=user_name)


RECORDS = (
    make_exp("e1", 100, "comida", datetime(2024, 3, 5)),
    make_exp("e2", 50, "ocio", datetime(2024, 3, 20), user_id="u2", user_name="Luis"),
)


def test_empty_inputs_give_placeholder_figures():
    for fig in (category_pie([]), daily_line([]), user_bar([]),
                trailing_bar(trailing_months((), 6, anchor=date(2024, 3, 1)))):
        assert fig.layout.title.text == "Sin datos"
        assert len(fig.data) == 0


def test_category_pie_uses_category_colors():
    fig = category_pie(by_category(RECORDS))
    assert len(fig.data) == 1
    assert list(fig.data[0].values) == [100, 50]
    assert "#f97316" in list(fig.data[0].marker.colors)


def test_daily_line_points():
    fig = daily_line(daily_series(RECORDS))
    assert list(fig.data[0].x) == [5, 20]
    assert list(fig.data[0].y) == [100, 50]


def test_trailing_bar_labels():
    fig = trailing_bar(trailing_months(RECORDS, 3, anchor=date(2024, 3, 1)))
    assert list(fig.data[0].x) == ["Ene 24", "Feb 24", "Mar 24"]


def test_user_colors_are_stable_across_periods():
    users = [UserRef("u1", "Ana"), UserRef("u2", "Luis")]
    only_luis = by_user(RECORDS[1:], users)
    fig = user_bar(only_luis, users)
    assert list(fig.data[0].marker.color) == [user_colors(users)["u2"]]
