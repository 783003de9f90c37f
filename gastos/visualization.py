"""Plotly figures for the report views.

Each function takes the output of the matching function in
:mod:`gastos.aggregation` and returns a ``plotly.graph_objects.Figure``
that Streamlit renders via ``st.plotly_chart``. Empty inputs give an empty
figure titled "Sin datos" rather than an error.
"""

from __future__ import annotations

from typing import Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from gastos.aggregation import CategoryTotal, DayTotal, MonthTotal, UserRef, UserTotal
from gastos.formatting import format_money

TEMPLATE = "plotly_dark"
USER_COLORS = px.colors.qualitative.Set2


def _empty(title: str = "Sin datos") -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title, template=TEMPLATE)
    return fig


def category_pie(totals: Sequence[CategoryTotal], title: str = "Distribución por categoría") -> go.Figure:
    """Pie chart of the period's spending per category.

    Parameters
    ----------
    totals : sequence of CategoryTotal
        Output of :func:`gastos.aggregation.by_category`; slices keep the
        category's own colour.
    title : str
        Chart title.
    """
    if not totals:
        return _empty()
    df = pd.DataFrame({
        "Categoría": [f"{ct.category.emoji} {ct.category.name}" for ct in totals],
        "Total": [ct.total for ct in totals],
        "Texto": [f"${format_money(ct.total)}" for ct in totals],
    })
    fig = px.pie(
        df,
        values="Total",
        names="Categoría",
        color="Categoría",
        color_discrete_map={f"{ct.category.emoji} {ct.category.name}": ct.category.color for ct in totals},
        custom_data=["Texto"],
        title=title,
        template=TEMPLATE,
    )
    fig.update_traces(
        textinfo="label+percent",
        sort=False,
        hovertemplate="%{label}: %{customdata[0]}<extra></extra>",
    )
    return fig


def daily_line(series: Sequence[DayTotal], title: str = "Gastos diarios") -> go.Figure:
    if not series:
        return _empty()
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=[d.day for d in series],
        y=[d.total for d in series],
        mode="lines+markers",
        line=dict(color="#10b981", width=2),
        name="Total",
    ))
    fig.update_layout(title=title, template=TEMPLATE, xaxis_title="Día", yaxis_title="Total",
                      margin=dict(t=40, b=10, l=10, r=10))
    return fig


def trailing_bar(series: Sequence[MonthTotal], title: str = "Comparación mensual") -> go.Figure:
    """Bar chart of the trailing-month series; empty when every month is zero."""
    if not any(m.total > 0 for m in series):
        return _empty()
    fig = px.bar(
        x=[f"{m.label} {m.year % 100:02d}" for m in series],
        y=[m.total for m in series],
        labels={"x": "Mes", "y": "Total"},
        title=title,
        template=TEMPLATE,
    )
    fig.update_traces(marker_color="#8b5cf6")
    return fig


def user_colors(users: Sequence[UserRef]) -> dict[str, str]:
    """Stable colour per user, keyed by position in the full-history user list."""
    return {u.user_id: USER_COLORS[i % len(USER_COLORS)] for i, u in enumerate(users)}


def user_bar(totals: Sequence[UserTotal], users: Sequence[UserRef] = (), title: str = "Gastos por usuario") -> go.Figure:
    if not totals:
        return _empty()
    colors = user_colors(users)
    fig = go.Figure(go.Bar(
        x=[u.name for u in totals],
        y=[u.total for u in totals],
        marker_color=[colors.get(u.user_id, USER_COLORS[0]) for u in totals],
    ))
    fig.update_layout(title=title, template=TEMPLATE, xaxis_title="Usuario", yaxis_title="Total")
    return fig
