"""Screen state for the presentation layer.

The whole screen is one immutable :class:`ScreenState`; every user action is
an action object and :func:`reduce` returns the next state.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from gastos.aggregation import shift_month
from gastos.domain import FilterSelection


class View(str, Enum):
    ADD = "add"
    LIST = "list"
    REPORTS = "reports"


@dataclass(frozen=True)
class FilterState:
    month: int
    year: int
    user_id: Optional[str] = None

    def selection(self) -> FilterSelection:
        return FilterSelection(self.month, self.year, self.user_id)


@dataclass(frozen=True)
class ScreenState:
    view: View
    filters: FilterState


@dataclass(frozen=True)
class Navigate:
    view: View


@dataclass(frozen=True)
class SelectMonth:
    month: int
    year: int


@dataclass(frozen=True)
class SelectUser:
    user_id: Optional[str]


@dataclass(frozen=True)
class PreviousMonth:
    pass


@dataclass(frozen=True)
class NextMonth:
    pass


Action = Union[Navigate, SelectMonth, SelectUser, PreviousMonth, NextMonth]


def initial_state(now: Optional[datetime] = None) -> ScreenState:
    now = now or datetime.now()
    return ScreenState(view=View.ADD, filters=FilterState(now.month, now.year))


def _step_month(state: ScreenState, offset: int) -> ScreenState:
    month, year = shift_month(state.filters.month, state.filters.year, offset)
    return replace(state, filters=replace(state.filters, month=month, year=year))


def reduce(state: ScreenState, action: Action) -> ScreenState:
    if isinstance(action, Navigate):
        return replace(state, view=View(action.view))
    if isinstance(action, SelectMonth):
        if not 1 <= action.month <= 12:
            raise ValueError(f"Month must be within 1..12, got {action.month}")
        return replace(state, filters=replace(state.filters, month=action.month, year=action.year))
    if isinstance(action, SelectUser):
        return replace(state, filters=replace(state.filters, user_id=action.user_id))
    if isinstance(action, PreviousMonth):
        return _step_month(state, -1)
    if isinstance(action, NextMonth):
        return _step_month(state, 1)
    raise TypeError(f"Unknown action {action!r}")
