from dataclasses import dataclass
from datetime import datetime
from typing import Optional

DEFAULT_USER_NAME = "Usuario"


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    emoji: str
    color: str


# canonical display order
CATEGORIES: tuple[Category, ...] = (
    Category("comida", "Comida", "🍔", "#f97316"),
    Category("transporte", "Transporte", "🚗", "#3b82f6"),
    Category("servicios", "Servicios", "💡", "#eab308"),
    Category("compras", "Compras", "🛒", "#a855f7"),
    Category("salud", "Salud", "🏥", "#ef4444"),
    Category("ocio", "Ocio", "🎮", "#ec4899"),
    Category("otros", "Otros", "📦", "#6b7280"),
)

CATEGORY_IDS = frozenset(c.id for c in CATEGORIES)


@dataclass(frozen=True)
class Expense:
    id: str
    amount: float        # always > 0
    category: str        # may be outside CATEGORY_IDS for legacy rows
    date: datetime       # occurrence timestamp
    necessary: bool
    user_id: str
    user_name: str = DEFAULT_USER_NAME
    description: str = ""


@dataclass(frozen=True)
class RecurringExpense:
    id: str
    amount: float
    category: str
    day_of_month: int    # 1..28, valid in every month
    necessary: bool
    user_id: str
    user_name: str = DEFAULT_USER_NAME
    description: str = ""
    active: bool = True


# one budget per calendar month, shared by every user
@dataclass(frozen=True)
class Budget:
    id: str
    amount: float
    month: int  # 1..12
    year: int


@dataclass(frozen=True)
class Profile:
    id: str
    name: str
    created_at: datetime


@dataclass(frozen=True)
class Session:
    user_id: str
    name: str
    email: str


@dataclass(frozen=True)
class FilterSelection:
    month: int                     # 1..12
    year: int
    user_id: Optional[str] = None  # None means every user

    @classmethod
    def normalized(
        cls, month: int, year: int, user_id: Optional[str] = None, zero_based: bool = False
    ) -> "FilterSelection":
        """Build a selection from either a 0..11 or a 1..12 month value."""
        return cls(month=month + 1 if zero_based else month, year=year, user_id=user_id)

    @classmethod
    def current(cls, now: Optional[datetime] = None, user_id: Optional[str] = None) -> "FilterSelection":
        now = now or datetime.now()
        return cls(month=now.month, year=now.year, user_id=user_id)
