"""Display formatting for amounts, dates and month names (es-AR conventions)."""

from datetime import datetime, timedelta
from typing import Optional, Union

MONTH_LABELS = ("Ene", "Feb", "Mar", "Abr", "May", "Jun", "Jul", "Ago", "Sep", "Oct", "Nov", "Dic")

MONTH_NAMES = (
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
)


def format_money(amount: Union[float, int], include_sign: bool = False) -> str:
    """Format an amount with ``.`` thousands and ``,`` decimals.

    Example:
        >>> format_money(1234.5)
        '1.234,50'
        >>> format_money(1234.5, include_sign=True)
        '$1.234,50'
    """
    formatted = f"{amount:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"${formatted}" if include_sign else formatted


def month_label(month: int) -> str:
    return MONTH_LABELS[month - 1]


def month_name(month: int, year: Optional[int] = None) -> str:
    name = MONTH_NAMES[month - 1]
    return f"{name} {year}" if year is not None else name


def format_relative_date(ts: datetime, now: Optional[datetime] = None) -> str:
    """"Hoy 14:05", "Ayer 09:10", otherwise "05/03 14:05"."""
    if ts.tzinfo is not None:
        ts = ts.astimezone()
    now = now or datetime.now()
    time = ts.strftime("%H:%M")
    if ts.date() == now.date():
        return f"Hoy {time}"
    if ts.date() == (now - timedelta(days=1)).date():
        return f"Ayer {time}"
    return f"{ts.strftime('%d/%m')} {time}"


def format_export_date(ts: datetime) -> str:
    if ts.tzinfo is not None:
        ts = ts.astimezone()
    return ts.strftime("%d/%m/%Y, %H:%M:%S")


def pluralize_expenses(n: int) -> str:
    return f"{n} gasto" if n == 1 else f"{n} gastos"
