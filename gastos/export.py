"""CSV and spreadsheet export of expense lists.

Both formats render the same rows: date, category name, amount with two
decimals, ``Sí``/``No`` necessity and the owner's display name.
"""

from __future__ import annotations

import io
from datetime import date
from typing import Iterable, Optional

import pandas as pd

from gastos.domain import Expense
from gastos.formatting import format_export_date
from gastos.functional import safe_category

CSV_HEADERS = ["Fecha", "Categoría", "Monto", "Necesario", "Usuario"]
DESCRIPTION_HEADER = "Descripción"


def expenses_to_frame(expenses: Iterable[Expense], include_description: bool = False) -> pd.DataFrame:
    columns = CSV_HEADERS + ([DESCRIPTION_HEADER] if include_description else [])
    rows = []
    for e in expenses:
        row = [
            format_export_date(e.date),
            safe_category(e.category).map(lambda cat: cat.name).get_or_else(""),
            f"{e.amount:.2f}",
            "Sí" if e.necessary else "No",
            e.user_name,
        ]
        if include_description:
            row.append(e.description)
        rows.append(row)
    return pd.DataFrame(rows, columns=columns, dtype=object)


def expenses_to_csv(expenses: Iterable[Expense], include_description: bool = False) -> str:
    # records end in CRLF, so fields holding either character come out quoted
    text = expenses_to_frame(expenses, include_description).to_csv(index=False, lineterminator="\r\n")
    return text[: -len("\r\n")]


def expenses_to_excel(expenses: Iterable[Expense], include_description: bool = False) -> bytes:
    frame = expenses_to_frame(expenses, include_description)
    buffer = io.BytesIO()
    frame.to_excel(buffer, index=False, sheet_name="Gastos", engine="openpyxl")
    return buffer.getvalue()


def export_filename(extension: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"gastos_{today.isoformat()}.{extension}"
