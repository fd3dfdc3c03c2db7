from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable

from payroll_coherence.calculator import (
    DEDUCTION_FIELDS,
    EARNINGS_FIELDS,
    ZERO,
    add_rounded,
    as_float,
    calculate_with_validation,
    to_decimal,
)
from payroll_coherence.coherence import CalculableRecord, components_of

PAYROLL_BOOK_COLUMNS = [
    "employee_id",
    "employee_name",
    "period",
    *EARNINGS_FIELDS,
    "total_earnings",
    *DEDUCTION_FIELDS,
    "total_deductions",
    "net_pay",
]

MONEY_COLUMNS = [*EARNINGS_FIELDS, "total_earnings", *DEDUCTION_FIELDS, "total_deductions", "net_pay"]


def period_label(year: int | None, month: int | None) -> str:
    if year is None or month is None:
        return ""
    return f"{year}-{month:02d}"


def build_payroll_book_rows(records: Iterable[CalculableRecord]) -> list[dict[str, Any]]:
    """
    One row per liquidation plus a closing TOTAL row.

    Totals always come from calculate_with_validation so that an exported book
    shows exactly what the API returns for the same liquidations.
    """
    rows: list[dict[str, Any]] = []
    running: dict[str, Decimal] = {column: ZERO for column in MONEY_COLUMNS}

    for record in records:
        components = components_of(record)
        result = calculate_with_validation(components)
        amounts: dict[str, Decimal] = {name: to_decimal(getattr(components, name)) for name in EARNINGS_FIELDS}
        amounts.update({name: to_decimal(getattr(components, name)) for name in DEDUCTION_FIELDS})
        amounts["total_earnings"] = result.total_earnings
        amounts["total_deductions"] = result.total_deductions
        amounts["net_pay"] = result.net_pay

        for column in MONEY_COLUMNS:
            running[column] = add_rounded(running[column], amounts[column])

        rows.append(
            {
                "employee_id": components.employee_id,
                "employee_name": components.employee_name,
                "period": period_label(components.period_year, components.period_month),
                **{column: as_float(amounts[column]) for column in MONEY_COLUMNS},
            }
        )

    rows.append(
        {
            "employee_id": "TOTAL",
            "employee_name": f"{len(rows)} liquidations",
            "period": "",
            **{column: as_float(running[column]) for column in MONEY_COLUMNS},
        }
    )
    return rows
