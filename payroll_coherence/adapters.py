from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping

from payroll_coherence.calculator import (
    ZERO,
    ItemizedPayComponents,
    TotalsTriple,
    add_rounded,
    to_decimal,
)


@dataclass(frozen=True)
class LiquidationRecord:
    record_id: str
    components: ItemizedPayComponents
    stored: TotalsTriple


def amount(row: Mapping[str, Any], *keys: str) -> Decimal:
    total = ZERO
    for key in keys:
        total = add_rounded(total, to_decimal(row.get(key)))
    return total


def employee_identity(row: Mapping[str, Any]) -> tuple[str, str]:
    employee = row.get("employees") or {}
    rut = str(employee.get("rut") or "")
    name = f"{employee.get('first_name') or ''} {employee.get('last_name') or ''}".strip()
    return rut, name


def components_from_liquidation_row(row: Mapping[str, Any]) -> ItemizedPayComponents:
    """
    Map a stored liquidation row onto ItemizedPayComponents.

    This is the only place that knows the persistence column names. Legal
    (art. 50) gratification is folded into gratification and the food,
    transport and family allowances are folded into other_income.
    """
    rut, name = employee_identity(row)
    year = row.get("period_year")
    month = row.get("period_month")
    return ItemizedPayComponents(
        employee_id=rut,
        employee_name=name,
        period_year=int(year) if year is not None else None,
        period_month=int(month) if month is not None else None,
        base_salary=amount(row, "base_salary"),
        overtime=amount(row, "overtime_amount"),
        gratification=amount(row, "gratification", "legal_gratification_art50"),
        bonuses=amount(row, "bonuses"),
        commissions=amount(row, "commissions"),
        extra_hours=ZERO,
        other_income=amount(row, "food_allowance", "transport_allowance", "family_allowance"),
        pension_contribution=amount(row, "afp_amount"),
        pension_commission=amount(row, "afp_commission_amount"),
        health_contribution=amount(row, "health_amount"),
        unemployment_insurance=amount(row, "unemployment_amount"),
        income_tax=amount(row, "income_tax_amount"),
        loan_deductions=amount(row, "loan_deductions"),
        advance_payments=amount(row, "advance_payments"),
        voluntary_pension_savings=amount(row, "apv_amount"),
        other_deductions=amount(row, "other_deductions"),
    )


def stored_totals_from_row(row: Mapping[str, Any]) -> TotalsTriple:
    return TotalsTriple(
        total_earnings=to_decimal(row.get("total_gross_income")),
        total_deductions=to_decimal(row.get("total_deductions")),
        net_pay=to_decimal(row.get("net_salary")),
    )


def liquidation_record_from_row(row: Mapping[str, Any]) -> LiquidationRecord:
    return LiquidationRecord(
        record_id=str(row.get("id") or ""),
        components=components_from_liquidation_row(row),
        stored=stored_totals_from_row(row),
    )


def liquidation_records_from_rows(rows: Iterable[Mapping[str, Any]]) -> list[LiquidationRecord]:
    """Adapt every row, naming the offending liquidation when an amount is malformed."""
    records: list[LiquidationRecord] = []
    for row in rows:
        try:
            records.append(liquidation_record_from_row(row))
        except ValueError as exc:
            raise ValueError(f"Liquidation {row.get('id') or '<unknown>'}: {exc}") from exc
    return records
