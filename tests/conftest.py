import pytest
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable

from payroll_coherence.calculator import ItemizedPayComponents

FIXED_NOW = datetime(2025, 8, 31, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock that always returns the same instant, for stable last_updated stamps."""
    return lambda: FIXED_NOW


@pytest.fixture
def example_components() -> ItemizedPayComponents:
    """Company-wide August totals: earnings 3,536,581 and deductions 662,000."""
    return ItemizedPayComponents(
        employee_id="76.123.456-7",
        employee_name="August payroll",
        period_year=2025,
        period_month=8,
        base_salary=Decimal("2772923"),
        gratification=Decimal("713366"),
        other_income=Decimal("50292"),
        pension_contribution=Decimal("399034"),
        health_contribution=Decimal("242048"),
        unemployment_insurance=Decimal("20918"),
    )


@pytest.fixture
def make_liquidation_row() -> Callable[..., dict[str, Any]]:
    """Factory for a coherent payroll_liquidations row (1,050,000 / 140,800 / 909,200)."""

    def _make(**overrides: Any) -> dict[str, Any]:
        row: dict[str, Any] = {
            "id": "liq-1",
            "period_year": 2025,
            "period_month": 8,
            "employees": {"rut": "12.345.678-9", "first_name": "Ana", "last_name": "Rojas"},
            "base_salary": 800000,
            "gratification": 200000,
            "food_allowance": 30000,
            "transport_allowance": 20000,
            "afp_amount": 80000,
            "health_amount": 56000,
            "unemployment_amount": 4800,
            "total_gross_income": 1050000,
            "total_deductions": 140800,
            "net_salary": 909200,
        }
        row.update(overrides)
        return row

    return _make


@pytest.fixture
def liquidation_rows(make_liquidation_row) -> list[dict[str, Any]]:
    """Two coherent rows; the second one carries pension commission and a loan."""
    return [
        make_liquidation_row(),
        {
            "id": "liq-2",
            "period_year": 2025,
            "period_month": 8,
            "employees": {"rut": "9.876.543-2", "first_name": "Luis", "last_name": "Soto"},
            "base_salary": 600000,
            "gratification": 150000,
            "family_allowance": 15000,
            "afp_amount": 60000,
            "afp_commission_amount": 7000,
            "health_amount": 42000,
            "unemployment_amount": 3600,
            "loan_deductions": 20000,
            "total_gross_income": 765000,
            "total_deductions": 132600,
            "net_salary": 632400,
        },
    ]


@pytest.fixture
def liquidations_payload(liquidation_rows) -> dict[str, Any]:
    return {
        "company_id": "77",
        "period_year": 2025,
        "period_month": 8,
        "liquidations": liquidation_rows,
    }
