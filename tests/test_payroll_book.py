from __future__ import annotations

from payroll_coherence.adapters import liquidation_record_from_row
from payroll_coherence.payroll_book import PAYROLL_BOOK_COLUMNS, build_payroll_book_rows, period_label


def test_one_row_per_liquidation_plus_total(liquidation_rows) -> None:
    rows = build_payroll_book_rows(liquidation_record_from_row(r) for r in liquidation_rows)

    assert len(rows) == 3
    assert [r["employee_id"] for r in rows] == ["12.345.678-9", "9.876.543-2", "TOTAL"]
    assert all(set(r) == set(PAYROLL_BOOK_COLUMNS) for r in rows)


def test_rows_carry_itemized_and_calculated_amounts(liquidation_rows) -> None:
    rows = build_payroll_book_rows(liquidation_record_from_row(r) for r in liquidation_rows)
    luis = rows[1]

    assert luis["employee_name"] == "Luis Soto"
    assert luis["period"] == "2025-08"
    assert luis["other_income"] == 15000.0
    assert luis["pension_commission"] == 7000.0
    assert luis["loan_deductions"] == 20000.0
    assert luis["total_earnings"] == 765000.0
    assert luis["total_deductions"] == 132600.0
    assert luis["net_pay"] == 632400.0


def test_totals_come_from_calculator_not_stored_values(make_liquidation_row) -> None:
    stale = make_liquidation_row(total_gross_income=1, total_deductions=1, net_salary=0)

    rows = build_payroll_book_rows([liquidation_record_from_row(stale)])

    assert rows[0]["total_earnings"] == 1050000.0
    assert rows[0]["net_pay"] == 909200.0


def test_total_row_sums_every_money_column(liquidation_rows) -> None:
    total = build_payroll_book_rows(liquidation_record_from_row(r) for r in liquidation_rows)[-1]

    assert total["employee_name"] == "2 liquidations"
    assert total["period"] == ""
    assert total["base_salary"] == 1400000.0
    assert total["total_earnings"] == 1815000.0
    assert total["total_deductions"] == 273400.0
    assert total["net_pay"] == 1541600.0


def test_components_without_period_are_accepted(example_components) -> None:
    example_components.period_year = None

    rows = build_payroll_book_rows([example_components])

    assert rows[0]["period"] == ""
    assert rows[0]["total_earnings"] == 3536581.0


def test_empty_book_has_zero_total_row() -> None:
    rows = build_payroll_book_rows([])

    assert len(rows) == 1
    assert rows[0]["employee_name"] == "0 liquidations"
    assert rows[0]["net_pay"] == 0.0


def test_period_label() -> None:
    assert period_label(2025, 8) == "2025-08"
    assert period_label(None, 8) == ""
