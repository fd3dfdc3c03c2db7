from __future__ import annotations

from decimal import Decimal

from payroll_coherence.adapters import liquidation_record_from_row
from payroll_coherence.calculator import TotalsTriple
from payroll_coherence.coherence import ORIGIN_SPREADSHEET
from payroll_coherence.spreadsheet import (
    SpreadsheetRow,
    build_spreadsheet_source,
    compare_spreadsheet_to_system,
    read_spreadsheet_csv,
    spreadsheet_row_from_mapping,
)


def row(employee_id: str, name: str, earnings: str, deductions: str, net_pay: str) -> SpreadsheetRow:
    return SpreadsheetRow(
        employee_id=employee_id,
        employee_name=name,
        totals=TotalsTriple(Decimal(earnings), Decimal(deductions), Decimal(net_pay)),
    )


def test_row_from_spanish_columns() -> None:
    parsed = spreadsheet_row_from_mapping(
        {
            "rut": " 12.345.678-9 ",
            "nombre": "Ana Rojas",
            "total_haberes": "1050000",
            "total_descuentos": "140800",
            "total_liquido": "909200",
        }
    )

    assert parsed.employee_id == "12.345.678-9"
    assert parsed.employee_name == "Ana Rojas"
    assert parsed.totals == TotalsTriple(Decimal("1050000"), Decimal("140800"), Decimal("909200"))


def test_row_prefers_english_columns_and_defaults_missing() -> None:
    parsed = spreadsheet_row_from_mapping({"employee_id": "1-9", "rut": "2-7", "total_earnings": 10})

    assert parsed.employee_id == "1-9"
    assert parsed.employee_name == ""
    assert parsed.totals.total_deductions == Decimal("0")


def test_read_csv_with_bom_and_blank_lines(tmp_path) -> None:
    csv_path = tmp_path / "sheet.csv"
    csv_path.write_text(
        "\ufeffrut;name;total_haberes;total_descuentos;total_liquido\n"
        "12.345.678-9;Ana Rojas;1050000;140800;909200\n"
        ";;;;\n"
        "9.876.543-2;Luis Soto;765000;132600;632400\n",
        encoding="utf-8",
    )

    rows = read_spreadsheet_csv(csv_path, delimiter=";")

    assert [r.employee_id for r in rows] == ["12.345.678-9", "9.876.543-2"]
    assert rows[1].totals.net_pay == Decimal("632400")


def test_spreadsheet_source_accumulates_rows(fixed_clock) -> None:
    rows = [row("1", "A", "100.005", "0", "100.005"), row("2", "B", "0.005", "0", "0.005")]

    source = build_spreadsheet_source(rows, "77", 2025, 8, now=fixed_clock)

    assert source.origin == ORIGIN_SPREADSHEET
    assert source.liquidations_count == 2
    assert source.total_earnings == Decimal("100.02")
    assert source.last_updated == fixed_clock()


def test_matching_spreadsheet_is_consistent(liquidation_rows) -> None:
    records = [liquidation_record_from_row(r) for r in liquidation_rows]
    rows = [
        row("12.345.678-9", "Ana Rojas", "1050000", "140800", "909200"),
        row("9.876.543-2", "Luis Soto", "765000", "132600", "632400"),
    ]

    comparison = compare_spreadsheet_to_system(records, rows)

    assert comparison.is_consistent is True
    assert comparison.recommendations == []
    assert [e.status for e in comparison.employees] == ["match", "match"]
    assert comparison.system_totals.net_pay == Decimal("1541600")


def test_per_employee_statuses(liquidation_rows) -> None:
    records = [liquidation_record_from_row(r) for r in liquidation_rows]
    rows = [
        row("12.345.678-9", "", "1050000", "140800", "909200"),
        row("", "luis", "765100", "132600", "632500"),
        row("", "", "1000", "0", "1000"),
        row("11.111.111-1", "Pedro Diaz", "500000", "50000", "450000"),
    ]

    comparison = compare_spreadsheet_to_system(records, rows)

    assert [e.status for e in comparison.employees] == ["match", "discrepancy", "not_found_in_system", "not_found_in_system"]
    luis = comparison.employees[1]
    assert luis.system is not None
    assert luis.system.total_earnings == Decimal("765000")
    assert luis.differences["earnings"] == Decimal("-100")
    assert comparison.employees[3].system is None

    assert comparison.is_consistent is False
    assert any(r.startswith("Review earnings calculation") and "spreadsheet" in r for r in comparison.recommendations)


def test_comparison_to_dict(liquidation_rows) -> None:
    records = [liquidation_record_from_row(r) for r in liquidation_rows]
    comparison = compare_spreadsheet_to_system(records, [row("", "Nobody", "1", "0", "1")])

    payload = comparison.to_dict()

    assert payload["employees"][0]["status"] == "not_found_in_system"
    assert payload["employees"][0]["system"] is None
    assert payload["differences"]["earnings"] == 1814999.0


def test_read_csv_ignores_cells_beyond_header(tmp_path) -> None:
    csv_path = tmp_path / "sheet.csv"
    csv_path.write_text(
        "rut,name,total_haberes,total_descuentos,total_liquido\n"
        ",,,,,note\n"
        "12.345.678-9,Ana Rojas,1050000,140800,909200,checked by payroll\n",
        encoding="utf-8",
    )

    rows = read_spreadsheet_csv(csv_path)

    assert len(rows) == 1
    assert rows[0].employee_id == "12.345.678-9"
    assert rows[0].totals.net_pay == Decimal("909200")
