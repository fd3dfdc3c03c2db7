"""
Spreadsheet Validation

Checks totals typed into a user's payroll spreadsheet against the unified
calculator, both for the whole period and employee by employee.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from payroll_coherence.calculator import (
    ItemizedPayComponents,
    TotalsTriple,
    as_float,
    calculate_with_validation,
    compare_totals,
    to_decimal,
    validate_against_external,
)
from payroll_coherence.coherence import (
    ORIGIN_SPREADSHEET,
    CalculableRecord,
    Clock,
    PayrollDataSource,
    accumulate_totals,
    components_of,
    source_from_totals,
    utc_now,
)
from payroll_coherence.policy import DEFAULT_POLICY, CoherencePolicy

logger = logging.getLogger(__name__)

EARNINGS_KEYS = ("total_earnings", "total_haberes")
DEDUCTION_KEYS = ("total_deductions", "total_descuentos")
NET_PAY_KEYS = ("net_pay", "total_liquido")
OVERFLOW_KEY = "_extra"


@dataclass(frozen=True)
class SpreadsheetRow:
    employee_id: str
    employee_name: str
    totals: TotalsTriple


@dataclass
class EmployeeComparison:
    employee_id: str
    employee_name: str
    status: str
    spreadsheet: TotalsTriple
    system: TotalsTriple | None = None
    differences: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "status": self.status,
            "spreadsheet": self.spreadsheet.to_dict(),
            "system": self.system.to_dict() if self.system else None,
            "differences": (
                {key: as_float(value) for key, value in self.differences.items()} if self.differences else None
            ),
        }


@dataclass
class SpreadsheetComparison:
    is_consistent: bool
    system_totals: TotalsTriple
    spreadsheet_totals: TotalsTriple
    differences: dict[str, Any]
    recommendations: list[str]
    employees: list[EmployeeComparison] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_consistent": self.is_consistent,
            "system_totals": self.system_totals.to_dict(),
            "spreadsheet_totals": self.spreadsheet_totals.to_dict(),
            "differences": {key: as_float(value) for key, value in self.differences.items()},
            "recommendations": list(self.recommendations),
            "employees": [e.to_dict() for e in self.employees],
        }


def first_present(data: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if data.get(key) not in (None, ""):
            return data[key]
    return None


def spreadsheet_row_from_mapping(data: Mapping[str, Any]) -> SpreadsheetRow:
    return SpreadsheetRow(
        employee_id=str(first_present(data, ("employee_id", "rut")) or "").strip(),
        employee_name=str(first_present(data, ("employee_name", "name", "nombre")) or "").strip(),
        totals=TotalsTriple(
            total_earnings=to_decimal(first_present(data, EARNINGS_KEYS)),
            total_deductions=to_decimal(first_present(data, DEDUCTION_KEYS)),
            net_pay=to_decimal(first_present(data, NET_PAY_KEYS)),
        ),
    )


def read_spreadsheet_csv(path: Path, delimiter: str = ",") -> list[SpreadsheetRow]:
    # utf-8-sig swallows the BOM that spreadsheet exports usually prepend.
    with path.open("r", newline="", encoding="utf-8-sig") as handle:
        reader = csv.DictReader(handle, delimiter=delimiter, restkey=OVERFLOW_KEY)
        rows: list[SpreadsheetRow] = []
        for raw in reader:
            # Cells beyond the header are notes, not totals.
            raw.pop(OVERFLOW_KEY, None)
            if any((value or "").strip() for value in raw.values()):
                rows.append(spreadsheet_row_from_mapping(raw))
    logger.info("Read %d spreadsheet rows from %s", len(rows), path)
    return rows


def build_spreadsheet_source(
    rows: Sequence[SpreadsheetRow],
    company_id: str,
    year: int,
    month: int,
    now: Clock = utc_now,
) -> PayrollDataSource:
    totals = accumulate_totals(row.totals for row in rows)
    return source_from_totals(totals, len(rows), company_id, year, month, ORIGIN_SPREADSHEET, now=now)


def find_system_match(
    row: SpreadsheetRow,
    candidates: Sequence[ItemizedPayComponents],
) -> ItemizedPayComponents | None:
    if row.employee_id:
        for components in candidates:
            if components.employee_id and components.employee_id == row.employee_id:
                return components
    if row.employee_name:
        wanted = row.employee_name.lower()
        for components in candidates:
            if wanted in components.employee_name.lower():
                return components
    return None


def compare_spreadsheet_to_system(
    records: Iterable[CalculableRecord],
    rows: Sequence[SpreadsheetRow],
    policy: CoherencePolicy = DEFAULT_POLICY,
) -> SpreadsheetComparison:
    """
    Compare spreadsheet rows with calculator totals for the same liquidations.

    Rows are matched to liquidations by employee id (RUT) first and by
    case-insensitive name containment second. Rows with no match are reported
    as `not_found_in_system`.
    """
    system_components = [components_of(record) for record in records]
    system_totals = accumulate_totals(calculate_with_validation(c).totals() for c in system_components)
    spreadsheet_totals = accumulate_totals(row.totals for row in rows)
    aggregate = compare_totals(system_totals, spreadsheet_totals, policy.tolerance, external_label="spreadsheet")

    employees: list[EmployeeComparison] = []
    for row in rows:
        match = find_system_match(row, system_components)
        if match is None:
            employees.append(
                EmployeeComparison(
                    employee_id=row.employee_id,
                    employee_name=row.employee_name,
                    status="not_found_in_system",
                    spreadsheet=row.totals,
                )
            )
            continue
        check = validate_against_external(match, row.totals, tolerance=policy.tolerance)
        employees.append(
            EmployeeComparison(
                employee_id=row.employee_id,
                employee_name=row.employee_name,
                status="match" if check.is_consistent else "discrepancy",
                spreadsheet=row.totals,
                system=calculate_with_validation(match).totals(),
                differences=check.differences,
            )
        )

    mismatched = sum(1 for e in employees if e.status != "match")
    if mismatched:
        logger.info("%d of %d spreadsheet rows disagree with the system", mismatched, len(employees))

    return SpreadsheetComparison(
        is_consistent=aggregate.is_consistent,
        system_totals=system_totals,
        spreadsheet_totals=spreadsheet_totals,
        differences=aggregate.differences,
        recommendations=aggregate.recommendations,
        employees=employees,
    )
