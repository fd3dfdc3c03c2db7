"""
Unified Calculator

The single place where itemized pay components are turned into totals.
Every other module (coherence checks, spreadsheet validation, payroll book
export) calls through here instead of summing components on its own.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
DEFAULT_TOLERANCE = Decimal("1")

EARNINGS_FIELDS = (
    "base_salary",
    "overtime",
    "gratification",
    "bonuses",
    "commissions",
    "extra_hours",
    "other_income",
)

# Commission, loans, advances and APV were historically left out of the
# deduction total. They must stay in this tuple.
DEDUCTION_FIELDS = (
    "pension_contribution",
    "pension_commission",
    "health_contribution",
    "unemployment_insurance",
    "income_tax",
    "loan_deductions",
    "advance_payments",
    "voluntary_pension_savings",
    "other_deductions",
)

# Spanish column names used by the source payroll system and user spreadsheets.
COMPONENT_ALIASES = {
    "sueldo_base": "base_salary",
    "sobresueldo": "overtime",
    "gratificacion": "gratification",
    "bonos": "bonuses",
    "comisiones": "commissions",
    "horas_extras": "extra_hours",
    "asignacion_familiar": "other_income",
    "otros_haberes": "other_income",
    "afp": "pension_contribution",
    "comision_afp": "pension_commission",
    "salud": "health_contribution",
    "cesantia": "unemployment_insurance",
    "impuesto_unico": "income_tax",
    "prestamos": "loan_deductions",
    "anticipos": "advance_payments",
    "apv": "voluntary_pension_savings",
    "otros_descuentos": "other_deductions",
    "rut": "employee_id",
    "nombre": "employee_name",
}


class InvalidAmountError(ValueError):
    """Raised when a monetary value cannot be parsed as a decimal amount."""


def to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise InvalidAmountError(f"Boolean is not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        parsed = value
    else:
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise InvalidAmountError(f"Invalid monetary amount: {value!r}") from exc
    if not parsed.is_finite():
        raise InvalidAmountError(f"Non-finite monetary amount: {value!r}")
    return parsed


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def add_rounded(total: Decimal, amount: Decimal) -> Decimal:
    return round_money(total + amount)


def sum_rounded(amounts: Iterable[Any]) -> Decimal:
    """Sum amounts, rounding the running total to cents after every addition."""
    total = ZERO
    for amount in amounts:
        total = add_rounded(total, to_decimal(amount))
    return total


def as_float(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(value.quantize(CENT))


def format_money(value: Decimal | None) -> str:
    if value is None:
        return "n/a"
    return f"${value.quantize(CENT):,.2f}"


@dataclass
class ItemizedPayComponents:
    employee_id: str = ""
    employee_name: str = ""
    period_year: int | None = None
    period_month: int | None = None

    base_salary: Decimal = ZERO
    overtime: Decimal = ZERO
    gratification: Decimal = ZERO
    bonuses: Decimal = ZERO
    commissions: Decimal = ZERO
    extra_hours: Decimal = ZERO
    other_income: Decimal = ZERO

    pension_contribution: Decimal = ZERO
    pension_commission: Decimal = ZERO
    health_contribution: Decimal = ZERO
    unemployment_insurance: Decimal = ZERO
    income_tax: Decimal = ZERO
    loan_deductions: Decimal = ZERO
    advance_payments: Decimal = ZERO
    voluntary_pension_savings: Decimal = ZERO
    other_deductions: Decimal = ZERO

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ItemizedPayComponents:
        """
        Build components from a flat mapping.

        Accepts the field names of this class and the Spanish aliases in
        COMPONENT_ALIASES. Aliases that land on the same field are added
        together; unknown keys are ignored and missing amounts stay at zero.
        """
        known = {f.name for f in fields(cls)}
        amounts: dict[str, Decimal] = {}
        identity: dict[str, Any] = {}
        for key, value in data.items():
            target = COMPONENT_ALIASES.get(key, key)
            if target not in known:
                continue
            if target in ("employee_id", "employee_name"):
                identity[target] = "" if value is None else str(value)
            elif target in ("period_year", "period_month"):
                identity[target] = None if value is None else int(value)
            else:
                amounts[target] = add_rounded(amounts.get(target, ZERO), to_decimal(value))
        return cls(**identity, **amounts)

    def earnings(self) -> list[Decimal]:
        return [getattr(self, name) for name in EARNINGS_FIELDS]

    def deductions(self) -> list[Decimal]:
        return [getattr(self, name) for name in DEDUCTION_FIELDS]


@dataclass(frozen=True)
class TotalsTriple:
    total_earnings: Decimal = ZERO
    total_deductions: Decimal = ZERO
    net_pay: Decimal = ZERO

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TotalsTriple:
        return cls(
            total_earnings=to_decimal(data.get("total_earnings")),
            total_deductions=to_decimal(data.get("total_deductions")),
            net_pay=to_decimal(data.get("net_pay")),
        )

    def to_dict(self) -> dict[str, float | None]:
        return {
            "total_earnings": as_float(self.total_earnings),
            "total_deductions": as_float(self.total_deductions),
            "net_pay": as_float(self.net_pay),
        }


@dataclass(frozen=True)
class CalculationValidation:
    components_sum_correct: bool
    difference_earnings: Decimal
    difference_deductions: Decimal
    difference_net_pay: Decimal


@dataclass(frozen=True)
class CalculationResult:
    total_earnings: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    validation: CalculationValidation

    def totals(self) -> TotalsTriple:
        return TotalsTriple(self.total_earnings, self.total_deductions, self.net_pay)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.totals().to_dict(),
            "validation": {
                "components_sum_correct": self.validation.components_sum_correct,
                "difference_earnings": as_float(self.validation.difference_earnings),
                "difference_deductions": as_float(self.validation.difference_deductions),
                "difference_net_pay": as_float(self.validation.difference_net_pay),
            },
        }


@dataclass
class ExternalValidation:
    is_consistent: bool
    differences: dict[str, Decimal]
    recommendations: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_consistent": self.is_consistent,
            "differences": {key: as_float(value) for key, value in self.differences.items()},
            "recommendations": list(self.recommendations),
        }


def compute_total_earnings(components: ItemizedPayComponents) -> Decimal:
    return sum_rounded(components.earnings())


def compute_total_deductions(components: ItemizedPayComponents) -> Decimal:
    return sum_rounded(components.deductions())


def compute_net_pay(components: ItemizedPayComponents) -> Decimal:
    return round_money(compute_total_earnings(components) - compute_total_deductions(components))


def calculate_with_validation(components: ItemizedPayComponents) -> CalculationResult:
    """
    Compute the three totals and attach the derivation proof.

    Totals are always derived from the components, so the validation block is
    true with zero differences by construction.
    """
    return CalculationResult(
        total_earnings=compute_total_earnings(components),
        total_deductions=compute_total_deductions(components),
        net_pay=compute_net_pay(components),
        validation=CalculationValidation(
            components_sum_correct=True,
            difference_earnings=ZERO,
            difference_deductions=ZERO,
            difference_net_pay=ZERO,
        ),
    )


def compare_totals(
    calculated: TotalsTriple,
    external: TotalsTriple,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    external_label: str = "external",
) -> ExternalValidation:
    differences = {
        "earnings": calculated.total_earnings - external.total_earnings,
        "deductions": calculated.total_deductions - external.total_deductions,
        "net_pay": calculated.net_pay - external.net_pay,
    }
    pairs = {
        "earnings": (calculated.total_earnings, external.total_earnings),
        "deductions": (calculated.total_deductions, external.total_deductions),
        "net_pay": (calculated.net_pay, external.net_pay),
    }
    recommendations: list[str] = []
    for name, diff in differences.items():
        if abs(diff) <= tolerance:
            continue
        system_value, external_value = pairs[name]
        recommendations.append(
            f"Review {name.replace('_', ' ')} calculation: system {format_money(system_value)} "
            f"vs {external_label} {format_money(external_value)} (difference {format_money(diff)})"
        )
    return ExternalValidation(
        is_consistent=not recommendations,
        differences=differences,
        recommendations=recommendations,
    )


def validate_against_external(
    components: ItemizedPayComponents,
    external: TotalsTriple,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> ExternalValidation:
    calculated = calculate_with_validation(components).totals()
    return compare_totals(calculated, external, tolerance=to_decimal(tolerance))
