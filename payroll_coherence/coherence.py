#!/usr/bin/env python3

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Iterable, Mapping, Sequence, Union

from payroll_coherence.adapters import LiquidationRecord, liquidation_record_from_row
from payroll_coherence.calculator import (
    ZERO,
    ItemizedPayComponents,
    TotalsTriple,
    add_rounded,
    as_float,
    calculate_with_validation,
)
from payroll_coherence.policy import DEFAULT_POLICY, CoherencePolicy

logger = logging.getLogger(__name__)

ORIGIN_DATABASE = "database-cached"
ORIGIN_CALCULATED = "freshly-calculated"
ORIGIN_INTERFACE = "interface-displayed"
ORIGIN_SPREADSHEET = "spreadsheet-uploaded"

SEVERITY_RANK = {"low": 0, "medium": 1, "high": 2, "critical": 3}

ACTION_NONE = "No action required - data is coherent"
ACTION_REFRESH = "MEDIUM: Verify calculation inputs and refresh cached data"
ACTION_UPDATE = "HIGH: Update stored values with recalculated values"
ACTION_REGENERATE = "CRITICAL: Regenerate all payroll data using the unified calculator"

Clock = Callable[[], datetime]
CalculableRecord = Union[ItemizedPayComponents, LiquidationRecord]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PayrollDataSource:
    company_id: str
    period_year: int
    period_month: int
    origin: str
    total_earnings: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    liquidations_count: int
    last_updated: datetime

    @property
    def source_id(self) -> str:
        return f"{self.company_id}-{self.period_year}-{self.period_month}-{self.origin}"

    def totals(self) -> TotalsTriple:
        return TotalsTriple(self.total_earnings, self.total_deductions, self.net_pay)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "origin": self.origin,
            "company_id": self.company_id,
            "period_year": self.period_year,
            "period_month": self.period_month,
            **self.totals().to_dict(),
            "liquidations_count": self.liquidations_count,
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass(frozen=True)
class Discrepancy:
    source_a: str
    source_b: str
    earnings_diff: Decimal
    deductions_diff: Decimal
    net_pay_diff: Decimal
    severity: str

    def max_abs_delta(self) -> Decimal:
        return max(abs(self.earnings_diff), abs(self.deductions_diff), abs(self.net_pay_diff))

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_a": self.source_a,
            "source_b": self.source_b,
            "earnings_diff": as_float(self.earnings_diff),
            "deductions_diff": as_float(self.deductions_diff),
            "net_pay_diff": as_float(self.net_pay_diff),
            "severity": self.severity,
        }


@dataclass
class CoherenceValidation:
    is_coherent: bool
    discrepancies: list[Discrepancy]
    confidence_score: int
    recommended_action: str
    auto_fixable: bool

    def worst_severity(self) -> str | None:
        return worst_severity(self.discrepancies)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_coherent": self.is_coherent,
            "discrepancies": [d.to_dict() for d in self.discrepancies],
            "confidence_score": self.confidence_score,
            "recommended_action": self.recommended_action,
            "auto_fixable": self.auto_fixable,
        }


@dataclass
class RecordCorrection:
    record_id: str
    employee_name: str
    current: TotalsTriple
    correct: TotalsTriple
    differences: dict[str, Decimal]
    needs_correction: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "employee_name": self.employee_name,
            "current": self.current.to_dict(),
            "correct": self.correct.to_dict(),
            "differences": {key: as_float(value) for key, value in self.differences.items()},
            "needs_correction": self.needs_correction,
        }


@dataclass
class AutoFixResult:
    success: bool
    fixed_count: int
    total_corrections: dict[str, Decimal]
    errors: list[str] = field(default_factory=list)
    corrections: list[RecordCorrection] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "fixed_count": self.fixed_count,
            "total_corrections": {key: as_float(value) for key, value in self.total_corrections.items()},
            "errors": list(self.errors),
            "corrections": [c.to_dict() for c in self.corrections],
        }


@dataclass
class CoherenceReport:
    summary: str
    details: list[str]
    action_plan: list[str]
    confidence_level: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "details": list(self.details),
            "action_plan": list(self.action_plan),
            "confidence_level": self.confidence_level,
        }


def worst_severity(discrepancies: Iterable[Discrepancy]) -> str | None:
    return max((d.severity for d in discrepancies), key=SEVERITY_RANK.__getitem__, default=None)


def classify_severity(max_abs_delta: Decimal, policy: CoherencePolicy = DEFAULT_POLICY) -> str:
    if max_abs_delta > policy.critical_threshold:
        return "critical"
    if max_abs_delta > policy.high_threshold:
        return "high"
    if max_abs_delta > policy.medium_threshold:
        return "medium"
    return "low"


def compare_sources(
    source_a: PayrollDataSource,
    source_b: PayrollDataSource,
    policy: CoherencePolicy = DEFAULT_POLICY,
) -> Discrepancy | None:
    earnings_diff = source_a.total_earnings - source_b.total_earnings
    deductions_diff = source_a.total_deductions - source_b.total_deductions
    net_pay_diff = source_a.net_pay - source_b.net_pay
    max_delta = max(abs(earnings_diff), abs(deductions_diff), abs(net_pay_diff))
    logger.debug(
        "Compared %s vs %s: earnings=%s deductions=%s net_pay=%s",
        source_a.origin,
        source_b.origin,
        earnings_diff,
        deductions_diff,
        net_pay_diff,
    )
    if max_delta <= policy.tolerance:
        return None
    return Discrepancy(
        source_a=source_a.origin,
        source_b=source_b.origin,
        earnings_diff=earnings_diff,
        deductions_diff=deductions_diff,
        net_pay_diff=net_pay_diff,
        severity=classify_severity(max_delta, policy),
    )


def recommend_action(worst: str | None) -> tuple[str, bool]:
    if worst is None:
        return ACTION_NONE, True
    if worst == "critical":
        # Critical drift is never auto-fixable.
        return ACTION_REGENERATE, False
    if worst == "high":
        return ACTION_UPDATE, True
    return ACTION_REFRESH, True


def confidence_score(coherent_pairs: int, total_pairs: int) -> int:
    if total_pairs == 0:
        return 100
    ratio = Decimal(100 * coherent_pairs) / Decimal(total_pairs)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_coherence(
    company_id: str,
    year: int,
    month: int,
    sources: Sequence[PayrollDataSource],
    policy: CoherencePolicy = DEFAULT_POLICY,
) -> CoherenceValidation:
    """
    Compare every unordered pair of sources and grade their disagreement.

    Deltas are signed as sources[i] - sources[j] for i < j. A pair is
    discrepant when any absolute delta exceeds the policy tolerance, and its
    severity is taken from the largest absolute delta of the three totals.
    """
    foreign = [
        s.source_id
        for s in sources
        if (s.company_id, s.period_year, s.period_month) != (company_id, year, month)
    ]
    if foreign:
        logger.warning(
            "Sources outside %s %s-%02d included in coherence check: %s",
            company_id,
            year,
            month,
            ", ".join(foreign),
        )

    discrepancies: list[Discrepancy] = []
    total_pairs = 0
    for i in range(len(sources)):
        for j in range(i + 1, len(sources)):
            total_pairs += 1
            discrepancy = compare_sources(sources[i], sources[j], policy)
            if discrepancy is not None:
                discrepancies.append(discrepancy)

    action, auto_fixable = recommend_action(worst_severity(discrepancies))
    return CoherenceValidation(
        is_coherent=not discrepancies,
        discrepancies=discrepancies,
        confidence_score=confidence_score(total_pairs - len(discrepancies), total_pairs),
        recommended_action=action,
        auto_fixable=auto_fixable,
    )


def components_of(record: CalculableRecord) -> ItemizedPayComponents:
    if isinstance(record, LiquidationRecord):
        return record.components
    return record


def accumulate_totals(totals: Iterable[TotalsTriple]) -> TotalsTriple:
    earnings = deductions = net_pay = ZERO
    for item in totals:
        earnings = add_rounded(earnings, item.total_earnings)
        deductions = add_rounded(deductions, item.total_deductions)
        net_pay = add_rounded(net_pay, item.net_pay)
    return TotalsTriple(earnings, deductions, net_pay)


def source_from_totals(
    totals: TotalsTriple,
    count: int,
    company_id: str,
    year: int,
    month: int,
    origin: str,
    now: Clock = utc_now,
) -> PayrollDataSource:
    return PayrollDataSource(
        company_id=company_id,
        period_year=year,
        period_month=month,
        origin=origin,
        total_earnings=totals.total_earnings,
        total_deductions=totals.total_deductions,
        net_pay=totals.net_pay,
        liquidations_count=count,
        last_updated=now(),
    )


def generate_coherent_source(
    records: Iterable[CalculableRecord],
    company_id: str,
    year: int,
    month: int,
    origin: str = ORIGIN_CALCULATED,
    now: Clock = utc_now,
) -> PayrollDataSource:
    """Build a trustworthy snapshot by running every record through the calculator."""
    results = [calculate_with_validation(components_of(record)) for record in records]
    totals = accumulate_totals(result.totals() for result in results)
    return source_from_totals(totals, len(results), company_id, year, month, origin, now=now)


def build_stored_source(
    records: Iterable[LiquidationRecord],
    company_id: str,
    year: int,
    month: int,
    origin: str = ORIGIN_DATABASE,
    now: Clock = utc_now,
) -> PayrollDataSource:
    """Snapshot of the totals currently cached alongside each liquidation."""
    stored = [record.stored for record in records]
    return source_from_totals(accumulate_totals(stored), len(stored), company_id, year, month, origin, now=now)


def record_identity(record: LiquidationRecord | Mapping[str, Any]) -> str:
    if isinstance(record, LiquidationRecord):
        return record.record_id
    return str(record.get("id") or "<unknown>")


def auto_fix_incoherent_data(
    records: Iterable[LiquidationRecord | Mapping[str, Any]],
    policy: CoherencePolicy = DEFAULT_POLICY,
) -> AutoFixResult:
    """
    Compute the correction set that would bring stored totals in line.

    Nothing is written anywhere: applying the corrections is up to the caller.
    A record that fails to adapt or calculate is reported in `errors` and the
    remaining records are still processed.
    """
    fixed_count = 0
    errors: list[str] = []
    corrections: list[RecordCorrection] = []
    totals = {"earnings": ZERO, "deductions": ZERO, "net_pay": ZERO}

    for raw in records:
        try:
            record = raw if isinstance(raw, LiquidationRecord) else liquidation_record_from_row(raw)
            correct = calculate_with_validation(record.components).totals()
            current = record.stored
            differences = {
                "earnings": correct.total_earnings - current.total_earnings,
                "deductions": correct.total_deductions - current.total_deductions,
                "net_pay": correct.net_pay - current.net_pay,
            }
        except Exception as exc:
            identity = record_identity(raw) if isinstance(raw, (LiquidationRecord, Mapping)) else repr(raw)
            logger.warning("Could not compute corrections for liquidation %s: %s", identity, exc)
            errors.append(f"Error fixing liquidation {identity}: {exc}")
            continue

        needs_correction = any(abs(delta) > policy.tolerance for delta in differences.values())
        if needs_correction:
            fixed_count += 1
            for key, delta in differences.items():
                totals[key] = add_rounded(totals[key], delta)

        corrections.append(
            RecordCorrection(
                record_id=record.record_id,
                employee_name=record.components.employee_name,
                current=current,
                correct=correct,
                differences=differences,
                needs_correction=needs_correction,
            )
        )

    return AutoFixResult(
        success=not errors,
        fixed_count=fixed_count,
        total_corrections=totals,
        errors=errors,
        corrections=corrections,
    )


def confidence_level(score: int) -> str:
    if score >= 90:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "fair"
    return "poor"


def generate_coherence_report(
    validation: CoherenceValidation,
    sources: Sequence[PayrollDataSource],
) -> CoherenceReport:
    if validation.is_coherent:
        summary = f"Payroll data is coherent - {validation.confidence_score}% confidence"
    else:
        summary = f"Inconsistencies detected - {len(validation.discrepancies)} discrepancies"

    details = [
        f"Data sources analysed: {len(sources)}",
        f"Confidence score: {validation.confidence_score}%",
        f"Discrepancies found: {len(validation.discrepancies)}",
        f"Auto-fixable: {'yes' if validation.auto_fixable else 'no'}",
    ]
    if validation.discrepancies:
        details.append("Discrepancies by severity:")
        counts: dict[str, int] = {}
        for discrepancy in validation.discrepancies:
            counts[discrepancy.severity] = counts.get(discrepancy.severity, 0) + 1
        for severity in sorted(counts, key=SEVERITY_RANK.__getitem__, reverse=True):
            details.append(f"  - {severity.upper()}: {counts[severity]}")

    if validation.is_coherent:
        action_plan = ["No actions required - payroll data is coherent"]
    else:
        action_plan = [
            validation.recommended_action,
            "Compute the correction set with auto_fix_incoherent_data()",
            "Refresh cached interface totals with the corrected data",
            "Re-run the coherence validation after applying corrections",
        ]

    return CoherenceReport(
        summary=summary,
        details=details,
        action_plan=action_plan,
        confidence_level=confidence_level(validation.confidence_score),
    )
