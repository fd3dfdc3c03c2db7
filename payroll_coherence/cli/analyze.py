"""
CLI Entry Point: payroll-coherence

Audits the payroll totals of one company and period: stored (database) totals,
totals recalculated with the unified calculator, and optionally the totals of
a user spreadsheet and the totals the interface displayed.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

from payroll_coherence.adapters import liquidation_records_from_rows
from payroll_coherence.calculator import TotalsTriple, format_money
from payroll_coherence.coherence import (
    ORIGIN_INTERFACE,
    CoherenceReport,
    CoherenceValidation,
    PayrollDataSource,
    auto_fix_incoherent_data,
    build_stored_source,
    generate_coherence_report,
    generate_coherent_source,
    source_from_totals,
    validate_coherence,
)
from payroll_coherence.policy import DEFAULT_POLICY, load_policy
from payroll_coherence.spreadsheet import (
    build_spreadsheet_source,
    compare_spreadsheet_to_system,
    read_spreadsheet_csv,
)
from payroll_coherence.utils import console
from payroll_coherence.utils.contracts import ContractError, load_validated_json, validate_output

logger = logging.getLogger("payroll_coherence.cli")

SCHEMA_VERSION = "1.0.0"
SEVERITY_STYLE = {"low": "green", "medium": "yellow", "high": "dark_orange", "critical": "bold red"}


def write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def write_markdown(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(show_path=False, console=console.get_err_console())],
        force=True,
    )


def report_to_markdown(analysis: dict[str, Any]) -> str:
    validation = analysis["coherence_validation"]
    report = analysis["coherence_report"]
    period = analysis["period"]

    lines: list[str] = []
    lines.append(f"# Payroll Coherence Report ({analysis['company_id']} {period['year']}-{period['month']:02d})")
    lines.append("")
    lines.append(f"- {report['summary']}")
    lines.append(f"- Confidence level: `{report['confidence_level']}`")
    lines.append(f"- Recommended action: {validation['recommended_action']}")
    lines.append("")

    lines.append("## Data Sources")
    lines.append("| Origin | Earnings | Deductions | Net Pay | Liquidations |")
    lines.append("| :--- | ---: | ---: | ---: | ---: |")
    for source in analysis["data_sources"]:
        lines.append(
            f"| {source['origin']} | {source['total_earnings']:,.2f} | {source['total_deductions']:,.2f} "
            f"| {source['net_pay']:,.2f} | {source['liquidations_count']} |"
        )
    lines.append("")

    if validation["discrepancies"]:
        lines.append("## Discrepancies")
        lines.append("| Source A | Source B | Earnings | Deductions | Net Pay | Severity |")
        lines.append("| :--- | :--- | ---: | ---: | ---: | :--- |")
        for d in validation["discrepancies"]:
            lines.append(
                f"| {d['source_a']} | {d['source_b']} | {d['earnings_diff']:,.2f} | {d['deductions_diff']:,.2f} "
                f"| {d['net_pay_diff']:,.2f} | {d['severity'].upper()} |"
            )
        lines.append("")

    lines.append("## Details")
    for detail in report["details"]:
        lines.append(f"- {detail}")
    lines.append("")

    lines.append("## Action Plan")
    for index, step in enumerate(report["action_plan"], start=1):
        lines.append(f"{index}. {step}")

    auto_fix = analysis.get("auto_fix_analysis")
    if auto_fix:
        lines.append("")
        lines.append("## Auto-Fix Analysis")
        lines.append(f"- Liquidations needing correction: {auto_fix['fixed_count']}")
        corrections = auto_fix["total_corrections"]
        lines.append(
            f"- Total corrections: earnings {corrections['earnings']:,.2f}, "
            f"deductions {corrections['deductions']:,.2f}, net pay {corrections['net_pay']:,.2f}"
        )
        for error in auto_fix["errors"]:
            lines.append(f"- [ERROR] {error}")

    return "\n".join(lines) + "\n"


def print_sources(sources: list[PayrollDataSource]) -> None:
    console.print_table(
        "Data Sources",
        ["Origin", "Earnings", "Deductions", "Net Pay", "Liquidations"],
        [
            [
                source.origin,
                format_money(source.total_earnings),
                format_money(source.total_deductions),
                format_money(source.net_pay),
                str(source.liquidations_count),
            ]
            for source in sources
        ],
    )


def print_validation(validation: CoherenceValidation, report: CoherenceReport) -> None:
    if validation.discrepancies:
        console.print_table(
            "Discrepancies",
            ["Source A", "Source B", "Earnings", "Deductions", "Net Pay", "Severity"],
            [
                [
                    d.source_a,
                    d.source_b,
                    format_money(d.earnings_diff),
                    format_money(d.deductions_diff),
                    format_money(d.net_pay_diff),
                    f"[{SEVERITY_STYLE[d.severity]}]{d.severity.upper()}[/]",
                ]
                for d in validation.discrepancies
            ],
        )
    for detail in report.details:
        console.get_console().print(detail)
    if validation.is_coherent:
        console.print_success(report.summary)
    else:
        console.print_warning(f"{report.summary} (worst: {validation.worst_severity()})")
        for index, step in enumerate(report.action_plan, start=1):
            console.get_console().print(f"  {index}. {step}")


def displayed_totals_source(
    payload: dict[str, Any], company_id: str, year: int, month: int
) -> PayrollDataSource | None:
    displayed = payload.get("displayed_totals")
    if not displayed:
        return None
    return source_from_totals(
        TotalsTriple.from_mapping(displayed),
        int(displayed.get("liquidations_count", 0)),
        company_id,
        year,
        month,
        ORIGIN_INTERFACE,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Audit payroll totals across stored, calculated and uploaded data.")
    parser.add_argument("--liquidations", type=Path, required=True, help="JSON file with liquidation rows.")
    parser.add_argument("--company-id", default=None, help="Company id (defaults to the file's company_id).")
    parser.add_argument("--year", type=int, default=None, help="Period year (defaults to the file's period_year).")
    parser.add_argument("--month", type=int, default=None, help="Period month (defaults to the file's period_month).")
    parser.add_argument("--spreadsheet", type=Path, default=None, help="Optional CSV with the user's totals.")
    parser.add_argument("--delimiter", default=",", help="Spreadsheet CSV delimiter (default: ',').")
    parser.add_argument("--policy", type=Path, default=None, help="Optional JSON coherence policy.")
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON instead of tables.")
    parser.add_argument("--json-out", type=Path, default=None, help="Write the analysis JSON to this path.")
    parser.add_argument("--report-md", type=Path, default=None, help="Write a Markdown report to this path.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args()

    configure_logging(args.verbose)

    if not args.liquidations.exists():
        console.print_error(f"Liquidations file not found: {args.liquidations}", exit_code=2)

    try:
        payload = load_validated_json(args.liquidations, "liquidations")
        policy = load_policy(args.policy) if args.policy else DEFAULT_POLICY

        company_id = args.company_id or payload.get("company_id")
        year = args.year or payload.get("period_year")
        month = args.month or payload.get("period_month")
        if not company_id or not year or not month:
            console.print_error("company id, year and month are required (flags or input file).", exit_code=2)

        rows = payload["liquidations"]
        records = liquidation_records_from_rows(rows)
        sources = [
            build_stored_source(records, company_id, year, month),
            generate_coherent_source(records, company_id, year, month),
        ]
        interface_source = displayed_totals_source(payload, company_id, year, month)
        if interface_source is not None:
            sources.append(interface_source)

        spreadsheet_comparison = None
        if args.spreadsheet:
            sheet_rows = read_spreadsheet_csv(args.spreadsheet, delimiter=args.delimiter)
            sources.append(build_spreadsheet_source(sheet_rows, company_id, year, month))
            spreadsheet_comparison = compare_spreadsheet_to_system(records, sheet_rows, policy)
    except (ContractError, ValueError, FileNotFoundError) as exc:
        console.print_error(str(exc), exit_code=2)

    logger.info("Analysing %d liquidations for %s %s-%02d", len(records), company_id, year, month)
    validation = validate_coherence(company_id, year, month, sources, policy)
    report = generate_coherence_report(validation, sources)

    auto_fix = None
    if not validation.is_coherent and validation.auto_fixable:
        auto_fix = auto_fix_incoherent_data(rows, policy)

    analysis: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "company_id": str(company_id),
        "period": {"year": year, "month": month},
        "liquidations_analyzed": len(records),
        "data_sources": [source.to_dict() for source in sources],
        "coherence_validation": validation.to_dict(),
        "coherence_report": report.to_dict(),
        "auto_fix_analysis": auto_fix.to_dict() if auto_fix else None,
        "spreadsheet_comparison": spreadsheet_comparison.to_dict() if spreadsheet_comparison else None,
    }
    validate_output(analysis, "coherence_analysis", mode="REVIEW")

    if args.json:
        print(json.dumps(analysis, indent=2))
    else:
        console.print_step(f"Payroll coherence {company_id} {year}-{month:02d}")
        print_sources(sources)
        print_validation(validation, report)
        if spreadsheet_comparison and spreadsheet_comparison.recommendations:
            for recommendation in spreadsheet_comparison.recommendations:
                console.print_warning(recommendation)
        if auto_fix:
            console.print_warning(
                f"{auto_fix.fixed_count} liquidation(s) need corrected totals "
                f"(earnings {format_money(auto_fix.total_corrections['earnings'])})."
            )

    if args.json_out:
        write_json(args.json_out, analysis)
        logger.info("Analysis JSON: %s", args.json_out)
    if args.report_md:
        write_markdown(args.report_md, report_to_markdown(analysis))
        logger.info("Report Markdown: %s", args.report_md)

    if not validation.is_coherent:
        sys.exit(1)


if __name__ == "__main__":
    main()
