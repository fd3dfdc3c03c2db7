"""
CLI Entry Point: payroll-book

Exports the payroll book (libro de remuneraciones) of a liquidations file as a
semicolon-delimited CSV, one row per liquidation plus a TOTAL row.
"""

from __future__ import annotations

import argparse
import csv
import logging
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

from payroll_coherence.adapters import liquidation_records_from_rows
from payroll_coherence.payroll_book import PAYROLL_BOOK_COLUMNS, build_payroll_book_rows
from payroll_coherence.utils import console
from payroll_coherence.utils.contracts import ContractError, load_validated_json

logger = logging.getLogger("payroll_coherence.cli")


def write_payroll_book_csv(path: Path, rows: list[dict[str, Any]], delimiter: str = ";") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=PAYROLL_BOOK_COLUMNS, delimiter=delimiter)
        writer.writeheader()
        for row in rows:
            writer.writerow({key: row.get(key) for key in PAYROLL_BOOK_COLUMNS})


def main() -> None:
    parser = argparse.ArgumentParser(description="Export a payroll book CSV from a liquidations file.")
    parser.add_argument("--liquidations", type=Path, required=True, help="JSON file with liquidation rows.")
    parser.add_argument("--out", type=Path, required=True, help="Output CSV path.")
    parser.add_argument("--delimiter", default=";", help="CSV delimiter (default: ';').")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(show_path=False, console=console.get_err_console())],
        force=True,
    )

    if not args.liquidations.exists():
        console.print_error(f"Liquidations file not found: {args.liquidations}", exit_code=2)

    try:
        payload = load_validated_json(args.liquidations, "liquidations")
        rows = build_payroll_book_rows(liquidation_records_from_rows(payload["liquidations"]))
    except (ContractError, ValueError) as exc:
        console.print_error(str(exc), exit_code=2)

    write_payroll_book_csv(args.out, rows, delimiter=args.delimiter)
    logger.info("Payroll book CSV: %s", args.out)
    console.print_success(f"Wrote {len(rows) - 1} liquidations to {args.out}")


if __name__ == "__main__":
    main()
