from payroll_coherence.calculator import (
    CalculationResult,
    ExternalValidation,
    InvalidAmountError,
    ItemizedPayComponents,
    TotalsTriple,
    as_float,
    calculate_with_validation,
    compute_net_pay,
    compute_total_deductions,
    compute_total_earnings,
    format_money,
    to_decimal,
    validate_against_external,
)
from payroll_coherence.adapters import (
    LiquidationRecord,
    components_from_liquidation_row,
    liquidation_record_from_row,
    liquidation_records_from_rows,
)
from payroll_coherence.policy import DEFAULT_POLICY, CoherencePolicy, load_policy
from payroll_coherence.coherence import (
    AutoFixResult,
    CoherenceReport,
    CoherenceValidation,
    PayrollDataSource,
    auto_fix_incoherent_data,
    build_stored_source,
    generate_coherence_report,
    generate_coherent_source,
    validate_coherence,
)
from payroll_coherence.spreadsheet import compare_spreadsheet_to_system, read_spreadsheet_csv
from payroll_coherence.payroll_book import build_payroll_book_rows
from payroll_coherence.company_resolver import CompanyIdResolver, ResolutionCache, detect_correct_company_id

__all__ = [
    "AutoFixResult",
    "CalculationResult",
    "CoherencePolicy",
    "CoherenceReport",
    "CoherenceValidation",
    "CompanyIdResolver",
    "DEFAULT_POLICY",
    "ExternalValidation",
    "InvalidAmountError",
    "ItemizedPayComponents",
    "LiquidationRecord",
    "PayrollDataSource",
    "ResolutionCache",
    "TotalsTriple",
    "as_float",
    "auto_fix_incoherent_data",
    "build_payroll_book_rows",
    "build_stored_source",
    "calculate_with_validation",
    "compare_spreadsheet_to_system",
    "components_from_liquidation_row",
    "compute_net_pay",
    "compute_total_deductions",
    "compute_total_earnings",
    "detect_correct_company_id",
    "format_money",
    "generate_coherence_report",
    "generate_coherent_source",
    "liquidation_record_from_row",
    "liquidation_records_from_rows",
    "load_policy",
    "read_spreadsheet_csv",
    "to_decimal",
    "validate_against_external",
    "validate_coherence",
]
