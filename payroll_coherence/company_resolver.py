"""
Company Id Resolver

Callers sometimes ask for a placeholder company id (the UI default "1") while
the real liquidations live under another id. The resolver probes candidate
companies through injected lookups and memoizes the answer in a cache the
caller owns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Sequence

from payroll_coherence.calculator import InvalidAmountError, to_decimal

logger = logging.getLogger(__name__)

DETECTION_CONFIDENCE = 95

FetchLiquidations = Callable[[str, int, int], Sequence[Mapping[str, Any]]]
ListCompanyIds = Callable[[], Sequence[str]]
CacheKey = tuple[str, int, int]


class ResolutionCache:
    def __init__(self) -> None:
        self._entries: dict[CacheKey, str] = {}

    def get(self, requested_id: str, year: int, month: int) -> str | None:
        return self._entries.get((requested_id, year, month))

    def set(self, requested_id: str, year: int, month: int, resolved_id: str) -> None:
        self._entries[(requested_id, year, month)] = resolved_id

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class CompanyDetection:
    correct_company_id: str | None
    liquidations_found: int
    confidence: int


def has_real_data(rows: Iterable[Mapping[str, Any]]) -> bool:
    for row in rows:
        try:
            if to_decimal(row.get("total_gross_income")) > 0:
                return True
        except InvalidAmountError:
            continue
    return False


def detect_correct_company_id(
    candidates: Iterable[str],
    year: int,
    month: int,
    fetch_liquidations: FetchLiquidations,
) -> CompanyDetection:
    """Return the first candidate with at least one liquidation carrying real earnings."""
    for company_id in candidates:
        try:
            rows = list(fetch_liquidations(company_id, year, month))
        except Exception as exc:
            logger.warning("Liquidation lookup failed for company %s: %s", company_id, exc)
            continue
        if rows and has_real_data(rows):
            return CompanyDetection(company_id, len(rows), DETECTION_CONFIDENCE)
    return CompanyDetection(None, 0, 0)


class CompanyIdResolver:
    def __init__(
        self,
        list_company_ids: ListCompanyIds,
        fetch_liquidations: FetchLiquidations,
        cache: ResolutionCache | None = None,
        placeholder_ids: Sequence[str] = ("1",),
    ) -> None:
        self.list_company_ids = list_company_ids
        self.fetch_liquidations = fetch_liquidations
        self.cache = cache if cache is not None else ResolutionCache()
        self.placeholder_ids = tuple(placeholder_ids)

    def resolve(self, requested_id: str, year: int, month: int) -> str:
        cached = self.cache.get(requested_id, year, month)
        if cached is not None:
            return cached

        if requested_id not in self.placeholder_ids:
            return requested_id

        detection = detect_correct_company_id(self.list_company_ids(), year, month, self.fetch_liquidations)
        if detection.correct_company_id is None:
            logger.info("No company with liquidations found for placeholder id %s", requested_id)
            return requested_id

        logger.info(
            "Resolved placeholder company %s to %s (%d liquidations)",
            requested_id,
            detection.correct_company_id,
            detection.liquidations_found,
        )
        self.cache.set(requested_id, year, month, detection.correct_company_id)
        return detection.correct_company_id
