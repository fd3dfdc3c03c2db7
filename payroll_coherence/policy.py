"""
Coherence Policy

Tolerance and severity thresholds used by the coherence engine. The values are
in Chilean pesos; callers comparing other currencies pass their own policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any

from payroll_coherence.calculator import DEFAULT_TOLERANCE, to_decimal
from payroll_coherence.utils.contracts import load_validated_json, validate_output


@dataclass(frozen=True)
class CoherencePolicy:
    tolerance: Decimal = DEFAULT_TOLERANCE
    medium_threshold: Decimal = Decimal("1000")
    high_threshold: Decimal = Decimal("10000")
    critical_threshold: Decimal = Decimal("50000")

    def __post_init__(self) -> None:
        # Accept plain numbers from callers but keep Decimal internally.
        for name in ("tolerance", "medium_threshold", "high_threshold", "critical_threshold"):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))
        ordered = [self.tolerance, self.medium_threshold, self.high_threshold, self.critical_threshold]
        if self.tolerance < 0 or ordered != sorted(ordered):
            raise ValueError(
                "Coherence policy must satisfy 0 <= tolerance <= medium <= high <= critical, "
                f"got {', '.join(str(value) for value in ordered)}."
            )


DEFAULT_POLICY = CoherencePolicy()


def policy_from_config(config: dict[str, Any]) -> CoherencePolicy:
    """
    Build a policy from a validated configuration payload.

    Missing keys fall back to the defaults of DEFAULT_POLICY.
    """
    validate_output(config, "coherence_policy", mode="FILING")
    thresholds = config.get("thresholds", {})
    return CoherencePolicy(
        tolerance=config.get("tolerance", DEFAULT_POLICY.tolerance),
        medium_threshold=thresholds.get("medium", DEFAULT_POLICY.medium_threshold),
        high_threshold=thresholds.get("high", DEFAULT_POLICY.high_threshold),
        critical_threshold=thresholds.get("critical", DEFAULT_POLICY.critical_threshold),
    )


def load_policy(path: Path) -> CoherencePolicy:
    return policy_from_config(load_validated_json(path, "coherence_policy"))
