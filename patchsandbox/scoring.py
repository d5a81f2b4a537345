"""
Risk scoring: one bounded number per patch, and the accept/reject call.

    score = baseline
          + Σ severity weight per violation
          + Σ factor weight × occurrences × 0.1
    clamped to [0, 1]

A patch is rejected when the score reaches REJECT_THRESHOLD *or* when any
finding is Critical. The second condition means a single eval() can never be
averaged away by an otherwise harmless patch.
"""
import logging
import re
from types import MappingProxyType
from typing import NamedTuple

from patchsandbox.schemas import SecurityViolation, Severity

logger = logging.getLogger(__name__)

REJECT_THRESHOLD = 0.8
OCCURRENCE_SCALE = 0.1

SEVERITY_WEIGHTS = MappingProxyType({
    Severity.CRITICAL: 0.4,
    Severity.HIGH:     0.3,
    Severity.MEDIUM:   0.2,
    Severity.LOW:      0.1,
})

RISK_CATEGORIES = (
    ("dynamic-evaluation",        re.compile(r"\beval\s*\("),                     1.0),
    ("function-constructor",      re.compile(r"\bFunction\s*\("),                 0.9),
    ("markup-manipulation",       re.compile(r"innerHTML\s*=(?!=)"),              0.7),
    ("network-access",            re.compile(r"\bfetch\s*\(|XMLHttpRequest"),     0.8),
    ("persistent-storage-access", re.compile(r"\b(localStorage|sessionStorage)\b"), 0.9),
)

# Scenarios whose lesson is about the category get a lighter weight for it
SCENARIO_WEIGHT_OVERRIDES = MappingProxyType({
    "stale-cache": MappingProxyType({"persistent-storage-access": 0.3}),
})


class RiskFactor(NamedTuple):
    name: str
    weight: float
    occurrences: int

    @property
    def contribution(self) -> float:
        return self.weight * self.occurrences * OCCURRENCE_SCALE


def clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def scenario_risk_factors(code: str, scenario_kind: str = "") -> list[RiskFactor]:
    """Counts each risk category in the code, weighted for the active scenario."""
    overrides = SCENARIO_WEIGHT_OVERRIDES.get(scenario_kind, {})
    factors: list[RiskFactor] = []
    for name, pattern, weight in RISK_CATEGORIES:
        occurrences = len(pattern.findall(code))
        if occurrences:
            factors.append(RiskFactor(name, overrides.get(name, weight), occurrences))
    return factors


def score(baseline: float, violations: list[SecurityViolation], factors: list[RiskFactor]) -> float:
    total = baseline
    total += sum(SEVERITY_WEIGHTS[v.severity] for v in violations)
    total += sum(f.contribution for f in factors)
    logger.debug(f"Raw risk {total:.3f} from baseline {baseline:.2f}, "
                 f"{len(violations)} violation(s), {len(factors)} factor(s)")
    return clamp(total)


def is_acceptable(risk_score: float, violations: list[SecurityViolation]) -> bool:
    if any(v.severity == Severity.CRITICAL for v in violations):
        return False
    return risk_score < REJECT_THRESHOLD
