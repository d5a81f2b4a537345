"""
Validator: the security gate every patch passes before it may be simulated.

Combines the detector, the whitelist and the scorer into one decision, and
renders the rejection message shown to the player when a patch is refused.
"""
import logging
import re
from typing import Optional

from patchsandbox import scoring
from patchsandbox.detector import UnsafePatternDetector
from patchsandbox.education import EducationalContentGenerator
from patchsandbox.schemas import (
    Operation,
    OperationType,
    PatchPlan,
    SecurityViolation,
    Severity,
    ValidationContext,
    ValidationResult,
    ViolationType,
)
from patchsandbox.whitelist import WhitelistManager

logger = logging.getLogger(__name__)

# (pattern, kind, report the matched name instead of the kind)
OPERATION_PATTERNS = [
    (re.compile(r"\b(eval|Function|setTimeout|setInterval)\s*\("),   "dangerous-function",    True),
    (re.compile(r"\b(require|import)\s*\("),                          "module-loading",        True),
    (re.compile(r"\.(innerHTML|outerHTML)\s*=(?!=)"),                 "dom-manipulation",      True),
    (re.compile(r"\b(fetch|XMLHttpRequest|WebSocket)\b"),             "network-access",        True),
    (re.compile(r"\b(localStorage|sessionStorage)\b"),                "storage-access",        True),
    (re.compile(r"\b(addEventListener|removeEventListener)\s*\("),    "event-listener",        True),
    (re.compile(r"\b(clearInterval|clearTimeout)\s*\("),              "timer-cleanup",         True),
    (re.compile(r"\bconsole\.\w+\s*\("),                              "console-operation",     False),
    (re.compile(r"\bMath\.\w+\s*\("),                                 "math-operation",        False),
    (re.compile(r"\bArray\.\w+\s*\("),                                "array-operation",       False),
    (re.compile(r"\bObject\.\w+\s*\("),                               "object-operation",      False),
    (re.compile(r"\b(const|let|var)\s+\w+\s*="),                      "variable-declaration",  False),
    (re.compile(r"\bfunction\s+\w+\s*\("),                            "function-declaration",  False),
    (re.compile(r"\bif\s*\("),                                        "conditional-statement", False),
    (re.compile(r"\b(for|while)\s*\("),                               "loop-statement",        False),
    (re.compile(r"\breturn\b"),                                       "return-statement",      False),
    (re.compile(r"\w+\s*=\s*[^=]"),                                   "assignment",            False),
]

SCANNED_TYPES = (OperationType.ADD, OperationType.MODIFY)

WHAT_YOU_CAN_DO = """**What You Can Do:**
1. Review the security issues above
2. Modify your patch to use safer alternatives
3. Ask for guidance on secure coding practices
4. Try a different approach to solve the problem

**Remember:** Security is crucial in debugging. These restrictions help you learn safe coding practices!"""


def extract_code(operations: list[Operation]) -> str:
    """The text a patch introduces: content of every add/modify, one per line."""
    return "\n".join(op.content or "" for op in operations if op.type in SCANNED_TYPES)


def extract_operations(code: str) -> list[str]:
    """Operation names observed in the code, deduplicated, in catalog order."""
    found: list[str] = []
    for pattern, kind, by_name in OPERATION_PATTERNS:
        if by_name:
            found.extend(m.group(1) for m in pattern.finditer(code))
        elif pattern.search(code):
            found.append(kind)
    return list(dict.fromkeys(found))


class SecurityValidator:

    def __init__(
        self,
        whitelist: Optional[WhitelistManager] = None,
        detector: Optional[UnsafePatternDetector] = None,
        educator: Optional[EducationalContentGenerator] = None,
    ):
        self.whitelist = whitelist or WhitelistManager()
        self.detector  = detector or UnsafePatternDetector()
        self.educator  = educator or EducationalContentGenerator()

    def validate(self, patch: PatchPlan, context: ValidationContext, operations: list[Operation]) -> ValidationResult:
        """
        Scores the decomposed patch and decides whether it may run.

        Never raises for a bad patch: problems come back as violations on a
        result with is_valid=False.
        """
        code = extract_code(operations)
        violations = self.detector.detect_violations(code, context)

        allowed, blocked = [], []
        for name in extract_operations(code):
            if self.whitelist.is_operation_allowed(name, context):
                allowed.append(name)
                continue
            blocked.append(name)
            violations.append(SecurityViolation(
                type=ViolationType.DANGEROUS_API,
                severity=Severity.MEDIUM,
                description=f"Operation '{name}' is not in the allowed operations list",
                location="Code analysis",
                educational_explanation=(
                    f"The operation '{name}' has been blocked because it's not in the list "
                    f"of safe operations for this context."
                ),
                suggested_fix=(
                    "Use an alternative approach or request approval for this operation "
                    "if it's necessary for the fix."
                ),
            ))

        factors = scoring.scenario_risk_factors(code, context.scenario_kind)
        risk_score = scoring.score(patch.risk, violations, factors)
        is_valid = scoring.is_acceptable(risk_score, violations)

        lesson_worthy = violations if context.educational_mode else [
            v for v in violations if v.severity in (Severity.HIGH, Severity.CRITICAL)
        ]

        verdict = "accepted" if is_valid else "rejected"
        logger.info(f"Patch {verdict}: risk {risk_score:.2f}, {len(violations)} violation(s), "
                    f"{len(blocked)} blocked operation(s)")

        return ValidationResult(
            is_valid=is_valid,
            risk_score=risk_score,
            violations=violations,
            educational_content=self.educator.generate(lesson_worthy),
            allowed_operations=allowed,
            blocked_operations=blocked,
        )

    def policy_rejection(self, patch: PatchPlan, error: ValueError) -> ValidationResult:
        """Result for a patch refused on structure alone, before any scanning."""
        return ValidationResult(
            is_valid=False,
            risk_score=scoring.clamp(patch.risk),
            errors=[str(error)],
        )

    def rejection_message(self, result: ValidationResult) -> str:
        if result.is_valid:
            return ""

        parts = ["**Patch Rejected for Security Reasons**\n"]

        if result.errors:
            parts.append("**Policy Errors:**")
            parts.extend(f"• {error}" for error in result.errors)
            parts.append("")

        sections = [
            (Severity.CRITICAL, "**Critical Security Issues:**"),
            (Severity.HIGH,     "**High-Risk Security Issues:**"),
            (Severity.MEDIUM,   "**Medium-Risk Security Issues:**"),
            (Severity.LOW,      "**Low-Risk Security Issues:**"),
        ]
        for severity, heading in sections:
            group = [v for v in result.violations if v.severity == severity]
            if not group:
                continue
            parts.append(heading)
            for violation in group:
                parts.append(f"• {violation.description} ({violation.location})")
                parts.append(f"  Why: {violation.educational_explanation}")
                parts.append(f"  **Fix:** {violation.suggested_fix}")
                parts.append("")

        if result.blocked_operations:
            parts.append("**Blocked Operations:**")
            parts.append(f"The following operations are not allowed: {', '.join(result.blocked_operations)}")
            parts.append("")
            if result.allowed_operations:
                shown = ", ".join(result.allowed_operations[:10])
                more = "..." if len(result.allowed_operations) > 10 else ""
                parts.append("**Allowed Operations:**")
                parts.append(f"You can use: {shown}{more}")
                parts.append("")

        parts.append(WHAT_YOU_CAN_DO)
        return "\n".join(parts)
