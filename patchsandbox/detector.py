"""
Detector: scans patch code for dangerous constructs.

Every pattern in the catalog is checked (detection is exhaustive, not
first-hit). Patterns in the critical subset always produce a Critical
finding; every other catalog hit is High. Scenario-specific patterns add
Medium findings on top, so the same code can be judged differently
depending on the problem the patch is meant to fix.
"""
import logging
import re
from types import MappingProxyType
from typing import NamedTuple, Optional

from patchsandbox import education
from patchsandbox.schemas import SecurityViolation, Severity, ValidationContext, ViolationType

logger = logging.getLogger(__name__)

V = ViolationType


class PatternRule(NamedTuple):
    pattern: re.Pattern
    type: ViolationType


class ContextualRule(NamedTuple):
    pattern: re.Pattern
    absent: Optional[re.Pattern] = None     # only fires when this is NOT in the code


def _rule(source: str, violation_type: ViolationType, flags: int = re.I) -> PatternRule:
    return PatternRule(re.compile(source, flags), violation_type)


# ── Catalog ───────────────────────────────────────────────────────────────────

DANGEROUS_PATTERNS = (
    # Dynamic code evaluation / construction
    _rule(r"\beval\s*\(", V.UNSAFE_EVAL),
    _rule(r"(?<![\w.])exec\s*\(", V.UNSAFE_EVAL, 0),
    _rule(r"\bFunction\s*\(", V.CODE_INJECTION, 0),  # also covers `new Function(`
    _rule(r"setTimeout\s*\(\s*[\"'`][^\"'`]*[\"'`]", V.CODE_INJECTION),
    _rule(r"setInterval\s*\(\s*[\"'`][^\"'`]*[\"'`]", V.CODE_INJECTION),

    # Unvalidated markup
    _rule(r"innerHTML\s*=(?!=)", V.XSS),
    _rule(r"outerHTML\s*=(?!=)", V.XSS),
    _rule(r"document\.write\s*\(", V.XSS),
    _rule(r"document\.writeln\s*\(", V.XSS),

    # Prototype mutation
    _rule(r"__proto__\s*=(?!=)", V.PROTOTYPE_POLLUTION),
    _rule(r"constructor\.prototype", V.PROTOTYPE_POLLUTION),
    _rule(r"Object\.prototype", V.PROTOTYPE_POLLUTION),

    # Dynamic module loading
    _rule(r"\brequire\s*\(", V.DANGEROUS_API),
    _rule(r"\bimport\s*\(", V.DANGEROUS_API),
    _rule(r"\b__import__\s*\(", V.DANGEROUS_API, 0),

    # Process / environment
    _rule(r"\bprocess\.", V.PROCESS_ACCESS),
    _rule(r"\bos\.(environ\b|getenv\s*\()", V.PROCESS_ACCESS, 0),
    _rule(r"child_process", V.PROCESS_ACCESS),
    _rule(r"\b(spawn|execSync)\s*\(", V.PROCESS_ACCESS),
    _rule(r"\bsubprocess\.|\bos\.system\s*\(", V.PROCESS_ACCESS, 0),

    # Globals
    _rule(r"\bglobal\.", V.GLOBAL_ACCESS),
    _rule(r"\bwindow\.", V.GLOBAL_ACCESS),
    _rule(r"\bdocument\.", V.GLOBAL_ACCESS),

    # File system
    _rule(r"\bfs\.", V.FILESYSTEM_ACCESS),
    _rule(r"readFile", V.FILESYSTEM_ACCESS),
    _rule(r"writeFile", V.FILESYSTEM_ACCESS),

    # Network
    _rule(r"\bfetch\s*\(", V.NETWORK_ACCESS),
    _rule(r"XMLHttpRequest", V.NETWORK_ACCESS),
    _rule(r"WebSocket", V.NETWORK_ACCESS),

    # Catastrophic backtracking
    _rule(r"\(\?=.*\)\+", V.UNSAFE_REGEX),
    _rule(r"\(\?!.*\)\*", V.UNSAFE_REGEX),
    _rule(r"\((?:[^()\\]|\\.)*[+*]\)[+*]", V.UNSAFE_REGEX, 0),

    # Busy-wait
    _rule(r"while\s*\(\s*true\s*\)", V.INFINITE_LOOP),
    _rule(r"for\s*\(\s*;\s*;\s*\)", V.INFINITE_LOOP),
    _rule(r"\bwhile\s+(True|1)\s*:", V.INFINITE_LOOP, 0),
)

# Any hit on one of these is Critical regardless of how often it matches
CRITICAL_PATTERNS = frozenset([
    (r"\beval\s*\(", V.UNSAFE_EVAL),
    (r"(?<![\w.])exec\s*\(", V.UNSAFE_EVAL),
    (r"\bFunction\s*\(", V.CODE_INJECTION),
    (r"\bprocess\.", V.PROCESS_ACCESS),
    (r"\bos\.(environ\b|getenv\s*\()", V.PROCESS_ACCESS),
    (r"__proto__\s*=(?!=)", V.PROTOTYPE_POLLUTION),
])

CONTEXTUAL_RISKS = MappingProxyType({
    "prompt-injection": (
        ContextualRule(re.compile(r"\binput\s*\+", re.I)),
        ContextualRule(re.compile(r"\bprompt\s*\+", re.I)),
        ContextualRule(re.compile(r"user.*input", re.I)),
        ContextualRule(re.compile(r"\$\{.*\}", re.I)),
    ),
    "data-leak": (
        ContextualRule(re.compile(r"console\.log\s*\(.*password", re.I)),
        ContextualRule(re.compile(r"console\.log\s*\(.*token", re.I)),
        ContextualRule(re.compile(r"console\.log\s*\(.*secret", re.I)),
        ContextualRule(re.compile(r"alert\s*\(.*sensitive", re.I)),
        ContextualRule(re.compile(r"(password|secret|api_key)\s*=\s*['\"]", re.I)),
    ),
    "memory-leak": (
        ContextualRule(re.compile(r"addEventListener\s*\("), re.compile(r"removeEventListener\s*\(")),
        ContextualRule(re.compile(r"setInterval\s*\("), re.compile(r"clearInterval\s*\(")),
        ContextualRule(re.compile(r"setTimeout\s*\("), re.compile(r"clearTimeout\s*\(")),
        ContextualRule(re.compile(r"new\s+Array\s*\(\s*\d{6,}\s*\)", re.I)),
    ),
})

CONTEXTUAL_TYPES = MappingProxyType({
    "prompt-injection": V.CODE_INJECTION,
    "memory-leak":      V.MEMORY_LEAK,
})


def is_critical(rule: PatternRule) -> bool:
    return (rule.pattern.pattern, rule.type) in CRITICAL_PATTERNS


def find_location(code: str, match: str) -> str:
    """'Line N' of the first line containing the match (earliest wins)."""
    needle = match.split("\n")[0]
    for number, line in enumerate(code.split("\n"), start=1):
        if needle in line:
            return f"Line {number}"
    return "Unknown location"


class UnsafePatternDetector:

    def detect_violations(self, code: str, context: ValidationContext) -> list[SecurityViolation]:
        violations: list[SecurityViolation] = []

        for rule in DANGEROUS_PATTERNS:
            matches = [m.group(0) for m in rule.pattern.finditer(code)]
            if not matches:
                continue
            severity = Severity.CRITICAL if is_critical(rule) else Severity.HIGH
            violations.append(SecurityViolation(
                type=rule.type,
                severity=severity,
                description=education.describe(rule.type, len(matches)),
                location=find_location(code, matches[0]),
                educational_explanation=education.explain(rule.type),
                suggested_fix=education.suggest_fix(rule.type),
                learn_more_url=education.learn_more_url(rule.type),
            ))

        scenario = context.scenario_kind
        for rule in CONTEXTUAL_RISKS.get(scenario, ()):
            match = rule.pattern.search(code)
            if not match or (rule.absent is not None and rule.absent.search(code)):
                continue
            violations.append(SecurityViolation(
                type=CONTEXTUAL_TYPES.get(scenario, V.CONTEXTUAL_RISK),
                severity=Severity.MEDIUM,
                description=f"Contextual security risk for {scenario}: {match.group(0)}",
                location=find_location(code, match.group(0)),
                educational_explanation=education.explain_contextual(scenario, match.group(0)),
                suggested_fix=education.suggest_contextual_fix(scenario),
                scenario=scenario,
            ))

        if violations:
            logger.info(f"Detected {len(violations)} violation(s) for scenario '{scenario or 'none'}'")
        return violations
