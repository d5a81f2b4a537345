"""
Executor: a deterministic, resource-constrained simulation of accepted patches.

Nothing is actually run. Each operation type has a fixed simulated effect,
constraint breaches abort only the offending operation (recorded as a
warning), and the only source of variation is a freshly seeded LCG, so the
same operations with the same seed always yield the same trace.
"""
import logging
import re
from fnmatch import fnmatchcase
from typing import List, Optional, Protocol

from pydantic import BaseModel, Field

from patchsandbox.config import MAX_CONTENT_CHARS, MAX_LOOPS, MAX_RECURSION_DEPTH
from patchsandbox.rng import LinearCongruentialGenerator, RandomSource
from patchsandbox.schemas import Operation, OperationType, ValidationContext
from patchsandbox.whitelist import WhitelistManager

logger = logging.getLogger(__name__)

BASE_COST_MS   = 0.5
COST_JITTER_MS = 2.0
VALIDATE_PASS  = 0.2           # a validate op passes when the draw is above this
MEMORY_FLOOR   = 1024 * 1024   # simulated bytes at zero risk span [0.5, 1.0] × this

ADD_PREVIEW    = 100
MODIFY_PREVIEW = 50

LOOP_PATTERN   = re.compile(r"\b(for|while|do)\s*\(")
METHOD_CALL    = re.compile(r"\b([A-Za-z_$][\w$]*)\s*\.\s*([A-Za-z_$][\w$]*)\s*\(")

UNSAFE_CONTENT = [
    re.compile(r"\beval\s*\("),
    re.compile(r"\bFunction\s*\("),
    re.compile(r"<script", re.I),
    re.compile(r"javascript:", re.I),
    re.compile(r"<[^>]*\bon[a-z]+\s*=", re.I),  # inline handler inside a tag
]

CONSTRAINED_TYPES = (OperationType.ADD, OperationType.MODIFY)

SCENARIO_TAGS = {
    "circular-dependency": "[DEPENDENCY] Circular dependency analysis completed",
    "memory-leak":         "[MEMORY] Memory leak detection completed",
    "prompt-injection":    "[SECURITY] Input validation analysis completed",
}


class SimulationFault(ValueError):
    """A single simulated operation could not be applied."""


class SandboxConstraints(BaseModel):
    max_loops: int = MAX_LOOPS
    max_recursion_depth: int = MAX_RECURSION_DEPTH
    max_content_chars: int = MAX_CONTENT_CHARS
    allowed_apis: List[str] = Field(default_factory=lambda: [
        "console.log",
        "Math.*",
        "Array.*",
        "Object.*",
        "String.*",
        "Number.*",
        "JSON.*",
    ])
    blocked_patterns: List[str] = Field(default_factory=lambda: [
        r"\beval\s*\(",
        r"\bFunction\s*\(",
        r"\brequire\s*\(",
        r"\bimport\s+.*\bfrom\b",
        r"\bprocess\.",
        r"\bglobal\.",
        r"\bwindow\.",
        r"\bdocument\.",
    ])


class SimulationTrace(BaseModel):
    success: bool
    output: str
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    memory_usage: int
    execution_time: float


# ── Recursion bound ───────────────────────────────────────────────────────────

class RecursionEstimator(Protocol):
    def estimate(self, code: str) -> int:
        """Upper-bound estimate of the recursion depth the code can reach."""
        ...


class CallSiteRecursionEstimator:
    """
    Heuristic upper bound, not a static analysis: for every function declared
    in the code, count the call sites of that same name (the declaration
    counts as one) and report the largest count.
    """

    DECLARATION = re.compile(r"\b(?:function|def)\s+([A-Za-z_$][\w$]*)")

    def estimate(self, code: str) -> int:
        depth = 0
        for name in set(self.DECLARATION.findall(code)):
            calls = re.findall(rf"(?<![\w$]){re.escape(name)}\s*\(", code)
            depth = max(depth, len(calls))
        return depth


# ── Sandbox ───────────────────────────────────────────────────────────────────

def memory_for_risk(risk: float) -> int:
    return int(MEMORY_FLOOR * (0.5 + max(0.0, min(1.0, risk)) * 0.5))


def _preview(content: str, limit: int) -> str:
    return content[:limit] + ("..." if len(content) > limit else "")


class DeterministicSandbox:

    def __init__(
        self,
        seed: int,
        constraints: Optional[SandboxConstraints] = None,
        whitelist: Optional[WhitelistManager] = None,
        recursion_estimator: Optional[RecursionEstimator] = None,
    ):
        self.seed = seed
        self.constraints = constraints or SandboxConstraints()
        self.whitelist = whitelist or WhitelistManager()
        self.recursion_estimator = recursion_estimator or CallSiteRecursionEstimator()
        self._blocked = [re.compile(p) for p in self.constraints.blocked_patterns]

    def execute(self, operations: list[Operation], context: ValidationContext, risk_score: float = 0.0) -> SimulationTrace:
        """
        Simulates operations that already passed validation.

        A fresh generator is seeded for every call so results never depend on
        what ran before.
        """
        rng = LinearCongruentialGenerator(self.seed)
        lines: list[str] = []
        warnings: list[str] = []
        completed  = 0
        recognized = 0
        elapsed    = 0.0

        for index, op in enumerate(operations):
            content = op.content or ""

            # only new code is constrained; removals always simulate
            reason = self._constraint_breach(content) if op.type in CONSTRAINED_TYPES else None
            if reason:
                logger.warning(f"Operation {index} ({op.type.value}) aborted: {reason}")
                warnings.append(f"Operation {index} ({op.type.value}) aborted: {reason}")
                continue

            if op.type in CONSTRAINED_TYPES:
                warnings.extend(f"Operation {index}: unlisted API usage: {api}" for api in self._unlisted_apis(content))
            if len(content) > self.constraints.max_content_chars:
                warnings.append(f"Operation {index}: Content is very large ({len(content)} characters)")

            try:
                lines.append(self._simulate(op, rng))
                completed += 1
                if content and self.whitelist.is_pattern_allowed(content):
                    recognized += 1
            except SimulationFault as e:
                logger.warning(f"Operation {index} ({op.type.value}) failed: {e}")
                warnings.append(f"Operation {op.type.value} failed: {e}")

            elapsed += BASE_COST_MS + rng.next() * COST_JITTER_MS

        lines.append(f"[SANDBOX] {completed}/{len(operations)} operation(s) simulated, "
                     f"{recognized} recognized statement(s)")

        if risk_score > 0.7:
            lines.append("[HIGH RISK] Patch execution may cause system instability")
            warnings.append("High-risk patch detected - proceed with caution")
        elif risk_score > 0.4:
            lines.append("[MEDIUM RISK] Patch execution completed with warnings")
            warnings.append("Medium-risk patch - monitor system behavior")
        else:
            lines.append("[LOW RISK] Patch execution completed successfully")

        scenario = context.scenario_kind
        lines.append(SCENARIO_TAGS.get(scenario, f"[{(scenario or 'general').upper()}] Analysis completed"))

        errors = [] if completed else ["No operation could be simulated"]
        return SimulationTrace(
            success=completed > 0,
            output="\n".join(lines),
            warnings=warnings,
            errors=errors,
            memory_usage=memory_for_risk(risk_score),
            execution_time=round(elapsed, 3),
        )

    def _constraint_breach(self, content: str) -> Optional[str]:
        for pattern in self._blocked:
            if pattern.search(content):
                return f"blocked pattern {pattern.pattern}"

        loops = len(LOOP_PATTERN.findall(content))
        if loops > self.constraints.max_loops:
            return f"too many loops: {loops} exceeds limit of {self.constraints.max_loops}"

        depth = self.recursion_estimator.estimate(content)
        if depth > self.constraints.max_recursion_depth:
            return f"recursion depth {depth} exceeds limit {self.constraints.max_recursion_depth}"
        return None

    def _unlisted_apis(self, content: str) -> list[str]:
        apis = dict.fromkeys(f"{obj}.{member}" for obj, member in METHOD_CALL.findall(content))
        return [
            api for api in apis
            if not self.whitelist.is_api_allowed(api)
            and not any(fnmatchcase(api, allowed) for allowed in self.constraints.allowed_apis)
        ]

    def _simulate(self, op: Operation, rng: RandomSource) -> str:
        content = op.content or ""

        if op.type == OperationType.ADD:
            if any(p.search(content) for p in UNSAFE_CONTENT):
                raise SimulationFault("Content contains unsafe elements")
            return f"Added to {op.target}: {_preview(content, ADD_PREVIEW)}"

        if op.type == OperationType.REMOVE:
            return f"Removed from {op.target} at line {op.line or 0}"

        if op.type == OperationType.MODIFY:
            if any(p.search(content) for p in UNSAFE_CONTENT):
                raise SimulationFault("Modification contains unsafe elements")
            return f"Modified {op.target} at line {op.line or 0}: {_preview(content, MODIFY_PREVIEW)}"

        if op.type == OperationType.VALIDATE:
            verdict = "PASSED" if rng.next() > VALIDATE_PASS else "FAILED"
            return f"Validation of {op.target}: {verdict}"

        raise SimulationFault(f"Unknown operation type: {op.type}")
