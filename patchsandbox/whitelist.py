"""
Whitelist: the rule catalog of operations, statement shapes and APIs a patch
may use without being flagged.

Three tiers, consulted in order:
  1. contextual allowances for the active scenario
  2. the base whitelist
  3. deny
so a scenario that teaches e.g. listener teardown is not blocked by the
generic rules.
"""
import logging
import re
from types import MappingProxyType
from typing import Optional

from patchsandbox.schemas import ValidationContext

logger = logging.getLogger(__name__)

ALLOWED_OPERATIONS = frozenset([
    # Basic statements
    "variable-declaration",
    "function-declaration",
    "conditional-statement",
    "loop-statement",
    "return-statement",
    "assignment",

    # Safe method calls
    "array-operation",
    "string-method",
    "math-operation",
    "object-operation",
    "console-operation",

    # Testing
    "test-assertion",
    "mock-creation",
    "spy-creation",

    # Code quality
    "linting",
    "formatting",
    "type-checking",
    "documentation",
])

# Statement shapes that are structurally safe on their own
ALLOWED_PATTERNS = (
    re.compile(r"^[a-zA-Z_$][a-zA-Z0-9_$]*\s*=\s*"),
    re.compile(r"^function\s+[a-zA-Z_$][a-zA-Z0-9_$]*\s*\("),
    re.compile(r"^const\s+[a-zA-Z_$][a-zA-Z0-9_$]*\s*="),
    re.compile(r"^let\s+[a-zA-Z_$][a-zA-Z0-9_$]*\s*="),
    re.compile(r"^if\s*\("),
    re.compile(r"^for\s*\("),
    re.compile(r"^while\s*\("),
    re.compile(r"^return\s+"),
    re.compile(r"^console\.log\s*\("),
    re.compile(r"^Math\.[a-zA-Z]+\s*\("),
    re.compile(r"^Array\.(from|isArray|of)\s*\("),
    re.compile(r"^Object\.(keys|values|entries|assign)\s*\("),
    re.compile(r"^JSON\.(parse|stringify)\s*\("),
    re.compile(r"^String\.(fromCharCode|raw)\s*\("),
    re.compile(r"^Number\.(isNaN|isFinite|parseInt|parseFloat)\s*\("),
)

SAFE_APIS = frozenset([
    "console.log", "console.warn", "console.error",
    "Math.abs", "Math.max", "Math.min", "Math.floor", "Math.ceil", "Math.round",
    "Array.isArray", "Array.from", "Array.of",
    "Object.keys", "Object.values", "Object.entries", "Object.assign", "Object.create",
    "JSON.parse", "JSON.stringify",
    "String.fromCharCode",
    "Number.isNaN", "Number.isFinite", "Number.parseInt", "Number.parseFloat",
])

CONTEXTUAL_ALLOWANCES = MappingProxyType({
    "circular-dependency": ("import", "export", "require"),
    "memory-leak":         ("addEventListener", "removeEventListener", "clearInterval", "clearTimeout"),
    "stale-cache":         ("localStorage", "sessionStorage", "cache"),
    "unbounded-recursion": ("recursion", "stack"),
    "prompt-injection":    ("input", "sanitize", "validate"),
    "data-leak":           ("encrypt", "decrypt", "hash"),
})


class WhitelistManager:
    """Read-only view over the module tables; safe to share between requests."""

    def is_operation_allowed(self, operation: str, context: Optional[ValidationContext] = None) -> bool:
        if context is not None and operation in self.contextual_allowances(context.scenario_kind):
            logger.debug(f"'{operation}' allowed for scenario '{context.scenario_kind}'")
            return True
        return operation in ALLOWED_OPERATIONS

    def is_pattern_allowed(self, code: str) -> bool:
        stripped = code.strip()
        return any(p.search(stripped) for p in ALLOWED_PATTERNS)

    def is_api_allowed(self, api: str) -> bool:
        return api in SAFE_APIS

    def contextual_allowances(self, scenario_kind: str) -> list[str]:
        return list(CONTEXTUAL_ALLOWANCES.get(scenario_kind, ()))
