"""
Lint: a small rule-driven checker for patch code.

`rules` maps rule names to settings, eslint style:
    {"no-eval": "error", "max-line-length": 120, "no-console": "error"}
Security rules only report when set to "error". A result passes when no
issue has severity "error".
"""
import logging
import re
from types import MappingProxyType
from typing import Any, Optional

from patchsandbox.schemas import LintIssue, LintResult

logger = logging.getLogger(__name__)

DEFAULT_LINT_RULES = MappingProxyType({
    "no-eval": "error",
    "no-function-constructor": "error",
    "no-inner-html": "error",
    "no-document-write": "error",
    "max-line-length": 120,
})

SECURITY_RULES = (
    (re.compile(r"\beval\s*\("),       "Use of eval() is prohibited",                "no-eval"),
    (re.compile(r"\bFunction\s*\("),   "Use of Function constructor is prohibited",  "no-function-constructor"),
    (re.compile(r"innerHTML\s*=(?!=)"), "Direct innerHTML assignment detected",       "no-inner-html"),
    (re.compile(r"document\.write"),   "Use of document.write is prohibited",        "no-document-write"),
)

CONSOLE_CALL = re.compile(r"\bconsole\.(log|warn|error)\b")

OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {v: k for k, v in OPENERS.items()}
QUOTES  = "\"'`"


def _delimiter_error(code: str) -> Optional[LintIssue]:
    """First unbalanced bracket, ignoring string literals and // comments."""
    stack: list[tuple[str, int, int]] = []
    for line_no, line in enumerate(code.split("\n"), start=1):
        quote = None
        col = 0
        while col < len(line):
            char = line[col]
            if quote:
                if char == "\\":
                    col += 1
                elif char == quote:
                    quote = None
            elif char in QUOTES:
                quote = char
            elif line.startswith("//", col):
                break
            elif char in OPENERS:
                stack.append((char, line_no, col + 1))
            elif char in CLOSERS:
                if not stack or stack[-1][0] != CLOSERS[char]:
                    return LintIssue(line=line_no, column=col + 1, severity="error",
                                     message=f"Syntax error: Unexpected token '{char}'", rule="syntax-error")
                stack.pop()
            col += 1

    if stack:
        char, line_no, col = stack[-1]
        return LintIssue(line=line_no, column=col, severity="error",
                         message=f"Syntax error: Unclosed '{char}'", rule="syntax-error")
    return None


class LintPipeline:

    def lint(self, code: str, rules: Optional[dict[str, Any]] = None) -> LintResult:
        rules = DEFAULT_LINT_RULES if rules is None else rules
        issues: list[LintIssue] = []

        syntax = _delimiter_error(code)
        if syntax:
            issues.append(syntax)

        issues.extend(self._check_security(code, rules))
        issues.extend(self._check_style(code, rules))

        passed = not any(issue.severity == "error" for issue in issues)
        logger.info(f"Lint {'passed' if passed else 'failed'} with {len(issues)} issue(s)")
        return LintResult(passed=passed, issues=issues)

    def _check_security(self, code: str, rules) -> list[LintIssue]:
        issues = []
        for line_no, line in enumerate(code.split("\n"), start=1):
            for pattern, message, rule in SECURITY_RULES:
                if rules.get(rule) == "error" and pattern.search(line):
                    issues.append(LintIssue(line=line_no, column=1, severity="error", message=message, rule=rule))
        return issues

    def _check_style(self, code: str, rules) -> list[LintIssue]:
        issues = []
        max_length = rules.get("max-line-length")
        for line_no, line in enumerate(code.split("\n"), start=1):
            if max_length and len(line) > max_length:
                issues.append(LintIssue(
                    line=line_no,
                    column=max_length,
                    severity="warning",
                    message=f"Line exceeds maximum length of {max_length}",
                    rule="max-line-length",
                ))
            if rules.get("no-console") == "error" and CONSOLE_CALL.search(line):
                issues.append(LintIssue(
                    line=line_no,
                    column=1,
                    severity="error",
                    message="Console statements are not allowed",
                    rule="no-console",
                ))
        return issues
