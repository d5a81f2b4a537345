"""Tests for the lint pipeline."""
from patchsandbox.lint import LintPipeline


def lint(code, rules=None):
    return LintPipeline().lint(code, rules)


def test_clean_code_passes() -> None:
    result = lint("const a = [1, 2];\nfunction f(x) { return x; }")
    assert result.passed
    assert result.issues == []


def test_unbalanced_delimiters() -> None:
    result = lint("function f(x) { return x;\n")
    assert not result.passed
    assert result.issues[0].rule == "syntax-error"
    assert result.issues[0].message == "Syntax error: Unclosed '{'"


def test_unexpected_closer_position() -> None:
    issue = lint("let a = 1;\nlet b = (2));").issues[0]
    assert (issue.line, issue.column) == (2, 12)


def test_brackets_in_strings_and_comments_ignored() -> None:
    assert lint("const s = ')';\n// (unclosed in comment\nconst t = `[`;").passed


def test_security_rules_only_when_set_to_error() -> None:
    code = "eval(x);\nel.innerHTML = y;"
    result = lint(code, {"no-eval": "error", "no-inner-html": "warn"})
    assert [(i.rule, i.line) for i in result.issues] == [("no-eval", 1)]
    assert not result.passed


def test_default_rules_catch_eval() -> None:
    assert [i.rule for i in lint("eval(x);").issues] == ["no-eval"]


def test_max_line_length_is_a_warning() -> None:
    result = lint("let a = 1;" + " " * 50, {"max-line-length": 20})
    assert result.passed
    assert result.issues[0].severity == "warning"
    assert result.issues[0].column == 20


def test_no_console() -> None:
    result = lint("console.warn('x');", {"no-console": "error"})
    assert not result.passed
    assert result.issues[0].rule == "no-console"
    assert lint("console.warn('x');", {}).passed
