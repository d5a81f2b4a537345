"""Tests for unsafe pattern detection."""
from patchsandbox.detector import (
    CRITICAL_PATTERNS,
    DANGEROUS_PATTERNS,
    UnsafePatternDetector,
    find_location,
)
from patchsandbox.schemas import Severity, ValidationContext, ViolationType


def detect(code: str, scenario: str = "") -> list:
    return UnsafePatternDetector().detect_violations(code, ValidationContext(scenario=scenario))


def test_clean_code_has_no_violations() -> None:
    assert detect("const total = Math.max(a, b);\nconsole.log(total);") == []


def test_eval_is_single_critical() -> None:
    violations = detect("return eval(userInput);")
    assert len(violations) == 1
    v = violations[0]
    assert v.type == ViolationType.UNSAFE_EVAL
    assert v.severity == Severity.CRITICAL
    assert v.location == "Line 1"
    assert "JSON.parse()" in v.suggested_fix
    assert v.learn_more_url


def test_function_constructor_is_critical() -> None:
    violations = detect("const f = new Function('a', 'return a');")
    assert {v.type for v in violations} == {ViolationType.CODE_INJECTION}
    assert all(v.severity == Severity.CRITICAL for v in violations)


def test_inner_html_is_high() -> None:
    violations = detect("element.innerHTML = userInput;")
    assert [(v.type, v.severity) for v in violations] == [(ViolationType.XSS, Severity.HIGH)]


def test_comparison_is_not_assignment() -> None:
    assert detect("if (element.innerHTML == cached) { return; }") == []


def test_occurrences_are_counted_in_description() -> None:
    violations = detect("eval(a);\neval(b);")
    assert violations[0].description == "Unsafe eval() usage detected (2 instances)"


def test_location_is_first_matching_line() -> None:
    violations = detect("let a = 1;\nlet b = 2;\nfetch(url);")
    assert violations[0].type == ViolationType.NETWORK_ACCESS
    assert violations[0].location == "Line 3"


def test_detection_is_exhaustive() -> None:
    code = "eval(x);\nprocess.exit(1);\nwindow.location = u;\nwhile (true) {}"
    types = {v.type for v in detect(code)}
    assert {
        ViolationType.UNSAFE_EVAL,
        ViolationType.PROCESS_ACCESS,
        ViolationType.GLOBAL_ACCESS,
        ViolationType.INFINITE_LOOP,
    } <= types


def test_word_boundaries_avoid_false_positives() -> None:
    assert detect("const docs = retrieval(query);\nconst refs = prefs.items;") == []


def test_contextual_prompt_injection() -> None:
    violations = detect("const query = prompt + input;", scenario="prompt-injection")
    assert len(violations) == 1
    v = violations[0]
    assert v.severity == Severity.MEDIUM
    assert v.type == ViolationType.CODE_INJECTION
    assert v.scenario == "prompt-injection"
    assert v.description.startswith("Contextual security risk for prompt-injection")


def test_contextual_rules_depend_on_scenario() -> None:
    assert detect("const query = prompt + input;", scenario="data-leak") == []
    assert detect("const query = prompt + input;") == []


def test_memory_leak_rule_respects_cleanup() -> None:
    leaky = "el.addEventListener('click', onClick);"
    assert [v.type for v in detect(leaky, "memory-leak")] == [ViolationType.MEMORY_LEAK]
    cleaned = leaky + "\nel.removeEventListener('click', onClick);"
    assert detect(cleaned, "memory-leak") == []


def test_hardcoded_secret_in_data_leak_scenario() -> None:
    violations = detect("const api_key = 'abc123';", "data-leak")
    assert len(violations) == 1
    assert violations[0].type == ViolationType.CONTEXTUAL_RISK


def test_critical_subset_is_in_catalog() -> None:
    catalog = {(rule.pattern.pattern, rule.type) for rule in DANGEROUS_PATTERNS}
    assert CRITICAL_PATTERNS <= catalog


def test_find_location_unknown() -> None:
    assert find_location("a\nb", "zzz") == "Unknown location"


def test_new_function_is_one_finding() -> None:
    violations = detect("const f = new Function(body);")
    assert len(violations) == 1
    assert violations[0].severity == Severity.CRITICAL
