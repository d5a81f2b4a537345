"""Tests for the deterministic sandbox executor."""
from datetime import datetime, timezone

import pytest

from conftest import make_diff
from patchsandbox.decomposer import decompose
from patchsandbox.executor import (
    CallSiteRecursionEstimator,
    DeterministicSandbox,
    SandboxConstraints,
    memory_for_risk,
)
from patchsandbox.schemas import Operation, OperationType, ValidationContext


def ops(*lines: str) -> list[Operation]:
    return decompose(make_diff(*lines))


@pytest.fixture
def box():
    return DeterministicSandbox(seed=12345)


def test_safe_operations_simulate(box) -> None:
    trace = box.execute(ops("const total = Math.max(a, b);", "console.log(total);"), ValidationContext())
    assert trace.success
    assert trace.errors == []
    lines = trace.output.split("\n")
    assert lines[0] == "Added to src/app.js: const total = Math.max(a, b);"
    assert lines[1] == "Added to src/app.js: console.log(total);"
    assert "[SANDBOX] 2/2 operation(s) simulated, 2 recognized statement(s)" in lines
    assert lines[-2] == "[LOW RISK] Patch execution completed successfully"
    assert lines[-1] == "[GENERAL] Analysis completed"
    assert trace.execution_time > 0


def test_same_seed_same_trace(box) -> None:
    operations = ops("let a = 1;", "let b = a + 1;")
    first = box.execute(operations, ValidationContext(), 0.3)
    second = DeterministicSandbox(seed=12345).execute(operations, ValidationContext(), 0.3)
    assert first.model_dump_json() == second.model_dump_json()


def test_generator_reseeded_per_run(box) -> None:
    operations = ops("let a = 1;")
    assert box.execute(operations, ValidationContext()) == box.execute(operations, ValidationContext())


def test_memory_follows_risk() -> None:
    assert memory_for_risk(0.0) == 524288
    assert memory_for_risk(1.0) == 1048576
    assert memory_for_risk(0.5) == 786432


def test_add_preview_is_truncated(box) -> None:
    long_line = "let s = '" + "x" * 200 + "';"
    trace = box.execute(ops(long_line), ValidationContext())
    assert trace.output.split("\n")[0] == f"Added to src/app.js: {long_line[:100]}..."


def test_remove_and_modify_effects(box) -> None:
    now = datetime.now(timezone.utc)
    operations = [
        Operation(type=OperationType.REMOVE, target="src/a.js", content="old();", line=4, parsed_at=now),
        Operation(type=OperationType.MODIFY, target="code", content="tighten the guard", line=1, parsed_at=now),
    ]
    lines = box.execute(operations, ValidationContext()).output.split("\n")
    assert lines[0] == "Removed from src/a.js at line 4"
    assert lines[1] == "Modified code at line 1: tighten the guard"


def test_validate_operation_uses_generator(box) -> None:
    op = Operation(type=OperationType.VALIDATE, target="tests", parsed_at=datetime.now(timezone.utc))
    # first draw for seed 12345 is ~0.413
    assert box.execute([op], ValidationContext()).output.startswith("Validation of tests: PASSED")


def test_blocked_pattern_aborts_only_that_operation(box) -> None:
    trace = box.execute(ops("window.title = 'x';", "let a = 1;"), ValidationContext())
    assert trace.success
    assert any("aborted: blocked pattern" in w for w in trace.warnings)
    assert "[SANDBOX] 1/2 operation(s) simulated" in trace.output


def test_nothing_simulated_is_failure(box) -> None:
    trace = box.execute(ops("document.title = 'x';"), ValidationContext())
    assert not trace.success
    assert trace.errors == ["No operation could be simulated"]


def test_unsafe_content_becomes_warning(box) -> None:
    trace = box.execute(ops("const html = '<script>alert(1)</script>';"), ValidationContext())
    assert "Operation add failed: Content contains unsafe elements" in trace.warnings
    assert not trace.success


def test_loop_limit() -> None:
    box = DeterministicSandbox(seed=1, constraints=SandboxConstraints(max_loops=1))
    trace = box.execute(ops("for (;i<2;i++) {} while (x) {}"), ValidationContext())
    assert any("too many loops: 2 exceeds limit of 1" in w for w in trace.warnings)


def test_recursion_estimate() -> None:
    code = "function fib(n) { return fib(n - 1) + fib(n - 2); }"
    assert CallSiteRecursionEstimator().estimate(code) == 3
    assert CallSiteRecursionEstimator().estimate("const a = b(1);") == 0

    box = DeterministicSandbox(seed=1, constraints=SandboxConstraints(max_recursion_depth=2))
    trace = box.execute(ops(code), ValidationContext())
    assert any("recursion depth 3 exceeds limit 2" in w for w in trace.warnings)


def test_custom_recursion_estimator() -> None:
    class Deep:
        def estimate(self, code: str) -> int:
            return 99

    box = DeterministicSandbox(seed=1, recursion_estimator=Deep())
    assert not box.execute(ops("let a = 1;"), ValidationContext()).success


def test_unlisted_api_warns_but_runs(box) -> None:
    trace = box.execute(ops("const s = name.trim();", "const m = Math.floor(s);"), ValidationContext())
    assert trace.success
    assert "Operation 0: unlisted API usage: name.trim" in trace.warnings
    assert not any("Math.floor" in w for w in trace.warnings)


def test_large_content_warning() -> None:
    box = DeterministicSandbox(seed=1, constraints=SandboxConstraints(max_content_chars=10))
    trace = box.execute(ops("const value = 1234567890;"), ValidationContext())
    assert "Operation 0: Content is very large (25 characters)" in trace.warnings
    assert trace.success


@pytest.mark.parametrize("risk, band, warning", [
    (0.9, "[HIGH RISK] Patch execution may cause system instability", "High-risk patch detected - proceed with caution"),
    (0.5, "[MEDIUM RISK] Patch execution completed with warnings", "Medium-risk patch - monitor system behavior"),
    (0.4, "[LOW RISK] Patch execution completed successfully", None),
])
def test_risk_bands(box, risk, band, warning) -> None:
    trace = box.execute(ops("let a = 1;"), ValidationContext(), risk)
    assert band in trace.output
    if warning:
        assert warning in trace.warnings
    assert trace.memory_usage == memory_for_risk(risk)


@pytest.mark.parametrize("scenario, tag", [
    ("circular-dependency", "[DEPENDENCY] Circular dependency analysis completed"),
    ("memory_leak", "[MEMORY] Memory leak detection completed"),
    ("prompt-injection", "[SECURITY] Input validation analysis completed"),
    ("stale-cache", "[STALE-CACHE] Analysis completed"),
])
def test_scenario_tags(box, scenario, tag) -> None:
    trace = box.execute(ops("let a = 1;"), ValidationContext(scenario=scenario))
    assert trace.output.endswith(tag)


def test_removal_of_blocked_code_simulates(box) -> None:
    trace = box.execute(decompose(make_diff(removed=("return eval(userInput);",))), ValidationContext())
    assert trace.success
    assert trace.output.startswith("Removed from src/app.js at line 1")
    assert not any("aborted" in w for w in trace.warnings)


def test_identifiers_starting_with_on_are_not_handlers(box) -> None:
    assert box.execute(ops('const online = "yes";'), ValidationContext()).success

    trace = box.execute(ops('const html = \'<img src="a.png" onerror="x">\';'), ValidationContext())
    assert not trace.success
    assert "Operation add failed: Content contains unsafe elements" in trace.warnings
