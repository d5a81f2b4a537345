"""Tests for the result cache."""
import threading

from patchsandbox.cache import ResultCache, make_key
from patchsandbox.schemas import PatchPlan, SandboxExecutionResult, ValidationContext


def key_for(diff="+a\n", seed=12345, **context) -> str:
    return make_key(PatchPlan(diff=diff), ValidationContext(**context), seed)


def test_key_is_stable() -> None:
    assert key_for() == key_for()
    assert len(key_for()) == 64


def test_key_covers_every_input() -> None:
    base = key_for()
    assert key_for(diff="+b\n") != base
    assert key_for(seed=1) != base
    assert key_for(scenario_id="room-2") != base
    assert key_for(scenario="prompt-injection") != base
    assert key_for(player_intent="other") != base
    assert key_for(risk_tolerance=0.9) != base


def test_key_ignores_declared_risk_and_description() -> None:
    a = make_key(PatchPlan(diff="+a\n", risk=0.1, description="x"), ValidationContext(), 1)
    b = make_key(PatchPlan(diff="+a\n", risk=0.9, description="y"), ValidationContext(), 1)
    assert a == b


def test_get_put_and_stats() -> None:
    cache = ResultCache()
    assert cache.get("k") is None
    cache.put("k", SandboxExecutionResult(success=True, output="ok"))
    assert cache.get("k").output == "ok"
    assert cache.stats() == {"size": 1, "hits": 1, "misses": 1, "hit_rate": 0.5}


def test_stored_result_is_isolated_from_callers() -> None:
    cache = ResultCache()
    result = SandboxExecutionResult(success=True, warnings=["w"])
    cache.put("k", result)
    result.warnings.append("mutated after put")
    fetched = cache.get("k")
    fetched.warnings.append("mutated after get")
    assert cache.get("k").warnings == ["w"]


def test_clear() -> None:
    cache = ResultCache()
    cache.put("k", SandboxExecutionResult(success=False))
    cache.clear()
    assert len(cache) == 0
    assert cache.stats()["hits"] == 0


def test_concurrent_puts() -> None:
    cache = ResultCache()

    def fill(start: int) -> None:
        for i in range(start, start + 100):
            cache.put(str(i), SandboxExecutionResult(success=True))

    threads = [threading.Thread(target=fill, args=(n * 100,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(cache) == 400
