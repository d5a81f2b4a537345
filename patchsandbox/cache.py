"""
Cache: finished simulation results keyed by everything that can change them.

Rejected and failed results are cached too, so a repeated bad patch costs a
dict lookup. Entries are copied on the way in and on the way out; callers
can mutate what they get back without touching the stored result.
"""
import hashlib
import json
import logging
import threading
from typing import Optional

from patchsandbox.schemas import PatchPlan, SandboxExecutionResult, ValidationContext

logger = logging.getLogger(__name__)


def make_key(patch: PatchPlan, context: ValidationContext, seed: int) -> str:
    payload = {
        "diff": patch.diff,
        "scenario_id": context.scenario_id,
        "scenario": context.scenario_kind,
        "player_intent": context.player_intent,
        "risk_tolerance": context.risk_tolerance,
        "seed": seed,
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class ResultCache:

    def __init__(self):
        self._entries: dict[str, SandboxExecutionResult] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[SandboxExecutionResult]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.model_copy(deep=True)

    def put(self, key: str, result: SandboxExecutionResult) -> None:
        with self._lock:
            self._entries[key] = result.model_copy(deep=True)

    def clear(self) -> None:
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        logger.info(f"Cleared {dropped} cached result(s)")

    def stats(self) -> dict:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups if lookups else 0.0,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
