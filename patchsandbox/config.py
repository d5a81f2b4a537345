"""
Runtime settings for the patch sandbox.

Every value can be overridden through the environment, e.g.
    PATCHSANDBOX_SEED=42 uvicorn patchsandbox.main:app
"""
import os

from pydantic import BaseModel, Field


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in ("0", "false", "no", "off")


SIMULATION_SEED     = int(os.getenv("PATCHSANDBOX_SEED", "12345"))
MAX_OPERATIONS      = int(os.getenv("PATCHSANDBOX_MAX_OPERATIONS", "10"))
MAX_LOOPS           = int(os.getenv("PATCHSANDBOX_MAX_LOOPS", "10"))
MAX_RECURSION_DEPTH = int(os.getenv("PATCHSANDBOX_MAX_RECURSION_DEPTH", "5"))
MAX_CONTENT_CHARS   = int(os.getenv("PATCHSANDBOX_MAX_CONTENT_CHARS", "10000"))
CACHE_RESULTS       = _flag("PATCHSANDBOX_CACHE", "1")
LOG_LEVEL           = os.getenv("PATCHSANDBOX_LOG_LEVEL", "INFO").upper()


class PipelineConfig(BaseModel):
    """Per-instance view of the settings above; tests override fields directly."""
    seed: int = SIMULATION_SEED
    max_operations: int = Field(MAX_OPERATIONS, ge=1)
    max_loops: int = Field(MAX_LOOPS, ge=0)
    max_recursion_depth: int = Field(MAX_RECURSION_DEPTH, ge=0)
    max_content_chars: int = Field(MAX_CONTENT_CHARS, ge=1)
    cache_results: bool = CACHE_RESULTS
