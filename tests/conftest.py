"""Shared fixtures for the patch sandbox tests."""
import pytest

from patchsandbox.config import PipelineConfig
from patchsandbox.pipeline import PatchSandbox
from patchsandbox.schemas import PatchPlan, ValidationContext


def make_diff(*added: str, removed: tuple = (), target: str = "src/app.js") -> str:
    """Unified diff for one file: removed lines first, then added lines."""
    body = "".join(f"-{line}\n" for line in removed) + "".join(f"+{line}\n" for line in added)
    return (
        f"--- a/{target}\n"
        f"+++ b/{target}\n"
        f"@@ -1,{len(removed)} +1,{len(added)} @@\n"
        + body
    )


def make_patch(*added: str, risk: float = 0.1, description: str = "test patch", **kwargs) -> PatchPlan:
    return PatchPlan(diff=make_diff(*added, **kwargs), description=description, risk=risk)


@pytest.fixture
def sandbox():
    """A fresh pipeline with its own empty cache."""
    return PatchSandbox(PipelineConfig())


@pytest.fixture
def context():
    return ValidationContext(scenario_id="room-1", player_intent="fix the bug")


@pytest.fixture
def safe_patch():
    return make_patch("const total = Math.max(a, b);", "console.log(total);", risk=0.1)


@pytest.fixture
def eval_patch():
    return make_patch("return eval(userInput);", risk=0.1)


@pytest.fixture
def sample_diff():
    return (
        "diff --git a/src/app.js b/src/app.js\n"
        "--- a/src/app.js\n"
        "+++ b/src/app.js\n"
        "@@ -10,3 +10,4 @@\n"
        " function handle(data) {\n"
        "-  return data;\n"
        "+  const clean = sanitize(data);\n"
        "+  return clean;\n"
        " }\n"
    )
