"""
Outcomes: turns a finished simulation into game events that move the
stability and insight meters.

Event ids derive from the request alone (diff, scenario id, player intent),
so replaying a request yields the same ids.
"""
import logging
import re
from datetime import datetime, timezone

from patchsandbox.schemas import (
    MeterEffects,
    OutcomeEvent,
    OutcomeEventType,
    PatchPlan,
    SandboxExecutionResult,
    ValidationContext,
)

logger = logging.getLogger(__name__)

WARNING_RISK                 = 0.6
PERFORMANCE_MEMORY_THRESHOLD = 800 * 1024

SECURITY_WORDING = re.compile(r"security|critical", re.I)

ID_SUFFIXES = {
    OutcomeEventType.SUCCESS:            "success",
    OutcomeEventType.WARNING:            "warning",
    OutcomeEventType.PERFORMANCE_IMPACT: "performance",
    OutcomeEventType.ERROR:              "error",
    OutcomeEventType.SECURITY_VIOLATION: "security",
}


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def rolling_hash(text: str) -> int:
    """hash = hash * 31 + code point, wrapped to a signed 32-bit int."""
    h = 0
    for char in text:
        h = _int32((h << 5) - h + ord(char))
    return h


def event_id(patch: PatchPlan, context: ValidationContext) -> str:
    seed = f"{patch.diff}-{context.scenario_id}-{context.player_intent}"
    return format(abs(rolling_hash(seed)), "x")


def events(patch: PatchPlan, context: ValidationContext, result: SandboxExecutionResult) -> list[OutcomeEvent]:
    base_id = event_id(patch, context)
    now = datetime.now(timezone.utc)

    def event(kind: OutcomeEventType, description: str, effects: MeterEffects) -> OutcomeEvent:
        return OutcomeEvent(
            id=f"{base_id}-{ID_SUFFIXES[kind]}",
            type=kind,
            timestamp=now,
            description=description,
            effects=effects,
        )

    out: list[OutcomeEvent] = []

    if result.success:
        out.append(event(
            OutcomeEventType.SUCCESS,
            "Patch applied successfully",
            patch.effects.model_copy(),
        ))
        if patch.risk > WARNING_RISK:
            out.append(event(
                OutcomeEventType.WARNING,
                "High-risk patch may cause side effects",
                MeterEffects(stability=-5, insight=2, description="High-risk patch warning"),
            ))
        if result.memory_usage > PERFORMANCE_MEMORY_THRESHOLD:
            out.append(event(
                OutcomeEventType.PERFORMANCE_IMPACT,
                "Patch has significant memory impact",
                MeterEffects(stability=-2, insight=1, description="Performance impact detected"),
            ))
    else:
        out.append(event(
            OutcomeEventType.ERROR,
            "; ".join(result.errors),
            MeterEffects(stability=-10, insight=1, description="Patch execution failed"),
        ))
        if any(SECURITY_WORDING.search(error) for error in result.errors):
            out.append(event(
                OutcomeEventType.SECURITY_VIOLATION,
                "Security violation detected in patch",
                MeterEffects(stability=-15, insight=3, description="Security violation penalty"),
            ))

    logger.debug(f"Generated {len(out)} outcome event(s) for {base_id}")
    return out
