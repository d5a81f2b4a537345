from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ── What the patch-generation layer hands us ──────────────────────────────────

class MeterEffects(BaseModel):
    stability: float = 0.0
    insight: float = 0.0
    description: str = ""


class PatchPlan(BaseModel):
    diff: str                                   # unified diff text
    description: str = ""                       # human-readable summary
    risk: float = Field(0.0, ge=0.0, le=1.0)    # declared baseline risk
    effects: MeterEffects = Field(default_factory=MeterEffects)
    alternatives: List[str] = Field(default_factory=list)


class GameMeters(BaseModel):
    stability: float = Field(50.0, ge=0.0, le=100.0)
    insight: float = Field(0.0, ge=0.0, le=100.0)


class ValidationContext(BaseModel):
    scenario_id: str = "default"
    scenario: str = ""                          # e.g. "memory-leak", "prompt-injection"
    meters: GameMeters = Field(default_factory=GameMeters)
    player_intent: str = ""
    risk_tolerance: float = Field(0.5, ge=0.0, le=1.0)
    educational_mode: bool = True

    @property
    def scenario_kind(self) -> str:
        """Scenario kind normalised for table lookups ("Prompt_Injection" -> "prompt-injection")."""
        return self.scenario.strip().lower().replace("_", "-")


# ── Decomposed diff ───────────────────────────────────────────────────────────

class OperationType(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    MODIFY = "modify"
    VALIDATE = "validate"


class Operation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: OperationType
    target: str
    content: Optional[str] = None
    line: Optional[int] = None
    parsed_at: datetime
    safe: bool = True                           # cheap pre-filter verdict


# ── Findings ──────────────────────────────────────────────────────────────────

class ViolationType(str, Enum):
    CODE_INJECTION = "code-injection"
    UNSAFE_EVAL = "unsafe-dynamic-eval"
    XSS = "cross-site-scripting"
    PROTOTYPE_POLLUTION = "prototype-pollution"
    DANGEROUS_API = "dangerous-api"
    FILESYSTEM_ACCESS = "filesystem-access"
    NETWORK_ACCESS = "network-access"
    PROCESS_ACCESS = "process-access"
    GLOBAL_ACCESS = "global-access"
    UNSAFE_REGEX = "unsafe-regex"
    BUFFER_OVERFLOW = "buffer-overflow"
    MEMORY_LEAK = "memory-leak"
    INFINITE_LOOP = "infinite-loop"
    CONTEXTUAL_RISK = "contextual-risk"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SecurityViolation(BaseModel):
    type: ViolationType
    severity: Severity
    description: str
    location: str
    educational_explanation: str
    suggested_fix: str
    learn_more_url: Optional[str] = None
    scenario: Optional[str] = None              # set on contextual findings


class CodeExample(BaseModel):
    title: str
    unsafe: str
    safe: str
    explanation: str


class EducationalContent(BaseModel):
    title: str
    explanation: str
    examples: List[CodeExample] = Field(default_factory=list)
    best_practices: List[str] = Field(default_factory=list)
    common_mistakes: List[str] = Field(default_factory=list)
    further_reading: List[str] = Field(default_factory=list)


# ── Results ───────────────────────────────────────────────────────────────────

class ValidationResult(BaseModel):
    is_valid: bool
    risk_score: float = Field(ge=0.0, le=1.0)
    violations: List[SecurityViolation] = Field(default_factory=list)
    educational_content: List[EducationalContent] = Field(default_factory=list)
    allowed_operations: List[str] = Field(default_factory=list)
    blocked_operations: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)     # policy errors


class SandboxExecutionResult(BaseModel):
    success: bool
    output: str = ""
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    execution_time: float = 0.0                 # simulated milliseconds
    memory_usage: int = 0                       # simulated bytes
    deterministic: bool = True
    security_validation: Optional[ValidationResult] = None
    rejection_message: Optional[str] = None


class OutcomeEventType(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    SECURITY_VIOLATION = "security_violation"
    PERFORMANCE_IMPACT = "performance_impact"


class OutcomeEvent(BaseModel):
    id: str
    type: OutcomeEventType
    timestamp: datetime
    description: str
    effects: MeterEffects
    deterministic: bool = True


# ── Lint ──────────────────────────────────────────────────────────────────────

class LintIssue(BaseModel):
    line: int
    column: int
    severity: str                               # "error" | "warning" | "info"
    message: str
    rule: str


class LintResult(BaseModel):
    passed: bool
    issues: List[LintIssue] = Field(default_factory=list)


# ── What the HTTP adapter accepts and returns ─────────────────────────────────

class SimulationRequest(BaseModel):
    patch: PatchPlan
    context: ValidationContext = Field(default_factory=ValidationContext)


class SimulationResponse(BaseModel):
    result: SandboxExecutionResult
    events: List[OutcomeEvent]


class LintRequest(BaseModel):
    patch: PatchPlan
    rules: Optional[Dict[str, Any]] = None
