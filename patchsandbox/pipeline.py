"""
Pipeline: the one entry point the game talks to.

    cache lookup
      → decompose diff into operations   (policy errors end the request)
      → validate: detect, whitelist, score, decide
      → simulate in the deterministic sandbox (accepted patches only)
      → cache the result

`validate()` never raises. Anything unexpected is logged and comes back as a
failed SandboxExecutionResult, which is cached like any other result.
"""
import logging
from typing import Optional

from patchsandbox import education
from patchsandbox.cache import ResultCache, make_key
from patchsandbox.config import PipelineConfig
from patchsandbox.decomposer import PolicyError, decompose
from patchsandbox.executor import DeterministicSandbox, SandboxConstraints
from patchsandbox.lint import LintPipeline
from patchsandbox.outcomes import events
from patchsandbox.schemas import (
    LintIssue,
    LintResult,
    OutcomeEvent,
    PatchPlan,
    SandboxExecutionResult,
    Severity,
    ValidationContext,
)
from patchsandbox.validator import SecurityValidator, extract_code

logger = logging.getLogger(__name__)


class PatchSandbox:

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        cache: Optional[ResultCache] = None,
        validator: Optional[SecurityValidator] = None,
    ):
        self.config = config or PipelineConfig()
        self.cache = cache or ResultCache()
        self.validator = validator or SecurityValidator()
        self.sandbox = DeterministicSandbox(
            seed=self.config.seed,
            constraints=SandboxConstraints(
                max_loops=self.config.max_loops,
                max_recursion_depth=self.config.max_recursion_depth,
                max_content_chars=self.config.max_content_chars,
            ),
            whitelist=self.validator.whitelist,
        )
        self.linter = LintPipeline()

    def validate(self, patch: PatchPlan, context: Optional[ValidationContext] = None) -> SandboxExecutionResult:
        context = context or ValidationContext()
        key = make_key(patch, context, self.config.seed)

        if self.config.cache_results:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info(f"Cache hit for scenario '{context.scenario_id}'")
                return cached

        try:
            result = self._run(patch, context)
        except Exception as e:
            logger.exception(f"Sandbox execution failed for scenario '{context.scenario_id}'")
            result = SandboxExecutionResult(
                success=False,
                errors=[f"Sandbox execution failed: {e}"],
            )

        if self.config.cache_results:
            self.cache.put(key, result)
        return result

    def simulate(
        self, patch: PatchPlan, context: Optional[ValidationContext] = None
    ) -> tuple[SandboxExecutionResult, list[OutcomeEvent]]:
        context = context or ValidationContext()
        result = self.validate(patch, context)
        return result, events(patch, context, result)

    def lint(self, patch: PatchPlan, rules: Optional[dict] = None) -> LintResult:
        try:
            operations = decompose(patch.diff, patch.description, self.config.max_operations)
        except PolicyError as e:
            logger.warning(f"Lint refused: {e}")
            return LintResult(
                passed=False,
                issues=[LintIssue(line=1, column=1, severity="error", message=str(e), rule="patch-policy")],
            )
        return self.linter.lint(extract_code(operations), rules)

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> dict:
        return self.cache.stats()

    def _run(self, patch: PatchPlan, context: ValidationContext) -> SandboxExecutionResult:
        logger.info(f"Validating patch for scenario '{context.scenario_id}' ({context.scenario_kind or 'general'})")

        try:
            operations = decompose(patch.diff, patch.description, self.config.max_operations)
        except PolicyError as e:
            logger.warning(f"Patch refused by policy: {e}")
            security = self.validator.policy_rejection(patch, e)
            return SandboxExecutionResult(
                success=False,
                output="Patch validation failed",
                errors=[str(e)],
                security_validation=security,
                rejection_message=self.validator.rejection_message(security),
            )

        security = self.validator.validate(patch, context, operations)

        if not security.is_valid:
            serious = [
                f"{v.severity.value.upper()}: {v.description}"
                for v in security.violations
                if v.severity in (Severity.CRITICAL, Severity.HIGH)
            ]
            message = self.validator.rejection_message(security)
            return SandboxExecutionResult(
                success=False,
                output=message,
                warnings=[v.description for v in security.violations],
                errors=serious + [f"Patch rejected by security validation: risk score {security.risk_score:.2f}"],
                security_validation=security,
                rejection_message=message,
            )

        trace = self.sandbox.execute(operations, context, security.risk_score)
        warnings = (
            education.recommendations(security.violations)
            + [v.description for v in security.violations]
            + trace.warnings
        )

        logger.info(f"Simulated {len(operations)} operation(s): "
                    f"{'ok' if trace.success else 'failed'}, {len(warnings)} warning(s)")

        return SandboxExecutionResult(
            success=trace.success,
            output=trace.output,
            warnings=warnings,
            errors=trace.errors,
            execution_time=trace.execution_time,
            memory_usage=trace.memory_usage,
            security_validation=security,
        )


default_sandbox = PatchSandbox()


def validate(patch: PatchPlan, context: Optional[ValidationContext] = None) -> SandboxExecutionResult:
    return default_sandbox.validate(patch, context)
