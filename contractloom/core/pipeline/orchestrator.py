"""Verification pipeline: extract, validate, auto-fix, AI repair.

    extracted -> validated -> valid: done
                           -> invalid: auto-fixed -> validated -> valid: done
                                                              -> invalid: AI repaired -> validated -> done

The AI repair stage runs at most once per invocation. ``execute()`` yields
``PipelineEvent``s as stages progress; ``run()`` drains it and returns the
``PipelineReport``.
"""

import logging
import time
from typing import Any, Callable, Generator, Optional

from ..config import PipelineSettings
from ..contracts import build_actual_contracts, load_expected_contracts
from ..contracts.models import ActualContractSet, ExpectedContractSet
from ..extractor import extract_contracts
from ..repair.agent import RepairAgent
from ..repair.auto_fixer import AutoFixer
from ..validation import ContractValidator
from ..validation.models import ValidationReport
from ..workspace import ProjectWorkspace
from .events import (
    PipelineDoneEvent,
    PipelineEvent,
    RepairErrorEvent,
    StageDoneEvent,
    StageStartEvent,
)
from .models import (
    STAGE_AI_REPAIR,
    STAGE_AUTO_FIX,
    STAGE_EXTRACT,
    STAGE_VALIDATE,
    STATE_FAILED,
    STATE_INVALID,
    STATE_NEEDS_MANUAL_REPAIR,
    STATE_VALID,
    PipelineReport,
    StageResult,
)

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ContractPipeline:
    """Runs one verification and repair pass over a workspace.

    Args:
        workspace: Generated files (in memory or rooted on disk)
        spec: Contract document (dict, JSON text or path); None when absent
        settings: Pipeline settings, ``PipelineSettings.from_config()`` by default
        llm: Repair model; created from settings when the AI stage needs it
        use_ai: Overrides ``settings.repair_enabled``
        agent_factory: Builds the repair agent (tests inject fakes here)
    """

    def __init__(
        self,
        workspace: ProjectWorkspace,
        spec: Any = None,
        settings: Optional[PipelineSettings] = None,
        llm: Any = None,
        use_ai: Optional[bool] = None,
        agent_factory: Optional[Callable[..., RepairAgent]] = None,
    ):
        self.workspace = workspace
        self.spec = spec
        self.settings = settings or PipelineSettings.from_config()
        self.use_ai = self.settings.repair_enabled if use_ai is None else use_ai
        self._llm = llm
        self._agent_factory = agent_factory or RepairAgent
        self._validator = ContractValidator(self.settings)
        self.report = PipelineReport()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def run(self) -> PipelineReport:
        """Run every stage and return the final report."""
        for _event in self.execute():
            pass
        return self.report

    def validate_only(self) -> PipelineReport:
        """Extract and validate without modifying any file."""
        for _event in self.execute(repair=False):
            pass
        return self.report

    def execute(self, repair: bool = True) -> Generator[PipelineEvent, None, None]:
        """Run the pipeline, yielding an event per stage transition."""
        self.report = PipelineReport()

        if self.spec is None and len(self.workspace) == 0:
            yield from self._finish(False, STATE_FAILED, "No contract document and no generated files to verify")
            return

        try:
            yield StageStartEvent(stage=STAGE_EXTRACT)
            t0 = _now_ms()
            expected = load_expected_contracts(self.spec)
            actual = self._extract()
            self._record(
                StageResult(
                    stage=STAGE_EXTRACT,
                    duration_ms=_now_ms() - t0,
                    details={
                        "files": len(self.workspace),
                        "expectedEndpoints": len(expected.endpoints),
                        "actualEndpoints": len(actual.endpoints),
                        "specPresent": expected.present,
                    },
                )
            )
            yield self._done_event(self.report.stages[-1])

            yield StageStartEvent(stage=STAGE_VALIDATE)
            t0 = _now_ms()
            validation = self._validator.validate(expected, actual)
            self.report.initial_report = validation
            self.report.final_report = validation
            stage = self._record(
                StageResult(
                    stage=STAGE_VALIDATE,
                    issues_after=validation.total_issues,
                    duration_ms=_now_ms() - t0,
                )
            )
            yield self._done_event(stage)

            if validation.is_valid:
                yield from self._finish(True, STATE_VALID, "All contracts are consistent")
                return
            if not repair:
                yield from self._finish(True, STATE_INVALID, f"{validation.total_issues} issue(s) found")
                return

            validation, actual = yield from self._auto_fix_stage(validation, expected, actual)
            if validation.is_valid:
                yield from self._finish(True, STATE_VALID, "All issues resolved by the auto-fixer")
                return

            if not self.use_ai:
                yield from self._finish(
                    True, STATE_INVALID, f"{validation.total_issues} issue(s) remain; AI repair is disabled"
                )
                return

            yield from self._ai_repair_stage(validation, expected)
        except Exception as e:
            logger.exception(f"Pipeline failed: {e}")
            yield from self._finish(False, STATE_FAILED, f"Pipeline error: {type(e).__name__}: {e}")

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _extract(self) -> ActualContractSet:
        output = extract_contracts(self.workspace.source_files())
        errors = [f"{e.file_path}: {e.message}" for e in self.workspace.errors]
        errors += [f"{e.file_path}:{e.line}: {e.message}" for e in output.errors]
        self.report.extraction_errors = errors
        return build_actual_contracts(output)

    def _revalidate(self, expected: ExpectedContractSet):
        actual = self._extract()
        return self._validator.validate(expected, actual), actual

    def _auto_fix_stage(
        self, validation: ValidationReport, expected: ExpectedContractSet, actual: ActualContractSet
    ) -> Generator[PipelineEvent, None, tuple]:
        yield StageStartEvent(stage=STAGE_AUTO_FIX)
        t0 = _now_ms()
        before = validation.total_issues

        fixer = AutoFixer(self.workspace, self.settings)
        patch_report = fixer.fix(validation, expected, actual)
        self.report.patch_report = patch_report
        if patch_report.revalidate:
            validation, actual = self._revalidate(expected)
            self.report.final_report = validation

        stage = self._record(
            StageResult(
                stage=STAGE_AUTO_FIX,
                issues_before=before,
                issues_after=validation.total_issues,
                duration_ms=_now_ms() - t0,
                details={
                    "successCount": patch_report.success_count,
                    "failCount": patch_report.fail_count,
                    "filesModified": list(patch_report.files_modified),
                },
            )
        )
        logger.info(f"Auto-fix stage: {before} -> {validation.total_issues} issue(s)")
        yield self._done_event(stage)
        return validation, actual

    def _ai_repair_stage(
        self, validation: ValidationReport, expected: ExpectedContractSet
    ) -> Generator[PipelineEvent, None, None]:
        yield StageStartEvent(stage=STAGE_AI_REPAIR)
        t0 = _now_ms()
        before = validation.total_issues

        agent = self._agent_factory(self.workspace, self.settings, llm=self._llm)
        repair_report = agent.repair(validation, expected)
        self.report.repair_report = repair_report
        if repair_report.files_modified:
            validation, _actual = self._revalidate(expected)
            self.report.final_report = validation

        stage = self._record(
            StageResult(
                stage=STAGE_AI_REPAIR,
                issues_before=before,
                issues_after=validation.total_issues,
                duration_ms=_now_ms() - t0,
                details={
                    "success": repair_report.success,
                    "errorKind": repair_report.error_kind,
                    "appliedCount": repair_report.applied_count,
                    "notFoundCount": repair_report.not_found_count,
                    "promptTokens": repair_report.prompt_tokens,
                },
            )
        )
        logger.info(f"AI repair stage: {before} -> {validation.total_issues} issue(s)")
        yield self._done_event(stage)

        if not repair_report.success:
            yield RepairErrorEvent(
                kind=repair_report.error_kind or "",
                error=repair_report.message,
                needs_manual_repair=repair_report.needs_manual_repair,
            )

        if validation.is_valid:
            yield from self._finish(True, STATE_VALID, "All issues resolved after AI repair")
        elif repair_report.needs_manual_repair:
            yield from self._finish(
                True,
                STATE_NEEDS_MANUAL_REPAIR,
                f"{validation.total_issues} issue(s) need manual repair ({repair_report.error_kind})",
            )
        elif not repair_report.success:
            yield from self._finish(False, STATE_FAILED, f"AI repair failed: {repair_report.message}")
        else:
            yield from self._finish(True, STATE_INVALID, f"{validation.total_issues} issue(s) remain after AI repair")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _record(self, stage: StageResult) -> StageResult:
        self.report.stages.append(stage)
        return stage

    @staticmethod
    def _done_event(stage: StageResult) -> StageDoneEvent:
        return StageDoneEvent(
            stage=stage.stage,
            issues_before=stage.issues_before,
            issues_after=stage.issues_after,
            duration_ms=stage.duration_ms,
            details=stage.details,
        )

    def _finish(self, success: bool, state: str, message: str) -> Generator[PipelineEvent, None, None]:
        self.report.success = success
        self.report.state = state
        self.report.message = message
        log = logger.info if success else logger.error
        log(f"Pipeline finished: state={state} {message}")
        yield PipelineDoneEvent(success=success, state=state, message=message, report=self.report.to_dict())


def run_pipeline(
    workspace: ProjectWorkspace,
    spec: Any = None,
    settings: Optional[PipelineSettings] = None,
    llm: Any = None,
    use_ai: Optional[bool] = None,
) -> PipelineReport:
    """One-call entry point: build a pipeline and run it."""
    return ContractPipeline(workspace, spec, settings, llm=llm, use_ai=use_ai).run()
