"""Pipeline report models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..repair.models import PatchReport, RepairReport
from ..validation.models import ValidationReport

STAGE_EXTRACT = "extract"
STAGE_VALIDATE = "validate"
STAGE_AUTO_FIX = "auto_fix"
STAGE_AI_REPAIR = "ai_repair"

STATE_VALID = "valid"
STATE_INVALID = "invalid"
STATE_NEEDS_MANUAL_REPAIR = "needs_manual_repair"
STATE_FAILED = "failed"


@dataclass
class StageResult:
    stage: str
    issues_before: Optional[int] = None
    issues_after: Optional[int] = None
    duration_ms: int = 0
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "issuesBefore": self.issues_before,
            "issuesAfter": self.issues_after,
            "durationMs": self.duration_ms,
            "details": self.details,
        }


@dataclass
class PipelineReport:
    """Everything one pipeline run produced.

    ``success`` is False only for hard failures: no inputs at all, or an
    AI transport failure with issues left. Remaining issues otherwise show
    up in ``state`` and ``final_report``.
    """

    success: bool = True
    state: str = STATE_INVALID
    message: str = ""
    stages: List[StageResult] = field(default_factory=list)
    initial_report: Optional[ValidationReport] = None
    final_report: Optional[ValidationReport] = None
    patch_report: Optional[PatchReport] = None
    repair_report: Optional[RepairReport] = None
    extraction_errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.state == STATE_VALID

    @property
    def needs_manual_repair(self) -> bool:
        return self.state == STATE_NEEDS_MANUAL_REPAIR

    def stage(self, name: str) -> Optional[StageResult]:
        for result in self.stages:
            if result.stage == name:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "state": self.state,
            "isValid": self.is_valid,
            "needsManualRepair": self.needs_manual_repair,
            "message": self.message,
            "stages": [s.to_dict() for s in self.stages],
            "initialReport": self.initial_report.to_dict() if self.initial_report else None,
            "finalReport": self.final_report.to_dict() if self.final_report else None,
            "patchReport": self.patch_report.to_dict() if self.patch_report else None,
            "repairReport": self.repair_report.to_dict() if self.repair_report else None,
            "extractionErrors": list(self.extraction_errors),
        }
