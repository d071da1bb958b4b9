"""Verification and repair pipeline.

Public API:
    ContractPipeline(workspace, spec, settings).run() -> PipelineReport
    ContractPipeline(...).execute() -> Generator[PipelineEvent]
    run_pipeline(workspace, spec) -> PipelineReport
"""

from .events import (
    PipelineDoneEvent,
    PipelineEvent,
    RepairErrorEvent,
    StageDoneEvent,
    StageStartEvent,
)
from .models import (
    STATE_FAILED,
    STATE_INVALID,
    STATE_NEEDS_MANUAL_REPAIR,
    STATE_VALID,
    PipelineReport,
    StageResult,
)
from .orchestrator import ContractPipeline, run_pipeline
from .report import render_pipeline_report

__all__ = [
    "ContractPipeline",
    "PipelineDoneEvent",
    "PipelineEvent",
    "PipelineReport",
    "RepairErrorEvent",
    "STATE_FAILED",
    "STATE_INVALID",
    "STATE_NEEDS_MANUAL_REPAIR",
    "STATE_VALID",
    "StageDoneEvent",
    "StageResult",
    "StageStartEvent",
    "render_pipeline_report",
    "run_pipeline",
]
