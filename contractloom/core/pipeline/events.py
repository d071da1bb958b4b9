"""Events emitted by the verification pipeline.

Each event serializes to a single SSE ``data:`` line via ``to_sse()`` so a
host application can stream progress while the pipeline runs.
"""

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass
class PipelineEvent:
    """Base class for all pipeline events."""

    type: str

    def to_sse(self) -> str:
        """Serialize to Server-Sent Events format."""
        return f"data: {json.dumps(asdict(self), default=str)}\n\n"


@dataclass
class StageStartEvent(PipelineEvent):
    type: str = "stage_start"
    stage: str = ""


@dataclass
class StageDoneEvent(PipelineEvent):
    """Emitted after each stage with the issue count before and after it."""

    type: str = "stage_done"
    stage: str = ""
    issues_before: Optional[int] = None
    issues_after: Optional[int] = None
    duration_ms: int = 0
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RepairErrorEvent(PipelineEvent):
    """Emitted when the AI repair stage fails or gives up."""

    type: str = "repair_error"
    kind: str = ""
    error: str = ""
    needs_manual_repair: bool = False


@dataclass
class PipelineDoneEvent(PipelineEvent):
    """Emitted once, last, with the final report."""

    type: str = "pipeline_done"
    success: bool = False
    state: str = ""
    message: str = ""
    report: Dict[str, Any] = field(default_factory=dict)
