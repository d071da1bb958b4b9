"""Plain-text rendering of a whole pipeline run."""

from ..repair.report import render_patch_report, render_repair_report
from ..validation.report import render_validation_report
from .models import PipelineReport

_RULE = "=" * 70


def render_pipeline_report(report: PipelineReport) -> str:
    """Stage summary followed by the auto-fix, repair and final validation reports."""
    lines = ["", _RULE, "Contract Verification Pipeline", _RULE, ""]
    lines.append(f"State: {report.state} ({'ok' if report.success else 'failed'})")
    if report.message:
        lines.append(report.message)
    lines.append("")
    for stage in report.stages:
        counts = ""
        if stage.issues_before is not None:
            counts = f"  {stage.issues_before} -> {stage.issues_after} issue(s)"
        elif stage.issues_after is not None:
            counts = f"  {stage.issues_after} issue(s)"
        lines.append(f"  {stage.stage:<10}{counts}  [{stage.duration_ms} ms]")
    if report.extraction_errors:
        lines.append("")
        lines.append("Extraction errors:")
        lines.extend(f"  - {e}" for e in report.extraction_errors)

    parts = ["\n".join(lines)]
    if report.patch_report is not None:
        parts.append(render_patch_report(report.patch_report))
    if report.repair_report is not None:
        parts.append(render_repair_report(report.repair_report))
    if report.final_report is not None:
        parts.append(render_validation_report(report.final_report))
    return "\n".join(parts)
