"""Plain-text rendering of auto-fix and AI repair outcomes."""

from .models import PatchReport, RepairReport

_RULE = "=" * 70


def render_patch_report(report: PatchReport) -> str:
    """Human-readable auto-fix summary."""
    lines = ["", _RULE, "Auto-Fix Report", _RULE, ""]
    lines.append(f"Fixed: {report.success_count}, unresolved: {report.fail_count}")
    if report.fixed:
        lines.append("")
        lines.append("Applied:")
        for record in report.fixed:
            lines.append(f"  + [{record.type}] {record.description}")
    if report.unresolved:
        lines.append("")
        lines.append("Unresolved:")
        for item in report.unresolved:
            where = f" ({item.file})" if item.file else ""
            lines.append(f"  - [{item.type}] {item.description}{where}")
            lines.append(f"      reason: {item.reason}")
    if report.files_modified:
        lines.append("")
        lines.append(f"Files modified: {', '.join(report.files_modified)}")
    lines.append(_RULE)
    return "\n".join(lines)


def render_repair_report(report: RepairReport) -> str:
    """Human-readable AI repair summary."""
    lines = ["", _RULE, "AI Repair Report", _RULE, ""]
    if not report.attempted:
        lines.append("Not attempted.")
    elif report.success:
        lines.append(report.message)
        for path, stats in sorted(report.files.items()):
            lines.append(f"  {path}: {stats.applied} applied, {stats.not_found} not found")
    else:
        state = "needs manual repair" if report.needs_manual_repair else "failed"
        lines.append(f"Repair {state} ({report.error_kind}): {report.message}")
    if report.dropped_files:
        lines.append(f"Left out of the prompt: {', '.join(report.dropped_files)}")
    lines.append(_RULE)
    return "\n".join(lines)
