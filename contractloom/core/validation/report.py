"""Plain-text rendering of validation results and fix suggestions."""

from typing import Any, Dict, List

from ..constants import SEVERITY_ORDER
from .models import BUCKETS, Issue, IssueKind, ValidationReport

_BUCKET_TITLES = {
    "missingChannels": "Missing channels",
    "nameMismatches": "Name mismatches",
    "missingProducers": "Missing producers",
    "missingConsumers": "Missing consumers",
    "parameterMismatches": "Parameter mismatches",
    "schemaErrors": "Schema errors",
    "selectIssues": "Selector issues",
}

_RULE = "=" * 70


def render_validation_report(report: ValidationReport) -> str:
    """Human-readable validation report, grouped by bucket."""
    lines = ["", _RULE, "Contract Validation Report", _RULE, ""]
    if report.is_valid:
        lines.append("All contracts verified: every channel and DOM selector is consistent.")
    else:
        critical = sum(1 for i in report.issues if SEVERITY_ORDER.get(i.severity) == 0)
        lines.append(f"Found {report.total_issues} issue(s), {critical} critical")
        lines.append("")
        grouped = report.buckets()
        for bucket in BUCKETS:
            items = grouped[bucket]
            if not items:
                continue
            lines.append(f"{_BUCKET_TITLES[bucket]} ({len(items)}):")
            for issue in items:
                lines.append(f"  - [{issue.severity}] {issue.description}")
                for ev in issue.evidence[:3]:
                    lines.append(f"      {ev.file}:{ev.line}  {ev.text.splitlines()[0] if ev.text else ''}")
            lines.append("")

    if report.warnings:
        lines.append("Warnings:")
        lines.extend(f"  - {w}" for w in report.warnings)
    lines.append(_RULE)
    return "\n".join(lines)


def _suggestion(issue: Issue) -> Dict[str, Any]:
    details = issue.details
    suggestion: Dict[str, Any] = {
        "severity": issue.severity,
        "file": issue.file,
        "endpoint": issue.endpoint,
        "description": issue.description,
    }
    if issue.kind == IssueKind.MISSING_PRODUCER:
        from ..repair.stubs import render_handler_stub

        suggestion["type"] = "add-ipc-handler"
        suggestion["code"] = render_handler_stub(issue.endpoint, details.get("channelKind"))
    elif issue.kind == IssueKind.MISSING_CONSUMER:
        suggestion["type"] = "add-bridge-method"
        suggestion["fix"] = f"Expose a method forwarding to '{issue.endpoint}' in the bridge"
    elif issue.kind == IssueKind.NAME_MISMATCH:
        suggestion["type"] = "fix-channel-name"
        suggestion["fix"] = f"Rename '{details.get('form')}' to '{details.get('canonical')}'"
    elif issue.kind == IssueKind.NAMING_STYLE_MISMATCH:
        suggestion["type"] = "unify-channel-name"
        suggestion["fix"] = f"Use one form for '{issue.endpoint}': {', '.join(details.get('forms', {}))}"
    elif issue.kind == IssueKind.PARAMETER_MISMATCH:
        suggestion["type"] = "fix-parameter-shape"
        expected = details.get("expectedShape") or {}
        suggestion["fix"] = f"Pass arguments as {expected.get('kind', 'the expected shape')}"
    elif issue.kind == IssueKind.DOM_SELECTOR_MISMATCH:
        suggestion["type"] = "fix-dom-selector"
        if details.get("mismatch") == "case":
            suggestion["fix"] = f"Rename '{details.get('markupName')}' to '{details.get('scriptName')}'"
        else:
            suggestion["fix"] = f"Add an element for '{issue.endpoint}' to the markup"
    else:
        suggestion["type"] = "fix-schema"
    return suggestion


def generate_fix_suggestions(report: ValidationReport) -> List[Dict[str, Any]]:
    """Severity-ordered suggestions, one per issue."""
    if report.is_valid:
        return []
    ordered = sorted(report.issues, key=lambda i: (SEVERITY_ORDER.get(i.severity, 99), i.sort_key()))
    return [_suggestion(issue) for issue in ordered]
