"""Repair stages: the rule-based auto-fixer and the AI repair agent.

Public API:
    AutoFixer(workspace, settings).fix(report, expected, actual) -> PatchReport
    RepairAgent(workspace, settings, llm).repair(report, expected) -> RepairReport
"""

from .agent import RepairAgent
from .auto_fixer import AutoFixer, apply_action, resolve_style_policy
from .models import (
    Fix,
    FixAction,
    FixRecord,
    PatchReport,
    RepairReport,
    UnresolvedFix,
)
from .patches import PatchParseResult, PatchSet, apply_patch_set, parse_patch_output, parse_patch_result
from .report import render_patch_report, render_repair_report

__all__ = [
    "AutoFixer",
    "Fix",
    "FixAction",
    "FixRecord",
    "PatchParseResult",
    "PatchReport",
    "PatchSet",
    "RepairAgent",
    "RepairReport",
    "UnresolvedFix",
    "apply_action",
    "apply_patch_set",
    "parse_patch_output",
    "parse_patch_result",
    "render_patch_report",
    "render_repair_report",
    "resolve_style_policy",
]
