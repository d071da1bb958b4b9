"""Repair data models: fix actions and the reports the repair stages return."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

OCCURRENCE_FIRST = "first"
OCCURRENCE_LAST = "last"
OCCURRENCE_ALL = "all"


@dataclass(frozen=True)
class FixAction:
    """One exact search/replace edit.

    ``search`` is always verbatim text from the file as it was validated.
    """

    type: str  # e.g. "rename-channel", "add-handler", "rewrite-arguments"
    file: str
    search: str
    replace: str
    rationale: str = ""
    occurrence: str = OCCURRENCE_FIRST  # "first" | "last" | "all"

    def identity(self):
        return (self.file, self.search, self.replace, self.occurrence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "file": self.file,
            "search": self.search,
            "replace": self.replace,
            "rationale": self.rationale,
            "occurrence": self.occurrence,
        }


@dataclass
class Fix:
    """The actions resolving one issue; applied all-or-nothing."""

    issue_type: str
    endpoint: str
    description: str
    actions: List[FixAction] = field(default_factory=list)

    @property
    def files(self) -> List[str]:
        return sorted({a.file for a in self.actions})


@dataclass
class FixRecord:
    type: str
    file: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "file": self.file, "description": self.description}


@dataclass
class UnresolvedFix:
    type: str
    file: Optional[str]
    description: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "file": self.file, "description": self.description, "reason": self.reason}


@dataclass
class PatchReport:
    """Outcome of the rule-based auto-fixer."""

    fixed: List[FixRecord] = field(default_factory=list)
    unresolved: List[UnresolvedFix] = field(default_factory=list)
    files_modified: List[str] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.fixed)

    @property
    def fail_count(self) -> int:
        return len(self.unresolved)

    @property
    def revalidate(self) -> bool:
        """True when files changed and the validator must run again."""
        return bool(self.files_modified)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fixed": [f.to_dict() for f in self.fixed],
            "unresolved": [u.to_dict() for u in self.unresolved],
            "successCount": self.success_count,
            "failCount": self.fail_count,
            "filesModified": list(self.files_modified),
        }


@dataclass
class FileApplyStats:
    applied: int = 0
    not_found: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"applied": self.applied, "notFound": self.not_found}


@dataclass
class RepairReport:
    """Outcome of the AI repair stage."""

    attempted: bool = False
    success: bool = False
    needs_manual_repair: bool = False
    error_kind: Optional[str] = None
    message: str = ""
    files: Dict[str, FileApplyStats] = field(default_factory=dict)
    files_modified: List[str] = field(default_factory=list)
    prompt_tokens: int = 0
    dropped_files: List[str] = field(default_factory=list)

    @property
    def applied_count(self) -> int:
        return sum(s.applied for s in self.files.values())

    @property
    def not_found_count(self) -> int:
        return sum(s.not_found for s in self.files.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempted": self.attempted,
            "success": self.success,
            "needsManualRepair": self.needs_manual_repair,
            "errorKind": self.error_kind,
            "message": self.message,
            "files": {path: stats.to_dict() for path, stats in sorted(self.files.items())},
            "appliedCount": self.applied_count,
            "notFoundCount": self.not_found_count,
            "filesModified": list(self.files_modified),
            "promptTokens": self.prompt_tokens,
            "droppedFiles": list(self.dropped_files),
        }
