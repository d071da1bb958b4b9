"""Validation data models: issues and the validation report."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..constants import SEVERITY_ORDER


class IssueKind(str, Enum):
    MISSING_PRODUCER = "missingProducer"
    MISSING_CONSUMER = "missingConsumer"
    NAME_MISMATCH = "nameMismatch"
    NAMING_STYLE_MISMATCH = "namingStyleMismatch"
    PARAMETER_MISMATCH = "parameterMismatch"
    DOM_SELECTOR_MISMATCH = "domSelectorMismatch"
    SCHEMA_ERROR = "schemaError"


# External report buckets, in report order
BUCKET_MISSING_CHANNELS = "missingChannels"
BUCKET_NAME_MISMATCHES = "nameMismatches"
BUCKET_MISSING_PRODUCERS = "missingProducers"
BUCKET_MISSING_CONSUMERS = "missingConsumers"
BUCKET_PARAMETER_MISMATCHES = "parameterMismatches"
BUCKET_SCHEMA_ERRORS = "schemaErrors"
BUCKET_SELECT_ISSUES = "selectIssues"

BUCKETS = (
    BUCKET_MISSING_CHANNELS,
    BUCKET_NAME_MISMATCHES,
    BUCKET_MISSING_PRODUCERS,
    BUCKET_MISSING_CONSUMERS,
    BUCKET_PARAMETER_MISMATCHES,
    BUCKET_SCHEMA_ERRORS,
    BUCKET_SELECT_ISSUES,
)

DEFAULT_BUCKETS = {
    IssueKind.MISSING_PRODUCER: BUCKET_MISSING_PRODUCERS,
    IssueKind.MISSING_CONSUMER: BUCKET_MISSING_CONSUMERS,
    IssueKind.NAME_MISMATCH: BUCKET_NAME_MISMATCHES,
    IssueKind.NAMING_STYLE_MISMATCH: BUCKET_NAME_MISMATCHES,
    IssueKind.PARAMETER_MISMATCH: BUCKET_PARAMETER_MISMATCHES,
    IssueKind.DOM_SELECTOR_MISMATCH: BUCKET_SELECT_ISSUES,
    IssueKind.SCHEMA_ERROR: BUCKET_SCHEMA_ERRORS,
}


@dataclass
class IssueEvidence:
    """Where an issue shows up in the source."""

    file: str
    line: int
    text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"file": self.file, "line": self.line, "text": self.text}


@dataclass
class Issue:
    """One contract violation.

    ``details`` carries kind-specific, JSON-safe data the auto-fixer and the
    repair prompt work from (names, roles, shapes as dicts).
    """

    kind: IssueKind
    endpoint: str
    description: str
    severity: str
    file: Optional[str] = None  # File the fix targets, when known
    evidence: List[IssueEvidence] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)
    bucket: str = ""

    def __post_init__(self):
        if not self.bucket:
            self.bucket = DEFAULT_BUCKETS[self.kind]

    def sort_key(self):
        return (
            BUCKETS.index(self.bucket),
            SEVERITY_ORDER.get(self.severity, 99),
            self.endpoint,
            self.kind.value,
            self.file or "",
            self.description,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.kind.value,
            "endpoint": self.endpoint,
            "description": self.description,
            "severity": self.severity,
            "evidence": [e.to_dict() for e in self.evidence],
        }
        if self.file:
            data["file"] = self.file
        if self.details:
            data["details"] = self.details
        return data


@dataclass
class ValidationReport:
    """Result of one validator run."""

    issues: List[Issue] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)  # Loader and extraction warnings

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def total_issues(self) -> int:
        return len(self.issues)

    def by_kind(self, kind: IssueKind) -> List[Issue]:
        return [i for i in self.issues if i.kind == kind]

    def for_endpoint(self, endpoint: str) -> List[Issue]:
        return [i for i in self.issues if i.endpoint == endpoint]

    def buckets(self) -> Dict[str, List[Issue]]:
        grouped: Dict[str, List[Issue]] = {b: [] for b in BUCKETS}
        for issue in self.issues:
            grouped[issue.bucket].append(issue)
        return grouped

    def count_by_kind(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for issue in self.issues:
            counts[issue.kind.value] = counts.get(issue.kind.value, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        grouped = self.buckets()
        critical = sum(1 for i in self.issues if SEVERITY_ORDER.get(i.severity) == 0)
        return {
            "isValid": self.is_valid,
            "issues": {bucket: [i.to_dict() for i in items] for bucket, items in grouped.items()},
            "summary": {
                "totalIssues": self.total_issues,
                "criticalIssues": critical,
                "byKind": self.count_by_kind(),
            },
            "warnings": list(self.warnings),
        }
