"""Contract validation: diff expected vs actual contracts.

Public API:
    ContractValidator(settings).validate(expected, actual) -> ValidationReport
    validate_files(files, spec) -> ValidationReport
"""

from typing import Any, Iterable, Optional

from ..config import PipelineSettings
from ..contracts import build_actual_contracts, load_expected_contracts
from ..extractor import SourceFile, extract_contracts
from .models import BUCKETS, Issue, IssueEvidence, IssueKind, ValidationReport
from .report import generate_fix_suggestions, render_validation_report
from .validator import ContractValidator

__all__ = [
    "BUCKETS",
    "ContractValidator",
    "Issue",
    "IssueEvidence",
    "IssueKind",
    "ValidationReport",
    "generate_fix_suggestions",
    "render_validation_report",
    "validate_files",
]


def validate_files(
    files: Iterable[SourceFile], spec: Any, settings: Optional[PipelineSettings] = None
) -> ValidationReport:
    """Extract, build and validate in one call."""
    expected = load_expected_contracts(spec)
    actual = build_actual_contracts(extract_contracts(files))
    return ContractValidator(settings).validate(expected, actual)
