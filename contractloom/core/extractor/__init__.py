"""ContractLoom Extractor: structural contract extraction per file role.

Public API:
    extract_contracts(files) -> ExtractionOutput
    extract_file(source) -> ExtractionResult
    detect_role(file_path) -> str | None
"""

import logging
from typing import Iterable

from .models import (
    Evidence,
    ExtractionFailure,
    ExtractionOutput,
    ExtractionResult,
    RawContractMention,
    ShapeDescriptor,
    SourceFile,
)
from .utils import detect_role, get_strategy, should_skip_directory

logger = logging.getLogger(__name__)

__all__ = [
    "extract_contracts",
    "extract_file",
    "detect_role",
    "get_strategy",
    "should_skip_directory",
    "Evidence",
    "ExtractionFailure",
    "ExtractionOutput",
    "ExtractionResult",
    "RawContractMention",
    "ShapeDescriptor",
    "SourceFile",
]


def extract_file(source: SourceFile) -> ExtractionResult:
    """Extract contract mentions from one file using its role's strategy.

    An unknown role degrades to an empty result carrying the error.
    """
    try:
        strategy = get_strategy(source.role)
    except ValueError as e:
        logger.warning(f"Skipping {source.path}: {e}")
        return ExtractionResult(
            file_path=source.path,
            role=source.role,
            mentions=[],
            errors=[ExtractionFailure(file_path=source.path, line=0, message=str(e), severity="error")],
        )
    return strategy.extract(source)


def extract_contracts(files: Iterable[SourceFile]) -> ExtractionOutput:
    """Extract contract mentions from a whole file set, in path order."""
    results = [extract_file(f) for f in sorted(files, key=lambda f: f.path)]
    total = sum(len(r.mentions) for r in results)
    failures = sum(len(r.errors) for r in results)
    logger.info(f"Extracted {total} contract mention(s) from {len(results)} file(s), {failures} failure(s)")
    return ExtractionOutput(results=results)
