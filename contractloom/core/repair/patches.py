"""Patch documents returned by the repair model.

The model answers with::

    {"fixes": [{"file": "main.js",
                "replacements": [{"search": "...", "replace": "...", "reason": "..."}]}]}

Parsing is tolerant of markdown fences and surrounding prose, but the
document itself must validate against ``PatchSet``. Applying a patch only
ever performs verbatim first-occurrence replacements inside known files.
"""

import json
import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

from ..errors import RepairAgentError
from ..workspace import ProjectWorkspace
from .models import FileApplyStats

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)


class Replacement(BaseModel):
    search: str = Field(min_length=1)
    replace: str
    reason: str = ""


class FilePatch(BaseModel):
    file: str = Field(min_length=1)
    replacements: List[Replacement] = Field(default_factory=list)


class PatchSet(BaseModel):
    fixes: List[FilePatch] = Field(default_factory=list)


@dataclass
class PatchApplyResult:
    """Per-file counts plus the paths whose text changed."""

    files: Dict[str, FileApplyStats] = field(default_factory=dict)
    files_modified: List[str] = field(default_factory=list)
    rejected_files: List[str] = field(default_factory=list)


def _candidates(raw: str) -> List[str]:
    """Text slices that may hold the JSON document, most specific first."""
    candidates = [m.group(1).strip() for m in FENCE_RE.finditer(raw)]
    stripped = raw.strip()
    candidates.append(stripped)
    start, end = stripped.find("{"), stripped.rfind("}")
    if start >= 0 and end > start:
        candidates.append(stripped[start:end + 1])
    return [c for c in candidates if c]


def parse_patch_output(raw: str) -> PatchSet:
    """Parse model output into a ``PatchSet``.

    Raises:
        RepairAgentError: kind "parse" when no JSON object is found,
            kind "schema" when the JSON does not match the patch format
    """
    document: Optional[Any] = None
    last_error = "empty output"
    for candidate in _candidates(raw or ""):
        try:
            document = json.loads(candidate)
            break
        except json.JSONDecodeError as e:
            last_error = str(e)
    if document is None:
        logger.warning(f"Patch output is not JSON: {last_error}")
        raise RepairAgentError("parse", f"model output is not valid JSON: {last_error}", raw_output=raw[:2000])

    try:
        return PatchSet.model_validate(document)
    except ValidationError as e:
        logger.warning(f"Patch output failed validation: {e.error_count()} error(s)")
        raise RepairAgentError("schema", f"model output does not match the patch format: {e}", raw_output=raw[:2000])


def resolve_patch_path(workspace: ProjectWorkspace, file_path: str) -> Optional[str]:
    """Map a patch's file name onto a workspace path.

    Absolute paths and paths escaping the project root are rejected. A bare
    file name matches a unique workspace file with that base name.
    """
    candidate = file_path.replace("\\", "/").strip()
    if not candidate or candidate.startswith("/") or re.match(r"^[A-Za-z]:", candidate):
        return None
    normalized = posixpath.normpath(candidate)
    if normalized == ".." or normalized.startswith("../"):
        return None
    if normalized in workspace:
        return normalized
    matches = [p for p in workspace.paths if p.endswith("/" + normalized)]
    if len(matches) == 1:
        return matches[0]
    return None


def apply_patch_set(workspace: ProjectWorkspace, patch_set: PatchSet) -> PatchApplyResult:
    """Apply replacements, first occurrence only, one write per file.

    A replacement whose search text is absent is counted as not found and
    skipped; the rest of the file's replacements still apply.
    """
    result = PatchApplyResult()
    grouped: Dict[str, List[Replacement]] = {}
    for file_patch in patch_set.fixes:
        path = resolve_patch_path(workspace, file_patch.file)
        if path is None:
            logger.warning(f"Rejected patch for unknown or unsafe path '{file_patch.file}'")
            result.rejected_files.append(file_patch.file)
            continue
        grouped.setdefault(path, []).extend(file_patch.replacements)

    with workspace.locked(grouped):
        for path in sorted(grouped):
            stats = result.files.setdefault(path, FileApplyStats())
            original = workspace.read(path)
            text = original
            for replacement in grouped[path]:
                idx = text.find(replacement.search)
                if idx < 0:
                    stats.not_found += 1
                    logger.debug(f"Search text not found in {path}: {replacement.search[:60]!r}")
                    continue
                text = text[:idx] + replacement.replace + text[idx + len(replacement.search):]
                stats.applied += 1
            if text != original:
                workspace.write(path, text)
                result.files_modified.append(path)

    return result


def summarize_patch_set(patch_set: PatchSet) -> Tuple[int, int]:
    """(files, replacements) in a patch set."""
    return len(patch_set.fixes), sum(len(f.replacements) for f in patch_set.fixes)


@dataclass
class PatchParseResult:
    """Either a validated patch set or the reason there is none."""

    patch_set: Optional[PatchSet] = None
    error: Optional[RepairAgentError] = None

    @property
    def ok(self) -> bool:
        return self.patch_set is not None


def parse_patch_result(raw: str) -> PatchParseResult:
    """Non-raising form of ``parse_patch_output``."""
    try:
        return PatchParseResult(patch_set=parse_patch_output(raw))
    except RepairAgentError as e:
        return PatchParseResult(error=e)
