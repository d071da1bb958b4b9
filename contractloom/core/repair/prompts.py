"""Prompt construction for the AI repair agent.

The prompt carries the outstanding issues, the expected contract fragments
those issues refer to, and the project files in reduced form:

- markup files become a digest of element tags that carry an id or class
- scripts above ``large_file_chars`` become excerpts around contract lines
- whole files are dropped, least relevant first, while the token count is
  above ``max_prompt_tokens``
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ..config import PipelineSettings
from ..constants import ROLE_MARKUP
from ..contracts.models import ExpectedContractSet
from ..errors import RepairAgentError
from ..extractor.markup import TAG_RE, attribute_value
from ..utils.token_counter import TokenCounter
from ..validation.models import Issue, ValidationReport
from ..workspace import ProjectWorkspace

logger = logging.getLogger(__name__)

REPAIR_ROLE = """You are a senior Electron engineer repairing inconsistencies between the files of a
generated desktop application. The privileged main process, the preload bridge, the UI
scripts and the HTML markup must agree on IPC channel names, argument shapes and DOM
selectors. You make the smallest edits that restore agreement and never add features."""

# Lines worth keeping when a script is cut down to excerpts
CONTRACT_LINE_RE = re.compile(
    r"ipcMain|ipcRenderer|contextBridge|webContents\s*\.\s*send|exposeInMainWorld"
    r"|getElementById|querySelector|localStorage|sessionStorage|window\s*\.\s*\w+\s*\.\s*\w+\s*\("
)

OUTPUT_FORMAT = """{"fixes": [{"file": "relative/path.js", "replacements": [{"search": "exact text copied from the file", "replace": "new text", "reason": "short reason"}]}]}"""


@dataclass
class RepairPrompt:
    text: str
    tokens: int
    included_files: List[str] = field(default_factory=list)
    dropped_files: List[str] = field(default_factory=list)


def markup_digest(text: str, limit: int = 20) -> str:
    """Element tags that declare an id or class, one per line."""
    lines = []
    total = 0
    for match in TAG_RE.finditer(text):
        attrs = match.group(2) or ""
        if attribute_value(attrs, "id") is None and attribute_value(attrs, "class") is None:
            continue
        total += 1
        if len(lines) < limit:
            lines.append(match.group(0))
    if total > limit:
        lines.append(f"<!-- {total - limit} more element(s) omitted -->")
    return "\n".join(lines) if lines else "<!-- no elements with id or class -->"


def script_excerpts(text: str, focus_lines: Set[int], before: int = 3, after: int = 10) -> str:
    """Keep contract-bearing lines plus a fixed context window around them.

    ``focus_lines`` are 1-based line numbers that must be kept in addition
    to the lines matching ``CONTRACT_LINE_RE``.
    """
    lines = text.splitlines()
    anchors = set(focus_lines)
    anchors.update(i + 1 for i, line in enumerate(lines) if CONTRACT_LINE_RE.search(line))
    if not anchors:
        return "\n".join(lines[: before + after])

    ranges: List[Tuple[int, int]] = []
    for anchor in sorted(anchors):
        start, end = max(1, anchor - before), min(len(lines), anchor + after)
        if ranges and start <= ranges[-1][1] + 1:
            ranges[-1] = (ranges[-1][0], max(ranges[-1][1], end))
        else:
            ranges.append((start, end))

    parts = []
    previous_end = 0
    for start, end in ranges:
        if start > previous_end + 1:
            parts.append(f"// ... lines {previous_end + 1}-{start - 1} omitted ...")
        parts.extend(lines[start - 1:end])
        previous_end = end
    if previous_end < len(lines):
        parts.append(f"// ... lines {previous_end + 1}-{len(lines)} omitted ...")
    return "\n".join(parts)


def _issue_lines(issues: List[Issue]) -> Dict[str, Set[int]]:
    by_file: Dict[str, Set[int]] = {}
    for issue in issues:
        for ev in issue.evidence:
            if ev.file and ev.line:
                by_file.setdefault(ev.file, set()).add(ev.line)
        if issue.file:
            by_file.setdefault(issue.file, set())
    return by_file


def _format_issues(issues: List[Issue]) -> str:
    lines = []
    for i, issue in enumerate(issues, 1):
        where = f" [{issue.file}]" if issue.file else ""
        lines.append(f"{i}. ({issue.kind.value}, {issue.severity}) {issue.description}{where}")
        for ev in issue.evidence[:3]:
            lines.append(f"   - {ev.file}:{ev.line}: {ev.text.strip()[:160]}")
    return "\n".join(lines)


def _format_contracts(issues: List[Issue], expected: Optional[ExpectedContractSet]) -> str:
    if expected is None or expected.is_empty:
        return "(no contract document; align the files with each other)"
    names = {issue.endpoint for issue in issues}
    fragments = [e.to_dict() for e in expected.endpoints if e.name in names]
    fragments += [d.to_dict() for d in expected.dom if d.name in names or d.selector in names]
    if not fragments:
        fragments = [e.to_dict() for e in expected.endpoints]
    return json.dumps(fragments, indent=2)


def _render_file(path: str, body: str, reduced: bool) -> str:
    note = " (excerpt)" if reduced else ""
    return f"### {path}{note}\n```\n{body}\n```"


def _assemble(issues_text: str, contracts_text: str, file_sections: List[str]) -> str:
    files_text = "\n\n".join(file_sections) if file_sections else "(no file content fits the budget)"
    return f"""{REPAIR_ROLE}

## Task: Repair Contract Mismatches

### Outstanding Issues
{issues_text}

### Expected Contracts
{contracts_text}

### Project Files
{files_text}

### Instructions
1. Fix only the issues listed above.
2. Every "search" string must be copied exactly from the file content shown, long enough
   to be unique, and must not include the "... omitted ..." markers.
3. Use the file paths exactly as shown in the section headers.
4. Keep the existing code style (quotes, async handlers, indentation).

### Output Format
Return ONLY a JSON object (no prose):
{OUTPUT_FORMAT}
"""


def build_repair_prompt(
    report: ValidationReport,
    workspace: ProjectWorkspace,
    settings: PipelineSettings,
    expected: Optional[ExpectedContractSet] = None,
    counter: Optional[TokenCounter] = None,
) -> RepairPrompt:
    """Build the repair prompt within the configured token ceiling.

    Raises:
        RepairAgentError: kind "prompt_too_large" when not a single file
            fits next to the issue list
    """
    counter = counter or TokenCounter()
    issues = report.issues
    issue_lines = _issue_lines(issues)
    issues_text = _format_issues(issues)
    contracts_text = _format_contracts(issues, expected)

    sections: Dict[str, str] = {}
    for path in workspace.paths:
        text = workspace.read(path)
        if workspace.role_of(path) == ROLE_MARKUP:
            sections[path] = _render_file(path, markup_digest(text, settings.markup_digest_limit), True)
        elif len(text) > settings.large_file_chars:
            body = script_excerpts(text, issue_lines.get(path, set()), settings.context_before, settings.context_after)
            sections[path] = _render_file(path, body, True)
        else:
            sections[path] = _render_file(path, text, False)

    # Files no issue points at go first, then the largest
    drop_order = sorted(sections, key=lambda p: (p in issue_lines, -len(sections[p]), p))
    included = list(workspace.paths)
    dropped: List[str] = []

    text = _assemble(issues_text, contracts_text, [sections[p] for p in included])
    tokens = counter.count(text)
    while tokens > settings.max_prompt_tokens and drop_order:
        victim = drop_order.pop(0)
        included.remove(victim)
        dropped.append(victim)
        text = _assemble(issues_text, contracts_text, [sections[p] for p in included])
        tokens = counter.count(text)

    if tokens > settings.max_prompt_tokens or not included:
        raise RepairAgentError(
            "prompt_too_large",
            f"repair prompt needs {tokens} tokens, ceiling is {settings.max_prompt_tokens}",
        )
    if dropped:
        logger.warning(f"Dropped {len(dropped)} file(s) from the repair prompt: {', '.join(dropped)}")
    logger.info(f"Repair prompt: {tokens} tokens, {len(included)} file(s), {len(issues)} issue(s)")
    return RepairPrompt(text=text, tokens=tokens, included_files=included, dropped_files=dropped)
