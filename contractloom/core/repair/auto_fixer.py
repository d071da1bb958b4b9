"""Rule-based auto-fixer.

Turns validator issues into exact search/replace ``FixAction``s and applies
them. Every search string is taken verbatim from the file text the issues
were computed on. Fixes are all-or-nothing: when any action of a fix no
longer finds its search text, the whole fix is recorded as unresolved and
none of its edits are kept.

Each touched file is read once and written once per run.
"""

import logging
import re
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..config import PipelineSettings
from ..constants import (
    CHANNEL_EVENT,
    CHANNEL_INVOKE,
    DOM_POLICY_SCRIPT_FOLLOWS_MARKUP,
    MENTION_CHANNEL,
    NAMING_POLICY_MAJORITY,
    NAMING_POLICY_SPEC,
    ROLE_BRIDGE,
    ROLE_PRIVILEGED,
    SIDE_PRODUCER,
)
from ..contracts import build_actual_contracts
from ..contracts.models import ActualContractSet, ExpectedContractSet
from ..contracts.naming import (
    NamingStyle,
    StylePolicy,
    canonical_form,
    choose_canonical_style,
    fixed_style_policy,
    spec_preferring_policy,
)
from ..errors import FixApplicationError
from ..extractor import extract_contracts
from ..extractor.bridge import find_exposed_object
from ..extractor.comments import mask_js_comments
from ..extractor.models import (
    SHAPE_DESTRUCTURED,
    SHAPE_POSITIONAL,
    SHAPE_SINGLE,
    ShapeDescriptor,
)
from ..extractor.privileged import APP_READY_RE
from ..extractor.scanning import parse_object_entries, split_top_level
from ..extractor.shapes import is_identifier, shape_from_schema
from ..validation.models import Issue, IssueKind, ValidationReport
from ..workspace import ProjectWorkspace
from .models import (
    OCCURRENCE_ALL,
    OCCURRENCE_FIRST,
    OCCURRENCE_LAST,
    Fix,
    FixAction,
    FixRecord,
    PatchReport,
    UnresolvedFix,
)
from .stubs import (
    bridge_method_name,
    parameter_list,
    render_bridge_method,
    render_handler_stub,
    render_markup_element,
)

logger = logging.getLogger(__name__)

BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)

# Renames go last: other fixes search for text that still carries old names
_KIND_ORDER = {
    IssueKind.PARAMETER_MISMATCH: 0,
    IssueKind.SCHEMA_ERROR: 1,
    IssueKind.DOM_SELECTOR_MISMATCH: 2,
    IssueKind.MISSING_PRODUCER: 3,
    IssueKind.MISSING_CONSUMER: 4,
    IssueKind.NAME_MISMATCH: 5,
    IssueKind.NAMING_STYLE_MISMATCH: 6,
}


class _Unfixable(Exception):
    """Raised while planning when an issue has no mechanical fix."""


def apply_action(text: str, action: FixAction) -> str:
    """Apply one action to ``text``.

    Raises:
        FixApplicationError: if the search text is not present
    """
    if not action.search:
        raise FixApplicationError(action.file, action.search)
    if action.occurrence == OCCURRENCE_ALL:
        if action.search not in text:
            raise FixApplicationError(action.file, action.search)
        return text.replace(action.search, action.replace)
    if action.occurrence == OCCURRENCE_LAST:
        idx = text.rfind(action.search)
    else:
        idx = text.find(action.search)
    if idx < 0:
        raise FixApplicationError(action.file, action.search)
    return text[:idx] + action.replace + text[idx + len(action.search):]


def resolve_style_policy(
    settings: PipelineSettings, expected: Optional[ExpectedContractSet] = None
) -> StylePolicy:
    """Map the configured naming policy onto a style-choosing function."""
    policy = (settings.naming_policy or NAMING_POLICY_MAJORITY).strip()
    if policy == NAMING_POLICY_MAJORITY:
        return choose_canonical_style
    if policy == NAMING_POLICY_SPEC:
        return spec_preferring_policy(expected.spec_names() if expected else [])
    try:
        return fixed_style_policy(NamingStyle(policy))
    except ValueError:
        logger.warning(f"Unknown naming policy '{policy}', using majority vote")
        return choose_canonical_style


def _line_start(text: str, pos: int) -> int:
    return text.rfind("\n", 0, pos) + 1


def _indent_of(text: str, pos: int) -> str:
    start = _line_start(text, pos)
    match = re.match(r"[ \t]*", text[start:])
    return match.group(0) if match else ""


def _replace_attr_value(attr_text: str, old: str, new: str) -> str:
    """Rewrite the value of ``name="value"`` without touching the name."""
    match = re.match(r"^([^=]+=\s*)([\"']?)(.*?)(\2)$", attr_text, re.DOTALL)
    if match is None:
        return attr_text.replace(old, new, 1)
    value = match.group(3)
    tokens = value.split()
    if old in tokens and len(tokens) > 1:
        # Class list: swap the one token
        value = re.sub(r"(?<![\w-])" + re.escape(old) + r"(?![\w-])", new, value, count=1)
    else:
        value = value.replace(old, new, 1)
    return f"{match.group(1)}{match.group(2)}{value}{match.group(4)}"


class AutoFixer:
    """Mechanical repairs for the addressable issue kinds.

    Args:
        workspace: File set to read from and write to
        settings: Naming and DOM policies
        style_policy: Overrides the configured naming policy
    """

    def __init__(
        self,
        workspace: ProjectWorkspace,
        settings: Optional[PipelineSettings] = None,
        style_policy: Optional[StylePolicy] = None,
    ):
        self.workspace = workspace
        self.settings = settings or PipelineSettings()
        self._style_policy = style_policy

    def fix(
        self,
        report: ValidationReport,
        expected: Optional[ExpectedContractSet] = None,
        actual: Optional[ActualContractSet] = None,
    ) -> PatchReport:
        """Plan and apply fixes for every issue in ``report``."""
        fixes, unresolved = self.plan(report, expected, actual)
        patch_report = self.apply(fixes)
        patch_report.unresolved = unresolved + patch_report.unresolved
        logger.info(
            f"Auto-fix: {patch_report.success_count} fixed, {patch_report.fail_count} unresolved, "
            f"{len(patch_report.files_modified)} file(s) modified"
        )
        return patch_report

    # =========================================================================
    # Planning
    # =========================================================================

    def plan(
        self,
        report: ValidationReport,
        expected: Optional[ExpectedContractSet] = None,
        actual: Optional[ActualContractSet] = None,
    ) -> Tuple[List[Fix], List[UnresolvedFix]]:
        """Compute fixes without touching any file."""
        if actual is None:
            actual = build_actual_contracts(extract_contracts(self.workspace.source_files()))
        policy = self._style_policy or resolve_style_policy(self.settings, expected)

        fixes: List[Fix] = []
        unresolved: List[UnresolvedFix] = []
        planned: Set[tuple] = set()

        issues = sorted(report.issues, key=lambda i: (_KIND_ORDER[i.kind], i.sort_key()))
        for issue in issues:
            try:
                fix = self._plan_issue(issue, actual, policy)
            except _Unfixable as e:
                logger.debug(f"No mechanical fix for {issue.kind.value} '{issue.endpoint}': {e}")
                unresolved.append(
                    UnresolvedFix(type=issue.kind.value, file=issue.file, description=issue.description, reason=str(e))
                )
                continue

            fresh = [a for a in fix.actions if a.identity() not in planned]
            if fix.actions and not fresh:
                # Every edit is already part of another fix
                fixes.append(Fix(fix.issue_type, fix.endpoint, fix.description, actions=[]))
                continue
            planned.update(a.identity() for a in fresh)
            fix.actions = fresh
            fixes.append(fix)
        return fixes, unresolved

    def _plan_issue(self, issue: Issue, actual: ActualContractSet, policy: StylePolicy) -> Fix:
        handlers: Dict[IssueKind, Callable[[Issue, ActualContractSet, StylePolicy], Fix]] = {
            IssueKind.NAME_MISMATCH: self._plan_name_mismatch,
            IssueKind.NAMING_STYLE_MISMATCH: self._plan_naming_style,
            IssueKind.MISSING_PRODUCER: self._plan_missing_producer,
            IssueKind.MISSING_CONSUMER: self._plan_missing_consumer,
            IssueKind.PARAMETER_MISMATCH: self._plan_parameter_mismatch,
            IssueKind.DOM_SELECTOR_MISMATCH: self._plan_dom_mismatch,
            IssueKind.SCHEMA_ERROR: self._plan_schema_error,
        }
        return handlers[issue.kind](issue, actual, policy)

    def _text(self, path: Optional[str]) -> str:
        if not path or path not in self.workspace:
            raise _Unfixable(f"target file {path!r} is not in the workspace")
        return self.workspace.read(path)

    # -- naming ---------------------------------------------------------------

    @staticmethod
    def _quotes_for(actual: ActualContractSet, form: str, file_path: str, channel_kind: Optional[str]) -> List[str]:
        quotes = set()
        for (kind, name), endpoint in actual.endpoints.items():
            if name != form or (channel_kind and kind != channel_kind):
                continue
            for mention in endpoint.mentions:
                if mention.kind == MENTION_CHANNEL and mention.file_path == file_path:
                    quotes.add(mention.quote)
        return sorted(quotes)

    def _rename_actions(
        self, actual: ActualContractSet, form: str, canonical: str, file_path: str, channel_kind: Optional[str]
    ) -> List[FixAction]:
        quotes = self._quotes_for(actual, form, file_path, channel_kind)
        if not quotes:
            raise _Unfixable(f"no literal '{form}' left in {file_path}")
        return [
            FixAction(
                type="rename-channel",
                file=file_path,
                search=f"{q}{form}{q}",
                replace=f"{q}{canonical}{q}",
                rationale=f"'{form}' -> '{canonical}'",
                occurrence=OCCURRENCE_ALL,
            )
            for q in quotes
        ]

    def _plan_name_mismatch(self, issue: Issue, actual: ActualContractSet, policy: StylePolicy) -> Fix:
        details = issue.details
        form, canonical = details["form"], details["canonical"]
        actions = self._rename_actions(actual, form, canonical, issue.file, details.get("channelKind"))
        return Fix(
            issue_type=issue.kind.value,
            endpoint=issue.endpoint,
            description=f"Renamed '{form}' to '{canonical}' in {issue.file}",
            actions=actions,
        )

    def _plan_naming_style(self, issue: Issue, actual: ActualContractSet, policy: StylePolicy) -> Fix:
        details = issue.details
        forms: Dict[str, int] = details["forms"]
        canonical = details.get("specName") or canonical_form(forms, policy)
        actions = []
        for form in sorted(forms):
            if form == canonical:
                continue
            for file_path in details["formFiles"].get(form, []):
                actions.extend(self._rename_actions(actual, form, canonical, file_path, details.get("channelKind")))
        return Fix(
            issue_type=issue.kind.value,
            endpoint=issue.endpoint,
            description=f"Unified '{issue.endpoint}' to '{canonical}'",
            actions=actions,
        )

    # -- missing producer / consumer ------------------------------------------

    @staticmethod
    def _preferred_shape(details: Dict, *keys: str) -> Optional[ShapeDescriptor]:
        for key in keys:
            shape = shape_from_schema(details.get(key))
            if shape is not None:
                return shape
        return None

    def _plan_missing_producer(self, issue: Issue, actual: ActualContractSet, policy: StylePolicy) -> Fix:
        details = issue.details
        if details.get("role") != ROLE_PRIVILEGED:
            raise _Unfixable(f"producer role {details.get('role')!r} has no stub template")
        if details.get("channelKind") == CHANNEL_EVENT:
            raise _Unfixable("event pushes depend on application logic")
        path = issue.file
        text = self._text(path)
        if "ipcMain" not in text:
            raise _Unfixable(f"{path} does not use ipcMain")

        channel = details["channel"]
        shape = self._preferred_shape(details, "expectedShape", "consumerShape")
        siblings = sorted(
            (
                m for e in actual.endpoints.values() for m in e.mentions
                if m.file_path == path and m.side == SIDE_PRODUCER and m.channel_kind == CHANNEL_INVOKE
            ),
            key=lambda m: m.evidence[-1].end,
        )

        if siblings:
            last = siblings[-1]
            method = last.attributes.get("method", "handle")
            if method not in ("handle", "handleOnce"):
                method = "handle"
            anchor = last.evidence[-1].text
            indent = _indent_of(text, last.evidence[-1].start)
            stub = render_handler_stub(
                channel,
                CHANNEL_INVOKE,
                method=method,
                quote=last.quote,
                is_async=bool(last.attributes.get("async", True)),
                shape=shape,
                indent=indent,
            )
            action = FixAction(
                type="add-handler",
                file=path,
                search=anchor,
                replace=f"{anchor}\n\n{stub}",
                rationale=f"handler stub for '{channel}' after the last registration",
                occurrence=OCCURRENCE_LAST,
            )
        else:
            stub = render_handler_stub(channel, CHANNEL_INVOKE, shape=shape)
            ready = APP_READY_RE.search(mask_js_comments(text))
            if ready:
                anchor = text[_line_start(text, ready.start()):ready.end()]
                action = FixAction(
                    type="add-handler",
                    file=path,
                    search=anchor,
                    replace=f"{stub}\n\n{anchor}",
                    rationale=f"handler stub for '{channel}' before app.whenReady()",
                    occurrence=OCCURRENCE_FIRST,
                )
            else:
                tail = text.rstrip()
                anchor = tail[tail.rfind("\n") + 1:] if "\n" in tail else tail
                if not anchor:
                    raise _Unfixable(f"{path} is empty")
                action = FixAction(
                    type="add-handler",
                    file=path,
                    search=anchor,
                    replace=f"{anchor}\n\n{stub}",
                    rationale=f"handler stub for '{channel}' at end of file",
                    occurrence=OCCURRENCE_LAST,
                )

        return Fix(
            issue_type=issue.kind.value,
            endpoint=issue.endpoint,
            description=f"Added handler stub for '{channel}' in {path}",
            actions=[action],
        )

    def _plan_missing_consumer(self, issue: Issue, actual: ActualContractSet, policy: StylePolicy) -> Fix:
        details = issue.details
        if details.get("role") != ROLE_BRIDGE:
            raise _Unfixable("UI call sites depend on application logic")
        path = issue.file
        text = self._text(path)
        located = find_exposed_object(mask_js_comments(text))
        if located is None:
            raise _Unfixable(f"{path} exposes no object through contextBridge")
        _api, obj_start, _obj_end = located

        channel = details["channel"]
        channel_kind = details.get("channelKind") or CHANNEL_INVOKE
        method_name = details.get("method") or bridge_method_name(channel, channel_kind)
        existing = actual.bridge_methods.get(method_name)
        if existing is not None and existing.file_path == path:
            raise _Unfixable(f"bridge method '{method_name}' already exists")

        shape = self._preferred_shape(details, "expectedShape", "producerShape", "callShape")
        quote = self._bridge_quote(actual, path)
        anchor = text[_line_start(text, obj_start):obj_start + 1]
        after = text[obj_start + 1:]
        entry_indent = re.match(r"\s*?\n([ \t]*)\S", after)
        indent = entry_indent.group(1) if entry_indent else _indent_of(text, obj_start) + "  "
        line = render_bridge_method(method_name, channel, channel_kind, shape=shape, quote=quote, indent=indent)
        return Fix(
            issue_type=issue.kind.value,
            endpoint=issue.endpoint,
            description=f"Exposed '{method_name}' forwarding to '{channel}' in {path}",
            actions=[
                FixAction(
                    type="add-bridge-method",
                    file=path,
                    search=anchor,
                    replace=f"{anchor}\n{line}",
                    rationale=f"bridge method for '{channel}'",
                    occurrence=OCCURRENCE_FIRST,
                )
            ],
        )

    @staticmethod
    def _bridge_quote(actual: ActualContractSet, path: str) -> str:
        for endpoint in actual.endpoints.values():
            for mention in endpoint.mentions:
                if mention.file_path == path and mention.kind == MENTION_CHANNEL:
                    return mention.quote
        return "'"

    # -- parameter shapes -----------------------------------------------------

    @staticmethod
    def _convert_arguments(args: List[str], expected: ShapeDescriptor) -> Optional[List[str]]:
        """Rewrite call arguments into ``expected``'s shape, when mechanical."""
        if expected.kind == SHAPE_DESTRUCTURED:
            fields = list(expected.fields or ())
            if len(args) != len(fields) or not fields:
                return None
            if len(args) == 1 and args[0].startswith("{"):
                return None
            by_name = set(args) == set(fields)
            pairs = [(f, f) for f in fields] if by_name else list(zip(fields, args))
            body = ", ".join(f if f == v else f"{f}: {v}" for f, v in pairs)
            return ["{ " + body + " }"]
        if expected.kind == SHAPE_POSITIONAL:
            if len(args) != 1 or not args[0].startswith("{"):
                return None
            entries = [(k, v) for k, v in parse_object_entries(args[0]) if not k.startswith("...")]
            if len(entries) != (expected.arity or 0):
                return None
            values = dict(entries)
            if expected.names and set(expected.names) == set(values):
                return [values[n] for n in expected.names]
            return [v for _k, v in entries]
        if expected.kind == SHAPE_SINGLE and len(args) == 1 and args[0].startswith("{"):
            return None
        return None

    @staticmethod
    def _convert_parameters(params: List[str], actual_shape: ShapeDescriptor, expected: ShapeDescriptor) -> Optional[str]:
        """New parameter text (after ``event``), only when the names carry over."""
        actual_names = set(actual_shape.fields or ()) if actual_shape.kind == SHAPE_DESTRUCTURED else set(
            actual_shape.names
        )
        expected_names = (
            set(expected.fields or ()) if expected.kind == SHAPE_DESTRUCTURED else set(expected.names)
        )
        if not expected_names or actual_names != expected_names:
            return None
        if not all(is_identifier(n) for n in expected_names):
            return None
        return parameter_list(expected)

    def _plan_parameter_mismatch(self, issue: Issue, actual: ActualContractSet, policy: StylePolicy) -> Fix:
        details = issue.details
        expected = shape_from_schema(details.get("expectedShape"))
        actual_shape = shape_from_schema(details.get("actualShape"))
        if expected is None or actual_shape is None:
            raise _Unfixable("shape unknown")
        path = issue.file
        text = self._text(path)
        is_params = details.get("side") == SIDE_PRODUCER and details.get("channelKind") == CHANNEL_INVOKE
        is_params = is_params or (details.get("side") != SIDE_PRODUCER and details.get("channelKind") == CHANNEL_EVENT)

        actions = []
        seen_sites = set()
        for site in details.get("sites", []):
            site_text, args_text = site.get("text", ""), site.get("argsText", "")
            if not site_text or not args_text or site_text in seen_sites:
                continue
            seen_sites.add(site_text)
            if site_text not in text:
                raise _Unfixable(f"call site at line {site.get('line')} changed since validation")

            if is_params:
                inner = args_text.strip()
                if inner.startswith("(") and inner.endswith(")"):
                    inner = inner[1:-1]
                params = split_top_level(inner)
                if not params:
                    raise _Unfixable("handler declares no event parameter")
                converted = self._convert_parameters(params[1:], actual_shape, expected)
                if converted is None:
                    raise _Unfixable(
                        f"cannot convert {actual_shape.describe()} parameters to {expected.describe()}"
                    )
                new_args = f"({params[0]}{', ' + converted if converted else ''})"
            else:
                parts = split_top_level(args_text)
                if not parts:
                    raise _Unfixable("call has no channel argument")
                converted = self._convert_arguments(parts[1:], expected)
                if converted is None:
                    raise _Unfixable(
                        f"cannot convert {actual_shape.describe()} arguments to {expected.describe()}"
                    )
                new_args = ", ".join([parts[0]] + converted)

            if args_text not in site_text:
                raise _Unfixable("argument text not found in call site")
            actions.append(
                FixAction(
                    type="rewrite-parameters" if is_params else "rewrite-arguments",
                    file=path,
                    search=site_text,
                    replace=site_text.replace(args_text, new_args, 1),
                    rationale=f"{actual_shape.describe()} -> {expected.describe()}",
                    occurrence=OCCURRENCE_ALL,
                )
            )
        if not actions:
            raise _Unfixable("no call site recorded")
        return Fix(
            issue_type=issue.kind.value,
            endpoint=issue.endpoint,
            description=f"Rewrote '{issue.endpoint}' {'parameters' if is_params else 'arguments'} "
            f"in {path} as {expected.describe()}",
            actions=actions,
        )

    # -- DOM ------------------------------------------------------------------

    def _plan_dom_mismatch(self, issue: Issue, actual: ActualContractSet, policy: StylePolicy) -> Fix:
        details = issue.details
        if details.get("mismatch") == "missing":
            return self._plan_missing_element(issue)

        script_name, markup_name = details["scriptName"], details["markupName"]
        prefix = "#" if details.get("selectorType") == "id" else "."
        actions = []
        if self.settings.dom_case_policy == DOM_POLICY_SCRIPT_FOLLOWS_MARKUP:
            for site in details.get("scriptSites", []):
                literal = site["argsText"]
                if prefix + script_name in literal:
                    new_literal = literal.replace(prefix + script_name, prefix + markup_name, 1)
                else:
                    new_literal = literal.replace(script_name, markup_name, 1)
                actions.append(
                    FixAction(
                        type="rewrite-selector",
                        file=site["file"],
                        search=site["text"],
                        replace=site["text"].replace(literal, new_literal, 1),
                        rationale=f"script follows markup: '{script_name}' -> '{markup_name}'",
                        occurrence=OCCURRENCE_ALL,
                    )
                )
            target, old, new = "script", script_name, markup_name
        else:
            for site in details.get("markupSites", []):
                attr = site["argsText"]
                actions.append(
                    FixAction(
                        type="rewrite-markup-attribute",
                        file=site["file"],
                        search=site["text"],
                        replace=site["text"].replace(attr, _replace_attr_value(attr, markup_name, script_name), 1),
                        rationale=f"markup follows script: '{markup_name}' -> '{script_name}'",
                        occurrence=OCCURRENCE_ALL,
                    )
                )
            target, old, new = "markup", markup_name, script_name

        actions = list({a.identity(): a for a in actions}.values())
        if not actions:
            raise _Unfixable("no occurrence recorded")
        return Fix(
            issue_type=issue.kind.value,
            endpoint=issue.endpoint,
            description=f"Renamed {target} selector '{prefix}{old}' to '{prefix}{new}'",
            actions=actions,
        )

    def _plan_missing_element(self, issue: Issue) -> Fix:
        details = issue.details
        if not self.settings.insert_missing_elements:
            raise _Unfixable("inserting missing elements is disabled")
        path = details.get("markupFile") or issue.file
        text = self._text(path)
        matches = list(BODY_CLOSE_RE.finditer(text))
        if not matches:
            raise _Unfixable(f"{path} has no </body>")
        close_tag = matches[-1].group(0)
        indent = _indent_of(text, matches[-1].start()) + "  "
        element = render_markup_element(details.get("tag", "div"), details["selectorType"], details["name"], indent)
        return Fix(
            issue_type=issue.kind.value,
            endpoint=issue.endpoint,
            description=f"Inserted placeholder element for '{issue.endpoint}' in {path}",
            actions=[
                FixAction(
                    type="insert-element",
                    file=path,
                    search=close_tag,
                    replace=f"{element}\n{close_tag}",
                    rationale=f"scripts reference '{issue.endpoint}'",
                    occurrence=OCCURRENCE_LAST,
                )
            ],
        )

    # -- schema ---------------------------------------------------------------

    def _plan_schema_error(self, issue: Issue, actual: ActualContractSet, policy: StylePolicy) -> Fix:
        details = issue.details
        category = details.get("category")
        if category == "select-option":
            value, script_value = details["value"], details["scriptValue"]
            actions = []
            for site in details.get("sites", []):
                element, inner = site["text"], site["argsText"]
                if details.get("hasValue", True):
                    new_inner = _replace_attr_value(inner, value, script_value)
                else:
                    new_inner = inner.replace(value, script_value, 1)
                actions.append(
                    FixAction(
                        type="rewrite-option-value",
                        file=issue.file,
                        search=element,
                        replace=element.replace(inner, new_inner, 1),
                        rationale=f"option value follows script literal '{script_value}'",
                        occurrence=OCCURRENCE_ALL,
                    )
                )
            if not actions:
                raise _Unfixable("no option recorded")
            return Fix(
                issue_type=issue.kind.value,
                endpoint=issue.endpoint,
                description=f"Rewrote option '{value}' to '{script_value}' in {issue.file}",
                actions=actions,
            )
        if category == "storage" and details.get("observed"):
            observed, key = details["observed"], details["key"]
            actions = []
            for mention in actual.storage.get(observed, []):
                q = mention.quote
                actions.append(
                    FixAction(
                        type="rename-storage-key",
                        file=mention.file_path,
                        search=f"{q}{observed}{q}",
                        replace=f"{q}{key}{q}",
                        rationale=f"storage key '{observed}' -> '{key}'",
                        occurrence=OCCURRENCE_ALL,
                    )
                )
            actions = list({a.identity(): a for a in actions}.values())
            if actions:
                return Fix(
                    issue_type=issue.kind.value,
                    endpoint=issue.endpoint,
                    description=f"Renamed storage key '{observed}' to '{key}'",
                    actions=actions,
                )
        raise _Unfixable("schema error needs application logic")

    # =========================================================================
    # Application
    # =========================================================================

    def apply(self, fixes: Iterable[Fix]) -> PatchReport:
        """Apply planned fixes, one read-modify-write pass per file."""
        fixes = list(fixes)
        report = PatchReport()
        paths = sorted({path for fix in fixes for path in fix.files})

        with self.workspace.locked(paths):
            buffers = {path: self.workspace.read(path) for path in paths}
            originals = dict(buffers)

            for fix in fixes:
                staged: Dict[str, str] = {}
                try:
                    for action in fix.actions:
                        current = staged.get(action.file, buffers[action.file])
                        staged[action.file] = apply_action(current, action)
                except FixApplicationError as e:
                    logger.warning(f"Fix skipped ({fix.issue_type} '{fix.endpoint}'): {e}")
                    report.unresolved.append(
                        UnresolvedFix(
                            type=fix.issue_type,
                            file=e.file_path,
                            description=fix.description,
                            reason=str(e),
                        )
                    )
                    continue
                buffers.update(staged)
                report.fixed.append(
                    FixRecord(type=fix.issue_type, file=", ".join(fix.files) or "-", description=fix.description)
                )

            for path in paths:
                if buffers[path] != originals[path]:
                    self.workspace.write(path, buffers[path])
                    report.files_modified.append(path)

        return report
