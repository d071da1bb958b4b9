"""Contract validator (diff engine).

Diffs the actual contract set against the expected one and classifies every
mismatch as an ``Issue``. The validator never touches files and is
deterministic: the same inputs always produce the same, sorted issue list.
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..config import PipelineSettings
from ..constants import (
    CHANNEL_EVENT,
    CHANNEL_INVOKE,
    MENTION_CHANNEL,
    ORIGIN_INFERRED,
    ORIGIN_SPEC,
    ROLE_BRIDGE,
    ROLE_MARKUP,
    ROLE_PRIVILEGED,
    ROLE_UI_SCRIPT,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
    SIDE_CONSUMER,
    SIDE_PRODUCER,
)
from ..contracts.models import (
    ActualContractSet,
    ContractEndpoint,
    DomContract,
    ExpectedContractSet,
    FileRef,
)
from ..contracts.naming import classify_style, logical_key
from ..extractor.models import RawContractMention, ShapeDescriptor
from ..extractor.shapes import shapes_compatible
from .models import (
    BUCKET_MISSING_CHANNELS,
    Issue,
    IssueEvidence,
    IssueKind,
    ValidationReport,
)

logger = logging.getLogger(__name__)


def _evidence(mentions: Iterable[RawContractMention]) -> List[IssueEvidence]:
    items = []
    for mention in mentions:
        for ev in mention.evidence:
            items.append(IssueEvidence(file=mention.file_path, line=ev.line, text=ev.text.strip()[:200]))
    return sorted(items, key=lambda e: (e.file, e.line))


def _sites(mention: RawContractMention) -> List[Dict]:
    return [{"line": ev.line, "text": ev.site, "argsText": ev.args_text} for ev in mention.evidence]


def _shape_dict(shape: Optional[ShapeDescriptor]) -> Optional[Dict]:
    return shape.to_dict() if shape is not None else None


def _channel_mentions(endpoints: Sequence[ContractEndpoint], side: Optional[str] = None) -> List[RawContractMention]:
    mentions = []
    for endpoint in endpoints:
        for mention in endpoint.mentions:
            if mention.kind != MENTION_CHANNEL:
                continue
            if side is None or mention.side == side:
                mentions.append(mention)
    return mentions


def _side_mentions(endpoints: Sequence[ContractEndpoint], side: str) -> List[RawContractMention]:
    """All mentions on one side, including UI calls resolved through the bridge."""
    return [m for e in endpoints for m in e.mentions if m.side == side]


class ContractValidator:
    """Diff engine between expected and actual contracts.

    Usage:
        validator = ContractValidator(settings)
        report = validator.validate(expected, actual)
    """

    def __init__(self, settings: Optional[PipelineSettings] = None):
        self.settings = settings or PipelineSettings()

    def validate(self, expected: ExpectedContractSet, actual: ActualContractSet) -> ValidationReport:
        issues: List[Issue] = []
        correlated: Set[Tuple[str, str]] = set()
        unresolved = self._match_unresolved_calls(expected, actual)

        for endpoint in sorted(expected.endpoints, key=lambda e: (e.channel_kind, e.name)):
            group = self._correlate(endpoint, expected, actual)
            correlated.update((e.channel_kind, e.name) for e in group)
            calls = unresolved.pop(endpoint.logical_key, [])
            issues.extend(self._check_expected_endpoint(endpoint, group, calls, actual))

        issues.extend(self._check_inferred_endpoints(actual, correlated, unresolved))
        issues.extend(self._check_dom(expected, actual))
        issues.extend(self._check_select_options(actual))
        issues.extend(self._check_storage(expected, actual))

        issues = self._dedupe(issues)
        warnings = list(expected.warnings)
        warnings.extend(f"{e.file_path}:{e.line}: {e.message}" for e in actual.errors)

        report = ValidationReport(issues=issues, warnings=warnings)
        logger.info(f"Validation: {report.total_issues} issue(s), valid={report.is_valid}")
        return report

    # =========================================================================
    # Correlation
    # =========================================================================

    def _correlate(
        self, endpoint: ContractEndpoint, expected: ExpectedContractSet, actual: ActualContractSet
    ) -> List[ContractEndpoint]:
        """Actual endpoints that implement ``endpoint`` under any textual form."""
        other_names = {
            e.name for e in expected.endpoints if e.channel_kind == endpoint.channel_kind and e.name != endpoint.name
        }
        group = []
        for (kind, name), candidate in sorted(actual.endpoints.items()):
            if kind != endpoint.channel_kind:
                continue
            if name == endpoint.name:
                group.append(candidate)
            elif name not in other_names and candidate.logical_key == endpoint.logical_key:
                group.append(candidate)
        return group

    def _match_unresolved_calls(
        self, expected: ExpectedContractSet, actual: ActualContractSet
    ) -> Dict[Tuple[str, ...], List[RawContractMention]]:
        """UI calls to bridge methods that do not exist, keyed by logical name."""
        matched: Dict[Tuple[str, ...], List[RawContractMention]] = {}
        known = {e.logical_key for e in expected.endpoints}
        known.update(e.logical_key for e in actual.endpoints.values())
        for call in actual.unresolved_calls:
            key = logical_key(call.endpoint)
            if key in known:
                matched.setdefault(key, []).append(call)
            else:
                logger.debug(f"Call to unknown bridge method '{call.endpoint}' in {call.file_path}")
        return matched

    # =========================================================================
    # Producers / consumers
    # =========================================================================

    @staticmethod
    def _ref_satisfied(ref: FileRef, mentions: List[RawContractMention], actual: ActualContractSet) -> bool:
        if ref.path is not None:
            if any(ref.matches_path(m.file_path) for m in mentions):
                return True
            if any(ref.matches_path(p) for p in actual.files):
                # The named file exists but does not carry the channel
                return False
        return ref.role is not None and any(m.role == ref.role for m in mentions)

    @staticmethod
    def _target_file(ref: FileRef, actual: ActualContractSet) -> Optional[str]:
        if ref.path is not None:
            for path in sorted(actual.files):
                if ref.matches_path(path):
                    return path
        if ref.role is not None:
            files = actual.files_with_role(ref.role)
            if files:
                return files[0]
        return None

    @staticmethod
    def _default_consumer_role(actual: ActualContractSet) -> Optional[str]:
        roles = actual.roles
        if ROLE_BRIDGE in roles:
            return ROLE_BRIDGE
        if ROLE_UI_SCRIPT in roles:
            return ROLE_UI_SCRIPT
        return None

    def _missing_side_issue(
        self,
        kind: IssueKind,
        endpoint: ContractEndpoint,
        ref: FileRef,
        actual: ActualContractSet,
        absent: bool,
        details: Dict,
        evidence: List[IssueEvidence],
    ) -> Issue:
        side = "producer" if kind == IssueKind.MISSING_PRODUCER else "consumer"
        target = self._target_file(ref, actual)
        where = target or ref.raw
        if absent:
            description = f"Channel '{endpoint.name}' is declared but not implemented anywhere; missing {side} in {where}"
            severity = SEVERITY_CRITICAL
        elif kind == IssueKind.MISSING_PRODUCER:
            description = f"No handler for '{endpoint.name}' in {where}"
            severity = SEVERITY_HIGH
        else:
            description = f"'{endpoint.name}' is never consumed in {where}"
            severity = SEVERITY_MEDIUM
        return Issue(
            kind=kind,
            endpoint=endpoint.name,
            description=description,
            severity=severity,
            file=target,
            evidence=evidence,
            details={
                "channel": endpoint.name,
                "channelKind": endpoint.channel_kind,
                "role": ref.role,
                "ref": ref.raw,
                "origin": endpoint.origin,
                **details,
            },
            bucket=BUCKET_MISSING_CHANNELS if absent else "",
        )

    def _check_expected_endpoint(
        self,
        endpoint: ContractEndpoint,
        group: List[ContractEndpoint],
        calls: List[RawContractMention],
        actual: ActualContractSet,
    ) -> List[Issue]:
        issues: List[Issue] = []
        producers = _side_mentions(group, SIDE_PRODUCER)
        consumers = _side_mentions(group, SIDE_CONSUMER) + calls
        absent = not group and not calls

        producer_refs = list(endpoint.producers)
        if not producer_refs and ROLE_PRIVILEGED in actual.roles:
            producer_refs = [FileRef(raw=ROLE_PRIVILEGED, role=ROLE_PRIVILEGED)]
        consumer_refs = list(endpoint.consumers)
        if not consumer_refs:
            role = self._default_consumer_role(actual)
            if role:
                consumer_refs = [FileRef(raw=role, role=role)]

        consumer_shape = next((m.shape for m in _channel_mentions(group, SIDE_CONSUMER) if m.shape), None)
        producer_shape = next((m.shape for m in _channel_mentions(group, SIDE_PRODUCER) if m.shape), None)

        for ref in producer_refs:
            if self._ref_satisfied(ref, producers, actual):
                continue
            issues.append(
                self._missing_side_issue(
                    IssueKind.MISSING_PRODUCER,
                    endpoint,
                    ref,
                    actual,
                    absent,
                    {
                        "expectedShape": _shape_dict(endpoint.parameter_shape),
                        "consumerShape": _shape_dict(consumer_shape),
                    },
                    _evidence(consumers),
                )
            )

        for ref in consumer_refs:
            if self._ref_satisfied(ref, consumers, actual):
                continue
            extra = {
                "expectedShape": _shape_dict(endpoint.parameter_shape),
                "producerShape": _shape_dict(producer_shape),
            }
            if calls and ref.role == ROLE_BRIDGE:
                extra["method"] = calls[0].endpoint
                extra["callShape"] = _shape_dict(calls[0].shape)
            issues.append(
                self._missing_side_issue(
                    IssueKind.MISSING_CONSUMER, endpoint, ref, actual, absent, extra, _evidence(producers + calls)
                )
            )

        # A UI call through a bridge method that does not exist
        if calls and ROLE_BRIDGE in actual.roles and not any(r.role == ROLE_BRIDGE for r in consumer_refs):
            ref = FileRef(raw=ROLE_BRIDGE, role=ROLE_BRIDGE)
            if not self._ref_satisfied(ref, consumers, actual):
                issues.append(
                    self._missing_side_issue(
                        IssueKind.MISSING_CONSUMER,
                        endpoint,
                        ref,
                        actual,
                        False,
                        {
                            "expectedShape": _shape_dict(endpoint.parameter_shape),
                            "producerShape": _shape_dict(producer_shape),
                            "method": calls[0].endpoint,
                            "callShape": _shape_dict(calls[0].shape),
                        },
                        _evidence(calls),
                    )
                )

        issues.extend(self._check_names(group, spec_name=endpoint.name, channel_kind=endpoint.channel_kind))
        issues.extend(self._check_shapes(endpoint.name, group, endpoint.parameter_shape))
        return issues

    def _check_inferred_endpoints(
        self,
        actual: ActualContractSet,
        correlated: Set[Tuple[str, str]],
        unresolved: Dict[Tuple[str, ...], List[RawContractMention]],
    ) -> List[Issue]:
        """Endpoints found only in code still need both sides."""
        issues: List[Issue] = []
        roles = actual.roles
        for channel_kind in (CHANNEL_INVOKE, CHANNEL_EVENT):
            for key, group in actual.endpoints_by_key(channel_kind).items():
                group = [e for e in group if (e.channel_kind, e.name) not in correlated]
                if not group:
                    continue
                calls = unresolved.pop(key, [])
                forms = Counter()
                for mention in _channel_mentions(group):
                    forms[mention.endpoint] += len(mention.evidence)
                name = sorted(forms.items(), key=lambda item: (-item[1], item[0]))[0][0] if forms else group[0].name
                endpoint = ContractEndpoint(name=name, origin=ORIGIN_INFERRED, channel_kind=channel_kind)

                producers = _side_mentions(group, SIDE_PRODUCER)
                consumers = _side_mentions(group, SIDE_CONSUMER) + calls
                producer_shape = next((m.shape for m in _channel_mentions(group, SIDE_PRODUCER) if m.shape), None)
                consumer_shape = next((m.shape for m in _channel_mentions(group, SIDE_CONSUMER) if m.shape), None)

                if not producers and ROLE_PRIVILEGED in roles:
                    ref = FileRef(raw=ROLE_PRIVILEGED, role=ROLE_PRIVILEGED)
                    issues.append(
                        self._missing_side_issue(
                            IssueKind.MISSING_PRODUCER,
                            endpoint,
                            ref,
                            actual,
                            False,
                            {"expectedShape": None, "consumerShape": _shape_dict(consumer_shape)},
                            _evidence(consumers),
                        )
                    )

                consumer_role = self._default_consumer_role(actual)
                extra = {"expectedShape": None, "producerShape": _shape_dict(producer_shape)}
                if calls and ROLE_BRIDGE in roles:
                    # The UI calls a bridge method that does not exist yet
                    consumer_role = ROLE_BRIDGE
                    extra["method"] = calls[0].endpoint
                    extra["callShape"] = _shape_dict(calls[0].shape)
                elif consumers:
                    consumer_role = None
                if consumer_role:
                    issues.append(
                        self._missing_side_issue(
                            IssueKind.MISSING_CONSUMER,
                            endpoint,
                            FileRef(raw=consumer_role, role=consumer_role),
                            actual,
                            False,
                            extra,
                            _evidence(producers + calls),
                        )
                    )

                issues.extend(self._check_names(group, spec_name=None, channel_kind=channel_kind))
                issues.extend(self._check_shapes(name, group, None))
        return issues

    # =========================================================================
    # Naming
    # =========================================================================

    def _check_names(
        self, group: List[ContractEndpoint], spec_name: Optional[str], channel_kind: str
    ) -> List[Issue]:
        issues: List[Issue] = []
        mentions = _channel_mentions(group)
        if not mentions:
            return issues

        forms: Counter = Counter()
        form_files: Dict[str, Set[str]] = {}
        for mention in mentions:
            forms[mention.endpoint] += len(mention.evidence)
            form_files.setdefault(mention.endpoint, set()).add(mention.file_path)

        endpoint_name = spec_name or sorted(forms.items(), key=lambda item: (-item[1], item[0]))[0][0]
        origin = ORIGIN_SPEC if spec_name else ORIGIN_INFERRED

        if spec_name:
            for form in sorted(forms):
                if form == spec_name:
                    continue
                for file_path in sorted(form_files[form]):
                    in_file = [m for m in mentions if m.endpoint == form and m.file_path == file_path]
                    issues.append(
                        Issue(
                            kind=IssueKind.NAME_MISMATCH,
                            endpoint=spec_name,
                            description=f"{file_path} uses '{form}' but the contract names it '{spec_name}'",
                            severity=SEVERITY_CRITICAL,
                            file=file_path,
                            evidence=_evidence(in_file),
                            details={
                                "form": form,
                                "canonical": spec_name,
                                "channelKind": channel_kind,
                                "origin": origin,
                            },
                        )
                    )

        if len(forms) > 1:
            styles = {form: classify_style(form).value for form in forms}
            listing = ", ".join(f"'{f}' ({styles[f]})" for f in sorted(forms))
            issues.append(
                Issue(
                    kind=IssueKind.NAMING_STYLE_MISMATCH,
                    endpoint=endpoint_name,
                    description=f"Channel '{endpoint_name}' is referenced under {len(forms)} forms: {listing}",
                    severity=SEVERITY_HIGH,
                    evidence=_evidence(mentions),
                    details={
                        "forms": dict(sorted(forms.items())),
                        "formFiles": {f: sorted(files) for f, files in sorted(form_files.items())},
                        "styles": styles,
                        "specName": spec_name,
                        "channelKind": channel_kind,
                        "origin": origin,
                    },
                )
            )
        return issues

    # =========================================================================
    # Parameter shapes
    # =========================================================================

    def _check_shapes(
        self, name: str, group: List[ContractEndpoint], spec_shape: Optional[ShapeDescriptor]
    ) -> List[Issue]:
        issues: List[Issue] = []
        lenient = self.settings.lenient_single_object
        producers = [m for m in _channel_mentions(group, SIDE_PRODUCER) if m.shape is not None]
        consumers = [m for m in _channel_mentions(group, SIDE_CONSUMER) if m.shape is not None]

        if spec_shape is not None:
            for producer in producers:
                if shapes_compatible(spec_shape, producer.shape, lenient):
                    continue
                issues.append(
                    self._shape_issue(name, producer, SIDE_PRODUCER, spec_shape, "spec")
                )

        reference = spec_shape or (producers[0].shape if producers else None)
        authority = "spec" if spec_shape is not None else "producer"
        if reference is None:
            return issues
        for consumer in consumers:
            if shapes_compatible(reference, consumer.shape, lenient):
                continue
            issues.append(self._shape_issue(name, consumer, SIDE_CONSUMER, reference, authority))
        return issues

    @staticmethod
    def _shape_issue(
        name: str, mention: RawContractMention, side: str, expected: ShapeDescriptor, authority: str
    ) -> Issue:
        if side == SIDE_PRODUCER:
            description = (
                f"'{name}': the contract passes {expected.describe()} "
                f"but the handler in {mention.file_path} takes {mention.shape.describe()}"
            )
        else:
            description = (
                f"'{name}': the {authority} expects {expected.describe()} "
                f"but {mention.file_path} passes {mention.shape.describe()}"
            )
        return Issue(
            kind=IssueKind.PARAMETER_MISMATCH,
            endpoint=name,
            description=description,
            severity=SEVERITY_HIGH,
            file=mention.file_path,
            evidence=_evidence([mention]),
            details={
                "channel": mention.endpoint,
                "channelKind": mention.channel_kind,
                "side": side,
                "authority": authority,
                "expectedShape": expected.to_dict(),
                "actualShape": mention.shape.to_dict(),
                "sites": _sites(mention),
            },
        )

    # =========================================================================
    # DOM
    # =========================================================================

    def _check_dom(self, expected: ExpectedContractSet, actual: ActualContractSet) -> List[Issue]:
        issues: List[Issue] = []
        if ROLE_MARKUP not in actual.roles:
            if actual.selectors or expected.dom:
                logger.debug("No markup in file set, DOM checks skipped")
            return issues

        referenced: Dict[Tuple[str, str], List[RawContractMention]] = {}
        for mention in actual.selectors:
            key = (mention.attributes.get("selector_type", "id"), mention.endpoint)
            referenced.setdefault(key, []).append(mention)
        declared_by_spec: Dict[Tuple[str, str], DomContract] = {
            (dom.selector_type, dom.name): dom for dom in expected.dom
        }

        markup_files = actual.files_with_role(ROLE_MARKUP)
        for key in sorted(set(referenced) | set(declared_by_spec)):
            selector_type, name = key
            if actual.declares_element(selector_type, name):
                continue
            mentions = referenced.get(key, [])
            dom = declared_by_spec.get(key)
            prefix = "#" if selector_type == "id" else "."
            variants = sorted(
                n for (t, n) in list(actual.elements) + list(actual.dynamic_elements)
                if t == selector_type and n.lower() == name.lower()
            )
            script_files = sorted({m.file_path for m in mentions})

            if variants:
                markup_name = variants[0]
                declaring = actual.elements.get((selector_type, markup_name)) or []
                markup_file = declaring[0].file_path if declaring else None
                where = ", ".join(script_files) or "the contract"
                issues.append(
                    Issue(
                        kind=IssueKind.DOM_SELECTOR_MISMATCH,
                        endpoint=prefix + name,
                        description=(
                            f"{where} selects '{prefix}{name}' but markup declares '{prefix}{markup_name}' "
                            f"(selectors are case-sensitive)"
                        ),
                        severity=SEVERITY_HIGH,
                        file=markup_file,
                        evidence=_evidence(mentions + declaring),
                        details={
                            "mismatch": "case",
                            "selectorType": selector_type,
                            "scriptName": name,
                            "markupName": markup_name,
                            "markupFile": markup_file,
                            "scriptFiles": script_files,
                            "scriptSites": [
                                {"file": m.file_path, **site} for m in mentions for site in _sites(m)
                            ],
                            "markupSites": [
                                {"file": m.file_path, **site} for m in declaring for site in _sites(m)
                            ],
                        },
                    )
                )
            else:
                where = ", ".join(script_files) or "the contract"
                issues.append(
                    Issue(
                        kind=IssueKind.DOM_SELECTOR_MISMATCH,
                        endpoint=prefix + name,
                        description=f"{where} expects '{prefix}{name}' but no markup element declares it",
                        severity=SEVERITY_HIGH,
                        file=markup_files[0],
                        evidence=_evidence(mentions),
                        details={
                            "mismatch": "missing",
                            "selectorType": selector_type,
                            "name": name,
                            "tag": (dom.tag if dom and dom.tag else "div"),
                            "markupFile": markup_files[0],
                            "scriptFiles": script_files,
                        },
                    )
                )
        return issues

    def _check_select_options(self, actual: ActualContractSet) -> List[Issue]:
        issues: List[Issue] = []
        literals: Set[str] = set()
        for path, values in actual.literals.items():
            if actual.files.get(path) == ROLE_UI_SCRIPT:
                literals.update(values)
        if not literals:
            return issues

        for option in actual.select_options:
            value = option.endpoint
            if value in literals:
                continue
            variants = {value.lower(), value.upper(), value.capitalize(), value.title()} - {value}
            matched = sorted(variants & literals)
            if not matched:
                continue
            select_id = option.attributes.get("select_id")
            issues.append(
                Issue(
                    kind=IssueKind.SCHEMA_ERROR,
                    endpoint=select_id or value,
                    description=(
                        f"<select{' #' + select_id if select_id else ''}> option '{value}' in {option.file_path} "
                        f"differs in case from the script literal '{matched[0]}'"
                    ),
                    severity=SEVERITY_MEDIUM,
                    file=option.file_path,
                    evidence=_evidence([option]),
                    details={
                        "category": "select-option",
                        "value": value,
                        "scriptValue": matched[0],
                        "selectId": select_id,
                        "hasValue": option.attributes.get("has_value", True),
                        "sites": _sites(option),
                    },
                )
            )
        return issues

    def _check_storage(self, expected: ExpectedContractSet, actual: ActualContractSet) -> List[Issue]:
        issues: List[Issue] = []
        if not expected.storage or ROLE_UI_SCRIPT not in actual.roles:
            return issues
        for contract in sorted(expected.storage, key=lambda s: s.key):
            if contract.key in actual.storage:
                continue
            variants = sorted(k for k in actual.storage if k.lower() == contract.key.lower())
            if variants:
                description = f"Storage key '{contract.key}' is accessed as '{variants[0]}'"
                mentions = actual.storage[variants[0]]
            else:
                description = f"Storage key '{contract.key}' is declared but never read or written"
                mentions = []
            issues.append(
                Issue(
                    kind=IssueKind.SCHEMA_ERROR,
                    endpoint=contract.key,
                    description=description,
                    severity=SEVERITY_MEDIUM,
                    file=mentions[0].file_path if mentions else None,
                    evidence=_evidence(mentions),
                    details={
                        "category": "storage",
                        "key": contract.key,
                        "observed": variants[0] if variants else None,
                        "area": contract.area,
                    },
                )
            )
        return issues

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _dedupe(issues: List[Issue]) -> List[Issue]:
        seen = set()
        unique = []
        for issue in issues:
            key = (issue.kind, issue.endpoint, issue.file, issue.details.get("role"), issue.description)
            side_key = (issue.kind, issue.endpoint, issue.file, issue.details.get("role"))
            if issue.kind in (IssueKind.MISSING_PRODUCER, IssueKind.MISSING_CONSUMER):
                key = side_key
            if key in seen:
                continue
            seen.add(key)
            unique.append(issue)
        return sorted(unique, key=lambda i: i.sort_key())
