"""Contract data models.

Expected contracts come from the contract document; actual contracts are
rebuilt from extracted mentions on every run. Both use the same records so
the validator can diff them directly.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ..constants import (
    CHANNEL_INVOKE,
    ORIGIN_SPEC,
    ROLE_ALIASES,
    SIDE_CONSUMER,
    SIDE_PRODUCER,
)
from ..extractor.models import ExtractionFailure, RawContractMention, ShapeDescriptor
from ..extractor.utils import detect_role
from .naming import logical_key

__all__ = [
    "ShapeDescriptor",
    "FileRef",
    "ContractEndpoint",
    "DomContract",
    "StorageContract",
    "ExpectedContractSet",
    "ActualContractSet",
    "normalize_path",
]

_SESSION_PREFIX_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}[/_-]?"
)


def normalize_path(path: str) -> str:
    """Comparable form of a project-relative path.

    Drops a leading ``./``, a session UUID prefix and backslashes.
    """
    p = path.strip().replace("\\", "/")
    while p.startswith("./"):
        p = p[2:]
    p = _SESSION_PREFIX_RE.sub("", p)
    return p.lstrip("/")


@dataclass(frozen=True)
class FileRef:
    """Reference to a producer/consumer file as written in the contract document.

    A reference is either a path (``src/main.js``) or a bare role name
    (``main``, ``preload``, ``renderer``).
    """

    raw: str
    role: Optional[str] = None
    path: Optional[str] = None

    @classmethod
    def parse(cls, raw: str) -> "FileRef":
        text = str(raw).strip()
        lowered = text.lower()
        for role, aliases in ROLE_ALIASES.items():
            if lowered in aliases:
                return cls(raw=text, role=role, path=None)
        path = normalize_path(text)
        return cls(raw=text, role=detect_role(path), path=path)

    def matches_path(self, file_path: str) -> bool:
        """Path equality, suffix match or same file stem."""
        if self.path is None:
            return False
        ref = self.path
        actual = normalize_path(file_path)
        if ref == actual or actual.endswith("/" + ref) or ref.endswith("/" + actual):
            return True
        ref_stem = os.path.splitext(os.path.basename(ref))[0]
        actual_stem = os.path.splitext(os.path.basename(actual))[0]
        ref_has_ext = bool(os.path.splitext(ref)[1])
        return not ref_has_ext and ref_stem == actual_stem

    def __str__(self) -> str:
        return self.raw


@dataclass
class ContractEndpoint:
    """One IPC channel: who produces it, who consumes it, and its argument shape."""

    name: str
    producers: List[FileRef] = field(default_factory=list)
    consumers: List[FileRef] = field(default_factory=list)
    parameter_shape: Optional[ShapeDescriptor] = None
    origin: str = ORIGIN_SPEC
    channel_kind: str = CHANNEL_INVOKE
    purpose: str = ""
    method: str = ""
    # Actual endpoints only: the mentions the endpoint was built from
    mentions: List[RawContractMention] = field(default_factory=list)

    @property
    def logical_key(self) -> Tuple[str, ...]:
        return logical_key(self.name)

    @property
    def producer_mentions(self) -> List[RawContractMention]:
        return [m for m in self.mentions if m.side == SIDE_PRODUCER]

    @property
    def consumer_mentions(self) -> List[RawContractMention]:
        return [m for m in self.mentions if m.side == SIDE_CONSUMER]

    def to_dict(self) -> Dict:
        data = {
            "name": self.name,
            "channelKind": self.channel_kind,
            "origin": self.origin,
            "producers": [str(p) for p in self.producers],
            "consumers": [str(c) for c in self.consumers],
        }
        if self.parameter_shape is not None:
            data["parameterShape"] = self.parameter_shape.to_dict()
        if self.purpose:
            data["purpose"] = self.purpose
        return data


@dataclass
class DomContract:
    """An element the UI scripts expect the markup to declare."""

    selector: str  # "#id", ".class" or a bare id
    tag: str = ""
    purpose: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    consumers: List[FileRef] = field(default_factory=list)

    @property
    def selector_type(self) -> str:
        return "class" if self.selector.startswith(".") else "id"

    @property
    def name(self) -> str:
        return self.selector.lstrip("#.")

    def to_dict(self) -> Dict:
        return {
            "selector": self.selector,
            "tag": self.tag,
            "purpose": self.purpose,
            "consumers": [str(c) for c in self.consumers],
        }


@dataclass
class StorageContract:
    """A persisted key the UI scripts are expected to read or write."""

    key: str
    purpose: str = ""
    area: str = "localStorage"


@dataclass
class ExpectedContractSet:
    """Contracts declared by the contract document (``origin='spec'``)."""

    endpoints: List[ContractEndpoint] = field(default_factory=list)
    dom: List[DomContract] = field(default_factory=list)
    storage: List[StorageContract] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    # False when no document was supplied at all
    present: bool = True

    @property
    def is_empty(self) -> bool:
        return not (self.endpoints or self.dom or self.storage)

    def spec_names(self) -> List[str]:
        return [e.name for e in self.endpoints]


@dataclass
class ActualContractSet:
    """Contracts the generated files actually implement (``origin='inferred'``)."""

    endpoints: Dict[Tuple[str, str], ContractEndpoint] = field(default_factory=dict)
    # (selector_type, name) -> markup mentions declaring it
    elements: Dict[Tuple[str, str], List[RawContractMention]] = field(default_factory=dict)
    # (selector_type, name) -> script mentions creating it at runtime
    dynamic_elements: Dict[Tuple[str, str], List[RawContractMention]] = field(default_factory=dict)
    selectors: List[RawContractMention] = field(default_factory=list)
    storage: Dict[str, List[RawContractMention]] = field(default_factory=dict)
    select_options: List[RawContractMention] = field(default_factory=list)
    bridge_methods: Dict[str, RawContractMention] = field(default_factory=dict)
    unresolved_calls: List[RawContractMention] = field(default_factory=list)
    literals: Dict[str, List[str]] = field(default_factory=dict)
    files: Dict[str, str] = field(default_factory=dict)  # path -> role
    errors: List[ExtractionFailure] = field(default_factory=list)

    @property
    def roles(self) -> Set[str]:
        return set(self.files.values())

    def files_with_role(self, role: str) -> List[str]:
        return sorted(p for p, r in self.files.items() if r == role)

    def endpoints_by_key(self, channel_kind: str) -> Dict[Tuple[str, ...], List[ContractEndpoint]]:
        """Endpoints of one channel kind grouped by logical key."""
        groups: Dict[Tuple[str, ...], List[ContractEndpoint]] = {}
        for (kind, _name), endpoint in sorted(self.endpoints.items()):
            if kind != channel_kind:
                continue
            groups.setdefault(endpoint.logical_key, []).append(endpoint)
        return groups

    def declares_element(self, selector_type: str, name: str) -> bool:
        key = (selector_type, name)
        return key in self.elements or key in self.dynamic_elements
