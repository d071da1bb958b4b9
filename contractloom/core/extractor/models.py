"""Contract extractor data models.

Defines the core data structures for extracted contract mentions.
These are pure data containers with no extraction logic.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

SHAPE_SINGLE = "single"
SHAPE_POSITIONAL = "positional"
SHAPE_DESTRUCTURED = "destructured"


@dataclass(frozen=True)
class ShapeDescriptor:
    """Structural descriptor of how arguments cross a channel.

    Only ``kind``, ``arity`` and ``fields`` take part in comparisons;
    ``names`` and ``raw`` are carried for repairs and reports.
    """

    kind: str  # "single" | "positional" | "destructured"
    arity: Optional[int] = None
    fields: Optional[Tuple[str, ...]] = None
    names: Tuple[str, ...] = ()  # Positional identifiers, in order
    variadic: bool = False  # Rest parameter / spread argument
    raw: str = ""  # Source text of the parameter or argument list

    def signature(self) -> Tuple[Any, ...]:
        """Comparable part of the descriptor."""
        fields = tuple(sorted(self.fields)) if self.fields is not None else None
        return (self.kind, self.arity, fields, self.variadic)

    def describe(self) -> str:
        """Human-readable form, e.g. ``destructured {content, filename}``."""
        if self.variadic:
            return "variadic (...rest)"
        if self.kind == SHAPE_DESTRUCTURED:
            return "destructured {" + ", ".join(sorted(self.fields or ())) + "}"
        if self.kind == SHAPE_POSITIONAL:
            names = f" ({', '.join(self.names)})" if self.names else ""
            return f"positional arity={self.arity}{names}"
        return "single value" + (f" ({self.names[0]})" if self.names else "")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind}
        if self.arity is not None:
            data["arity"] = self.arity
        if self.fields is not None:
            data["fields"] = list(self.fields)
        if self.names:
            data["names"] = list(self.names)
        if self.variadic:
            data["variadic"] = True
        return data


@dataclass
class SourceFile:
    """One generated file under validation."""

    path: str  # Relative path within the generated project
    text: str
    role: str  # "privileged-process" | "bridge" | "ui-script" | "markup"


@dataclass
class Evidence:
    """One occurrence of a mention in source text."""

    line: int
    text: str  # Exact source text (call expression or attribute)
    start: int  # Character offsets into the file text
    end: int
    args_text: str = ""  # Exact argument or parameter list (or attribute) text
    site_text: str = ""  # Exact text containing args_text, when not `text` itself

    @property
    def site(self) -> str:
        return self.site_text or self.text


@dataclass
class RawContractMention:
    """A single contract mention recovered from one file.

    Duplicate mentions of the same endpoint with the same shape in one file
    are merged; each occurrence is kept as an ``Evidence`` record.
    """

    endpoint: str  # Channel name, selector, element id, storage key...
    file_path: str
    role: str
    kind: str  # "channel" | "selector" | "element" | ...
    line: int  # Line of the first occurrence
    side: Optional[str] = None  # "producer" | "consumer"
    channel_kind: Optional[str] = None  # "invoke" | "event"
    shape: Optional[ShapeDescriptor] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    quote: str = "'"
    evidence: List[Evidence] = field(default_factory=list)

    def merge_key(self) -> Tuple[Any, ...]:
        shape_sig = self.shape.signature() if self.shape is not None else None
        return (self.kind, self.endpoint, self.side, self.channel_kind, self.quote, shape_sig)


@dataclass
class ExtractionFailure:
    """An error encountered while scanning a file."""

    file_path: str
    line: int
    message: str
    severity: str = "warning"  # "warning" | "error"


@dataclass
class ExtractionResult:
    """Complete extraction output for a single file."""

    file_path: str
    role: str
    mentions: List[RawContractMention]
    literals: List[str] = field(default_factory=list)  # Short quoted strings in scripts
    line_count: int = 0
    errors: List[ExtractionFailure] = field(default_factory=list)


@dataclass
class ExtractionOutput:
    """Extraction output for a whole file set."""

    results: List[ExtractionResult]

    @property
    def mentions(self) -> List[RawContractMention]:
        return [m for r in self.results for m in r.mentions]

    @property
    def errors(self) -> List[ExtractionFailure]:
        return [e for r in self.results for e in r.errors]

    def literals_by_file(self) -> Dict[str, List[str]]:
        return {r.file_path: r.literals for r in self.results if r.literals}

    def roles(self) -> Dict[str, str]:
        return {r.file_path: r.role for r in self.results}
