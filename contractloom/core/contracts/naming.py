"""Naming-style classification and canonical-form selection.

Every textual form of an endpoint name is reduced to its bag of lower-cased
words, so ``add-task``, ``addTask``, ``add_task`` and ``task:add`` are one
logical endpoint. Which form wins is decided by a pluggable policy.
"""

import re
from collections import Counter
from enum import Enum
from typing import Callable, Iterable, List, Mapping, Optional, Tuple


class NamingStyle(str, Enum):
    KEBAB = "kebab-case"
    CAMEL = "camelCase"
    SNAKE = "snake_case"
    PASCAL = "PascalCase"
    NAMESPACED = "namespaced"
    LOWER = "lowercase"  # Single word, fits every style
    OTHER = "other"


# Tie-break order when two styles have the same support
STYLE_PREFERENCE = (
    NamingStyle.KEBAB,
    NamingStyle.CAMEL,
    NamingStyle.SNAKE,
    NamingStyle.NAMESPACED,
    NamingStyle.PASCAL,
    NamingStyle.LOWER,
    NamingStyle.OTHER,
)

_KEBAB_RE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)+$")
_SNAKE_RE = re.compile(r"^[a-z0-9]+(_[a-z0-9]+)+$")
_CAMEL_RE = re.compile(r"^[a-z][a-z0-9]*([A-Z][a-z0-9]*)+$")
_PASCAL_RE = re.compile(r"^([A-Z][a-z0-9]*){2,}$")
_LOWER_RE = re.compile(r"^[a-z0-9]+$")
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")

StylePolicy = Callable[[Mapping[str, int]], NamingStyle]


def classify_style(name: str) -> NamingStyle:
    """Classify the naming convention of a single form."""
    if ":" in name:
        return NamingStyle.NAMESPACED
    if _KEBAB_RE.match(name):
        return NamingStyle.KEBAB
    if _SNAKE_RE.match(name):
        return NamingStyle.SNAKE
    if _CAMEL_RE.match(name):
        return NamingStyle.CAMEL
    if _PASCAL_RE.match(name):
        return NamingStyle.PASCAL
    if _LOWER_RE.match(name):
        return NamingStyle.LOWER
    return NamingStyle.OTHER


def split_words(name: str) -> List[str]:
    """Lower-cased words of a name, in order."""
    words = []
    for chunk in re.split(r"[-_:./\s]+", name):
        if not chunk:
            continue
        words.extend(w.lower() for w in _CAMEL_BOUNDARY_RE.split(chunk) if w)
    return words


def logical_key(name: str) -> Tuple[str, ...]:
    """Order-insensitive identity of a name: its sorted bag of words."""
    return tuple(sorted(split_words(name)))


def convert(name: str, style: NamingStyle) -> str:
    """Render ``name`` in ``style``, keeping its word order."""
    words = split_words(name)
    if not words:
        return name
    if style == NamingStyle.KEBAB:
        return "-".join(words)
    if style == NamingStyle.SNAKE:
        return "_".join(words)
    if style == NamingStyle.CAMEL:
        return words[0] + "".join(w.capitalize() for w in words[1:])
    if style == NamingStyle.PASCAL:
        return "".join(w.capitalize() for w in words)
    if style == NamingStyle.NAMESPACED:
        if len(words) == 1:
            return words[0]
        return words[0] + ":" + "-".join(words[1:])
    return name


def camel_method_name(name: str) -> str:
    """Bridge method name for a channel: ``save-note`` -> ``saveNote``."""
    return convert(name, NamingStyle.CAMEL)


def _style_counts(evidence: Mapping[str, int]) -> Counter:
    counts: Counter = Counter()
    for form, count in evidence.items():
        style = classify_style(form)
        if style in (NamingStyle.LOWER, NamingStyle.OTHER):
            continue
        counts[style] += count
    return counts


def choose_canonical_style(evidence: Mapping[str, int]) -> NamingStyle:
    """Majority vote over the styles of observed forms.

    ``evidence`` maps each textual form to the number of places it occurs.
    Single-word forms carry no style and do not vote. Ties follow
    ``STYLE_PREFERENCE``.
    """
    counts = _style_counts(evidence)
    if not counts:
        return NamingStyle.KEBAB
    best = max(counts.values())
    for style in STYLE_PREFERENCE:
        if counts.get(style) == best:
            return style
    return NamingStyle.KEBAB


def fixed_style_policy(style: NamingStyle) -> StylePolicy:
    """Policy that always answers ``style``."""

    def _policy(evidence: Mapping[str, int]) -> NamingStyle:
        return style

    return _policy


def spec_preferring_policy(spec_names: Iterable[str]) -> StylePolicy:
    """Policy following the dominant style of the contract document.

    Falls back to the majority vote when the document names carry no style.
    """
    spec_style: Optional[NamingStyle] = None
    counts = _style_counts(Counter(spec_names))
    if counts:
        spec_style = choose_canonical_style(Counter(spec_names))

    def _policy(evidence: Mapping[str, int]) -> NamingStyle:
        if spec_style is not None:
            return spec_style
        return choose_canonical_style(evidence)

    return _policy


def canonical_form(evidence: Mapping[str, int], policy: StylePolicy = choose_canonical_style) -> str:
    """Pick the form every other form should be rewritten to.

    Prefers the most frequent observed form already in the chosen style;
    otherwise converts the most frequent form.
    """
    if not evidence:
        raise ValueError("canonical_form needs at least one observed form")
    style = policy(evidence)
    ranked = sorted(evidence.items(), key=lambda item: (-item[1], item[0]))
    for form, _count in ranked:
        if classify_style(form) == style:
            return form
    return convert(ranked[0][0], style)
