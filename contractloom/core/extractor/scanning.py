"""Low-level scanning helpers shared by the role strategies.

These operate on comment-masked text, so a ``//`` or ``/*`` never starts a
comment here. String and template literals are skipped when matching
brackets and splitting argument lists.
"""

import re
from typing import List, Optional, Tuple

IDENT_RE = re.compile(r"^[A-Za-z_$][\w$]*$")

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")", "]", "}"}
_QUOTES = {"'", '"', "`"}


def line_of(text: str, pos: int) -> int:
    """1-based line number of a character offset."""
    return text.count("\n", 0, pos) + 1


def skip_string(text: str, start: int) -> int:
    """Return the index just past the string literal starting at ``start``."""
    quote = text[start]
    i = start + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n" and quote != "`":
            # Unterminated single-line string; stop at end of line
            return i
        i += 1
    return n


def find_closing(text: str, open_idx: int) -> int:
    """Index of the bracket closing the one at ``open_idx``, or -1."""
    if open_idx >= len(text) or text[open_idx] not in _OPENERS:
        return -1
    stack = [_OPENERS[text[open_idx]]]
    i = open_idx + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in _QUOTES:
            i = skip_string(text, i)
            continue
        if ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in _CLOSERS:
            if not stack or ch != stack[-1]:
                return -1
            stack.pop()
            if not stack:
                return i
        i += 1
    return -1


def split_top_level(text: str, sep: str = ",") -> List[str]:
    """Split on ``sep`` outside brackets and strings; parts are stripped."""
    parts: List[str] = []
    depth = 0
    current_start = 0
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in _QUOTES:
            i = skip_string(text, i)
            continue
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append(text[current_start:i].strip())
            current_start = i + 1
        i += 1
    tail = text[current_start:].strip()
    if tail or parts:
        parts.append(tail)
    # Trailing comma leaves an empty last part
    return [p for p in parts if p]


def statement_end(text: str, close_idx: int) -> int:
    """Index just past a call's closing paren plus an optional ``;``."""
    i = close_idx + 1
    j = i
    while j < len(text) and text[j] in " \t":
        j += 1
    if j < len(text) and text[j] == ";":
        return j + 1
    return i


def parse_object_entries(obj_text: str) -> List[Tuple[str, str]]:
    """Parse the top-level entries of an object literal or pattern.

    ``{ a, b: c, d() {...}, ...e }`` -> ``[("a", "a"), ("b", "c"),
    ("d", "d() {...}"), ("...e", "...e")]``. Keys are returned unquoted.
    """
    body = obj_text.strip()
    if body.startswith("{") and body.endswith("}"):
        body = body[1:-1]
    entries: List[Tuple[str, str]] = []
    for part in split_top_level(body):
        if part.startswith("..."):
            entries.append((part, part))
            continue
        key, value = _split_entry(part)
        if key:
            entries.append((key, value))
    return entries


def _split_entry(part: str) -> Tuple[str, str]:
    # Method shorthand: name(params) { ... } / async name(params) { ... }
    method = re.match(r"^(?:async\s+)?([A-Za-z_$][\w$]*)\s*\(", part)
    colon = _top_level_colon(part)
    if method and (colon < 0 or colon > method.end()):
        return method.group(1), part
    if colon >= 0:
        key = part[:colon].strip().strip("'\"`")
        return key, part[colon + 1:].strip()
    # Shorthand property, possibly with a default in patterns: { a = 1 }
    name = part.split("=", 1)[0].strip()
    return name, name


def _top_level_colon(part: str) -> int:
    depth = 0
    i = 0
    while i < len(part):
        ch = part[i]
        if ch in _QUOTES:
            i = skip_string(part, i)
            continue
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
        elif ch == ":" and depth == 0:
            return i
        i += 1
    return -1


def quoted_literal(text: str, start: int) -> Optional[Tuple[str, str, int]]:
    """Read a simple quoted literal at ``start``.

    Returns ``(quote, value, end)`` or None for template literals with
    substitutions and non-literals.
    """
    if start >= len(text) or text[start] not in _QUOTES:
        return None
    end = skip_string(text, start)
    if end <= start + 1 or text[end - 1] != text[start]:
        return None
    value = text[start + 1:end - 1]
    if text[start] == "`" and "${" in value:
        return None
    return text[start], value, end


_ARROW_SINGLE_RE = re.compile(r"^(?:async\s+)?([A-Za-z_$][\w$]*)\s*=>")
_FUNCTION_RE = re.compile(r"^(?:async\s+)?function\b\s*\*?\s*(?:[A-Za-z_$][\w$]*)?\s*\(")


def function_params(func_text: str) -> Optional[Tuple[str, bool]]:
    """Parameter list of a function expression.

    Handles ``(a, b) => ...``, ``a => ...``, ``function name(a) {...}`` and
    their ``async`` forms. Returns ``(params_text, is_async)`` where
    ``params_text`` includes the parentheses (or is the bare identifier),
    or None when ``func_text`` is not a function expression.
    """
    text = func_text.strip()
    is_async = bool(re.match(r"^async\b", text))

    single = _ARROW_SINGLE_RE.match(text)
    if single and not (is_async and single.group(1) == "async"):
        return single.group(1), is_async

    fn = _FUNCTION_RE.match(text)
    if fn:
        open_idx = fn.end() - 1
        close = find_closing(text, open_idx)
        if close < 0:
            return None
        return text[open_idx:close + 1], is_async

    body = text[5:].lstrip() if is_async else text
    if body.startswith("("):
        close = find_closing(body, 0)
        if close < 0:
            return None
        if body[close + 1:].lstrip().startswith("=>"):
            return body[:close + 1], is_async
    return None


def find_named_function(text: str, name: str) -> Optional[Tuple[int, int, str, bool]]:
    """Find the declaration of a named function in ``text``.

    Returns ``(start, end, params_text, is_async)`` where ``start:end`` spans
    the declaration header through the closing paren of its parameters.
    """
    escaped = re.escape(name)
    patterns = [
        re.compile(r"(?:async\s+)?function\s*\*?\s*" + escaped + r"\s*\("),
        re.compile(r"(?:const|let|var)\s+" + escaped + r"\s*=\s*(?:async\s+)?(?:function\b\s*\*?\s*(?:[A-Za-z_$][\w$]*)?\s*)?\("),
    ]
    for pattern in patterns:
        for match in pattern.finditer(text):
            open_idx = match.end() - 1
            close = find_closing(text, open_idx)
            if close < 0:
                continue
            header = text[match.start():match.end()]
            is_async = "async" in header
            return match.start(), close + 1, text[open_idx:close + 1], is_async
    single = re.compile(r"(?:const|let|var)\s+" + escaped + r"\s*=\s*(async\s+)?([A-Za-z_$][\w$]*)\s*=>")
    match = single.search(text)
    if match:
        params = match.group(2)
        return match.start(), match.start(2) + len(params), params, bool(match.group(1))
    return None
