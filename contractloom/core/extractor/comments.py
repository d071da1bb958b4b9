"""Comment masking.

Comments are blanked out (replaced by spaces, newlines kept) before any
pattern runs, so character offsets and line numbers in the masked text are
identical to the original. JavaScript comments are located with
tree-sitter; markup comments by pattern.
"""

import logging
import re
from typing import Iterator, List, Tuple

import tree_sitter
import tree_sitter_javascript

logger = logging.getLogger(__name__)

_JS_LANGUAGE = tree_sitter.Language(tree_sitter_javascript.language())

_HTML_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)


def _blank(text: str) -> str:
    return "".join("\n" if ch == "\n" else " " for ch in text)


def _iter_comment_nodes(node: tree_sitter.Node) -> Iterator[tree_sitter.Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type in ("comment", "html_comment"):
            yield current
            continue
        stack.extend(current.children)


def _js_comment_spans(text: str) -> List[Tuple[int, int]]:
    """Character spans of every comment tree-sitter finds in ``text``."""
    source = text.encode("utf-8")
    parser = tree_sitter.Parser(_JS_LANGUAGE)
    tree = parser.parse(source)

    spans: List[Tuple[int, int]] = []
    for node in _iter_comment_nodes(tree.root_node):
        # tree-sitter reports byte offsets; convert to str offsets
        start = len(source[:node.start_byte].decode("utf-8", errors="replace"))
        end = start + len(source[node.start_byte:node.end_byte].decode("utf-8", errors="replace"))
        spans.append((start, end))
    return sorted(spans)


def mask_js_comments(text: str) -> str:
    """Blank out ``//`` and ``/* */`` comments in JavaScript source."""
    if "//" not in text and "/*" not in text:
        return text
    spans = _js_comment_spans(text)
    if not spans:
        return text

    pieces: List[str] = []
    cursor = 0
    for start, end in spans:
        if start < cursor:
            continue
        pieces.append(text[cursor:start])
        pieces.append(_blank(text[start:end]))
        cursor = end
    pieces.append(text[cursor:])
    masked = "".join(pieces)
    logger.debug(f"Masked {len(spans)} JS comment(s)")
    return masked


def mask_html_comments(text: str) -> str:
    """Blank out ``<!-- -->`` comments in markup."""
    return _HTML_COMMENT_RE.sub(lambda m: _blank(m.group(0)), text)
