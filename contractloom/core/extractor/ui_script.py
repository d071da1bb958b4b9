"""UI-script (renderer) contract extractor."""

import logging
import re
from typing import List

from ..constants import (
    BROWSER_GLOBALS,
    MENTION_API_CALL,
    MENTION_DYNAMIC_ELEMENT,
    MENTION_SELECTOR,
    MENTION_STORAGE,
    ROLE_UI_SCRIPT,
    SIDE_CONSUMER,
)
from .base import BaseRoleStrategy
from .bridge import scan_ipc_renderer_calls
from .models import RawContractMention
from .scanning import find_closing, quoted_literal, split_top_level
from .shapes import shape_from_arguments

logger = logging.getLogger(__name__)

API_CALL_RE = re.compile(r"\bwindow\s*\.\s*([A-Za-z_$][\w$]*)\s*\.\s*([A-Za-z_$][\w$]*)\s*\(")
SELECTOR_RE = re.compile(r"\b(getElementById|querySelector|querySelectorAll)\s*\(\s*")
ID_ASSIGN_RE = re.compile(r"\.\s*id\s*=(?!=)\s*")
SET_ATTRIBUTE_RE = re.compile(r"\bsetAttribute\s*\(\s*(['\"])(id|class)\1\s*,\s*")
CLASS_ADD_RE = re.compile(r"\bclassList\s*\.\s*(add|toggle)\s*\(")
CLASS_NAME_RE = re.compile(r"\.\s*className\s*=\s*")
STORAGE_RE = re.compile(r"\b(localStorage|sessionStorage)\s*\.\s*(getItem|setItem|removeItem)\s*\(\s*")
LITERAL_RE = re.compile(r"(['\"`])([^'\"`\\\n$]{1,40})\1")

# First simple #id or .class token of a CSS selector
_LEADING_TOKEN_RE = re.compile(r"^([#.])([A-Za-z_][\w-]*)")


class UIScriptStrategy(BaseRoleStrategy):
    """Extractor for renderer scripts.

    Extracts:
    - window.<api>.<method>(...) -> api-call mentions
    - direct ipcRenderer calls -> channel consumer mentions
    - getElementById / querySelector(All) -> selector mentions
    - ids and classes assigned at runtime -> dynamic-element mentions
    - localStorage / sessionStorage keys -> storage mentions
    """

    def get_role(self) -> str:
        return ROLE_UI_SCRIPT

    def extract_mentions(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        mentions = self._extract_api_calls(masked, original, file_path)
        mentions.extend(scan_ipc_renderer_calls(masked, original, file_path, self._mention))
        mentions.extend(self._extract_selectors(masked, original, file_path))
        mentions.extend(self._extract_dynamic_elements(masked, original, file_path))
        mentions.extend(self._extract_storage(masked, original, file_path))
        return mentions

    def extract_literals(self, masked: str) -> List[str]:
        seen = []
        for match in LITERAL_RE.finditer(masked):
            value = match.group(2)
            if value.strip() and value not in seen:
                seen.append(value)
        return seen

    def _extract_api_calls(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        mentions = []
        for match in API_CALL_RE.finditer(masked):
            api, method = match.group(1), match.group(2)
            if api in BROWSER_GLOBALS:
                continue
            paren = match.end() - 1
            close = find_closing(masked, paren)
            if close < 0:
                continue
            args = split_top_level(masked[paren + 1:close])
            mentions.append(
                self._mention(
                    original,
                    file_path,
                    endpoint=method,
                    kind=MENTION_API_CALL,
                    start=match.start(),
                    end=close + 1,
                    side=SIDE_CONSUMER,
                    shape=shape_from_arguments(args),
                    attributes={"api": api},
                    args_text=original[paren + 1:close],
                )
            )
        return mentions

    def _extract_selectors(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        mentions = []
        for match in SELECTOR_RE.finditer(masked):
            method = match.group(1)
            literal = quoted_literal(masked, match.end())
            if literal is None:
                continue
            quote, value, lit_end = literal
            if method == "getElementById":
                selector_type, name = "id", value.strip()
            else:
                token = _LEADING_TOKEN_RE.match(value.strip())
                if token is None:
                    # Tag or attribute selectors carry no id/class contract
                    continue
                selector_type = "id" if token.group(1) == "#" else "class"
                name = token.group(2)
            if not name:
                continue
            paren = masked.index("(", match.start())
            close = find_closing(masked, paren)
            end = close + 1 if close > 0 else lit_end
            mentions.append(
                self._mention(
                    original,
                    file_path,
                    endpoint=name,
                    kind=MENTION_SELECTOR,
                    start=match.start(),
                    end=end,
                    side=SIDE_CONSUMER,
                    attributes={"selector_type": selector_type, "method": method, "selector": value},
                    quote=quote,
                    args_text=original[match.end():lit_end],
                )
            )
        return mentions

    def _extract_dynamic_elements(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        mentions = []

        def _add(name: str, selector_type: str, start: int, end: int, quote: str):
            mentions.append(
                self._mention(
                    original,
                    file_path,
                    endpoint=name,
                    kind=MENTION_DYNAMIC_ELEMENT,
                    start=start,
                    end=end,
                    attributes={"selector_type": selector_type},
                    quote=quote,
                )
            )

        for match in ID_ASSIGN_RE.finditer(masked):
            literal = quoted_literal(masked, match.end())
            if literal and literal[1].strip():
                _add(literal[1].strip(), "id", match.start(), literal[2], literal[0])

        for match in SET_ATTRIBUTE_RE.finditer(masked):
            literal = quoted_literal(masked, match.end())
            if literal is None:
                continue
            selector_type = match.group(2)
            for name in literal[1].split():
                _add(name, selector_type, match.start(), literal[2], literal[0])

        for match in CLASS_ADD_RE.finditer(masked):
            paren = match.end() - 1
            close = find_closing(masked, paren)
            if close < 0:
                continue
            for part in split_top_level(masked[paren + 1:close]):
                literal = quoted_literal(part, 0)
                if literal is not None:
                    _add(literal[1].strip(), "class", match.start(), close + 1, literal[0])

        for match in CLASS_NAME_RE.finditer(masked):
            literal = quoted_literal(masked, match.end())
            if literal is None:
                continue
            for name in literal[1].split():
                _add(name, "class", match.start(), literal[2], literal[0])

        return mentions

    def _extract_storage(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        mentions = []
        for match in STORAGE_RE.finditer(masked):
            literal = quoted_literal(masked, match.end())
            if literal is None:
                continue
            quote, key, lit_end = literal
            mentions.append(
                self._mention(
                    original,
                    file_path,
                    endpoint=key,
                    kind=MENTION_STORAGE,
                    start=match.start(),
                    end=lit_end,
                    attributes={"area": match.group(1), "method": match.group(2)},
                    quote=quote,
                )
            )
        return mentions
