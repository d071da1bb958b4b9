"""Markup (HTML) contract extractor.

Recovers declared elements (by ``id`` and ``class``) and ``<select>``
option values. Evidence spans are the exact tag text so repairs can
rewrite a single attribute in place.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from ..constants import (
    MENTION_CLASS,
    MENTION_ELEMENT,
    MENTION_SELECT_OPTION,
    ROLE_MARKUP,
    SIDE_PRODUCER,
)
from .base import BaseRoleStrategy
from .comments import mask_html_comments
from .models import RawContractMention

logger = logging.getLogger(__name__)

TAG_RE = re.compile(r"<([A-Za-z][\w-]*)(\s[^<>]*?)?\s*/?>")
ATTR_RE = re.compile(r"""([^\s=/>"']+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'=<>`]+)))?""")
SELECT_RE = re.compile(r"<select\b[^>]*>(.*?)</select\s*>", re.DOTALL | re.IGNORECASE)
OPTION_RE = re.compile(r"<option\b([^>]*)>(.*?)</option\s*>", re.DOTALL | re.IGNORECASE)

_SKIP_TAGS = {"script", "style"}


def parse_attributes(attr_text: str) -> List[Tuple[str, str, str]]:
    """``(name, value, exact_text)`` for each attribute in a tag."""
    attrs = []
    for match in ATTR_RE.finditer(attr_text or ""):
        name = match.group(1)
        value = next((g for g in match.groups()[1:] if g is not None), "")
        attrs.append((name, value, match.group(0)))
    return attrs


def attribute_value(attr_text: str, name: str) -> Optional[str]:
    for attr_name, value, _ in parse_attributes(attr_text):
        if attr_name.lower() == name:
            return value
    return None


class MarkupStrategy(BaseRoleStrategy):
    """Extractor for HTML files.

    Extracts:
    - elements with an id -> element mentions
    - each class of an element -> class mentions
    - <select> options -> select-option mentions
    """

    def get_role(self) -> str:
        return ROLE_MARKUP

    def mask_comments(self, text: str) -> str:
        return mask_html_comments(text)

    def extract_mentions(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        mentions = self._extract_elements(masked, original, file_path)
        mentions.extend(self._extract_select_options(masked, original, file_path))
        return mentions

    def _extract_elements(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        mentions = []
        for match in TAG_RE.finditer(masked):
            tag = match.group(1).lower()
            if tag in _SKIP_TAGS:
                continue
            attr_text = match.group(2) or ""
            attrs = parse_attributes(attr_text)
            attr_map: Dict[str, str] = {name.lower(): value for name, value, _ in attrs}

            for name, value, exact in attrs:
                lname = name.lower()
                if lname == "id" and value.strip():
                    mentions.append(
                        self._mention(
                            original,
                            file_path,
                            endpoint=value.strip(),
                            kind=MENTION_ELEMENT,
                            start=match.start(),
                            end=match.end(),
                            side=SIDE_PRODUCER,
                            attributes={"tag": tag, "attrs": attr_map, "selector_type": "id"},
                            args_text=exact,
                        )
                    )
                elif lname == "class":
                    for class_name in value.split():
                        mentions.append(
                            self._mention(
                                original,
                                file_path,
                                endpoint=class_name,
                                kind=MENTION_CLASS,
                                start=match.start(),
                                end=match.end(),
                                side=SIDE_PRODUCER,
                                attributes={"tag": tag, "attrs": attr_map, "selector_type": "class"},
                                args_text=exact,
                            )
                        )
        return mentions

    def _extract_select_options(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        mentions = []
        for select in SELECT_RE.finditer(masked):
            open_tag = TAG_RE.match(masked, select.start())
            select_id = attribute_value(open_tag.group(2), "id") if open_tag else None
            body_start = select.start(1)
            for option in OPTION_RE.finditer(select.group(1)):
                start = body_start + option.start()
                end = body_start + option.end()
                value = attribute_value(option.group(1), "value")
                label = re.sub(r"\s+", " ", option.group(2)).strip()
                if value is not None:
                    value_attr = next(
                        exact for name, _, exact in parse_attributes(option.group(1)) if name.lower() == "value"
                    )
                    args_text = value_attr
                    endpoint = value
                else:
                    # No value attribute: the label is the submitted value
                    args_text = option.group(2)
                    endpoint = label
                if not endpoint:
                    continue
                mentions.append(
                    self._mention(
                        original,
                        file_path,
                        endpoint=endpoint,
                        kind=MENTION_SELECT_OPTION,
                        start=start,
                        end=end,
                        side=SIDE_PRODUCER,
                        attributes={"select_id": select_id, "label": label, "has_value": value is not None},
                        args_text=args_text,
                    )
                )
        return mentions
