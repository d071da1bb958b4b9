"""Privileged-process (main process) contract extractor.

Recovers handler registrations (the producer side of invoke channels) and
``webContents.send`` pushes (the producer side of event channels).
"""

import logging
import re
from typing import List

from ..constants import (
    CHANNEL_EVENT,
    CHANNEL_INVOKE,
    MENTION_CHANNEL,
    ROLE_PRIVILEGED,
    SIDE_PRODUCER,
)
from .base import BaseRoleStrategy
from .models import RawContractMention
from .scanning import (
    IDENT_RE,
    find_closing,
    find_named_function,
    function_params,
    quoted_literal,
    split_top_level,
    statement_end,
)
from .shapes import shape_from_arguments, shape_from_parameters

logger = logging.getLogger(__name__)

REGISTRATION_RE = re.compile(r"\bipcMain\s*\.\s*(handle|handleOnce|on|once)\s*\(\s*")
SEND_RE = re.compile(r"\b((?:[A-Za-z_$][\w$]*\s*\.\s*)*webContents)\s*\.\s*send\s*\(\s*")
APP_READY_RE = re.compile(r"\bapp\s*\.\s*whenReady\s*\(\s*\)")


class PrivilegedProcessStrategy(BaseRoleStrategy):
    """Extractor for the main-process file.

    Extracts:
    - ipcMain.handle/handleOnce/on/once('ch', handler) -> producer, invoke
    - <x>.webContents.send('ch', ...) -> producer, event
    """

    def get_role(self) -> str:
        return ROLE_PRIVILEGED

    def extract_mentions(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        mentions: List[RawContractMention] = []
        mentions.extend(self._extract_registrations(masked, original, file_path))
        mentions.extend(self._extract_sends(masked, original, file_path))
        return mentions

    def _extract_registrations(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        mentions = []
        for match in REGISTRATION_RE.finditer(masked):
            method = match.group(1)
            literal = quoted_literal(masked, match.end())
            if literal is None:
                continue
            quote, channel, _ = literal

            paren = masked.index("(", match.start())
            close = find_closing(masked, paren)
            if close < 0:
                logger.debug(f"{file_path}: unbalanced registration for '{channel}'")
                continue
            args = split_top_level(masked[paren + 1:close])
            handler = args[1] if len(args) > 1 else ""
            end = statement_end(masked, close)

            attributes = {"method": method, "receiver": "ipcMain", "async": False}
            shape = None
            args_text = ""
            site_text = ""

            params = function_params(handler) if handler else None
            if params is not None:
                params_text, is_async = params
                attributes["async"] = is_async
                shape = shape_from_parameters(params_text)
                args_text = params_text
                handler_start = masked.find(handler, paren)
                params_end = handler_start + handler.find(params_text) + len(params_text)
                site_text = original[match.start():params_end]
            elif handler and IDENT_RE.match(handler):
                # Named handler declared elsewhere in the same file
                found = find_named_function(masked, handler)
                attributes["handler"] = handler
                if found is not None:
                    start, stop, params_text, is_async = found
                    attributes["async"] = is_async
                    shape = shape_from_parameters(params_text)
                    site_text = original[start:stop]
                    args_text = original[start:stop][-len(params_text):]
                else:
                    logger.debug(f"{file_path}: handler '{handler}' for '{channel}' not found")

            mentions.append(
                self._mention(
                    original,
                    file_path,
                    endpoint=channel,
                    kind=MENTION_CHANNEL,
                    start=match.start(),
                    end=end,
                    side=SIDE_PRODUCER,
                    channel_kind=CHANNEL_INVOKE,
                    shape=shape,
                    attributes=attributes,
                    quote=quote,
                    args_text=args_text,
                    site_text=site_text,
                )
            )
        return mentions

    def _extract_sends(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        mentions = []
        for match in SEND_RE.finditer(masked):
            literal = quoted_literal(masked, match.end())
            if literal is None:
                continue
            quote, channel, _ = literal
            paren = match.end() - 1
            while masked[paren] != "(":
                paren -= 1
            close = find_closing(masked, paren)
            if close < 0:
                continue
            args = split_top_level(masked[paren + 1:close])
            mentions.append(
                self._mention(
                    original,
                    file_path,
                    endpoint=channel,
                    kind=MENTION_CHANNEL,
                    start=match.start(),
                    end=statement_end(masked, close),
                    side=SIDE_PRODUCER,
                    channel_kind=CHANNEL_EVENT,
                    shape=shape_from_arguments(args[1:]),
                    attributes={"method": "send", "receiver": re.sub(r"\s+", "", match.group(1))},
                    quote=quote,
                    args_text=original[paren + 1:close],
                )
            )
        return mentions
