"""Bridge (preload) contract extractor.

Recovers the consumer side of channels (``ipcRenderer.invoke/send/sendSync``
for invoke channels, ``ipcRenderer.on/once`` for event channels) and the
method -> channel map exposed through ``contextBridge.exposeInMainWorld``.
"""

import logging
import re
from typing import Callable, List, Optional, Tuple

from ..constants import (
    CHANNEL_EVENT,
    CHANNEL_INVOKE,
    MENTION_BRIDGE_METHOD,
    MENTION_CHANNEL,
    ROLE_BRIDGE,
    SIDE_CONSUMER,
)
from .base import BaseRoleStrategy
from .models import RawContractMention
from .scanning import (
    find_closing,
    function_params,
    parse_object_entries,
    quoted_literal,
    split_top_level,
)
from .shapes import shape_from_arguments, shape_from_parameters

logger = logging.getLogger(__name__)

IPC_RENDERER_RE = re.compile(r"\bipcRenderer\s*\.\s*(invoke|send|sendSync|on|once)\s*\(\s*")
EXPOSE_RE = re.compile(r"\bcontextBridge\s*\.\s*exposeInMainWorld\s*\(\s*")

_LISTENER_METHODS = {"on", "once"}


def scan_ipc_renderer_calls(
    masked: str,
    original: str,
    file_path: str,
    make_mention: Callable[..., RawContractMention],
) -> List[RawContractMention]:
    """Channel consumer mentions from direct ``ipcRenderer`` calls."""
    mentions = []
    for match in IPC_RENDERER_RE.finditer(masked):
        method = match.group(1)
        literal = quoted_literal(masked, match.end())
        if literal is None:
            continue
        quote, channel, _ = literal
        paren = masked.index("(", match.start())
        close = find_closing(masked, paren)
        if close < 0:
            logger.debug(f"{file_path}: unbalanced ipcRenderer.{method} for '{channel}'")
            continue
        args = split_top_level(masked[paren + 1:close])

        if method in _LISTENER_METHODS:
            channel_kind = CHANNEL_EVENT
            callback = args[1] if len(args) > 1 else ""
            params = function_params(callback) if callback else None
            shape = shape_from_parameters(params[0]) if params else None
            args_text = params[0] if params else ""
        else:
            channel_kind = CHANNEL_INVOKE
            shape = shape_from_arguments(args[1:])
            args_text = original[paren + 1:close]

        mentions.append(
            make_mention(
                original,
                file_path,
                endpoint=channel,
                kind=MENTION_CHANNEL,
                start=match.start(),
                end=close + 1,
                side=SIDE_CONSUMER,
                channel_kind=channel_kind,
                shape=shape,
                attributes={"method": method, "receiver": "ipcRenderer"},
                quote=quote,
                args_text=args_text,
            )
        )
    return mentions


def find_exposed_object(text: str) -> Optional[Tuple[str, int, int]]:
    """Locate the object handed to ``exposeInMainWorld``.

    Returns ``(api_name, start, end)`` spanning the object literal braces
    (``end`` exclusive), following one level of variable indirection, or
    None when the bridge exposes nothing recognizable.
    """
    match = EXPOSE_RE.search(text)
    if match is None:
        return None
    literal = quoted_literal(text, match.end())
    if literal is None:
        return None
    _, api_name, lit_end = literal
    i = lit_end
    while i < len(text) and text[i] in " \t\r\n,":
        i += 1
    if i < len(text) and text[i] == "{":
        close = find_closing(text, i)
        return (api_name, i, close + 1) if close > 0 else None

    ident = re.match(r"[A-Za-z_$][\w$]*", text[i:])
    if ident is None:
        return None
    decl = re.search(r"(?:const|let|var)\s+" + re.escape(ident.group(0)) + r"\s*=\s*\{", text)
    if decl is None:
        return None
    open_idx = decl.end() - 1
    close = find_closing(text, open_idx)
    return (api_name, open_idx, close + 1) if close > 0 else None


class BridgeStrategy(BaseRoleStrategy):
    """Extractor for the preload/bridge file.

    Extracts:
    - ipcRenderer.invoke/send/sendSync('ch', ...) -> consumer, invoke
    - ipcRenderer.on/once('ch', cb) -> consumer, event
    - exposeInMainWorld('api', { method: ... }) -> bridge-method mentions
    """

    def get_role(self) -> str:
        return ROLE_BRIDGE

    def extract_mentions(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        mentions = scan_ipc_renderer_calls(masked, original, file_path, self._mention)
        mentions.extend(self._extract_exposed_methods(masked, original, file_path))
        return mentions

    def _extract_exposed_methods(self, masked: str, original: str, file_path: str) -> List[RawContractMention]:
        located = find_exposed_object(masked)
        if located is None:
            logger.debug(f"{file_path}: no exposeInMainWorld object found")
            return []
        api_name, obj_start, obj_end = located
        obj_text = masked[obj_start:obj_end]

        mentions = []
        cursor = obj_start
        for key, value in parse_object_entries(obj_text):
            if key.startswith("..."):
                continue
            entry_start = masked.find(key, cursor, obj_end)
            if entry_start < 0:
                entry_start = obj_start
            else:
                cursor = entry_start + len(key)

            channel_match = IPC_RENDERER_RE.search(value)
            channel = None
            channel_kind = None
            if channel_match:
                literal = quoted_literal(value, channel_match.end())
                if literal is not None:
                    channel = literal[1]
                    is_listener = channel_match.group(1) in _LISTENER_METHODS
                    channel_kind = CHANNEL_EVENT if is_listener else CHANNEL_INVOKE

            params = function_params(value)
            if params is None and re.match(r"^(?:async\s+)?" + re.escape(key) + r"\s*\(", value):
                # Method shorthand: key(params) { ... }
                params = function_params(re.sub(r"^(async\s+)?", r"\1function ", value, count=1))
            shape = shape_from_parameters(params[0], skip_first=False) if params else None

            mentions.append(
                self._mention(
                    original,
                    file_path,
                    endpoint=key,
                    kind=MENTION_BRIDGE_METHOD,
                    start=entry_start,
                    end=entry_start + len(key),
                    shape=shape,
                    attributes={"api": api_name, "channel": channel, "channel_kind": channel_kind},
                )
            )
        return mentions
