"""Code snippets synthesized by the auto-fixer.

Stubs are minimal: a handler that answers ``{ success: true }``, a bridge
method that forwards to the channel, a placeholder markup element.
"""

from typing import Optional

from ..constants import CHANNEL_EVENT, STUB_RETURN_VALUE
from ..contracts.naming import NamingStyle, camel_method_name, convert
from ..extractor.models import SHAPE_DESTRUCTURED, SHAPE_POSITIONAL, ShapeDescriptor
from ..extractor.shapes import is_identifier

VOID_TAGS = frozenset({"input", "img", "br", "hr", "meta", "link"})


def parameter_list(shape: Optional[ShapeDescriptor]) -> str:
    """Parameter text for a shape, without parentheses."""
    if shape is None or shape.variadic:
        return "...args"
    if shape.kind == SHAPE_DESTRUCTURED:
        fields = list(shape.fields or ())
        return "{ " + ", ".join(fields) + " }" if fields else "payload"
    if shape.kind == SHAPE_POSITIONAL:
        if shape.arity == 0:
            return ""
        names = list(shape.names) or [""] * (shape.arity or 0)
        return ", ".join(n if is_identifier(n) else f"arg{i + 1}" for i, n in enumerate(names))
    if shape.names and is_identifier(shape.names[0]):
        return shape.names[0]
    return "payload"


def render_handler_stub(
    channel: str,
    channel_kind: Optional[str] = None,
    method: str = "handle",
    quote: str = "'",
    is_async: bool = True,
    shape: Optional[ShapeDescriptor] = None,
    indent: str = "",
) -> str:
    """Handler registration for ``channel`` following the given idiom."""
    if channel_kind == CHANNEL_EVENT:
        args = parameter_list(shape)
        payload = f", {args}" if args and not args.startswith("...") else ""
        return f"{indent}mainWindow.webContents.send({quote}{channel}{quote}{payload});"
    params = parameter_list(shape)
    handler_params = "event" + (f", {params}" if params else "")
    prefix = "async " if is_async else ""
    return (
        f"{indent}ipcMain.{method}({quote}{channel}{quote}, {prefix}({handler_params}) => {{\n"
        f"{indent}  return {STUB_RETURN_VALUE};\n"
        f"{indent}}});"
    )


def bridge_method_name(channel: str, channel_kind: Optional[str] = None) -> str:
    """``save-note`` -> ``saveNote``; event channels get an ``on`` prefix."""
    if channel_kind == CHANNEL_EVENT:
        return "on" + convert(channel, NamingStyle.PASCAL)
    return camel_method_name(channel)


def render_bridge_method(
    method_name: str,
    channel: str,
    channel_kind: Optional[str] = None,
    shape: Optional[ShapeDescriptor] = None,
    quote: str = "'",
    indent: str = "  ",
) -> str:
    """One ``exposeInMainWorld`` object entry forwarding to ``channel``."""
    if channel_kind == CHANNEL_EVENT:
        return (
            f"{indent}{method_name}: (callback) => ipcRenderer.on({quote}{channel}{quote}, "
            f"(event, ...args) => callback(...args)),"
        )
    params = parameter_list(shape)
    forwarded = f", {params}" if params else ""
    return f"{indent}{method_name}: ({params}) => ipcRenderer.invoke({quote}{channel}{quote}{forwarded}),"


def render_markup_element(tag: str, selector_type: str, name: str, indent: str = "  ") -> str:
    """Placeholder element declaring ``#name`` or ``.name``."""
    tag = (tag or "div").lower()
    attr = "id" if selector_type == "id" else "class"
    if tag in VOID_TAGS:
        return f'{indent}<{tag} {attr}="{name}">'
    return f'{indent}<{tag} {attr}="{name}"></{tag}>'
