"""Parameter-shape inference.

Builds ``ShapeDescriptor`` records from call arguments and from handler
parameter lists, and decides whether two shapes are compatible.
"""

from typing import Optional, Sequence

from .models import SHAPE_DESTRUCTURED, SHAPE_POSITIONAL, SHAPE_SINGLE, ShapeDescriptor
from .scanning import IDENT_RE, parse_object_entries, split_top_level


def _is_object(part: str) -> bool:
    return part.startswith("{") and part.endswith("}")


def _object_fields(part: str) -> tuple:
    fields = []
    for key, _value in parse_object_entries(part):
        if key.startswith("..."):
            continue
        fields.append(key)
    return tuple(fields)


def _param_name(part: str) -> str:
    # Strip defaults: (a = 1) -> a
    return part.split("=", 1)[0].strip()


def shape_from_parts(parts: Sequence[str], raw: str = "") -> ShapeDescriptor:
    """Shape of an already-split argument or parameter list."""
    parts = [p for p in parts if p]
    if any(p.startswith("...") for p in parts):
        names = tuple(_param_name(p).lstrip(".") for p in parts)
        return ShapeDescriptor(kind=SHAPE_POSITIONAL, arity=None, names=names, variadic=True, raw=raw)
    if not parts:
        return ShapeDescriptor(kind=SHAPE_POSITIONAL, arity=0, raw=raw)
    if len(parts) == 1:
        only = _param_name(parts[0])
        if _is_object(only):
            return ShapeDescriptor(kind=SHAPE_DESTRUCTURED, fields=_object_fields(only), raw=raw)
        return ShapeDescriptor(kind=SHAPE_SINGLE, arity=1, names=(only,), raw=raw)
    names = tuple(_param_name(p) for p in parts)
    return ShapeDescriptor(kind=SHAPE_POSITIONAL, arity=len(parts), names=names, raw=raw)


def shape_from_arguments(args: Sequence[str]) -> ShapeDescriptor:
    """Shape of the arguments following the channel literal in a call."""
    return shape_from_parts(list(args), raw=", ".join(args))


def shape_from_parameters(params_text: str, skip_first: bool = True) -> ShapeDescriptor:
    """Shape of a handler parameter list.

    ``skip_first`` drops the leading ``event`` parameter that IPC handlers
    and listeners receive.
    """
    text = params_text.strip()
    if text.startswith("(") and text.endswith(")"):
        text = text[1:-1]
    parts = split_top_level(text)
    if skip_first and parts:
        parts = parts[1:]
    return shape_from_parts(parts, raw=", ".join(parts))


def shape_from_schema(schema) -> Optional[ShapeDescriptor]:
    """Shape of a ``parameterSchema`` entry from the contract document.

    An object maps to a destructured shape over its keys, a list to a
    positional shape, a bare string to a single value. An object carrying
    an explicit ``kind`` is honored as given.
    """
    if schema is None:
        return None
    if isinstance(schema, ShapeDescriptor):
        return schema
    if isinstance(schema, str):
        if not schema.strip() or schema.strip().lower() in ("none", "void"):
            return ShapeDescriptor(kind=SHAPE_POSITIONAL, arity=0)
        return ShapeDescriptor(kind=SHAPE_SINGLE, arity=1, names=(schema.strip(),))
    if isinstance(schema, (list, tuple)):
        names = tuple(str(n) for n in schema)
        if len(names) == 1:
            return ShapeDescriptor(kind=SHAPE_SINGLE, arity=1, names=names)
        return ShapeDescriptor(kind=SHAPE_POSITIONAL, arity=len(names), names=names)
    if isinstance(schema, dict):
        kind = schema.get("kind")
        if kind in (SHAPE_SINGLE, SHAPE_POSITIONAL, SHAPE_DESTRUCTURED):
            fields = schema.get("fields")
            names = tuple(schema.get("names") or ())
            arity = schema.get("arity")
            if kind == SHAPE_POSITIONAL and arity is None:
                arity = len(names)
            if kind == SHAPE_SINGLE:
                arity = 1
            return ShapeDescriptor(
                kind=kind,
                arity=arity,
                fields=tuple(fields) if fields is not None else None,
                names=names,
                variadic=bool(schema.get("variadic", False)),
            )
        if not schema:
            return ShapeDescriptor(kind=SHAPE_POSITIONAL, arity=0)
        return ShapeDescriptor(kind=SHAPE_DESTRUCTURED, fields=tuple(str(k) for k in schema))
    return None


def shapes_compatible(a: ShapeDescriptor, b: ShapeDescriptor, lenient_single_object: bool = False) -> bool:
    """True when a producer and a consumer shape line up.

    Rest parameters and spread arguments accept anything. With
    ``lenient_single_object`` a single opaque value passed to a
    destructuring handler (or the reverse) is accepted, since the value
    may well be the object.
    """
    if a.variadic or b.variadic:
        return True
    if a.kind != b.kind:
        if lenient_single_object and {a.kind, b.kind} == {SHAPE_SINGLE, SHAPE_DESTRUCTURED}:
            return True
        return False
    if a.kind == SHAPE_DESTRUCTURED:
        if a.fields is None or b.fields is None:
            return True
        return set(a.fields) == set(b.fields)
    return a.arity == b.arity


def is_identifier(text: str) -> bool:
    return bool(IDENT_RE.match(text))
