# idp/document/paths.py
"""
Typed, addressable mutation of an IDP document.

    path    := segment ("." segment)*
    segment := identifier ("[" integer "]")?

e.g. ``core.bio``, ``reputation[0].history[1].change``.

Targets are resolved against the schema table, so each location has a declared
kind and incoming values are coerced to it (or rejected) before anything is
written.
"""
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Union

from idp.core.errors import ImmutableField, PathNotFound, TypeMismatch
from idp.core.schema import Kind, Node, block, field_spec, format_timestamp, parse_timestamp
from idp.core.types import Identity
from idp.document.model import mutation

_SEGMENT = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)(?:\[(\d+)\])?$")
_INTEGER = re.compile(r"^[+-]?\d+$")

# managed by construct()/touch() or by the key lifecycle operations
_PROTECTED_IDENTITY_FIELDS = ("id", "created_at", "updated_at")


@dataclass(frozen=True)
class Segment:
    name: str
    index: Optional[int] = None

    def __str__(self):
        return self.name if self.index is None else f"{self.name}[{self.index}]"


@dataclass
class Location:
    container: Any                  # dataclass instance or list
    key: Union[str, int]            # attribute name or list index
    node: Node
    value: Any


def parse_path(path: str) -> List[Segment]:
    if not isinstance(path, str) or not path:
        raise PathNotFound(str(path), "empty path")
    segments = []
    for raw in path.split("."):
        m = _SEGMENT.match(raw)
        if m is None:
            raise PathNotFound(path, f"malformed segment '{raw}'")
        index = m.group(2)
        segments.append(Segment(m.group(1), int(index) if index is not None else None))
    return segments


def is_protected(segments: List[Segment]) -> bool:
    head = segments[0].name
    if head == "identity" and len(segments) > 1:
        return segments[1].name in _PROTECTED_IDENTITY_FIELDS
    if head == "system" and len(segments) > 1:
        return segments[1].name == "public_keys"
    return False


def resolve(doc: Identity, path: str) -> Location:
    segments = parse_path(path)
    return _walk(doc, segments, path)


def _walk(doc: Identity, segments: List[Segment], path: str) -> Location:
    location = Location(container=None, key="", node=block(Identity), value=doc)
    walked: List[str] = []

    for seg in segments:
        node = location.node
        if node.kind is not Kind.BLOCK:
            raise PathNotFound(path, f"'{'.'.join(walked)}' is a {node.describe()}, not a block")
        spec = field_spec(node.block, seg.name)
        if spec is None:
            where = ".".join(walked) or "document root"
            raise PathNotFound(path, f"no field '{seg.name}' in {where}")
        parent = location.value
        location = Location(parent, spec.attr, spec.node, getattr(parent, spec.attr))

        if seg.index is not None:
            if location.node.kind is not Kind.SEQUENCE:
                raise PathNotFound(path, f"'{seg.name}' is not a sequence")
            items = location.value
            if not 0 <= seg.index < len(items):
                raise PathNotFound(path, f"index {seg.index} out of range for '{seg.name}' ({len(items)} items)")
            location = Location(items, seg.index, location.node.item, items[seg.index])
        walked.append(str(seg))

    return location


def coerce(node: Node, value: Any, path: str) -> Any:
    """Convert `value` to the kind declared at `path`, or raise TypeMismatch."""
    kind = node.kind
    if kind is Kind.STRING:
        if isinstance(value, str):
            return value
    elif kind is Kind.OPTIONAL_STRING:
        if value is None or isinstance(value, str):
            return value
    elif kind is Kind.INTEGER:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and _INTEGER.match(value.strip()):
            return int(value.strip())
    elif kind is Kind.ENUM:
        if isinstance(value, str) and value in node.choices:
            return value
    elif kind is Kind.TIMESTAMP:
        if isinstance(value, datetime):
            return format_timestamp(value)
        if isinstance(value, str):
            try:
                parse_timestamp(value)
                return value
            except ValueError:
                pass
    raise TypeMismatch(path, node.describe(), value)


def get_path(doc: Identity, path: str) -> Any:
    return resolve(doc, path).value


def set_path(doc: Identity, path: str, value: Any) -> Any:
    """
    Assign `value` at `path`, advance updated_at and re-validate.

    Raises PathNotFound, ImmutableField, TypeMismatch, or ValidationFailed; in
    every failure case the document is left exactly as it was.
    """
    segments = parse_path(path)
    if is_protected(segments):
        raise ImmutableField(path)
    location = _walk(doc, segments, path)
    coerced = coerce(location.node, value, path)

    with mutation(doc):
        if isinstance(location.key, int):
            location.container[location.key] = coerced
        else:
            setattr(location.container, location.key, coerced)
    return coerced
