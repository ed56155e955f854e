# idp/storage/codec.py
"""
Canonical YAML form of an IDP document.

Field order follows the schema table, empty trust sequences and absent
optional fields are left out, and reading is strict: unknown or missing
fields are reported as schema violations instead of being guessed at.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

import yaml

from idp import SUPPORTED_VERSIONS
from idp.core.errors import CorruptDocument, UnsupportedVersion, Violation
from idp.core.schema import SCHEMA, Kind, Node, block, format_timestamp, leaf_problem
from idp.core.types import Identity


def to_dict(obj: Any) -> Dict[str, Any]:
    """Dataclass → plain dict in canonical field order."""
    out: Dict[str, Any] = {}
    for spec in SCHEMA[type(obj)]:
        value = getattr(obj, spec.attr)
        if spec.omit_when_empty and (value is None or value == []):
            continue
        out[spec.name] = _dump(spec.node, value)
    return out


def _dump(node: Node, value: Any) -> Any:
    if node.kind is Kind.BLOCK:
        return to_dict(value)
    if node.kind is Kind.SEQUENCE:
        return [_dump(node.item, v) for v in value]
    return value


def serialize(doc: Identity) -> str:
    return yaml.safe_dump(to_dict(doc), sort_keys=False, allow_unicode=True, default_flow_style=False)


def deserialize(text: str) -> Identity:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CorruptDocument([Violation("schema", "<document>", f"not valid YAML: {e}")]) from e

    _check_version(data)

    errors: List[Violation] = []
    doc = _load(block(Identity), data, "", errors)
    if errors:
        raise CorruptDocument(errors)
    return doc


def _check_version(data: Any) -> None:
    """Version drift is reported before anything else is interpreted."""
    if not isinstance(data, dict):
        return
    identity = data.get("identity")
    if isinstance(identity, dict) and "version" in identity:
        version = identity["version"]
        if version not in SUPPORTED_VERSIONS:
            raise UnsupportedVersion(version)


def _join(loc: str, name: str) -> str:
    return f"{loc}.{name}" if loc else name


def _load(node: Node, value: Any, loc: str, errors: List[Violation]) -> Any:
    where = loc or "<document>"
    kind = node.kind

    if kind is Kind.BLOCK:
        return _load_block(node.block, value, loc, errors)

    if kind is Kind.SEQUENCE:
        if not isinstance(value, list):
            errors.append(Violation("schema", where, f"expected a sequence, got {type(value).__name__}"))
            return None
        return [_load(node.item, item, f"{loc}[{i}]", errors) for i, item in enumerate(value)]

    if kind is Kind.TIMESTAMP and isinstance(value, datetime):
        return format_timestamp(value)

    problem = leaf_problem(node, value)
    if problem:
        errors.append(Violation("schema", where, problem))
        return None
    return value


def _load_block(cls: type, value: Any, loc: str, errors: List[Violation]) -> Optional[Any]:
    where = loc or "<document>"
    if not isinstance(value, dict):
        errors.append(Violation("schema", where, f"expected a mapping, got {type(value).__name__}"))
        return None

    specs = SCHEMA[cls]
    known = {spec.name for spec in specs}
    before = len(errors)
    for name in value:
        if name not in known:
            errors.append(Violation("schema", _join(loc, str(name)), "unknown field"))

    kwargs = {}
    for spec in specs:
        if spec.name not in value:
            if spec.omit_when_empty:
                kwargs[spec.attr] = [] if spec.node.kind is Kind.SEQUENCE else None
            else:
                errors.append(Violation("schema", _join(loc, spec.name), "required field is missing"))
            continue
        kwargs[spec.attr] = _load(spec.node, value[spec.name], _join(loc, spec.name), errors)

    if len(errors) > before:
        return None
    return cls(**kwargs)
