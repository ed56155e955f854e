# idp/document/validator.py
"""
Invariant checks over a whole document.

`validate` never stops at the first problem: it returns every violation it can
find so one pass is enough to report a broken document in full. The shape
check applies the same per-field rules the YAML loader does, so anything that
validates can be saved and read back.
"""
from typing import Any, List

from idp import SUPPORTED_VERSIONS
from idp.core.errors import Violation
from idp.core.schema import SCHEMA, Kind, Node, block, leaf_problem, parse_timestamp
from idp.core.types import KEY_STATUSES, Identity
from idp.crypto.hashing import derive_identity_id


def validate(doc: Identity) -> List[Violation]:
    violations: List[Violation] = []
    _check_shape(block(Identity), doc, "", violations)
    _check_version(doc, violations)
    _check_public_keys(doc, violations)
    _check_identity_id(doc, violations)
    _check_timestamps(doc, violations)
    _check_reputation(doc, violations)
    _check_contracts(doc, violations)
    _check_proofs(doc, violations)
    return violations


def is_valid(doc: Identity) -> bool:
    return not validate(doc)


def _join(loc: str, name: str) -> str:
    return f"{loc}.{name}" if loc else name


def _check_shape(node: Node, value: Any, loc: str, out: List[Violation]) -> None:
    where = loc or "<document>"
    if node.kind is Kind.BLOCK:
        if not isinstance(value, node.block):
            out.append(Violation("schema", where, f"expected {node.describe()}, got {type(value).__name__}"))
            return
        for spec in SCHEMA[node.block]:
            _check_shape(spec.node, getattr(value, spec.attr), _join(loc, spec.name), out)
        return

    if node.kind is Kind.SEQUENCE:
        if not isinstance(value, list):
            out.append(Violation("schema", where, f"expected a sequence, got {type(value).__name__}"))
            return
        for i, item in enumerate(value):
            _check_shape(node.item, item, f"{loc}[{i}]", out)
        return

    problem = leaf_problem(node, value)
    if problem:
        out.append(Violation("schema", where, problem))


def _check_version(doc: Identity, out: List[Violation]) -> None:
    if doc.identity.version not in SUPPORTED_VERSIONS:
        out.append(Violation("version", "identity.version",
                             f"unsupported version {doc.identity.version!r}"))


def _check_public_keys(doc: Identity, out: List[Violation]) -> None:
    keys = doc.system.public_keys
    if not keys:
        out.append(Violation("public_keys", "system.public_keys", "at least one public key is required"))
        return

    seen = set()
    for i, key in enumerate(keys):
        loc = f"system.public_keys[{i}]"
        if not key.key_id:
            out.append(Violation("public_keys", f"{loc}.key_id", "key_id is empty"))
        elif isinstance(key.key_id, str) and key.key_id in seen:
            out.append(Violation("public_keys", f"{loc}.key_id", f"duplicate key_id '{key.key_id}'"))
        if isinstance(key.key_id, str):
            seen.add(key.key_id)
        if key.status not in KEY_STATUSES:
            out.append(Violation("public_keys", f"{loc}.status", f"unknown status {key.status!r}"))
        if not key.value:
            out.append(Violation("public_keys", f"{loc}.value", "key material is empty"))


def _check_identity_id(doc: Identity, out: List[Violation]) -> None:
    root = doc.system.root_key
    if root is None or not isinstance(root.value, str):
        return
    expected = derive_identity_id(root.value)
    if doc.identity.id != expected:
        out.append(Violation("identity_id", "identity.id",
                             "id does not match the root public key"))


def _check_timestamps(doc: Identity, out: List[Violation]) -> None:
    parsed = {}
    for name in ("created_at", "updated_at"):
        try:
            parsed[name] = parse_timestamp(getattr(doc.identity, name))
        except ValueError as e:
            out.append(Violation("timestamps", f"identity.{name}", str(e)))
    if len(parsed) == 2 and parsed["created_at"] > parsed["updated_at"]:
        out.append(Violation("timestamps", "identity.updated_at", "updated_at is earlier than created_at"))


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_reputation(doc: Identity, out: List[Violation]) -> None:
    for i, rep in enumerate(doc.reputation):
        # mistyped entries are already reported by the shape check
        if not isinstance(rep.history, list):
            continue
        changes = [getattr(event, "change", None) for event in rep.history]
        if not _is_int(rep.value) or not all(_is_int(c) for c in changes):
            continue
        total = sum(changes)
        if rep.value != total:
            out.append(Violation(
                "reputation_sum", f"reputation[{i}].value",
                f"'{rep.score_name}' value {rep.value} != sum of history changes {total}",
            ))


def _check_contracts(doc: Identity, out: List[Violation]) -> None:
    for i, contract in enumerate(doc.contracts):
        loc = f"contracts[{i}]"
        if not contract.parties:
            out.append(Violation("contract", f"{loc}.parties", "contract has no parties"))
        consequence = contract.consequence
        if consequence is None:
            out.append(Violation("contract", f"{loc}.consequence", "consequence is missing"))
            continue
        for branch in ("on_success", "on_failure"):
            if getattr(consequence, branch, None) is None:
                out.append(Violation("contract", f"{loc}.consequence.{branch}", f"{branch} is missing"))


def _check_proofs(doc: Identity, out: List[Violation]) -> None:
    for i, proof in enumerate(doc.proofs):
        key_id = getattr(proof.signed_by, "key_id", None)
        if key_id is None:
            continue
        if doc.system.find_key(key_id) is None:
            out.append(Violation("proof_key_ref", f"proofs[{i}].signed_by.key_id",
                                 f"references unknown key '{key_id}'"))
