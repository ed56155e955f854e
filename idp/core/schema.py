# idp/core/schema.py
"""
Declarative shape of an IDP document.

Every addressable location in the tree is described by a `Node` drawn from a
closed set of kinds. The path mutator walks this table to find the declared
type of a target, the YAML codec uses it to read and write documents in
canonical field order, and the validator holds in-memory documents to the
same leaf rules the codec applies on load.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Tuple

from idp.core.types import (
    KEY_STATUSES,
    Consent,
    Consequence,
    Contract,
    CoreBlock,
    Credential,
    Identity,
    IdentityBlock,
    Proof,
    PublicKey,
    Reputation,
    ReputationEvent,
    SignatureComponent,
    Signer,
    SystemBlock,
)


class Kind(Enum):
    STRING = "string"
    OPTIONAL_STRING = "optional string"
    TIMESTAMP = "timestamp"
    INTEGER = "integer"
    ENUM = "enum"
    BLOCK = "block"
    SEQUENCE = "sequence"


@dataclass(frozen=True)
class Node:
    kind: Kind
    block: Optional[type] = None          # BLOCK: dataclass type
    item: Optional["Node"] = None         # SEQUENCE: element node
    choices: Tuple[str, ...] = ()         # ENUM: allowed values

    def describe(self) -> str:
        if self.kind is Kind.ENUM:
            return "one of " + ", ".join(self.choices)
        if self.kind is Kind.BLOCK:
            return f"{self.block.__name__} block"
        if self.kind is Kind.SEQUENCE:
            return f"sequence of {self.item.describe()}"
        return self.kind.value


@dataclass(frozen=True)
class FieldSpec:
    name: str                  # serialized name
    attr: str                  # dataclass attribute
    node: Node
    omit_when_empty: bool = False


STRING = Node(Kind.STRING)
OPTIONAL_STRING = Node(Kind.OPTIONAL_STRING)
TIMESTAMP = Node(Kind.TIMESTAMP)
INTEGER = Node(Kind.INTEGER)


def block(cls: type) -> Node:
    return Node(Kind.BLOCK, block=cls)


def sequence(item: Node) -> Node:
    return Node(Kind.SEQUENCE, item=item)


def _f(name: str, node: Node, attr: Optional[str] = None, omit_when_empty: bool = False) -> FieldSpec:
    return FieldSpec(name=name, attr=attr or name, node=node, omit_when_empty=omit_when_empty)


SCHEMA: Dict[type, Tuple[FieldSpec, ...]] = {
    Identity: (
        _f("identity", block(IdentityBlock)),
        _f("system", block(SystemBlock)),
        _f("core", block(CoreBlock)),
        _f("credentials", sequence(block(Credential)), omit_when_empty=True),
        _f("proofs", sequence(block(Proof)), omit_when_empty=True),
        _f("contracts", sequence(block(Contract)), omit_when_empty=True),
        _f("reputation", sequence(block(Reputation)), omit_when_empty=True),
        _f("consent", sequence(block(Consent)), omit_when_empty=True),
    ),
    IdentityBlock: (
        _f("id", STRING),
        _f("version", STRING),
        _f("schema_url", STRING),
        _f("created_at", TIMESTAMP),
        _f("updated_at", TIMESTAMP),
    ),
    SystemBlock: (
        _f("public_keys", sequence(block(PublicKey))),
    ),
    PublicKey: (
        _f("key_id", STRING),
        _f("algorithm", STRING),
        _f("value", STRING),
        _f("status", Node(Kind.ENUM, choices=KEY_STATUSES)),
    ),
    CoreBlock: (
        _f("name", STRING),
        _f("bio", STRING),
    ),
    Credential: (
        _f("claim", STRING),
        _f("issued_by", STRING),
        _f("issued_at", TIMESTAMP),
        _f("expires_at", OPTIONAL_STRING, omit_when_empty=True),
        _f("proof", STRING),
    ),
    Proof: (
        _f("proof_id", STRING),
        _f("type", STRING, attr="proof_type"),
        _f("claim_hash", STRING),
        _f("signed_by", block(Signer)),
        _f("signature", sequence(block(SignatureComponent))),
    ),
    Signer: (
        _f("idp_id", STRING),
        _f("key_id", STRING),
    ),
    SignatureComponent: (
        _f("algorithm", STRING),
        _f("value", STRING),
    ),
    Contract: (
        _f("contract_id", STRING),
        _f("status", STRING),
        _f("parties", sequence(STRING)),
        _f("terms", STRING),
        _f("consequence", block(Consequence)),
    ),
    Consequence: (
        _f("on_success", STRING),
        _f("on_failure", STRING),
    ),
    Reputation: (
        _f("score_name", STRING),
        _f("value", INTEGER),
        _f("history", sequence(block(ReputationEvent))),
    ),
    ReputationEvent: (
        _f("event", STRING),
        _f("change", INTEGER),
        _f("timestamp", TIMESTAMP),
    ),
    Consent: (
        _f("granted_to", STRING),
        _f("fields", sequence(STRING)),
        _f("expires_at", TIMESTAMP),
        _f("purpose", STRING),
    ),
}


def field_spec(cls: type, name: str) -> Optional[FieldSpec]:
    for spec in SCHEMA[cls]:
        if spec.name == name:
            return spec
    return None


def leaf_problem(node: Node, value) -> Optional[str]:
    """Why `value` cannot sit at a leaf `node`, or None if it fits."""
    kind = node.kind
    if kind is Kind.TIMESTAMP:
        try:
            parse_timestamp(value)
        except ValueError as e:
            return f"expected a timestamp: {e}"
        return None
    if kind is Kind.INTEGER and isinstance(value, int) and not isinstance(value, bool):
        return None
    if kind is Kind.STRING and isinstance(value, str):
        return None
    if kind is Kind.OPTIONAL_STRING and (value is None or isinstance(value, str)):
        return None
    if kind is Kind.ENUM and value in node.choices:
        return None
    return f"expected {node.describe()}, got {value!r}"


# ── timestamps

def utc_now() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str):
        raise ValueError(f"timestamp must be a string, got {type(value).__name__}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
