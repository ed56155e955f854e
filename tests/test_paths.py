# tests/test_paths.py
import copy
import time

import pytest

from idp.core.errors import ImmutableField, PathNotFound, TypeMismatch, ValidationFailed
from idp.core.schema import parse_timestamp
from idp.crypto.keys import KeyPair
from idp.document import artifacts
from idp.document.model import create_identity
from idp.document.paths import get_path, parse_path, set_path
from idp.storage.codec import serialize
from idp.verify.verifier import sign_claim


@pytest.fixture
def doc():
    identity, _secret = create_identity("Alice", "Builder")
    artifacts.record_reputation(identity, "trust", "delivered", 50)
    artifacts.record_reputation(identity, "trust", "reviewed", 30)
    artifacts.add_contract(identity, "c-1", ["alice", "bob"], "Deliver by Friday")
    return identity


def test_parse_path_segments():
    segments = parse_path("system.public_keys[0].status")
    assert [(s.name, s.index) for s in segments] == [("system", None), ("public_keys", 0), ("status", None)]


@pytest.mark.parametrize("bad", ["", "core..bio", "core.bio[", "core.[0]", "1core", "core.bio[-1]"])
def test_malformed_paths(bad):
    with pytest.raises(PathNotFound):
        parse_path(bad)


def test_set_bio_scenario(doc):
    before = doc.identity.updated_at
    time.sleep(0.001)
    set_path(doc, "core.bio", "New bio")
    assert doc.core.bio == "New bio"
    assert parse_timestamp(doc.identity.updated_at) > parse_timestamp(before)


@pytest.mark.parametrize("path", ["identity.id", "identity.created_at", "identity.updated_at"])
def test_protected_identity_fields(doc, path):
    before = serialize(doc)
    with pytest.raises(ImmutableField):
        set_path(doc, path, "hacked")
    assert serialize(doc) == before


@pytest.mark.parametrize("path", [
    "system.public_keys[0].status",
    "system.public_keys[0].value",
    "system.public_keys[7].key_id",
    "system.public_keys",
])
def test_public_keys_are_immutable(doc, path):
    with pytest.raises(ImmutableField):
        set_path(doc, path, "revoked")


@pytest.mark.parametrize("path", [
    "core.nickname",
    "profile.bio",
    "credentials[0].claim",
    "contracts[5].status",
    "core.bio[0]",
    "core.bio.text",
])
def test_path_not_found(doc, path):
    with pytest.raises(PathNotFound):
        set_path(doc, path, "x")


def test_nested_sequence_element(doc):
    set_path(doc, "contracts[0].parties[1]", "carol")
    assert doc.contracts[0].parties == ["alice", "carol"]


def test_proof_type_addressed_by_serialized_name():
    identity, secret = create_identity("Alice", "Builder")
    artifacts.add_proof(identity, sign_claim(identity, "over 18", KeyPair.from_private_bytes(secret), proof_id="p-1"))

    assert get_path(identity, "proofs[0].type") == "Ed25519Signature2020"
    set_path(identity, "proofs[0].type", "CustomSignature")
    assert identity.proofs[0].proof_type == "CustomSignature"
    with pytest.raises(PathNotFound):
        get_path(identity, "proofs[0].proof_type")


def test_integer_coercion(doc):
    coerced = set_path(doc, "reputation[0].value", " 80 ")
    assert coerced == 80
    assert doc.reputation[0].value == 80
    assert isinstance(doc.reputation[0].value, int)


@pytest.mark.parametrize("value", ["ninety", "9.5", True, None])
def test_integer_type_mismatch(doc, value):
    with pytest.raises(TypeMismatch):
        set_path(doc, "reputation[0].value", value)


def test_string_type_mismatch(doc):
    with pytest.raises(TypeMismatch):
        set_path(doc, "core.bio", 42)


def test_timestamp_type_mismatch(doc):
    with pytest.raises(TypeMismatch):
        set_path(doc, "reputation[0].history[0].timestamp", "last tuesday")


def test_block_is_not_assignable(doc):
    with pytest.raises(TypeMismatch):
        set_path(doc, "core", "flat")
    with pytest.raises(TypeMismatch):
        set_path(doc, "contracts[0].parties", "alice")


def test_validation_failure_rolls_back(doc):
    snapshot = copy.deepcopy(doc)
    with pytest.raises(ValidationFailed) as exc:
        set_path(doc, "reputation[0].value", "100")
    assert exc.value.rules == ["reputation_sum"]
    assert doc == snapshot


def test_unsupported_version_is_rolled_back(doc):
    with pytest.raises(ValidationFailed) as exc:
        set_path(doc, "identity.version", "3.0")
    assert "version" in exc.value.rules
    assert doc.identity.version == "0.2.1"
