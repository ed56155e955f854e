# tests/test_storage.py
import os
import stat
import pytest
import yaml
from pathlib import Path

from idp.core.errors import (
    CorruptDocument,
    IdentityExists,
    StorageError,
    UnsupportedVersion,
    ValidationError,
)
from idp.crypto.hashing import derive_identity_id
from idp.crypto.keys import KeyPair
from idp.document import artifacts
from idp.document.model import create_identity
from idp.storage import IdentityStore, deserialize, load, read_secret, save, serialize, write_secret
from idp.storage import files as files_module
from idp.verify.verifier import sign_claim


@pytest.fixture
def doc():
    identity, _secret = create_identity("Alice", "Builder")
    return identity


@pytest.fixture
def full_doc():
    identity, secret = create_identity("Alice", "Builder")
    keypair = KeyPair.from_private_bytes(secret)
    proof = artifacts.add_proof(identity, sign_claim(identity, "over 18", keypair, proof_id="p-1"))
    artifacts.add_credential(identity, "over 18", "idp:key:sha256:gov", proof.proof_id,
                             expires_at="2030-01-01T00:00:00Z")
    artifacts.add_credential(identity, "member", "idp:key:sha256:club", "p-1")
    artifacts.add_contract(identity, "c-1", ["alice", "bob"], "Deliver by Friday", on_success="pay")
    artifacts.record_reputation(identity, "trust", "delivered", 50)
    artifacts.record_reputation(identity, "trust", "late", -5)
    artifacts.grant_consent(identity, "idp:key:sha256:bank", ["core.name", "core.bio"],
                            "2030-01-01T00:00:00Z", "KYC")
    return identity


@pytest.fixture
def doc_path(tmp_path: Path) -> Path:
    return tmp_path / "my.idp"


def test_roundtrip_minimal(doc):
    assert deserialize(serialize(doc)) == doc


def test_roundtrip_with_all_artifacts(full_doc):
    assert deserialize(serialize(full_doc)) == full_doc


def test_minimal_document_omits_empty_sequences(doc):
    data = yaml.safe_load(serialize(doc))
    assert list(data) == ["identity", "system", "core"]


def test_canonical_order_and_optional_fields(full_doc):
    text = serialize(full_doc)
    data = yaml.safe_load(text)
    assert list(data) == [
        "identity", "system", "core",
        "credentials", "proofs", "contracts", "reputation", "consent",
    ]
    assert list(data["identity"]) == ["id", "version", "schema_url", "created_at", "updated_at"]
    assert "expires_at" in data["credentials"][0]
    assert "expires_at" not in data["credentials"][1]
    assert data["proofs"][0]["type"] == "Ed25519Signature2020"
    # timestamps stay strings, not YAML timestamps
    assert isinstance(data["identity"]["created_at"], str)


def test_serialization_is_stable(full_doc):
    assert serialize(full_doc) == serialize(deserialize(serialize(full_doc)))


def test_private_key_never_serialized(tmp_path: Path):
    store = IdentityStore(tmp_path / "my.idp", tmp_path / "my.key")
    store.init("Alice", "Builder")
    secret = store.secret_path.read_bytes()
    text = store.document_path.read_text()
    assert secret not in text.encode()
    assert KeyPair.from_private_bytes(secret).public_key_b64() in text


def test_unknown_top_level_field_rejected(doc):
    data = yaml.safe_load(serialize(doc))
    data["wallet"] = {"balance": 1}
    with pytest.raises(CorruptDocument) as exc:
        deserialize(yaml.safe_dump(data))
    assert [(v.rule, v.location) for v in exc.value.violations] == [("schema", "wallet")]


def test_unknown_nested_field_rejected(doc):
    data = yaml.safe_load(serialize(doc))
    data["core"]["avatar"] = "cat.png"
    with pytest.raises(CorruptDocument) as exc:
        deserialize(yaml.safe_dump(data))
    assert exc.value.violations[0].location == "core.avatar"


def test_missing_required_field(doc):
    data = yaml.safe_load(serialize(doc))
    del data["core"]["bio"]
    with pytest.raises(CorruptDocument, match="core.bio"):
        deserialize(yaml.safe_dump(data))


def test_wrong_type_reported(doc):
    data = yaml.safe_load(serialize(doc))
    data["core"]["name"] = ["not", "a", "string"]
    with pytest.raises(CorruptDocument, match="core.name"):
        deserialize(yaml.safe_dump(data))


def test_not_yaml():
    with pytest.raises(CorruptDocument):
        deserialize("identity: [unclosed")


def test_unsupported_version_is_distinct(doc):
    data = yaml.safe_load(serialize(doc))
    data["identity"]["version"] = "1.0.0"
    data["future_section"] = {}
    with pytest.raises(UnsupportedVersion) as exc:
        deserialize(yaml.safe_dump(data))
    assert exc.value.version == "1.0.0"


def test_hand_written_document_loads(tmp_path: Path):
    keypair = KeyPair.generate()
    value = keypair.public_key_b64()
    (tmp_path / "hand.idp").write_text(f"""
identity:
  id: "{derive_identity_id(value)}"
  version: "0.2.1"
  schema_url: "https://idp.org/schemas/v0.2.1"
  created_at: "2024-01-01T00:00:00Z"
  updated_at: "2024-01-01T00:00:00Z"
system:
  public_keys:
    - key_id: root-key-01
      algorithm: Ed25519
      value: "{value}"
      status: active
core:
  name: "Clein Pius"
  bio: "Founder of IDP."
""")
    loaded = load(tmp_path / "hand.idp")
    assert loaded.core.name == "Clein Pius"
    assert loaded.credentials == []


def test_save_and_load(doc, doc_path: Path):
    save(doc, doc_path)
    assert load(doc_path) == doc


def test_save_refuses_invalid_document(doc, doc_path: Path):
    doc.system.public_keys = []
    with pytest.raises(ValidationError):
        save(doc, doc_path)
    assert not doc_path.exists()


def test_load_rejects_bad_reputation_sum(doc, doc_path: Path):
    save(doc, doc_path)
    data = yaml.safe_load(doc_path.read_text())
    data["reputation"] = [{
        "score_name": "trust",
        "value": 100,
        "history": [
            {"event": "delivered", "change": 50, "timestamp": "2024-01-01T00:00:00Z"},
            {"event": "reviewed", "change": 30, "timestamp": "2024-01-02T00:00:00Z"},
        ],
    }]
    doc_path.write_text(yaml.safe_dump(data, sort_keys=False))

    with pytest.raises(CorruptDocument) as exc:
        load(doc_path)
    assert exc.value.rules == ["reputation_sum"]


def test_load_missing_file(tmp_path: Path):
    with pytest.raises(StorageError) as exc:
        load(tmp_path / "absent.idp")
    assert exc.value.operation == "read"


def test_interrupted_save_leaves_previous_document(doc, doc_path: Path, monkeypatch):
    save(doc, doc_path)
    original = doc_path.read_bytes()

    def crash(src, dst):
        raise OSError("simulated crash before replace")

    monkeypatch.setattr(files_module.os, "replace", crash)
    doc.core.bio = "Half-written"
    with pytest.raises(StorageError) as exc:
        save(doc, doc_path)
    assert exc.value.operation == "write"

    assert doc_path.read_bytes() == original
    assert sorted(p.name for p in doc_path.parent.iterdir()) == ["my.idp"]


def test_write_secret_is_exclusive_and_private(tmp_path: Path):
    path = tmp_path / "my.key"
    write_secret(path, b"\x01\x02")
    assert read_secret(path) == b"\x01\x02"
    if os.name == "posix":
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
    with pytest.raises(IdentityExists):
        write_secret(path, b"\x03")
    assert read_secret(path) == b"\x01\x02"


def test_store_init_refuses_existing_files(tmp_path: Path):
    (tmp_path / "my.key").write_bytes(b"old secret")
    store = IdentityStore(tmp_path / "my.idp", tmp_path / "my.key")
    with pytest.raises(IdentityExists):
        store.init("Alice", "Builder")
    assert not store.document_path.exists()
    assert store.secret_path.read_bytes() == b"old secret"


def test_store_keypair_matches_root_key(tmp_path: Path):
    store = IdentityStore(tmp_path / "my.idp", tmp_path / "my.key")
    doc = store.init("Alice", "Builder")
    assert store.keypair().public_key_b64() == doc.system.public_keys[0].value
    assert store.load() == doc


def test_document_with_post_quantum_key_loads(doc, doc_path: Path):
    save(doc, doc_path)
    data = yaml.safe_load(doc_path.read_text())
    data["system"]["public_keys"].append({
        "key_id": "pq-key-01",
        "algorithm": "CRYSTALS-Dilithium-3",
        "value": "AAAA",
        "status": "active",
    })
    doc_path.write_text(yaml.safe_dump(data, sort_keys=False))

    loaded = load(doc_path)
    assert [k.algorithm for k in loaded.system.public_keys] == ["Ed25519", "CRYSTALS-Dilithium-3"]
    save(loaded, doc_path)
    assert load(doc_path) == loaded


@pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")
def test_save_keeps_document_permissions(doc, doc_path: Path):
    save(doc, doc_path)
    assert stat.S_IMODE(doc_path.stat().st_mode) == 0o644

    os.chmod(doc_path, 0o640)
    doc.core.bio = "Still readable by the group"
    save(doc, doc_path)
    assert stat.S_IMODE(doc_path.stat().st_mode) == 0o640
