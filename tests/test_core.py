# tests/test_core.py
import pytest
from datetime import datetime, timezone

from idp.crypto.hashing import canonical_json
from idp.core.encoding import b64_encode, b64_decode
from idp.core.errors import CorruptDocument, StorageError, Violation
from idp.core.schema import Kind, SCHEMA, field_spec, format_timestamp, parse_timestamp, utc_now
from idp.core.types import Identity, Proof


def test_base64_roundtrip():
    original = b'{"hello":"world"}'
    encoded = b64_encode(original)
    assert b64_decode(encoded) == original


def test_base64_rejects_garbage():
    with pytest.raises(ValueError):
        b64_decode("not base64 !!")


def test_canonical_json_sorting():
    messy = {
        "z": 1,
        "a": "hello",
        "nested": {"b": 2, "a": 1},
    }
    canon = canonical_json(messy).decode("utf-8")
    assert canon == '{"a":"hello","nested":{"a":1,"b":2},"z":1}'


def test_top_level_canonical_order():
    names = [spec.name for spec in SCHEMA[Identity]]
    assert names == [
        "identity", "system", "core",
        "credentials", "proofs", "contracts", "reputation", "consent",
    ]


def test_proof_type_field_maps_to_attribute():
    spec = field_spec(Proof, "type")
    assert spec.attr == "proof_type"
    assert spec.node.kind is Kind.STRING
    assert field_spec(Proof, "proof_type") is None


def test_timestamps_roundtrip():
    now = utc_now()
    assert now.endswith("Z")
    parsed = parse_timestamp(now)
    assert parsed.tzinfo is not None
    assert format_timestamp(parsed) == now


def test_parse_timestamp_accepts_short_form():
    dt = parse_timestamp("2024-01-01T00:00:00Z")
    assert dt == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_parse_timestamp_rejects_text():
    with pytest.raises(ValueError):
        parse_timestamp("yesterday")


def test_violation_errors_carry_full_list():
    violations = [
        Violation("reputation_sum", "reputation[0].value", "mismatch"),
        Violation("contract", "contracts[0].parties", "no parties"),
    ]
    err = CorruptDocument(violations)
    assert err.violations == violations
    assert err.rules == ["reputation_sum", "contract"]
    assert "2 violations" in str(err)


def test_storage_error_is_an_os_error():
    err = StorageError("write", "/tmp/x.idp", "disk full")
    assert isinstance(err, OSError)
    assert err.operation == "write"
