# idp/crypto/algorithms.py
"""
Signature schemes, keyed by the `algorithm` tag stored in the document.

Adding a scheme means adding one verify function and one registry entry;
verification dispatches on the tag alone.
"""
from typing import Callable, Dict

from cryptography.exceptions import InvalidSignature as _CryptoInvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from idp.core.encoding import b64_decode
from idp.core.errors import InvalidSignature

ED25519 = "Ed25519"
ECDSA_P256 = "ECDSA-P256"

# (raw public key, signature, message) -> None, raising on a bad signature
VerifyFn = Callable[[bytes, bytes, bytes], None]


def _verify_ed25519(public_raw: bytes, signature: bytes, message: bytes) -> None:
    Ed25519PublicKey.from_public_bytes(public_raw).verify(signature, message)


def _verify_ecdsa_p256(public_raw: bytes, signature: bytes, message: bytes) -> None:
    key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), public_raw)
    key.verify(signature, message, ec.ECDSA(hashes.SHA256()))


VERIFIERS: Dict[str, VerifyFn] = {
    ED25519: _verify_ed25519,
    ECDSA_P256: _verify_ecdsa_p256,
}


def is_supported(algorithm: str) -> bool:
    return algorithm in VERIFIERS


def verify_signature(algorithm: str, public_key_value: str, signature_value: str, message: bytes) -> None:
    """Raise `InvalidSignature(algorithm)` unless the signature checks out."""
    if not is_supported(algorithm):
        raise InvalidSignature(algorithm, "unsupported algorithm")
    verify = VERIFIERS[algorithm]
    try:
        public_raw = b64_decode(public_key_value)
        signature = b64_decode(signature_value)
        verify(public_raw, signature, message)
    except _CryptoInvalidSignature:
        raise InvalidSignature(algorithm, "signature does not match") from None
    except ValueError as e:
        raise InvalidSignature(algorithm, str(e)) from e
