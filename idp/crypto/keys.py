# idp/crypto/keys.py
import logging
from dataclasses import dataclass
from typing import Union

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from idp.core.encoding import b64_encode
from idp.core.types import ROOT_KEY_ID, PublicKey
from idp.core.errors import GenerationError
from idp.crypto.algorithms import ECDSA_P256, ED25519

logger = logging.getLogger(__name__)

PrivateKey = Union[Ed25519PrivateKey, ec.EllipticCurvePrivateKey]


class KeyPair:
    """A private signing key plus the helpers to publish its public half."""

    def __init__(self, private_key: PrivateKey):
        if isinstance(private_key, Ed25519PrivateKey):
            self.algorithm = ED25519
        elif isinstance(private_key, ec.EllipticCurvePrivateKey) and isinstance(private_key.curve, ec.SECP256R1):
            self.algorithm = ECDSA_P256
        else:
            raise ValueError(f"unsupported private key type: {type(private_key).__name__}")
        self._private_key = private_key

    @classmethod
    def generate(cls, algorithm: str = ED25519) -> "KeyPair":
        if algorithm == ED25519:
            return cls(Ed25519PrivateKey.generate())
        if algorithm == ECDSA_P256:
            return cls(ec.generate_private_key(ec.SECP256R1()))
        raise ValueError(f"cannot generate keys for algorithm '{algorithm}'")

    @classmethod
    def from_private_bytes(cls, data: bytes) -> "KeyPair":
        """Load a PKCS#8 DER blob, as written to the secret file."""
        return cls(serialization.load_der_private_key(data, password=None))

    def private_bytes(self) -> bytes:
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def public_key_bytes(self) -> bytes:
        public = self._private_key.public_key()
        if self.algorithm == ED25519:
            return public.public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)
        return public.public_bytes(serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint)

    def public_key_b64(self) -> str:
        return b64_encode(self.public_key_bytes())

    def to_public_key(self, key_id: str, status: str = "active") -> PublicKey:
        return PublicKey(key_id=key_id, algorithm=self.algorithm, value=self.public_key_b64(), status=status)

    def sign(self, message: bytes) -> str:
        """Sign raw bytes, returning the base64 signature."""
        if self.algorithm == ED25519:
            signature = self._private_key.sign(message)
        else:
            signature = self._private_key.sign(message, ec.ECDSA(hashes.SHA256()))
        return b64_encode(signature)


@dataclass
class GeneratedKeyPair:
    """Public descriptor for the document; private bytes for the secret file only."""
    public_key: PublicKey
    private_key_bytes: bytes


def generate_keypair(key_id: str = ROOT_KEY_ID, algorithm: str = ED25519) -> GeneratedKeyPair:
    """
    Generate a fresh signing keypair from the OS entropy source.
    Any backend failure is surfaced as GenerationError and never retried.
    """
    try:
        keypair = KeyPair.generate(algorithm)
        private_bytes = keypair.private_bytes()
    except ValueError:
        raise
    except Exception as e:
        raise GenerationError(f"key generation failed: {e}") from e

    logger.info("generated %s keypair '%s'", algorithm, key_id)
    return GeneratedKeyPair(
        public_key=keypair.to_public_key(key_id),
        private_key_bytes=private_bytes,
    )
