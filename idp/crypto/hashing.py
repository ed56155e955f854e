# idp/crypto/hashing.py
import hashlib
import logging
from typing import Any, Mapping, Union

import jcs

from idp.core.encoding import b64_encode

logger = logging.getLogger(__name__)

ID_PREFIX = "idp:key:sha256:"

ClaimPayload = Union[bytes, str, Mapping[str, Any]]


def derive_identity_id(public_key_value: str) -> str:
    """
    Derive the document id from the root key's *encoded* value.

    The digest covers the UTF-8 bytes of the base64 string, not the raw key
    bytes. Independent implementations must reproduce this exactly.
    """
    digest = hashlib.sha256(public_key_value.encode("utf-8")).digest()
    identity_id = ID_PREFIX + b64_encode(digest)
    logger.debug("derived %s from root key", identity_id)
    return identity_id


def canonical_json(obj: Any) -> bytes:
    """RFC 8785 (JCS) bytes for a structured claim."""
    return jcs.canonicalize(obj)


def claim_bytes(claim: ClaimPayload) -> bytes:
    """Bytes as-is, text as UTF-8, mappings through JCS."""
    if isinstance(claim, bytes):
        return claim
    if isinstance(claim, str):
        return claim.encode("utf-8")
    if isinstance(claim, Mapping):
        return canonical_json(dict(claim))
    raise TypeError(f"unsupported claim payload type: {type(claim).__name__}")


def compute_claim_hash(claim: ClaimPayload) -> str:
    return b64_encode(hashlib.sha256(claim_bytes(claim)).digest())
