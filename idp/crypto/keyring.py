# idp/crypto/keyring.py
"""Key lifecycle on a document: rotation appends, revocation flips status. Nothing is removed."""
import copy
import logging

from idp.core.errors import KeyNotFound
from idp.core.types import Identity, PublicKey
from idp.document.model import mutation

logger = logging.getLogger(__name__)


def next_key_id(doc: Identity) -> str:
    taken = {key.key_id for key in doc.system.public_keys}
    n = len(doc.system.public_keys) + 1
    while f"key-{n:02d}" in taken:
        n += 1
    return f"key-{n:02d}"


def rotate_key(doc: Identity, new_public_key: PublicKey) -> PublicKey:
    """Append a new active key. `identity.id` stays bound to the root key."""
    key = copy.copy(new_public_key)
    key.status = "active"
    with mutation(doc):
        doc.system.public_keys.append(key)
    logger.info("rotated in key '%s' (%s) for %s", key.key_id, key.algorithm, doc.identity.id)
    return key


def revoke_key(doc: Identity, key_id: str) -> PublicKey:
    key = doc.system.find_key(key_id)
    if key is None:
        raise KeyNotFound(key_id)
    if key.status == "revoked":
        return key
    with mutation(doc):
        key.status = "revoked"
    logger.info("revoked key '%s' for %s", key_id, doc.identity.id)
    return key
