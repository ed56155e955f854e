# idp/document/model.py
import copy
import logging
from contextlib import contextmanager
from dataclasses import fields
from typing import Iterator, Tuple

from idp import PROTOCOL_VERSION, SCHEMA_URL
from idp.core.errors import ValidationFailed
from idp.core.schema import parse_timestamp, utc_now
from idp.core.types import CoreBlock, Identity, IdentityBlock, PublicKey, SystemBlock
from idp.crypto.hashing import derive_identity_id
from idp.crypto.keys import generate_keypair
from idp.document.validator import validate

logger = logging.getLogger(__name__)


def construct(name: str, bio: str, root_key: PublicKey) -> Identity:
    """
    Build a fresh document around the root public key.
    This is the only place `identity.id` and `identity.created_at` are assigned.
    """
    now = utc_now()
    doc = Identity(
        identity=IdentityBlock(
            id=derive_identity_id(root_key.value),
            version=PROTOCOL_VERSION,
            schema_url=SCHEMA_URL,
            created_at=now,
            updated_at=now,
        ),
        system=SystemBlock(public_keys=[copy.copy(root_key)]),
        core=CoreBlock(name=name, bio=bio),
    )
    logger.info("constructed identity %s", doc.identity.id)
    return doc


def create_identity(name: str, bio: str) -> Tuple[Identity, bytes]:
    """Generate a root keypair and build the document. Returns (doc, private key bytes)."""
    generated = generate_keypair()
    return construct(name, bio, generated.public_key), generated.private_key_bytes


def touch(doc: Identity) -> None:
    """Advance updated_at to now, never moving it backwards."""
    now = utc_now()
    if parse_timestamp(now) > parse_timestamp(doc.identity.updated_at):
        doc.identity.updated_at = now


def restore(doc: Identity, snapshot: Identity) -> None:
    """Put `snapshot`'s state back into `doc` in place, so outside references stay valid."""
    for f in fields(Identity):
        setattr(doc, f.name, getattr(snapshot, f.name))


@contextmanager
def mutation(doc: Identity) -> Iterator[Identity]:
    """
    Apply a change as a unit: on exit the document is touched and re-validated.
    Any exception or violation restores the pre-mutation state.
    """
    snapshot = copy.deepcopy(doc)
    try:
        yield doc
        touch(doc)
        violations = validate(doc)
        if violations:
            raise ValidationFailed(violations)
    except BaseException:
        restore(doc, snapshot)
        raise
