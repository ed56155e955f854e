# idp/document/artifacts.py
"""Append operations for the trust-artifact sequences. Each one is a single validated mutation."""
import copy
import logging
from typing import Iterable, Optional

from idp.core.schema import utc_now
from idp.core.types import (
    Consent,
    Consequence,
    Contract,
    Credential,
    Identity,
    Proof,
    Reputation,
    ReputationEvent,
)
from idp.document.model import mutation

logger = logging.getLogger(__name__)


def add_credential(
    doc: Identity,
    claim: str,
    issued_by: str,
    proof: str,
    expires_at: Optional[str] = None,
    issued_at: Optional[str] = None,
) -> Credential:
    credential = Credential(
        claim=claim,
        issued_by=issued_by,
        issued_at=issued_at or utc_now(),
        proof=proof,
        expires_at=expires_at,
    )
    with mutation(doc):
        doc.credentials.append(credential)
    logger.info("added credential from %s", issued_by)
    return credential


def add_proof(doc: Identity, proof: Proof) -> Proof:
    """Append a proof; its signer key must already be in system.public_keys."""
    proof = copy.deepcopy(proof)
    with mutation(doc):
        doc.proofs.append(proof)
    logger.info("added proof %s signed by %s", proof.proof_id, proof.signed_by.key_id)
    return proof


def add_contract(
    doc: Identity,
    contract_id: str,
    parties: Iterable[str],
    terms: str,
    on_success: str = "",
    on_failure: str = "",
    status: str = "proposed",
) -> Contract:
    contract = Contract(
        contract_id=contract_id,
        status=status,
        parties=list(parties),
        terms=terms,
        consequence=Consequence(on_success=on_success, on_failure=on_failure),
    )
    with mutation(doc):
        doc.contracts.append(contract)
    return contract


def record_reputation(
    doc: Identity,
    score_name: str,
    event: str,
    change: int,
    timestamp: Optional[str] = None,
) -> Reputation:
    """Append an event to the named score (creating it at 0) and keep value equal to the history sum."""
    with mutation(doc):
        entry = next((r for r in doc.reputation if r.score_name == score_name), None)
        if entry is None:
            entry = Reputation(score_name=score_name)
            doc.reputation.append(entry)
        entry.history.append(ReputationEvent(event=event, change=change, timestamp=timestamp or utc_now()))
        entry.value += change
    return entry


def grant_consent(
    doc: Identity,
    granted_to: str,
    fields: Iterable[str],
    expires_at: str,
    purpose: str,
) -> Consent:
    consent = Consent(granted_to=granted_to, fields=list(fields), expires_at=expires_at, purpose=purpose)
    with mutation(doc):
        doc.consent.append(consent)
    logger.info("granted consent to %s for %s", granted_to, ", ".join(consent.fields))
    return consent
