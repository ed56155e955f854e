# idp/verify/verifier.py
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional
from uuid import uuid4

from idp.core.errors import ClaimHashMismatch, IdpError, InvalidSignature, KeyNotFound
from idp.core.types import ROOT_KEY_ID, Identity, Proof, SignatureComponent, Signer
from idp.crypto.algorithms import ECDSA_P256, ED25519, verify_signature
from idp.crypto.hashing import ClaimPayload, compute_claim_hash
from idp.crypto.keys import KeyPair

PROOF_TYPES = {
    ED25519: "Ed25519Signature2020",
    ECDSA_P256: "EcdsaSecp256r1Signature2019",
}


class ProofStatus(str, Enum):
    VALID = "valid"
    VALID_KEY_REVOKED = "valid-but-key-revoked"


@dataclass
class SignatureCheck:
    algorithm: str
    ok: bool
    reason: str = ""


@dataclass
class ProofVerification:
    """Outcome of a successful verification. Failures are raised, not returned."""
    status: ProofStatus
    proof_id: str
    key_id: str
    checks: List[SignatureCheck] = field(default_factory=list)

    @property
    def key_revoked(self) -> bool:
        return self.status is ProofStatus.VALID_KEY_REVOKED

    def __str__(self):
        return f"{self.proof_id}: {self.status.value} (key '{self.key_id}')"


def verify(doc: Identity, proof: Proof, claim: ClaimPayload, strict: bool = False) -> ProofVerification:
    """
    Check that `proof` binds `claim` to one of the document's keys.

    Lenient policy: the claim hash must match and at least one signature entry
    must validate. Strict policy: every entry must validate. A revoked signer
    key still verifies but is reported as `valid-but-key-revoked`.
    """
    key = doc.system.find_key(proof.signed_by.key_id)
    if key is None:
        raise KeyNotFound(proof.signed_by.key_id)

    actual = compute_claim_hash(claim)
    if actual != proof.claim_hash:
        raise ClaimHashMismatch(proof.claim_hash, actual)

    if not proof.signature:
        raise InvalidSignature("none", "proof carries no signatures")

    message = proof.claim_hash.encode("utf-8")
    checks: List[SignatureCheck] = []
    first_failure: Optional[InvalidSignature] = None
    for component in proof.signature:
        try:
            if component.algorithm != key.algorithm:
                raise InvalidSignature(component.algorithm, f"key '{key.key_id}' is {key.algorithm}")
            verify_signature(component.algorithm, key.value, component.value, message)
            checks.append(SignatureCheck(component.algorithm, True))
        except InvalidSignature as e:
            if strict:
                raise
            checks.append(SignatureCheck(component.algorithm, False, str(e)))
            first_failure = first_failure or e

    if not any(c.ok for c in checks):
        raise first_failure

    status = ProofStatus.VALID_KEY_REVOKED if key.status == "revoked" else ProofStatus.VALID
    return ProofVerification(status=status, proof_id=proof.proof_id, key_id=key.key_id, checks=checks)


def sign_claim(
    doc: Identity,
    claim: ClaimPayload,
    keypair: KeyPair,
    key_id: str = ROOT_KEY_ID,
    proof_id: Optional[str] = None,
) -> Proof:
    """Build a proof over `claim` signed by one of the holder's own keys. Does not append it."""
    claim_hash = compute_claim_hash(claim)
    return Proof(
        proof_id=proof_id or f"proof-{uuid4().hex[:12]}",
        proof_type=PROOF_TYPES.get(keypair.algorithm, keypair.algorithm),
        claim_hash=claim_hash,
        signed_by=Signer(idp_id=doc.identity.id, key_id=key_id),
        signature=[SignatureComponent(algorithm=keypair.algorithm, value=keypair.sign(claim_hash.encode("utf-8")))],
    )


@dataclass
class VerificationFailure:
    proof_id: str
    message: str
    category: str = "general"  # e.g. "key", "claim_hash", "signature", "claim"


@dataclass
class VerificationReport:
    is_valid: bool
    results: List[ProofVerification] = field(default_factory=list)
    failures: List[VerificationFailure] = field(default_factory=list)

    def __bool__(self):
        return self.is_valid

    def __str__(self):
        if self.is_valid:
            return f"All {len(self.results)} proofs are valid ✓"
        lines = [f"Verification FAILED ({len(self.failures)} issues):"]
        for f in self.failures:
            lines.append(f"  • [{f.proof_id}] {f.category}: {f.message}")
        return "\n".join(lines)


_CATEGORIES = {
    KeyNotFound: "key",
    ClaimHashMismatch: "claim_hash",
    InvalidSignature: "signature",
}


class ProofVerifier:
    """
    Verifies the proofs of one document against externally supplied claims.
    """

    def __init__(self, doc: Identity, strict: bool = False):
        self.doc = doc
        self.strict = strict

    def verify(self, proof: Proof, claim: ClaimPayload) -> ProofVerification:
        return verify(self.doc, proof, claim, strict=self.strict)

    def verify_all(self, claims: Mapping[str, ClaimPayload]) -> VerificationReport:
        """claims: proof_id → claim payload. Proofs without a claim are reported as failures."""
        report = VerificationReport(True)
        for proof in self.doc.proofs:
            if proof.proof_id not in claims:
                report.failures.append(VerificationFailure(proof.proof_id, "no claim payload supplied", "claim"))
                continue
            try:
                report.results.append(self.verify(proof, claims[proof.proof_id]))
            except IdpError as e:
                category = _CATEGORIES.get(type(e), "general")
                report.failures.append(VerificationFailure(proof.proof_id, str(e), category))
        report.is_valid = not report.failures
        return report

