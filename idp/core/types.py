# idp/core/types.py
from dataclasses import dataclass, field
from typing import List, Literal, Optional

KeyStatus = Literal["active", "revoked"]
KEY_STATUSES = ("active", "revoked")
ROOT_KEY_ID = "root-key-01"


@dataclass
class IdentityBlock:
    id: str                         # idp:key:sha256:<b64>, fixed at creation
    version: str
    schema_url: str
    created_at: str                 # ISO 8601 UTC, "...Z"
    updated_at: str


@dataclass
class PublicKey:
    key_id: str
    algorithm: str                  # "Ed25519", "ECDSA-P256"
    value: str                      # standard base64 of the raw public key
    status: str = "active"


@dataclass
class SystemBlock:
    public_keys: List[PublicKey] = field(default_factory=list)

    def find_key(self, key_id: str) -> Optional[PublicKey]:
        for key in self.public_keys:
            if key.key_id == key_id:
                return key
        return None

    @property
    def root_key(self) -> Optional[PublicKey]:
        return self.public_keys[0] if self.public_keys else None


@dataclass
class CoreBlock:
    name: str
    bio: str


@dataclass
class Credential:
    claim: str
    issued_by: str
    issued_at: str
    proof: str                      # opaque reference, usually a proof_id
    expires_at: Optional[str] = None


@dataclass
class Signer:
    idp_id: str
    key_id: str


@dataclass
class SignatureComponent:
    algorithm: str
    value: str                      # standard base64 signature bytes


@dataclass
class Proof:
    """Binds a claim hash to one of the document's keys."""
    proof_id: str
    proof_type: str                 # serialized as "type"
    claim_hash: str
    signed_by: Signer
    signature: List[SignatureComponent] = field(default_factory=list)


@dataclass
class Consequence:
    on_success: str = ""
    on_failure: str = ""


@dataclass
class Contract:
    contract_id: str
    status: str
    parties: List[str]
    terms: str
    consequence: Consequence


@dataclass
class ReputationEvent:
    event: str
    change: int
    timestamp: str


@dataclass
class Reputation:
    score_name: str
    value: int = 0
    history: List[ReputationEvent] = field(default_factory=list)


@dataclass
class Consent:
    granted_to: str
    fields: List[str]
    expires_at: str
    purpose: str


@dataclass
class Identity:
    """An IDP document. Field order is the canonical serialization order."""
    identity: IdentityBlock
    system: SystemBlock
    core: CoreBlock
    credentials: List[Credential] = field(default_factory=list)
    proofs: List[Proof] = field(default_factory=list)
    contracts: List[Contract] = field(default_factory=list)
    reputation: List[Reputation] = field(default_factory=list)
    consent: List[Consent] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.identity.id
