# idp/holder/session.py
import copy
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, TypeVar

from idp.core.types import ROOT_KEY_ID, Consent, Contract, Credential, Identity, Proof, PublicKey, Reputation
from idp.crypto import keyring
from idp.crypto.hashing import ClaimPayload
from idp.document import artifacts
from idp.document.model import restore
from idp.document.paths import set_path
from idp.storage.files import IdentityStore
from idp.verify.verifier import sign_claim


T = TypeVar("T")


@dataclass
class IdentitySession:
    """
    Holds one loaded document and its backing files.
    Every mutation is validated and saved before it returns; if either step
    fails, the in-memory document and the file on disk are left as they were.
    """
    store: IdentityStore
    doc: Optional[Identity] = None

    def __post_init__(self):
        if self.doc is None:
            self.doc = self.store.load()

    @property
    def id(self) -> str:
        return self.doc.identity.id

    def _commit(self, change: Callable[[], T]) -> T:
        snapshot = copy.deepcopy(self.doc)
        result = change()
        try:
            self.store.save(self.doc)
        except BaseException:
            restore(self.doc, snapshot)
            raise
        return result

    def set(self, path: str, value: Any) -> Any:
        return self._commit(lambda: set_path(self.doc, path, value))

    def rotate_key(self, public_key: PublicKey) -> PublicKey:
        return self._commit(lambda: keyring.rotate_key(self.doc, public_key))

    def revoke_key(self, key_id: str) -> PublicKey:
        return self._commit(lambda: keyring.revoke_key(self.doc, key_id))

    def add_credential(self, claim: str, issued_by: str, proof: str, expires_at: Optional[str] = None) -> Credential:
        return self._commit(lambda: artifacts.add_credential(self.doc, claim, issued_by, proof, expires_at))

    def add_proof(self, proof: Proof) -> Proof:
        return self._commit(lambda: artifacts.add_proof(self.doc, proof))

    def prove(self, claim: ClaimPayload, key_id: str = ROOT_KEY_ID) -> Proof:
        """Sign `claim` with the secret key file and append the resulting proof."""
        proof = sign_claim(self.doc, claim, self.store.keypair(), key_id=key_id)
        return self.add_proof(proof)

    def add_contract(self, contract_id: str, parties: Iterable[str], terms: str,
                     on_success: str = "", on_failure: str = "") -> Contract:
        return self._commit(lambda: artifacts.add_contract(
            self.doc, contract_id, parties, terms, on_success=on_success, on_failure=on_failure))

    def record_reputation(self, score_name: str, event: str, change: int) -> Reputation:
        return self._commit(lambda: artifacts.record_reputation(self.doc, score_name, event, change))

    def grant_consent(self, granted_to: str, fields: Iterable[str], expires_at: str, purpose: str) -> Consent:
        return self._commit(lambda: artifacts.grant_consent(self.doc, granted_to, fields, expires_at, purpose))
