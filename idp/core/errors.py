# idp/core/errors.py
"""
Error taxonomy for the identity engine.

Every failure surfaces as one of these exceptions; nothing in the core
catches and discards them, and nothing is retried.
"""
from dataclasses import dataclass
from typing import List, Sequence


@dataclass(frozen=True)
class Violation:
    """A single broken document invariant."""
    rule: str          # e.g. "reputation_sum", "public_keys", "schema"
    location: str      # dotted path of the offending node
    message: str

    def __str__(self):
        return f"{self.location}: {self.message} ({self.rule})"


class IdpError(Exception):
    """Base class for all identity engine errors."""


class GenerationError(IdpError):
    """Key generation failed (entropy source or crypto backend). Fatal."""


class _ViolationsError(IdpError):
    headline = "document is invalid"

    def __init__(self, violations: Sequence[Violation]):
        self.violations: List[Violation] = list(violations)
        lines = [f"{self.headline} ({len(self.violations)} violations)"]
        lines.extend(f"  • {v}" for v in self.violations)
        super().__init__("\n".join(lines))

    @property
    def rules(self) -> List[str]:
        return [v.rule for v in self.violations]


class ValidationError(_ViolationsError):
    """Raised when an invalid document is about to be persisted."""
    headline = "refusing to save invalid document"


class ValidationFailed(_ViolationsError):
    """A mutation produced an invalid document and was rolled back."""
    headline = "mutation rolled back"


class CorruptDocument(_ViolationsError):
    """A loaded document does not parse or does not satisfy the invariants."""
    headline = "corrupt identity document"


class PathNotFound(IdpError):
    def __init__(self, path: str, reason: str = ""):
        self.path = path
        super().__init__(f"path not found: {path}" + (f" ({reason})" if reason else ""))


class TypeMismatch(IdpError):
    def __init__(self, path: str, expected: str, value=None):
        self.path = path
        self.expected = expected
        super().__init__(f"cannot assign {value!r} to {path}: expected {expected}")


class ImmutableField(IdpError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"field is immutable: {path}")


class KeyNotFound(IdpError):
    def __init__(self, key_id: str):
        self.key_id = key_id
        super().__init__(f"no public key with key_id '{key_id}'")


class ClaimHashMismatch(IdpError):
    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"claim hash mismatch: proof has {expected}, claim hashes to {actual}")


class InvalidSignature(IdpError):
    def __init__(self, algorithm: str, reason: str = ""):
        self.algorithm = algorithm
        super().__init__(f"invalid {algorithm} signature" + (f": {reason}" if reason else ""))


class UnsupportedVersion(IdpError):
    def __init__(self, version):
        self.version = version
        super().__init__(f"unsupported identity document version: {version!r}")


class StorageError(IdpError, OSError):
    """Reading or writing a backing file failed."""

    def __init__(self, operation: str, path, reason: str = ""):
        self.operation = operation  # "read" or "write"
        self.path = path
        super().__init__(f"{operation} failed for {path}" + (f": {reason}" if reason else ""))


class IdentityExists(IdpError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"'{path}' already exists")
