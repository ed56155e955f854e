# idp/storage/files.py
import logging
import os
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from idp.core.errors import CorruptDocument, IdentityExists, StorageError, ValidationError
from idp.core.types import Identity
from idp.crypto.keys import KeyPair
from idp.document.model import create_identity
from idp.document.validator import validate
from idp.storage.codec import deserialize, serialize

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DOCUMENT_MODE = 0o644


def save(doc: Identity, path: PathLike) -> None:
    """
    Validate, then write through a temporary sibling and os.replace().
    The destination is either the old document or the new one, never a mix.
    """
    violations = validate(doc)
    if violations:
        raise ValidationError(violations)
    _atomic_write(Path(path), serialize(doc).encode("utf-8"))
    logger.info("saved %s to %s", doc.identity.id, path)


def _atomic_write(path: Path, data: bytes, mode: int = DOCUMENT_MODE) -> None:
    try:
        mode = stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise StorageError("write", path, str(e)) from e

    try:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as e:
        raise StorageError("write", path, str(e)) from e

    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates 0600; the document keeps its own mode across saves
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise StorageError("write", path, str(e)) from e
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def load(path: PathLike) -> Identity:
    """Read, parse and validate. Invalid documents raise CorruptDocument."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise StorageError("read", path, str(e)) from e

    doc = deserialize(text)
    violations = validate(doc)
    if violations:
        raise CorruptDocument(violations)
    logger.info("loaded %s from %s", doc.identity.id, path)
    return doc


def write_secret(path: PathLike, data: bytes) -> None:
    """Create the secret-key file (owner-only). Never overwrites."""
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        raise IdentityExists(path) from None
    except OSError as e:
        raise StorageError("write", path, str(e)) from e
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
    except OSError as e:
        raise StorageError("write", path, str(e)) from e


def read_secret(path: PathLike) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise StorageError("read", path, str(e)) from e


@dataclass
class IdentityStore:
    """The two sibling files that make up one identity: the document and its secret key."""
    document_path: Path
    secret_path: Path

    def __post_init__(self):
        self.document_path = Path(self.document_path)
        self.secret_path = Path(self.secret_path)

    def exists(self) -> bool:
        return self.document_path.exists()

    def init(self, name: str, bio: str) -> Identity:
        for path in (self.document_path, self.secret_path):
            if path.exists():
                raise IdentityExists(path)

        doc, private_key_bytes = create_identity(name, bio)
        write_secret(self.secret_path, private_key_bytes)
        try:
            save(doc, self.document_path)
        except BaseException:
            self.secret_path.unlink(missing_ok=True)
            raise
        return doc

    def load(self) -> Identity:
        return load(self.document_path)

    def save(self, doc: Identity) -> None:
        save(doc, self.document_path)

    def keypair(self) -> KeyPair:
        data = read_secret(self.secret_path)
        try:
            return KeyPair.from_private_bytes(data)
        except ValueError as e:
            raise StorageError("read", self.secret_path, f"not a usable private key: {e}") from e
