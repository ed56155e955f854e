# idp/storage/__init__.py
"""
Persistence for identity documents: canonical YAML codec plus atomic file I/O.
"""

from .codec import deserialize, serialize
from .files import IdentityStore, load, read_secret, save, write_secret

__all__ = ["serialize", "deserialize", "save", "load", "write_secret", "read_secret", "IdentityStore"]
