# idp/__init__.py
"""
IDP: sovereign identity documents.
A single YAML record binding a person or agent to an Ed25519 root key, a profile
and a set of trust artifacts (credentials, proofs, contracts, reputation, consent).
"""

__version__ = "0.2.1"
PROTOCOL_VERSION = "0.2.1"
SCHEMA_URL = "https://idp.org/schemas/v0.2.1"
SUPPORTED_VERSIONS = ("0.2.1",)
