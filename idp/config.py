# idp/config.py
import logging
import os
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

from idp.storage.files import IdentityStore

DEFAULT_DOCUMENT_NAME = "my.idp"
DEFAULT_SECRET_NAME = "my.key"


def get_identity_dir(dir_flag: Optional[Path] = None) -> Path:
    """Resolve the identity directory in this order:
    1. --dir flag
    2. IDP_HOME environment variable
    3. Current working directory
    """
    if dir_flag:
        return dir_flag.resolve()
    env_dir = os.environ.get("IDP_HOME")
    if env_dir:
        return Path(env_dir).resolve()
    return Path.cwd()


def resolve_store(dir_flag: Optional[Path] = None) -> IdentityStore:
    base = get_identity_dir(dir_flag)
    return IdentityStore(
        document_path=base / os.environ.get("IDP_DOCUMENT", DEFAULT_DOCUMENT_NAME),
        secret_path=base / os.environ.get("IDP_SECRET", DEFAULT_SECRET_NAME),
    )


def configure_logging(verbose: bool = False) -> None:
    """--verbose wins; otherwise IDP_LOG_LEVEL (default WARNING)."""
    level = logging.DEBUG if verbose else os.environ.get("IDP_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )
