# idp/core/encoding.py
import base64
import binascii


def b64_encode(data: bytes) -> str:
    """Encode bytes to standard base64 (with padding)."""
    return base64.b64encode(data).decode("ascii")


def b64_decode(s: str) -> bytes:
    """Decode standard base64, rejecting anything outside the alphabet."""
    try:
        return base64.b64decode(s.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"not valid base64: {e}") from e
