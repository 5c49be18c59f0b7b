"""
Credential helpers for the WPMS login handshake.

WPMS expects the password as a double MD5 challenge response:
``md5(md5(password).hexdigest() + nonce).hexdigest()``. This is fixed by the
remote service and must match bit for bit.
"""

import hashlib
import uuid
from typing import Optional


DEFAULT_NONCE_LENGTH = 16


def generate_nonce(length: int = DEFAULT_NONCE_LENGTH) -> str:
    """
    Generate a random opaque string of exactly ``length`` characters.

    Random UUID4 hex strings are concatenated until long enough, then truncated.

    Raises:
        ValueError: If length is not a positive integer
    """
    if length <= 0:
        raise ValueError(f"Nonce length must be positive, got {length}")

    chunks = []
    while sum(len(c) for c in chunks) < length:
        chunks.append(uuid.uuid4().hex)

    return "".join(chunks)[:length]


def hash_password(password: Optional[str], nonce: Optional[str] = "") -> str:
    """
    Compute the WPMS challenge response for a password and nonce.

    Args:
        password: Plaintext password (must not be None)
        nonce: Nonce sent alongside the login; empty/None hashes the inner digest alone

    Returns:
        32-character lowercase hex digest

    Raises:
        ValueError: If password is None
    """
    if password is None:
        raise ValueError("Password is required for hashing")

    inner = hashlib.md5(password.encode("utf-8")).hexdigest()
    outer = hashlib.md5((inner + (nonce or "")).encode("utf-8"))
    return outer.hexdigest()
