"""
Password Hashing

The secret store holds a bcrypt hash, never the password itself.
Passwords are first reduced to a fixed-length SHA-256 digest so that
bcrypt's 72-byte input limit never truncates or rejects a long password.
"""

import base64
import hashlib

import bcrypt


def _prehash(password: str) -> bytes:
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(digest)


def hash_password(password: str, rounds: int = 12) -> str:
    """Return a salted bcrypt hash of the password."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(_prehash(password), salt).decode("ascii")


def verify_password(password: str, stored_hash: str) -> bool:
    """Check a password against a stored hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(_prehash(password), stored_hash.encode("ascii"))
    except (ValueError, UnicodeEncodeError):
        return False
