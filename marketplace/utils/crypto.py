"""Password hashing and one-time code utilities using PyNaCl."""

import secrets

import nacl.pwhash
from nacl.exceptions import CryptoError, InvalidkeyError

_CODE_ALPHABET = "0123456789"


def hash_password(password: str) -> str:
    """Hash a password with argon2id. Returns the encoded hash string."""
    if not password:
        raise ValueError("Password is required.")
    return nacl.pwhash.argon2id.str(password.encode()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """One-way check of a plaintext password against a stored hash.

    Returns False for a mismatch or an unreadable hash instead of raising.
    """
    if not password or not password_hash:
        return False
    try:
        return nacl.pwhash.verify(password_hash.encode(), password.encode())
    except (InvalidkeyError, CryptoError):
        return False


def generate_verification_code(length: int = 6) -> str:
    """Numeric code mailed to users to confirm their email address."""
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))
