import re
import secrets
from typing import Optional, Tuple

from passlib.context import CryptContext

# Accounts migrated from the legacy database carry unsalted hex SHA-256
# digests. They still verify, and are re-hashed on the next successful login.
pwd_context = CryptContext(
    schemes=["pbkdf2_sha256", "hex_sha256"],
    deprecated=["hex_sha256"],
)

LEGACY_DIGEST = re.compile(r"^[0-9A-Fa-f]{64}$")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> Tuple[bool, Optional[str]]:
    """
    Returns (valid, replacement_hash). replacement_hash is set when the
    stored hash uses a deprecated scheme and should be rewritten.
    """
    if LEGACY_DIGEST.match(hashed_password):
        # legacy digests were stored upper-case
        hashed_password = hashed_password.lower()
    try:
        return pwd_context.verify_and_update(plain_password, hashed_password)
    except ValueError:
        # unrecognised or malformed stored hash
        return False, None


def generate_temporary_password() -> str:
    return secrets.token_urlsafe(9)
