"""Password and client secret hashing.

User passwords are stored as ``pbkdf2_sha256$<iterations>$<salt>$<digest>`` with a random
per-password salt. Client secrets are high-entropy random strings, so a plain SHA-256
digest is enough for them.
"""

import hashlib
import hmac
import logging
import secrets
from base64 import b64decode, b64encode

logger = logging.getLogger(__name__)

ALGORITHM = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 260000
SALT_BYTES = 16


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def hash_password(password: str, iterations: int = DEFAULT_ITERATIONS) -> str:
    """Generate a salted hash of a password."""
    salt = secrets.token_bytes(SALT_BYTES)
    digest = _derive(password, salt, iterations)
    return "$".join(
        [
            ALGORITHM,
            str(iterations),
            b64encode(salt).decode("ascii"),
            b64encode(digest).decode("ascii"),
        ]
    )


def check_password(password: str, encoded: str) -> bool:
    """Check a password against a stored hash. Malformed hashes never match."""
    try:
        algorithm, iterations, salt, digest = encoded.split("$")
        if algorithm != ALGORITHM:
            logger.warning("Unsupported password hash algorithm: %s", algorithm)
            return False
        expected = b64decode(digest)
        actual = _derive(password, b64decode(salt), int(iterations))
    except ValueError:
        logger.warning("Malformed password hash")
        return False
    return hmac.compare_digest(expected, actual)


def hash_client_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def check_client_secret(secret: str, secret_hash: str) -> bool:
    return hmac.compare_digest(hash_client_secret(secret), secret_hash)


def generate_secret(nbytes: int = 32) -> str:
    return secrets.token_urlsafe(nbytes)
