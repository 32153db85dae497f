"""Password hashing and login token issuance."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

NO_OF_ROUNDS = 10
# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """Hash ``password`` with a fresh salt; the salt is embedded in the result."""
    salt = bcrypt.gensalt(rounds=NO_OF_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """Check ``password`` against a stored hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


def issue_token(
    subject: str,
    secret: str,
    algorithm: str = "HS256",
    expires_minutes: Optional[int] = None,
) -> str:
    now = datetime.now(timezone.utc)
    payload = {"id": subject, "iat": now}
    if expires_minutes:
        payload["exp"] = now + timedelta(minutes=expires_minutes)
    return jwt.encode(payload, secret, algorithm=algorithm)
