# rapid_assessment/services/auth.py
"""
Analyst credentials and session tokens.

Stored password hashes look like ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``.
The iteration count travels with each hash, so raising
``PASSWORD_HASH_ITERATIONS`` only affects new hashes; older ones still verify
and ``needs_rehash`` tells the login route to upgrade them.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

from jose import jwt
from pydantic import BaseModel

from rapid_assessment.core.config import settings

HASH_SCHEME = "pbkdf2_sha256"
ALGORITHM = "HS256"


class TokenData(BaseModel):
    sub: Optional[str] = None


class _StoredHash(NamedTuple):
    iterations: int
    salt: str
    digest: str


def _derive(password: str, salt: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac("sha256", (password or "").encode("utf-8"), salt.encode("utf-8"), iterations).hex()


def _parse(hashed: str) -> Optional[_StoredHash]:
    parts = (hashed or "").split("$")
    if len(parts) != 4 or parts[0] != HASH_SCHEME or not parts[1].isdigit():
        return None
    return _StoredHash(int(parts[1]), parts[2], parts[3])


def hash_password(password: str, iterations: Optional[int] = None) -> str:
    rounds = iterations or settings.PASSWORD_HASH_ITERATIONS
    salt = secrets.token_hex(16)
    return "$".join((HASH_SCHEME, str(rounds), salt, _derive(password, salt, rounds)))


def verify_password(plain: str, hashed: str) -> bool:
    stored = _parse(hashed)
    if stored is None:
        return False
    return secrets.compare_digest(_derive(plain, stored.salt, stored.iterations), stored.digest)


def needs_rehash(hashed: str) -> bool:
    stored = _parse(hashed)
    return stored is None or stored.iterations < settings.PASSWORD_HASH_ITERATIONS


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    issued = datetime.now(timezone.utc)
    lifetime = expires_delta if expires_delta is not None else timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode({"sub": subject, "iat": issued, "exp": issued + lifetime},
                      settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> TokenData:
    """Raises jose.JWTError on a bad signature or an expired token."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    return TokenData(sub=payload.get("sub"))
