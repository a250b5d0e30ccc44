from __future__ import annotations

from passlib.context import CryptContext
from passlib.exc import UnknownHashError

# pbkdf2_sha256 signs new hashes; bcrypt hashes from older imports still verify
_pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return _pwd_context.verify(password, password_hash)
    except (UnknownHashError, ValueError):
        return False


def password_looks_hashed(password: str) -> bool:
    return _pwd_context.identify(password) is not None
