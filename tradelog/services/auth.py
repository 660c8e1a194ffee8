"""Authentication utilities: PIN hashing, JWT tokens, webhook tokens."""

from datetime import timedelta

import bcrypt
from jose import JWTError, jwt

from tradelog.config import settings
from tradelog.services.encryption import encrypt, decrypt
from tradelog.utils.dates import utcnow

WEBHOOK_TOKEN_PREFIX = "webhook:"


def hash_pin(pin: str) -> str:
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_pin(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


def create_access_token(subject: str) -> str:
    expire = utcnow() + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {"sub": subject, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str | None:
    """Decode JWT and return the subject (username). Returns None on failure."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return payload.get("sub")
    except JWTError:
        return None


def create_webhook_token(user_id: int) -> str:
    """Opaque token that alert services put in the webhook URL."""
    return encrypt(f"{WEBHOOK_TOKEN_PREFIX}{user_id}")


def resolve_webhook_token(token: str) -> int | None:
    """Owner id for a webhook token, or None if it is forged or malformed."""
    plaintext = decrypt(token)
    if plaintext is None or not plaintext.startswith(WEBHOOK_TOKEN_PREFIX):
        return None
    user_id = plaintext[len(WEBHOOK_TOKEN_PREFIX):]
    return int(user_id) if user_id.isdigit() else None
