"""
Password hashing, password policy and JWT signing primitives.
"""
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from email_validator import EmailNotValidError, validate_email
from passlib.context import CryptContext

from app.core.exceptions import UnauthorizedException, ValidationException

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

PASSWORD_MIN_LENGTH = 7
PASSWORD_SYMBOLS = "@$!%*?&"

# (pattern, human readable rule) checked in order
_PASSWORD_RULES = [
    (re.compile(r"[a-z]"), "one lowercase letter"),
    (re.compile(r"[A-Z]"), "one uppercase letter"),
    (re.compile(r"\d"), "one digit"),
    (re.compile(f"[{re.escape(PASSWORD_SYMBOLS)}]"), f"one symbol from {PASSWORD_SYMBOLS}"),
]


def validate_password_policy(password: str) -> None:
    """
    Enforce the account password policy.

    Raises:
        ValidationException: naming the first rule the password breaks
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationException(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        )
    for pattern, rule in _PASSWORD_RULES:
        if not pattern.search(password):
            raise ValidationException(f"Password must contain at least {rule}")


def normalize_email(email: str) -> str:
    """
    Canonical form of an email address, as stored on the user row.

    The domain is lower-cased, the local part is kept as typed.

    Raises:
        ValidationException: if the address is not syntactically valid
    """
    try:
        return validate_email(email.strip(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationException(f"Invalid email: {e}")


class PasswordHasher:
    """Thin wrapper over a passlib bcrypt context."""

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, hashed: str) -> bool:
        if not hashed:
            return False
        return self._context.verify(password, hashed)


def create_token(
    subject: str,
    token_type: str,
    secret: str,
    algorithm: str,
    expires_delta: timedelta,
    claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Sign a JWT for a user.

    Every token carries a random jti so two tokens issued for the same
    user within the same second are still distinct strings.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
        "jti": uuid.uuid4().hex,
    }
    if claims:
        payload.update(claims)
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, token_type: str, secret: str, algorithm: str) -> Dict[str, Any]:
    """
    Verify a JWT signature, expiry and type.

    Raises:
        UnauthorizedException: if the token is expired, tampered with or of the wrong type
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedException(f"{token_type.capitalize()} token has expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedException(f"Invalid {token_type} token")

    if payload.get("type") != token_type or not payload.get("sub"):
        raise UnauthorizedException(f"Invalid {token_type} token")
    return payload
