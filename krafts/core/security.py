"""Security utilities - JWT issuing/verification and OTP digests."""

import hashlib
import hmac
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from krafts.core.config import settings

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_SIGNUP = "signup"


def _encode(claims: dict[str, Any], expire: datetime) -> str:
    to_encode = {
        **claims,
        "exp": expire,
        "iat": datetime.now(UTC),
    }
    return jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )


def create_access_token(
    subject: str,
    expires_delta: timedelta | None = None,
    additional_claims: dict[str, Any] | None = None,
) -> str:
    """Create JWT access token for a registered user."""
    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(
            days=settings.jwt_access_token_expire_days
        )

    claims: dict[str, Any] = {"sub": subject, "type": TOKEN_TYPE_ACCESS}
    if additional_claims:
        claims.update(additional_claims)
    return _encode(claims, expire)


def create_signup_token(
    phone: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create short-lived JWT proving the phone number passed OTP verification."""
    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(
            minutes=settings.jwt_signup_token_expire_minutes
        )

    return _encode({"sub": phone, "phone": phone, "type": TOKEN_TYPE_SIGNUP}, expire)


def verify_token(token: str) -> dict[str, Any] | None:
    """Verify JWT token and return payload."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError:
        return None


def verify_signup_token(token: str) -> str | None:
    """Return the verified phone number carried by a signup token."""
    payload = verify_token(token)
    if payload is None or payload.get("type") != TOKEN_TYPE_SIGNUP:
        return None
    return payload.get("phone")


def hash_otp(phone: str, otp: str) -> str:
    """Keyed digest of an OTP, bound to the phone number it was sent to."""
    message = f"{phone}:{otp}".encode()
    return hmac.new(settings.secret_key.encode(), message, hashlib.sha256).hexdigest()


def otp_matches(phone: str, otp: str, digest: str) -> bool:
    """Constant-time comparison of a submitted OTP against a stored digest."""
    return hmac.compare_digest(hash_otp(phone, otp), digest)
