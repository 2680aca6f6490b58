"""
Security utilities for authentication.

Identity-provider integration is external: the service only verifies the
bearer JWTs it issues and reads their claims.
"""
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from fastapi import HTTPException, status
from cipherpost.config import settings


class SecurityException(HTTPException):
    """Custom exception for security-related errors."""
    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


def extract_token_from_header(authorization: str) -> str:
    """
    Extract the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        SecurityException: If the header is malformed
    """
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise SecurityException("Invalid authorization header format")
    return token.strip()


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed JWT.

    Used by tests and local tooling; production tokens come from the identity provider.

    Args:
        data: Claims to encode (at least ``sub``)
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=settings.jwt_expiration_hours))
    to_encode.update({"exp": expire, "iat": now})
    if settings.jwt_audience and "aud" not in to_encode:
        to_encode["aud"] = settings.jwt_audience

    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT.

    Args:
        token: JWT token string

    Returns:
        Decoded claims; ``sub`` is guaranteed to be present

    Raises:
        SecurityException: If token is invalid, expired, or has no subject
    """
    options = {"require": ["exp", "sub"]}
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience or None,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise SecurityException("Token has expired")
    except jwt.InvalidTokenError:
        raise SecurityException("Invalid token")

    if not payload.get("sub"):
        raise SecurityException("Token missing subject claim")
    return payload
