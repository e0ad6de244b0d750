"""
Identity token handling and the actor context passed into every operation.

Tokens are issued by the external identity provider; this module only
verifies them and turns their claims into an ``ActorContext``. Token
creation is provided for local tooling and tests.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt

from printshop.core.config import get_settings
from printshop.core.logging import get_logger
from printshop.services.orders.enums import AppRole

logger = get_logger(__name__)

ROLE_CLAIM = "app_role"
COMPANY_CLAIM = "company_id"


class SecurityError(Exception):
    """Base exception for security-related errors."""

    def __init__(self, message: str, code: str, **context):
        super().__init__(message)
        self.code = code
        self.context = context


class TokenError(SecurityError):
    """Exception raised for token-related errors."""

    pass


@dataclass(frozen=True)
class ActorContext:
    """Who is performing an operation, as asserted by the identity provider."""

    user_id: UUID
    role: AppRole
    company_id: UUID

    def has_role(self, *roles: AppRole) -> bool:
        return self.role in roles


def create_access_token(
    user_id: UUID,
    role: AppRole,
    company_id: UUID,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token carrying actor claims.

    Args:
        user_id: Subject of the token
        role: Application role claim
        company_id: Tenant claim
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    claims = {
        "sub": str(user_id),
        ROLE_CLAIM: role.value,
        COMPANY_CLAIM: str(company_id),
        "iat": now,
        "exp": now + expires_delta,
        "type": "access",
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT token.

    Args:
        token: JWT token string to decode

    Returns:
        Dictionary of decoded token claims

    Raises:
        TokenError: If token is invalid, expired, or malformed
    """
    if not token:
        logger.warning("Attempted to decode empty token")
        raise TokenError("Token cannot be empty", code="EMPTY_TOKEN")

    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError as e:
        logger.warning("Token has expired", error=str(e))
        raise TokenError("Token has expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        logger.warning("Invalid token", error=str(e), error_type=type(e).__name__)
        raise TokenError("Invalid token", code="INVALID_TOKEN") from e

    logger.debug(
        "Token decoded successfully",
        subject=payload.get("sub"),
        role=payload.get(ROLE_CLAIM),
    )
    return payload


def actor_from_token(token: str) -> ActorContext:
    """
    Build the actor context from a bearer token.

    Args:
        token: JWT issued by the identity provider

    Returns:
        ActorContext for the token's subject

    Raises:
        TokenError: If the token is invalid or lacks required claims
    """
    payload = decode_token(token)

    missing = [
        claim for claim in ("sub", ROLE_CLAIM, COMPANY_CLAIM) if not payload.get(claim)
    ]
    if missing:
        logger.warning("Token missing required claims", missing=missing)
        raise TokenError(
            "Token is missing required claims",
            code="MISSING_CLAIMS",
            missing=missing,
        )

    try:
        return ActorContext(
            user_id=UUID(payload["sub"]),
            role=AppRole.from_string(payload[ROLE_CLAIM]),
            company_id=UUID(payload[COMPANY_CLAIM]),
        )
    except ValueError as e:
        logger.warning("Token claims are malformed", error=str(e))
        raise TokenError(
            "Token claims are malformed", code="INVALID_CLAIMS"
        ) from e
