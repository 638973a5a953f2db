"""JWT authentication middleware."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
import structlog
from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from insightguard.core.domain_types import AuthenticatedUser

logger = structlog.get_logger()

# Use Bearer token authentication
bearer_scheme = HTTPBearer(auto_error=False)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 15


class TokenError(Exception):
    """Raised when token validation fails."""

    pass


def create_access_token(
    user_id: str,
    secret_key: str,
    role: str = "viewer",
    tenant_id: str = "",
    tenant_type: str = "internal",
    issuer: str | None = None,
    expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
) -> str:
    """Create a short-lived access token.

    Args:
        user_id: User identifier, stored as the subject claim.
        secret_key: HMAC signing key.
        role: Caller role.
        tenant_id: Tenant identifier.
        tenant_type: internal or external.
        issuer: Optional issuer claim.
        expires_minutes: Token lifetime.

    Returns:
        Encoded JWT string
    """
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": user_id,
        "role": role,
        "tenant_id": tenant_id,
        "tenant_type": tenant_type,
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
        "iat": int(now.timestamp()),
    }
    if issuer:
        payload["iss"] = issuer
    return jwt.encode(payload, secret_key, algorithm=ALGORITHM)


def decode_token(token: str, secret_key: str, issuer: str | None = None) -> AuthenticatedUser:
    """Decode and validate a JWT token.

    Cognito-style tokens carry the role in "cognito:groups"; the first
    group wins over a plain "role" claim.

    Args:
        token: Encoded JWT string
        secret_key: HMAC signing key.
        issuer: Required issuer, if configured.

    Returns:
        The authenticated caller.

    Raises:
        TokenError: If token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            secret_key,
            algorithms=[ALGORITHM],
            issuer=issuer,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired") from None
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}") from None

    groups = payload.get("cognito:groups") or []
    if isinstance(groups, str):
        # Some issuers flatten a single group to a bare string.
        groups = [groups]
    elif not isinstance(groups, list):
        groups = []
    role = groups[0] if groups else payload.get("role", "viewer")

    return AuthenticatedUser(
        user_id=str(payload["sub"]),
        role=str(role),
        tenant_id=str(payload.get("tenant_id", "")),
        tenant_type=str(payload.get("tenant_type", "internal")),
    )


async def verify_jwt(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
) -> AuthenticatedUser:
    """Verify JWT token and return the caller.

    Args:
        request: The current request.
        credentials: Bearer token credentials.

    Returns:
        AuthenticatedUser resolved from the token claims.

    Raises:
        HTTPException: 401 if token is missing or invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = decode_token(
            credentials.credentials,
            request.app.state.jwt_secret_key,
            getattr(request.app.state, "jwt_issuer", None),
        )
    except TokenError as e:
        logger.warning("jwt_validation_failed", error=str(e))
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    # Store in request state for downstream use
    request.state.user = user

    logger.debug(
        "jwt_verified",
        user_id=user.user_id,
        tenant_id=user.tenant_id,
        role=user.role,
    )

    return user
