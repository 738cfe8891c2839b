"""Request context dependencies for FastAPI."""
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from psyexam.config import IDENTITY_ALGORITHM, IDENTITY_SECRET
from psyexam.models.context import RequestContext, Role

# Bearer tokens issued by the identity provider
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_identity_token(token: str) -> dict | None:
    """Verify and decode an identity token.

    Returns:
        Decoded claims or None if invalid.
    """
    try:
        return jwt.decode(token, IDENTITY_SECRET, algorithms=[IDENTITY_ALGORITHM])
    except JWTError:
        return None


def context_from_claims(claims: dict) -> RequestContext | None:
    """Build a request context from token claims, None if they are incomplete."""
    user_id = claims.get("sub")
    if not user_id:
        return None
    try:
        role = Role(claims.get("role"))
    except ValueError:
        return None
    return RequestContext(
        user_id=str(user_id),
        role=role,
        email=claims.get("email"),
        display_name=claims.get("name"),
    )


async def get_request_context(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> RequestContext:
    """Get the caller's context.

    Raises:
        HTTPException: 401 if the token is missing or invalid, 403 if it
            carries no panel role.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    claims = verify_identity_token(credentials.credentials)
    if claims is None:
        raise _unauthorized("Invalid or expired token")

    context = context_from_claims(claims)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No access to the question panel",
        )
    return context


async def require_admin(
    context: Annotated[RequestContext, Depends(get_request_context)],
) -> RequestContext:
    """Get the caller's context, requiring the admin role."""
    if not context.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return context
