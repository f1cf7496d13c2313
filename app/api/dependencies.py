"""Bearer-token guards shared by every router.

Tokens are minted by the user directory; this service only verifies
them.  The JWT subject becomes Principal.user_id, which the progress
routes use as the student_id.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.models.principal import Principal
from app.services import token_service

logger = logging.getLogger(__name__)

# tokenUrl only feeds the OpenAPI docs; the directory owns the real endpoint
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Validate the bearer token and return the caller."""
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthorized("Invalid token") from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug("Caller user=%s roles=%s", principal.user_id, sorted(principal.roles))
    return principal


def _role_guard(
    allowed: Callable[[Principal], bool], describe: str
) -> Callable[[Principal], Principal]:
    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not allowed(principal):
            logger.warning(
                "Access denied: user=%s needs %s", principal.user_id, describe
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


def require_role(role: str) -> Callable[[Principal], Principal]:
    """Usage: Depends(require_role("admin"))"""
    return _role_guard(lambda p: p.has_role(role), f"role={role}")


def require_any_role(
    roles: set[str] | frozenset[str],
) -> Callable[[Principal], Principal]:
    """Usage: Depends(require_any_role(STAFF_ROLES))"""
    return _role_guard(lambda p: p.has_any_role(roles), f"one of {sorted(roles)}")
