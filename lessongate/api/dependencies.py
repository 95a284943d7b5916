from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from lessongate.db.engine import async_session_factory
from lessongate.models.principal import ANONYMOUS, Principal
from lessongate.services import token_service
from lessongate.services.stores import IN_MEMORY_STORES, Stores, pg_stores

logger = logging.getLogger(__name__)

# Tokens are issued by the identity service; tokenUrl only feeds the docs.
# auto_error=False lets visitors through as the anonymous principal.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token", auto_error=False)


def _principal_from_token(raw_token: str) -> Principal:
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug(
        "Token validated for user=%s roles=%s", principal.user_id, principal.roles
    )
    return principal


def optional_principal(
    raw_token: Annotated[str | None, Depends(oauth2_scheme)],
) -> Principal:
    """The caller, or ANONYMOUS when no bearer token was sent.

    A token that is present but invalid is still a 401: visitors must not
    be able to downgrade a broken session into anonymous access silently.
    """
    if not raw_token:
        return ANONYMOUS
    return _principal_from_token(raw_token)


def require_user(
    raw_token: Annotated[str | None, Depends(oauth2_scheme)],
) -> Principal:
    if not raw_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _principal_from_token(raw_token)


def require_staff(
    principal: Annotated[Principal, Depends(require_user)],
) -> Principal:
    if not principal.is_staff():
        logger.warning("Access denied: user=%s is not staff", principal.user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return principal


async def get_stores() -> AsyncGenerator[Stores, None]:
    """Repositories for this request.

    With DATABASE_URL set, a request-scoped session that commits on
    success and rolls back on exception; otherwise the in-memory stores.
    """
    if async_session_factory is None:
        yield IN_MEMORY_STORES
        return
    async with async_session_factory() as session:
        try:
            yield pg_stores(session)
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def request_language(request: Request) -> str:
    """'ar' when Accept-Language prefers Arabic, else 'en'."""
    header = request.headers.get("accept-language", "")
    first = header.split(",", 1)[0].strip().lower()
    return "ar" if first.startswith("ar") else "en"
