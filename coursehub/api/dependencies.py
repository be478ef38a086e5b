from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from coursehub.core.errors import ForbiddenError
from coursehub.db import engine as db_engine
from coursehub.models.course import Course
from coursehub.models.principal import Principal
from coursehub.repos.bundle import in_memory_repos, pg_repos
from coursehub.services import token_service
from coursehub.services.container import Services, build_services

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def require_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal.

    Used as a FastAPI dependency on every /v1 endpoint.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        claims = token_service.decode_access_token(credentials.credentials)
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
        "Token validated for user=%s roles=%s",
        principal.user_id,
        principal.roles,
    )
    return principal


def require_any_role(roles: set[str]):
    """Dependency factory: demand at least one of the given roles.

    Usage: Depends(require_any_role({"teacher", "admin"}))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_any_role(roles):
            logger.warning(
                "Access denied: user=%s has none of roles=%s",
                principal.user_id,
                roles,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


async def get_services() -> AsyncGenerator[Services, None]:
    """Request-scoped services.

    PostgreSQL repos share one session, so the whole request commits or
    rolls back as a unit; without DATABASE_URL the in-memory repos are
    used directly.

    Domain events raised while handling the request are enqueued only
    after the endpoint returned and the transaction committed; an error
    anywhere before that discards them with the request.
    """
    if db_engine.async_session_factory is None:
        services = build_services(in_memory_repos, defer_events=True)
        yield services
    else:
        async with db_engine.session_scope() as session:
            services = build_services(pg_repos(session), defer_events=True)
            yield services
    await services.events.flush()


def ensure_course_owner(course: Course, principal: Principal) -> None:
    """Catalog edits and payment reviews belong to the course's teacher."""
    if principal.is_admin() or course.teacher_id == principal.user_id:
        return
    logger.warning(
        "Access denied: user=%s does not own course",
        principal.user_id,
        extra={"course_id": str(course.id)},
    )
    raise ForbiddenError("only the course owner may do this", code="not_course_owner")


CurrentUser = Annotated[Principal, Depends(require_user)]
Teacher = Annotated[Principal, Depends(require_any_role({"teacher", "admin"}))]
ServicesDep = Annotated[Services, Depends(get_services)]
