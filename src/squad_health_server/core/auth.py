"""Request identity and role guards.

Authentication happens upstream: the gateway forwards the authenticated
user's id in ``X-User-ID``. Realtime clients also send ``X-Socket-ID`` so
events they cause are not echoed back to the same connection.
"""

from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from litestar import Request
from litestar.connection import ASGIConnection
from litestar.exceptions import NotAuthorizedException, PermissionDeniedException
from litestar.handlers import BaseRouteHandler
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.models.user import Role, User

logger = structlog.get_logger()

USER_ID_HEADER = "X-User-ID"
SOCKET_ID_HEADER = "X-Socket-ID"

Guard = Callable[[ASGIConnection[Any, Any, Any, Any], BaseRouteHandler], Awaitable[None]]


def user_id_from(connection: ASGIConnection[Any, Any, Any, Any]) -> int:
    """Read the authenticated user id forwarded by the gateway.

    Raises:
        NotAuthorizedException: If the header is missing or malformed
    """
    raw = connection.headers.get(USER_ID_HEADER)
    if not raw:
        raise NotAuthorizedException(f"Missing {USER_ID_HEADER} header")
    try:
        return int(raw)
    except ValueError:
        raise NotAuthorizedException(f"Invalid {USER_ID_HEADER} header") from None


def require_roles(*roles: Role) -> Guard:
    """Build a guard admitting only users holding one of ``roles``.

    Args:
        roles: Roles allowed through; none means any known user

    Returns:
        Litestar guard
    """

    async def role_guard(connection: ASGIConnection[Any, Any, Any, Any], _: BaseRouteHandler) -> None:
        user_id = user_id_from(connection)

        async with connection.app.state.session_maker() as session:
            role = await session.scalar(select(User.role).where(User.id == user_id))

        if role is None:
            logger.warning("Request from unknown user", user_id=user_id)
            raise NotAuthorizedException("Unknown user")

        if roles and role not in roles:
            logger.info(
                "Role not permitted",
                user_id=user_id,
                role=role.value,
                path=connection.url.path,
            )
            raise PermissionDeniedException("Access denied")

    return role_guard


async def provide_current_user(request: Request[Any, Any, Any], session: AsyncSession) -> User:
    """Load the authenticated user in the request's session."""
    user_id = user_id_from(request)
    user = await session.get(User, user_id)
    if user is None:
        raise NotAuthorizedException("Unknown user")
    return user


def provide_socket_id(request: Request[Any, Any, Any]) -> str | None:
    """Socket id of the client's realtime connection, if it sent one."""
    return request.headers.get(SOCKET_ID_HEADER) or None
