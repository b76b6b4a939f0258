import uuid
from collections.abc import AsyncGenerator

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rfqhub.common.enums import UserRole
from rfqhub.common.exceptions import AuthorizationError, NotFoundError
from rfqhub.core.orchestration.service import OrchestrationFacade
from rfqhub.db.models.user import User
from rfqhub.db.session import async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_current_user(
    x_user_id: str = Header(..., description="Authenticated user id, set by the gateway"),
    db: AsyncSession = Depends(get_db),
) -> User:
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise AuthorizationError("Invalid X-User-Id header")

    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User")
    if not user.is_active:
        raise AuthorizationError("User account is inactive")

    return user


def require_role(*roles: UserRole):
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in [r.value for r in roles]:
            raise AuthorizationError(
                f"This action requires one of the following roles: {', '.join(r.value for r in roles)}"
            )
        return current_user

    return role_checker


def get_orchestrator(request: Request) -> OrchestrationFacade:
    return request.app.state.orchestrator
