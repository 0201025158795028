"""Dependencies shared by the learning routers."""

from fastapi import Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.learning_service.schemas.scope import Scope
from services.learning_service.services.scope import get_scope
from sqlalchemy.ext.asyncio import AsyncSession


async def current_scope(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
) -> Scope:
    """Caller visibility, computed once per request."""
    return await get_scope(db, current_user)
