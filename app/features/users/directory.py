"""
User directory lookups.

Sponsors reference users by id only; these helpers resolve those ids.
"""
from collections.abc import Iterable
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.users.models import User


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Return the user with ``user_id``, or None if the directory has no such user."""
    result = await db.execute(
        select(User).where(User.id == user_id)
    )
    return result.scalar_one_or_none()


async def get_users_by_ids(db: AsyncSession, user_ids: Iterable[str]) -> dict[str, User]:
    """
    Resolve many user ids at once.
    
    Returns:
        Mapping of user id to User; ids with no matching user are absent.
    """
    ids = list(set(user_ids))
    if not ids:
        return {}
    result = await db.execute(
        select(User).where(User.id.in_(ids))
    )
    return {user.id: user for user in result.scalars().all()}
