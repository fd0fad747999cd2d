"""Account lookups."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User


async def get_email(session: AsyncSession, user_id: str) -> str | None:
    result = await session.execute(select(User.email).where(User.id == user_id))
    return result.scalar_one_or_none()

