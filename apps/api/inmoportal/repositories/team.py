"""Team member rows."""
from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFoundError
from ..models.team import TeamMember


async def list_active(session: AsyncSession) -> list[TeamMember]:
    stmt = (
        select(TeamMember)
        .where(TeamMember.is_active.is_(True))
        .order_by(TeamMember.order_number.asc(), TeamMember.created_at.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_for_owner(session: AsyncSession, user_id: str) -> list[TeamMember]:
    stmt = (
        select(TeamMember)
        .where(TeamMember.user_id == user_id)
        .order_by(TeamMember.order_number.asc(), TeamMember.created_at.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_member(session: AsyncSession, member_id: str) -> TeamMember:
    result = await session.execute(select(TeamMember).where(TeamMember.id == member_id))
    member = result.scalar_one_or_none()
    if member is None:
        raise NotFoundError("Team member not found")
    return member


async def create_member(session: AsyncSession, *, user_id: str, values: dict[str, Any]) -> TeamMember:
    member = TeamMember(user_id=user_id, **values)
    session.add(member)
    await session.flush()
    return member


async def update_member(session: AsyncSession, member: TeamMember, values: dict[str, Any]) -> TeamMember:
    for field, value in values.items():
        setattr(member, field, value)
    await session.flush()
    return member


async def delete_member(session: AsyncSession, member: TeamMember) -> None:
    await session.delete(member)
    await session.flush()
