"""Company profile lookups."""
from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFoundError
from ..models.company import CompanyProfile


async def fetch_profile(session: AsyncSession) -> CompanyProfile:
    """Return the site's company profile; a missing profile is an error."""

    stmt = select(CompanyProfile).order_by(CompanyProfile.updated_at.desc()).limit(1)
    result = await session.execute(stmt)
    profile = result.scalar_one_or_none()
    if profile is None:
        raise NotFoundError("Company profile not found")
    return profile


async def get_for_user(session: AsyncSession, user_id: str) -> CompanyProfile | None:
    result = await session.execute(select(CompanyProfile).where(CompanyProfile.user_id == user_id))
    return result.scalar_one_or_none()


async def upsert_profile(session: AsyncSession, *, user_id: str, values: dict[str, Any]) -> CompanyProfile:
    """Update the owner's profile in place, or create it on first save."""

    profile = await get_for_user(session, user_id)
    if profile is None:
        profile = CompanyProfile(user_id=user_id, **values)
        session.add(profile)
    else:
        for field, value in values.items():
            setattr(profile, field, value)
    await session.flush()
    return profile
