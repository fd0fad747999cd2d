"""Back-office workflows for the signed-in owner."""
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFoundError, PermissionDeniedError
from ..models.property import Property
from ..models.team import TeamMember
from ..repositories import company as company_repo
from ..repositories import images as images_repo
from ..repositories import properties as properties_repo
from ..repositories import team as team_repo
from ..schemas.company import CompanyProfileOut, CompanyProfileWrite, TeamMemberOut, TeamMemberWrite
from ..schemas.properties import PropertySaveRequest, PropertySaveResponse
from .images import persist_images
from .storage import LocalObjectStorage, delete_image

logger = logging.getLogger(__name__)


def _ensure_owner(row: Property | TeamMember, user_id: str) -> None:
    if row.user_id != user_id:
        raise PermissionDeniedError("Record belongs to another account")


def _listing_values(request: PropertySaveRequest) -> dict:
    return request.listing.model_dump(mode="json")


async def save_property(
    session: AsyncSession,
    request: PropertySaveRequest,
    *,
    user_id: str,
    property_id: str | None = None,
) -> PropertySaveResponse:
    """Create or update a listing and store its pending images."""

    values = _listing_values(request)
    if property_id is None:
        prop = await properties_repo.create_property(session, user_id=user_id, values=values)
    else:
        prop = await properties_repo.get_property(session, property_id)
        _ensure_owner(prop, user_id)
        await properties_repo.update_property(session, prop, values)

    images = await persist_images(session, property_id=prop.id, user_id=user_id, slots=request.images)
    await session.commit()
    logger.info("Saved property %s with %d images", prop.id, len(images))
    return PropertySaveResponse(id=prop.id, images=images)


async def delete_property(
    session: AsyncSession, storage: LocalObjectStorage, property_id: str, *, user_id: str
) -> None:
    prop = await properties_repo.get_property(session, property_id)
    _ensure_owner(prop, user_id)
    urls = [image.image_url for image in await images_repo.list_images(session, property_id)]
    await properties_repo.delete_property(session, prop)
    await session.commit()
    for url in urls:
        await delete_image(storage, url)


async def upsert_company_profile(
    session: AsyncSession, payload: CompanyProfileWrite, *, user_id: str
) -> CompanyProfileOut:
    profile = await company_repo.upsert_profile(session, user_id=user_id, values=payload.model_dump())
    await session.commit()
    return CompanyProfileOut.model_validate(profile)


async def get_company_profile(session: AsyncSession, *, user_id: str) -> CompanyProfileOut:
    profile = await company_repo.get_for_user(session, user_id)
    if profile is None:
        raise NotFoundError("Company profile not found")
    return CompanyProfileOut.model_validate(profile)


async def list_team(session: AsyncSession, *, user_id: str) -> list[TeamMemberOut]:
    return [TeamMemberOut.model_validate(member) for member in await team_repo.list_for_owner(session, user_id)]


async def create_team_member(session: AsyncSession, payload: TeamMemberWrite, *, user_id: str) -> TeamMemberOut:
    values = payload.model_dump()
    if "order_number" not in payload.model_fields_set:
        values["order_number"] = len(await team_repo.list_for_owner(session, user_id))
    member = await team_repo.create_member(session, user_id=user_id, values=values)
    await session.commit()
    return TeamMemberOut.model_validate(member)


async def update_team_member(
    session: AsyncSession, member_id: str, payload: TeamMemberWrite, *, user_id: str
) -> TeamMemberOut:
    member = await team_repo.get_member(session, member_id)
    _ensure_owner(member, user_id)
    await team_repo.update_member(session, member, payload.model_dump(exclude_unset=True))
    await session.commit()
    return TeamMemberOut.model_validate(member)


async def delete_team_member(session: AsyncSession, member_id: str, *, user_id: str) -> None:
    member = await team_repo.get_member(session, member_id)
    _ensure_owner(member, user_id)
    await team_repo.delete_member(session, member)
    await session.commit()


async def reorder_team_member(
    session: AsyncSession, member_id: str, direction: str, *, user_id: str
) -> list[TeamMemberOut]:
    """Swap a member with its neighbour, then renumber everyone 0..n-1.

    Moving the first member up or the last one down leaves the order as is.
    """

    members = await team_repo.list_for_owner(session, user_id)
    index = next((i for i, member in enumerate(members) if member.id == member_id), None)
    if index is None:
        raise NotFoundError("Team member not found")

    target = index - 1 if direction == "up" else index + 1
    if 0 <= target < len(members):
        members[index], members[target] = members[target], members[index]
        for position, member in enumerate(members):
            if member.order_number != position:
                member.order_number = position
        await session.flush()
        await session.commit()
    return [TeamMemberOut.model_validate(member) for member in members]
