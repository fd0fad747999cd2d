"""Data Access Layer reads shaped into response models.

Every property that leaves this module carries an ``images`` list (possibly
empty) and a ``cover_image`` picked for cards.
"""
from __future__ import annotations

from typing import Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..models.base import as_dict
from ..models.lead import Lead
from ..models.property import Property, PropertyImage
from ..repositories import company as company_repo
from ..repositories import images as images_repo
from ..repositories import leads as leads_repo
from ..repositories import properties as properties_repo
from ..repositories import team as team_repo
from ..schemas.company import CompanyProfileOut, TeamMemberOut
from ..schemas.leads import LeadFilters, LeadOut, LeadPropertySummary
from ..schemas.properties import (
    CompanyContact,
    DashboardStats,
    PropertyDetail,
    PropertyImageOut,
    PropertyOut,
    SearchFilters,
)
from .whatsapp import generate_whatsapp_link, property_message


def select_card_image(images: Sequence[PropertyImageOut], fallback: str | None = None) -> str:
    """Primary image, else the first one, else the fallback URL."""

    for image in images:
        if image.is_primary:
            return image.image_url
    if images:
        return images[0].image_url
    return fallback if fallback is not None else settings.fallback_image_url


def to_property_out(prop: Property, images: Iterable[PropertyImage] | None) -> PropertyOut:
    image_models = [PropertyImageOut.model_validate(image) for image in images or []]
    return PropertyOut.model_validate(
        {**as_dict(prop), "images": image_models, "cover_image": select_card_image(image_models)}
    )


async def attach_images(session: AsyncSession, rows: Sequence[Property]) -> list[PropertyOut]:
    grouped = await images_repo.images_by_property(session, [row.id for row in rows])
    return [to_property_out(row, grouped.get(row.id)) for row in rows]


async def fetch_featured_properties(session: AsyncSession) -> list[PropertyOut]:
    return await attach_images(session, await properties_repo.list_featured(session))


async def fetch_properties_by_category(session: AsyncSession, property_type: str) -> list[PropertyOut]:
    return await attach_images(session, await properties_repo.list_by_category(session, property_type))


async def search_filtered_properties(
    session: AsyncSession, property_type: str, filters: SearchFilters
) -> list[PropertyOut]:
    rows = await properties_repo.search_properties(session, property_type, filters)
    return await attach_images(session, rows)


async def fetch_property_by_id(session: AsyncSession, property_id: str) -> PropertyDetail:
    """Property with images, the owner's contact card and a WhatsApp link."""

    prop = await properties_repo.get_property(session, property_id)
    images = await images_repo.list_images(session, property_id)
    base = to_property_out(prop, images)

    profile_row = await company_repo.get_for_user(session, prop.user_id)
    profile = CompanyContact.model_validate(profile_row) if profile_row is not None else None
    whatsapp_link = None
    if profile is not None and profile.whatsapp_number:
        message = property_message(
            property_id=prop.id,
            title=prop.title,
            operation_type=prop.operation_type,
            price=prop.price,
            currency=prop.currency,
            website_url=settings.website_url,
        )
        whatsapp_link = generate_whatsapp_link(profile.whatsapp_number, message)

    return PropertyDetail.model_validate(
        {**base.model_dump(), "profile": profile, "whatsapp_link": whatsapp_link}
    )


async def fetch_company_profile(session: AsyncSession) -> CompanyProfileOut:
    return CompanyProfileOut.model_validate(await company_repo.fetch_profile(session))


async def fetch_team_members(session: AsyncSession) -> list[TeamMemberOut]:
    return [TeamMemberOut.model_validate(member) for member in await team_repo.list_active(session)]


def to_lead_out(lead: Lead, prop: Property | None = None) -> LeadOut:
    summary = LeadPropertySummary.model_validate(prop) if prop is not None else None
    return LeadOut.model_validate({**as_dict(lead), "property": summary})


async def fetch_leads(session: AsyncSession, user_id: str | None, filters: LeadFilters) -> list[LeadOut]:
    rows = await leads_repo.list_leads(
        session,
        user_id=user_id,
        status=filters.status,
        source=filters.source,
        start_date=filters.start_date,
        end_date=filters.end_date,
    )
    return [to_lead_out(lead, lead.property) for lead in rows]


async def dashboard_stats(session: AsyncSession, user_id: str) -> DashboardStats:
    total = await properties_repo.count_for_owner(session, user_id)
    featured = await properties_repo.count_for_owner(session, user_id, featured_only=True)
    recent = await properties_repo.list_for_owner(session, user_id, limit=properties_repo.RECENT_LIMIT)
    return DashboardStats(
        total_properties=total,
        featured_properties=featured,
        recent_properties=await attach_images(session, recent),
    )
