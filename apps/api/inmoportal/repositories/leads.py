"""Lead repository helpers."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.errors import NotFoundError
from ..models.base import utcnow
from ..models.lead import Lead, LeadActivity, LeadSource, LeadStatus


async def get_by_id(session: AsyncSession, lead_id: str) -> Lead:
    """Return a lead by identifier."""

    stmt: Select[tuple[Lead]] = select(Lead).where(Lead.id == lead_id)
    result = await session.execute(stmt)
    lead = result.scalar_one_or_none()
    if lead is None:
        raise NotFoundError("Lead not found")
    return lead


async def create_lead(
    session: AsyncSession,
    *,
    name: str,
    email: str,
    phone: str,
    message: str,
    user_id: str,
    property_id: str | None = None,
    source: LeadSource = LeadSource.WEBSITE,
) -> Lead:
    """Insert a new lead; every lead starts in ``new`` with ``last_contact`` set."""

    lead = Lead(
        name=name,
        email=email,
        phone=phone,
        message=message,
        property_id=property_id,
        user_id=user_id,
        source=source,
        status=LeadStatus.NEW,
        last_contact=utcnow(),
    )
    session.add(lead)
    await session.flush()
    return lead


async def list_leads(
    session: AsyncSession,
    *,
    user_id: str | None = None,
    status: LeadStatus | None = None,
    source: LeadSource | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> list[Lead]:
    """Leads newest first, with the referenced property eagerly loaded."""

    stmt = select(Lead).options(selectinload(Lead.property)).order_by(Lead.created_at.desc())
    if user_id is not None:
        stmt = stmt.where(Lead.user_id == user_id)
    if status is not None:
        stmt = stmt.where(Lead.status == status)
    if source is not None:
        stmt = stmt.where(Lead.source == source)
    if start_date is not None:
        stmt = stmt.where(Lead.created_at >= start_date)
    if end_date is not None:
        stmt = stmt.where(Lead.created_at <= end_date)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_lead(session: AsyncSession, lead: Lead, values: dict[str, Any]) -> Lead:
    for field, value in values.items():
        setattr(lead, field, value)
    await session.flush()
    return lead


async def record_activity(
    session: AsyncSession, *, lead_id: str, activity_type: str, description: str
) -> LeadActivity:
    activity = LeadActivity(lead_id=lead_id, activity_type=activity_type, description=description)
    session.add(activity)
    await session.flush()
    return activity


async def list_activities(session: AsyncSession, lead_id: str) -> list[LeadActivity]:
    stmt = select(LeadActivity).where(LeadActivity.lead_id == lead_id).order_by(LeadActivity.created_at.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())
