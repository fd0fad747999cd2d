"""Lead capture and lead management workflows."""
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import settings
from ..core.errors import PermissionDeniedError
from ..models.base import utcnow
from ..models.lead import LeadSource, LeadStatus
from ..repositories import company as company_repo
from ..repositories import leads as leads_repo
from ..repositories import properties as properties_repo
from ..schemas.leads import LeadCreate, LeadOut, WhatsAppLeadRequest, WhatsAppLeadResponse
from .catalog import to_lead_out
from .functions import FunctionsClient
from .notifications import schedule_lead_notifications
from .whatsapp import generate_whatsapp_link, property_message

logger = logging.getLogger(__name__)

WHATSAPP_PLACEHOLDER_NAME = "Cliente de WhatsApp"
WHATSAPP_PLACEHOLDER_EMAIL = "pendiente@ejemplo.com"
WHATSAPP_PLACEHOLDER_PHONE = "pendiente"


async def create_lead(session: AsyncSession, payload: LeadCreate) -> LeadOut:
    """Insert the lead, commit, and return it with its property summary."""

    lead = await leads_repo.create_lead(
        session,
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        message=payload.message,
        property_id=payload.property_id,
        user_id=payload.user_id,
        source=payload.source,
    )
    await session.commit()

    prop = None
    if lead.property_id:
        try:
            prop = await properties_repo.get_property(session, lead.property_id)
        except LookupError:
            logger.info("Lead %s references missing property %s", lead.id, lead.property_id)
    return to_lead_out(lead, prop)


async def submit_lead(
    payload: LeadCreate,
    *,
    session_factory: async_sessionmaker[AsyncSession],
    functions: FunctionsClient,
) -> LeadOut:
    """Create a lead and fire its emails without waiting for them."""

    async with session_factory() as session:
        lead = await create_lead(session, payload)
    schedule_lead_notifications(lead, session_factory=session_factory, functions=functions)
    return lead


async def create_whatsapp_lead(
    session: AsyncSession, property_id: str, request: WhatsAppLeadRequest
) -> WhatsAppLeadResponse:
    """Record a WhatsApp click as a lead and hand back the chat link."""

    prop = await properties_repo.get_property(session, property_id)
    message = (
        f'Contacto iniciado vía WhatsApp para la propiedad "{prop.title}". '
        f"Referrer: {request.referrer or ''}. User agent: {request.user_agent or ''}"
    )
    lead = await create_lead(
        session,
        LeadCreate(
            name=WHATSAPP_PLACEHOLDER_NAME,
            email=WHATSAPP_PLACEHOLDER_EMAIL,
            phone=WHATSAPP_PLACEHOLDER_PHONE,
            message=message,
            property_id=prop.id,
            user_id=request.user_id,
            source=LeadSource.WHATSAPP,
        ),
    )

    profile = await company_repo.get_for_user(session, prop.user_id)
    link = None
    if profile is not None and profile.whatsapp_number:
        text = property_message(
            property_id=prop.id,
            title=prop.title,
            operation_type=prop.operation_type,
            price=prop.price,
            currency=prop.currency,
            website_url=settings.website_url,
        )
        link = generate_whatsapp_link(profile.whatsapp_number, text)
    return WhatsAppLeadResponse(lead_id=lead.id, whatsapp_link=link)


async def _owned_lead(session: AsyncSession, lead_id: str, user_id: str):
    lead = await leads_repo.get_by_id(session, lead_id)
    if lead.user_id != user_id:
        raise PermissionDeniedError("Lead belongs to another account")
    return lead


async def update_status(session: AsyncSession, lead_id: str, status: LeadStatus, user_id: str) -> LeadOut:
    """Move a lead through the pipeline; touching it refreshes ``last_contact``."""

    lead = await _owned_lead(session, lead_id, user_id)
    await leads_repo.update_lead(session, lead, {"status": status, "last_contact": utcnow()})
    await session.commit()
    return to_lead_out(lead)


async def update_notes(session: AsyncSession, lead_id: str, notes: str, user_id: str) -> LeadOut:
    lead = await _owned_lead(session, lead_id, user_id)
    await leads_repo.update_lead(session, lead, {"notes": notes})
    await session.commit()
    return to_lead_out(lead)
