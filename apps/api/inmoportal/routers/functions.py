"""Server-side email functions invoked by notification dispatch."""
from __future__ import annotations

import logging
import smtplib

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import settings
from ..repositories import leads as leads_repo
from ..schemas.functions import FunctionResult, LeadAutoResponsePayload, NewLeadNotificationPayload
from ..services.mailer import Mailer, render_template
from .deps import get_email_sender, get_session_factory

logger = logging.getLogger(__name__)

router = APIRouter()

NOTIFICATION_SENT = "email_notification_sent"


def _missing_fields() -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Missing required fields"})


def _classify_smtp_error(exc: Exception) -> tuple[str, str]:
    """Map a delivery failure to an error type and a configuration hint."""

    text = str(exc)
    if isinstance(exc, smtplib.SMTPAuthenticationError) or "Invalid login" in text:
        return "invalid_credentials", "Check SMTP_USERNAME and SMTP_PASSWORD"
    if isinstance(exc, smtplib.SMTPSenderRefused) or "verified Sender" in text:
        return "unverified_sender", "SMTP_FROM must match a verified sender address"
    if isinstance(exc, (smtplib.SMTPConnectError, ConnectionError)) or "Cannot connect" in text:
        return "connection_failed", "Check SMTP_HOST and SMTP_PORT"
    return "unknown_error", "Review the SMTP configuration"


def _delivery_failed(exc: Exception) -> JSONResponse:
    error_type, hint = _classify_smtp_error(exc)
    logger.error("Email delivery failed (%s): %s", error_type, exc)
    return JSONResponse(status_code=500, content={"error": str(exc), "error_type": error_type, "hint": hint})


async def _record_sent(session_factory: async_sessionmaker[AsyncSession], lead_id: str, to: str) -> None:
    try:
        async with session_factory() as session:
            await leads_repo.record_activity(
                session,
                lead_id=lead_id,
                activity_type=NOTIFICATION_SENT,
                description=f"Notification email sent to {to}",
            )
            await session.commit()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Skipping activity record for lead %s: %s", lead_id, exc)


@router.post("/send-lead-notification", response_model=FunctionResult)
async def send_lead_notification(
    payload: NewLeadNotificationPayload,
    mailer: Mailer = Depends(get_email_sender),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Email the agent about a new lead."""

    if payload.missing_required():
        return _missing_fields()

    if payload.lead_id:
        await _record_sent(session_factory, payload.lead_id, payload.to)

    html = render_template(
        "new_lead_notification.html",
        company_name=settings.company_name,
        website_url=settings.website_url,
        lead_name=payload.lead_name,
        lead_email=payload.lead_email,
        lead_phone=payload.lead_phone,
        lead_message=payload.lead_message,
        property_title=payload.property_title,
        source=payload.source,
    )
    try:
        await mailer.send(payload.to, f"Nuevo Lead: {payload.lead_name} - {payload.property_title}", html)
    except (smtplib.SMTPException, OSError) as exc:
        return _delivery_failed(exc)
    return FunctionResult(message="Lead notification sent")


@router.post("/send-lead-auto-response", response_model=FunctionResult)
async def send_lead_auto_response(
    payload: LeadAutoResponsePayload,
    mailer: Mailer = Depends(get_email_sender),
):
    """Acknowledge the lead's enquiry."""

    if payload.missing_required():
        return _missing_fields()

    html = render_template(
        "lead_auto_response.html",
        name=payload.name,
        property_title=payload.property_title,
        property_id=payload.property_id,
        company_name=settings.company_name,
        company_phone=settings.company_phone,
        company_email=settings.company_email,
        website_url=settings.website_url,
    )
    try:
        await mailer.send(payload.to, f"Gracias por contactar a {settings.company_name}", html)
    except (smtplib.SMTPException, OSError) as exc:
        return _delivery_failed(exc)
    return FunctionResult(message="Auto-response sent")
