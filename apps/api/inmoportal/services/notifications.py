"""Best-effort lead emails through the server-side functions.

Nothing here raises. Every failure path logs and returns ``None`` so lead
creation never depends on email delivery.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import settings
from ..repositories import company as company_repo
from ..repositories import leads as leads_repo
from ..repositories import properties as properties_repo
from ..repositories import users as users_repo
from ..schemas.leads import LeadOut
from .functions import FunctionResponse, FunctionsClient

logger = logging.getLogger(__name__)

NEW_LEAD_FUNCTION = "send-lead-notification"
AUTO_RESPONSE_FUNCTION = "send-lead-auto-response"

NOTIFICATION_FAILED = "email_notification_failed"
AUTO_RESPONSE_FAILED = "auto_response_email_failed"

SessionFactory = async_sessionmaker[AsyncSession]

_background_tasks: set[asyncio.Task[Any]] = set()


async def resolve_recipient(session: AsyncSession, lead: LeadOut, agent_email: str | None = None) -> str | None:
    """Explicit address, then the property owner's company email, then account emails."""

    if agent_email:
        return agent_email

    if lead.property_id:
        owner_id = lead.property.user_id if lead.property is not None else None
        if owner_id is None:
            try:
                owner_id = (await properties_repo.get_property(session, lead.property_id)).user_id
            except LookupError:
                owner_id = None
        if owner_id:
            profile = await company_repo.get_for_user(session, owner_id)
            if profile is not None and profile.contact_email:
                return profile.contact_email

    account_email = await users_repo.get_email(session, lead.user_id)
    if account_email:
        return account_email
    return settings.admin_notification_email or None


async def _invoke_with_timeout(
    functions: FunctionsClient, name: str, body: dict[str, Any], timeout: float
) -> FunctionResponse | None:
    try:
        return await asyncio.wait_for(functions.invoke(name, body), timeout)
    except asyncio.TimeoutError:
        logger.warning("Function %s did not answer within %.1fs", name, timeout)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Function %s failed: %s", name, exc)
    return None


async def _record_failure(
    session_factory: SessionFactory, lead_id: str, activity_type: str, description: str
) -> None:
    try:
        async with session_factory() as session:
            await leads_repo.record_activity(
                session, lead_id=lead_id, activity_type=activity_type, description=description
            )
            await session.commit()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not record %s for lead %s: %s", activity_type, lead_id, exc)


def _property_title(lead: LeadOut) -> str:
    return lead.property.title if lead.property is not None else "N/A"


async def send_new_lead_notification(
    lead: LeadOut,
    agent_email: str | None = None,
    *,
    session_factory: SessionFactory,
    functions: FunctionsClient,
    timeout: float | None = None,
) -> Any | None:
    """Notify the agent about a new lead; returns the function's data or ``None``."""

    try:
        async with session_factory() as session:
            recipient = await resolve_recipient(session, lead, agent_email)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not resolve a notification recipient for lead %s: %s", lead.id, exc)
        return None

    if not recipient:
        logger.warning("No recipient found for lead %s notification", lead.id)
        return None

    body = {
        "leadId": lead.id,
        "to": recipient,
        "leadName": lead.name,
        "leadEmail": lead.email,
        "leadPhone": lead.phone,
        "leadMessage": lead.message,
        "propertyTitle": _property_title(lead),
        "source": lead.source.value,
    }
    response = await _invoke_with_timeout(
        functions, NEW_LEAD_FUNCTION, body, timeout or settings.notification_timeout_seconds
    )
    if response is None:
        return None
    if response.error:
        logger.warning("Lead notification for %s failed: %s", lead.id, response.error)
        await _record_failure(
            session_factory, lead.id, NOTIFICATION_FAILED, f"Notification failed: {response.error}"
        )
        return None
    return response.data


async def send_lead_auto_response(
    lead: LeadOut,
    *,
    session_factory: SessionFactory,
    functions: FunctionsClient,
    timeout: float | None = None,
) -> Any | None:
    """Send the lead an acknowledgement; returns the function's data or ``None``."""

    if not lead.email:
        logger.warning("Lead %s has no email; skipping auto-response", lead.id)
        return None

    body = {
        "to": lead.email,
        "name": lead.name,
        "propertyTitle": _property_title(lead),
        "propertyId": lead.property_id or "N/A",
    }
    response = await _invoke_with_timeout(
        functions, AUTO_RESPONSE_FUNCTION, body, timeout or settings.notification_timeout_seconds
    )
    if response is None:
        return None
    if response.error:
        logger.warning("Auto-response for lead %s failed: %s", lead.id, response.error)
        await _record_failure(
            session_factory, lead.id, AUTO_RESPONSE_FAILED, f"Auto-response failed: {response.error}"
        )
        return None
    return response.data


async def dispatch_lead_notifications(
    lead: LeadOut,
    *,
    session_factory: SessionFactory,
    functions: FunctionsClient,
    agent_email: str | None = None,
    timeout: float | None = None,
) -> tuple[Any | None, Any | None]:
    notice, reply = await asyncio.gather(
        send_new_lead_notification(
            lead, agent_email, session_factory=session_factory, functions=functions, timeout=timeout
        ),
        send_lead_auto_response(lead, session_factory=session_factory, functions=functions, timeout=timeout),
    )
    return notice, reply


def schedule_lead_notifications(
    lead: LeadOut,
    *,
    session_factory: SessionFactory,
    functions: FunctionsClient,
    agent_email: str | None = None,
) -> asyncio.Task[tuple[Any | None, Any | None]]:
    """Fire the lead emails in the background; the caller does not wait."""

    task = asyncio.create_task(
        dispatch_lead_notifications(
            lead, session_factory=session_factory, functions=functions, agent_email=agent_email
        )
    )
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def wait_for_pending(timeout: float | None = None) -> None:
    """Let in-flight notification tasks finish (used at shutdown and in tests)."""

    pending = list(_background_tasks)
    if pending:
        await asyncio.wait(pending, timeout=timeout)
