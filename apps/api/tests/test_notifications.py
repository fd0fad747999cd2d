"""Best-effort lead notification dispatch."""
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from inmoportal.models.lead import LeadSource
from inmoportal.repositories import leads as leads_repo
from inmoportal.schemas.leads import LeadCreate
from inmoportal.services import leads as leads_service
from inmoportal.services import notifications
from inmoportal.services.functions import FunctionResponse


async def _ana(session, *, property_id: str | None = "P1", user_id: str = "owner-1"):
    return await leads_service.create_lead(
        session,
        LeadCreate(
            name="Ana",
            email="ana@example.com",
            phone="+56911112222",
            message="Hola, quisiera visitar la casa.",
            property_id=property_id,
            user_id=user_id,
            source=LeadSource.WEBSITE,
        ),
    )


def _functions(response: FunctionResponse) -> SimpleNamespace:
    return SimpleNamespace(invoke=AsyncMock(return_value=response))


@pytest.mark.asyncio
async def test_recipient_prefers_explicit_address(seeded, session) -> None:
    lead = await _ana(session)

    assert await notifications.resolve_recipient(session, lead, "agente@example.com") == "agente@example.com"


@pytest.mark.asyncio
async def test_recipient_uses_property_owner_company_email(seeded, session) -> None:
    lead = await _ana(session)

    assert await notifications.resolve_recipient(session, lead) == seeded.company_email


@pytest.mark.asyncio
async def test_recipient_falls_back_to_account_email(seeded, session) -> None:
    lead = await _ana(session, property_id=None)

    assert await notifications.resolve_recipient(session, lead) == "owner@example.com"


@pytest.mark.asyncio
async def test_recipient_falls_back_to_admin_setting(session, monkeypatch) -> None:
    monkeypatch.setattr(notifications.settings, "admin_notification_email", "admin@example.com")
    lead = await _ana(session, property_id=None, user_id="nobody")

    assert await notifications.resolve_recipient(session, lead) == "admin@example.com"


@pytest.mark.asyncio
async def test_new_lead_notification_posts_lead_details(seeded, session, session_factory) -> None:
    lead = await _ana(session)
    functions = _functions(FunctionResponse(data={"success": True}))

    result = await notifications.send_new_lead_notification(
        lead, session_factory=session_factory, functions=functions
    )

    assert result == {"success": True}
    name, body = functions.invoke.await_args.args
    assert name == notifications.NEW_LEAD_FUNCTION
    assert body["to"] == seeded.company_email
    assert body["leadName"] == "Ana"
    assert body["propertyTitle"] == "Casa en Ñuñoa"
    assert body["source"] == "website"


@pytest.mark.asyncio
async def test_slow_function_times_out_to_none(seeded, session, session_factory) -> None:
    lead = await _ana(session)

    async def never_answers(name, body):
        await asyncio.sleep(10)

    functions = SimpleNamespace(invoke=never_answers)

    result = await notifications.send_new_lead_notification(
        lead, session_factory=session_factory, functions=functions, timeout=0.05
    )

    assert result is None


@pytest.mark.asyncio
async def test_function_error_is_recorded_as_activity(seeded, session, session_factory) -> None:
    lead = await _ana(session)
    functions = _functions(FunctionResponse(error="SMTP relay rejected credentials"))

    result = await notifications.send_new_lead_notification(
        lead, session_factory=session_factory, functions=functions
    )

    assert result is None
    async with session_factory() as check:
        activities = await leads_repo.list_activities(check, lead.id)
    assert [activity.activity_type for activity in activities] == [notifications.NOTIFICATION_FAILED]
    assert "SMTP relay rejected credentials" in activities[0].description


@pytest.mark.asyncio
async def test_unreachable_functions_return_none(seeded, session, session_factory, unreachable_functions) -> None:
    lead = await _ana(session)

    notice, reply = await notifications.dispatch_lead_notifications(
        lead, session_factory=session_factory, functions=unreachable_functions
    )

    assert notice is None
    assert reply is None


@pytest.mark.asyncio
async def test_auto_response_skips_leads_without_email(seeded, session, session_factory) -> None:
    lead = (await _ana(session)).model_copy(update={"email": ""})
    functions = _functions(FunctionResponse(data={"success": True}))

    result = await notifications.send_lead_auto_response(
        lead, session_factory=session_factory, functions=functions
    )

    assert result is None
    functions.invoke.assert_not_awaited()


@pytest.mark.asyncio
async def test_auto_response_body_falls_back_to_na(session, session_factory) -> None:
    lead = await _ana(session, property_id=None)
    functions = _functions(FunctionResponse(data={"success": True}))

    await notifications.send_lead_auto_response(lead, session_factory=session_factory, functions=functions)

    _, body = functions.invoke.await_args.args
    assert body == {"to": "ana@example.com", "name": "Ana", "propertyTitle": "N/A", "propertyId": "N/A"}
