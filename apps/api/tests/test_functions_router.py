"""Server-side email handlers with the SMTP sender mocked out."""
from __future__ import annotations

import smtplib
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from inmoportal.main import app
from inmoportal.repositories import leads as leads_repo
from inmoportal.routers import deps


@pytest_asyncio.fixture
async def mailer(client):
    sender = SimpleNamespace(send=AsyncMock(return_value=None))
    app.dependency_overrides[deps.get_email_sender] = lambda: sender
    yield sender


@pytest.mark.asyncio
async def test_notification_requires_contact_fields(client, mailer) -> None:
    response = await client.post("/functions/v1/send-lead-notification", json={"to": "agente@example.com"})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields"}
    mailer.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_notification_renders_and_sends(client, mailer) -> None:
    response = await client.post(
        "/functions/v1/send-lead-notification",
        json={
            "to": "agente@example.com",
            "leadName": "Ana",
            "leadEmail": "ana@example.com",
            "leadPhone": "+56911112222",
            "leadMessage": "Hola <b>equipo</b>",
            "propertyTitle": "Casa en Ñuñoa",
            "source": "website",
        },
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Lead notification sent"}
    to, subject, html = mailer.send.await_args.args
    assert to == "agente@example.com"
    assert subject == "Nuevo Lead: Ana - Casa en Ñuñoa"
    assert "ana@example.com" in html
    assert "&lt;b&gt;equipo&lt;/b&gt;" in html


@pytest.mark.asyncio
async def test_notification_records_sent_activity(client, mailer, session_factory) -> None:
    async with session_factory() as session:
        lead = await leads_repo.create_lead(
            session, name="Ana", email="ana@example.com", phone="1", message="Hola", user_id="owner-1"
        )
        await session.commit()

    await client.post(
        "/functions/v1/send-lead-notification",
        json={
            "leadId": lead.id,
            "to": "agente@example.com",
            "leadName": "Ana",
            "leadEmail": "ana@example.com",
            "leadPhone": "1",
        },
    )

    async with session_factory() as session:
        activities = await leads_repo.list_activities(session, lead.id)
    assert [activity.activity_type for activity in activities] == ["email_notification_sent"]


@pytest.mark.asyncio
async def test_auth_failure_is_classified(client, mailer) -> None:
    mailer.send.side_effect = smtplib.SMTPAuthenticationError(535, b"Invalid login")

    response = await client.post(
        "/functions/v1/send-lead-auto-response",
        json={"to": "ana@example.com", "name": "Ana", "propertyTitle": "Casa", "propertyId": "P1"},
    )

    assert response.status_code == 500
    assert response.json()["error_type"] == "invalid_credentials"
    assert "SMTP_PASSWORD" in response.json()["hint"]


@pytest.mark.asyncio
async def test_auto_response_greets_the_lead(client, mailer) -> None:
    response = await client.post(
        "/functions/v1/send-lead-auto-response",
        json={"to": "ana@example.com", "name": "Ana", "propertyTitle": "Casa en Ñuñoa", "propertyId": "P1"},
    )

    assert response.status_code == 200
    to, subject, html = mailer.send.await_args.args
    assert to == "ana@example.com"
    assert subject.startswith("Gracias por contactar a ")
    assert "Ana" in html
    assert "Casa en Ñuñoa" in html


@pytest.mark.asyncio
async def test_auto_response_requires_name(client, mailer) -> None:
    response = await client.post("/functions/v1/send-lead-auto-response", json={"to": "ana@example.com"})

    assert response.status_code == 400
