"""WhatsApp links, mortgage maths, object storage and the functions client."""
from __future__ import annotations

import httpx
import pytest

from inmoportal.core.errors import StorageError
from inmoportal.core.security import Identity
from inmoportal.schemas.properties import MortgageQuoteRequest
from inmoportal.services.functions import FunctionsClient
from inmoportal.services.mortgage import monthly_payment, quote_mortgage
from inmoportal.services.storage import delete_image, object_path_from_url, upload_image
from inmoportal.services.whatsapp import format_price, generate_whatsapp_link, property_message


def test_whatsapp_link_strips_phone_and_encodes_text() -> None:
    link = generate_whatsapp_link("+56 9 1234-5678", "Hola & adiós")

    assert link == "https://wa.me/56912345678?text=Hola%20%26%20adi%C3%B3s"


def test_whatsapp_link_without_message() -> None:
    assert generate_whatsapp_link("(+56) 9 1234 5678") == "https://wa.me/56912345678"


def test_property_message_names_operation_and_price() -> None:
    message = property_message(
        property_id="P1",
        title="Casa en Ñuñoa",
        operation_type="lease",
        price=1_250_000,
        currency="CLP",
        website_url="https://portal.example/",
    )

    assert "(Arriendo - 1.250.000 CLP)" in message
    assert message.endswith("https://portal.example/propiedad/P1")
    assert format_price(125_000_000) == "125.000.000"


def test_monthly_payment_matches_amortisation_formula() -> None:
    assert monthly_payment(100_000, 6, 30) == pytest.approx(599.55, abs=0.01)
    assert monthly_payment(12_000, 0, 1) == pytest.approx(1_000)
    assert monthly_payment(0, 5, 20) == 0.0


def test_quote_mortgage_totals() -> None:
    quote = quote_mortgage(10_000, "UF", MortgageQuoteRequest(down_payment_pct=20, annual_rate_pct=0, term_years=20))

    assert quote.principal == 8_000
    assert quote.total_paid == pytest.approx(8_000)
    assert quote.total_interest == pytest.approx(0)


def test_object_path_uses_last_two_segments() -> None:
    url = "https://cdn.example/storage/images/property_images/abc_1.jpg?v=2"

    assert object_path_from_url(url) == "property_images/abc_1.jpg"
    with pytest.raises(StorageError):
        object_path_from_url("nofolder")


@pytest.mark.asyncio
async def test_upload_then_delete_image(storage) -> None:
    url = await upload_image(storage, Identity(user_id="owner-1"), b"\x89PNG", "Plano.PNG")

    assert url is not None
    assert url.startswith("http://testserver/storage/images/property_images/")
    assert url.endswith(".png")
    assert await delete_image(storage, url) is True
    assert await delete_image(storage, url) is False


@pytest.mark.asyncio
async def test_upload_requires_identity_and_data(storage) -> None:
    assert await upload_image(storage, None, b"data", "a.jpg") is None
    assert await upload_image(storage, Identity(user_id="owner-1"), b"", "a.jpg") is None


@pytest.mark.asyncio
async def test_storage_rejects_paths_outside_bucket(storage) -> None:
    with pytest.raises(StorageError):
        await storage.upload("../escape.jpg", b"data")


@pytest.mark.asyncio
async def test_functions_client_maps_error_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/functions/v1/send-lead-notification"
        assert request.headers["Authorization"] == "Bearer secret"
        return httpx.Response(500, json={"error": "SMTP relay down"})

    client = FunctionsClient(
        "http://functions.test/functions/v1", api_key="secret", transport=httpx.MockTransport(handler)
    )
    response = await client.invoke("send-lead-notification", {"to": "a@example.com"})

    assert response.data is None
    assert response.error == "SMTP relay down"


@pytest.mark.asyncio
async def test_functions_client_returns_payload() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"success": True}))
    client = FunctionsClient("http://functions.test/functions/v1", transport=transport)

    response = await client.invoke("send-lead-auto-response", {})

    assert response.data == {"success": True}
    assert response.error is None


@pytest.mark.asyncio
async def test_functions_client_raises_on_transport_failure(unreachable_functions) -> None:
    with pytest.raises(httpx.ConnectError):
        await unreachable_functions.invoke("send-lead-notification", {})
