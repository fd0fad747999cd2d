"""Catalog reads: filtering, sorting, image attachment and card images."""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import text

from inmoportal.core.config import settings
from inmoportal.core.errors import NotFoundError
from inmoportal.repositories import images as images_repo
from inmoportal.repositories import properties as properties_repo
from inmoportal.schemas.properties import PropertyImageOut, SearchFilters
from inmoportal.services import catalog
from inmoportal.services.queries import CatalogQueries
from inmoportal.services.query_cache import QueryCache, QueryStatus


def _image(image_id: str, *, primary: bool = False) -> PropertyImageOut:
    return PropertyImageOut(
        id=image_id, property_id="P1", image_url=f"http://img/{image_id}.jpg", is_primary=primary
    )


def test_card_image_prefers_primary() -> None:
    images = [_image("a"), _image("b", primary=True)]

    assert catalog.select_card_image(images, "http://fallback") == "http://img/b.jpg"


def test_card_image_falls_back_to_first_then_placeholder() -> None:
    assert catalog.select_card_image([_image("a"), _image("b")], "http://fallback") == "http://img/a.jpg"
    assert catalog.select_card_image([], "http://fallback") == "http://fallback"


@pytest.mark.asyncio
async def test_category_listing_is_newest_first_with_images(seeded, session) -> None:
    listing = await catalog.fetch_properties_by_category(session, "casa")

    assert [prop.id for prop in listing] == ["P2", "P1"]
    by_id = {prop.id: prop for prop in listing}
    assert by_id["P2"].images == []
    assert [image.id for image in by_id["P1"].images] == ["img-1a", "img-1b"]
    assert by_id["P1"].cover_image.endswith("/b.jpg")


@pytest.mark.asyncio
async def test_unknown_category_is_empty(seeded, session) -> None:
    assert await catalog.fetch_properties_by_category(session, "bodega") == []


@pytest.mark.asyncio
async def test_featured_only_returns_featured(seeded, session) -> None:
    featured = await catalog.fetch_featured_properties(session)

    assert [prop.id for prop in featured] == ["P3", "P1"]
    assert all(prop.is_featured for prop in featured)


@pytest.mark.asyncio
async def test_price_bounds_without_currency_are_ignored(seeded, session) -> None:
    unfiltered = await catalog.search_filtered_properties(session, "casa", SearchFilters())
    bare_min = await catalog.search_filtered_properties(session, "casa", SearchFilters(min_price=1_000_000))

    assert [prop.id for prop in bare_min] == [prop.id for prop in unfiltered]


@pytest.mark.asyncio
async def test_price_bounds_apply_with_currency(seeded, session) -> None:
    results = await catalog.search_filtered_properties(
        session, "casa", SearchFilters(currency="UF", min_price=1_000, max_price=6_000)
    )

    assert [prop.id for prop in results] == ["P1"]


@pytest.mark.asyncio
async def test_price_sort_directions_are_reversed(seeded, session) -> None:
    ascending = await catalog.search_filtered_properties(session, "casa", SearchFilters(sort_by="price_asc"))
    descending = await catalog.search_filtered_properties(session, "casa", SearchFilters(sort_by="price_desc"))

    assert [prop.id for prop in ascending] == ["P1", "P2"]
    assert [prop.id for prop in descending] == list(reversed([prop.id for prop in ascending]))


@pytest.mark.asyncio
async def test_location_matches_city_or_address_case_insensitively(seeded, session) -> None:
    by_city = await catalog.search_filtered_properties(session, "casa", SearchFilters(location="la reina"))
    by_address = await catalog.search_filtered_properties(session, "casa", SearchFilters(location="JARDINES"))

    assert [prop.id for prop in by_city] == ["P2"]
    assert [prop.id for prop in by_address] == ["P1"]


@pytest.mark.asyncio
async def test_location_wildcards_match_literally(seeded, session) -> None:
    percent = await catalog.search_filtered_properties(session, "casa", SearchFilters(location="%"))
    underscore = await catalog.search_filtered_properties(session, "casa", SearchFilters(location="la_reina"))

    assert percent == []
    assert underscore == []


@pytest.mark.asyncio
async def test_room_and_operation_filters(seeded, session) -> None:
    roomy = await catalog.search_filtered_properties(session, "casa", SearchFilters(min_bedrooms=4))
    leases = await catalog.search_filtered_properties(session, "casa", SearchFilters(operation_type="lease"))

    assert [prop.id for prop in roomy] == ["P2"]
    assert leases == []


def test_blank_query_values_are_absent() -> None:
    filters = SearchFilters(location="  ", currency="", min_price="")

    assert filters.location is None
    assert filters.currency is None
    assert filters.min_price is None


@pytest.mark.asyncio
async def test_failed_image_lookup_leaves_session_usable(seeded, session) -> None:
    await session.execute(text("DROP TABLE property_images"))

    assert await images_repo.images_by_property(session, ["P1", "P3"]) == {}

    listing = await catalog.fetch_properties_by_category(session, "casa")
    detail = await catalog.fetch_property_by_id(session, "P1")

    assert [prop.id for prop in listing] == ["P2", "P1"]
    assert all(prop.images == [] for prop in listing)
    assert detail.images == []
    assert detail.cover_image == settings.fallback_image_url
    assert detail.profile is not None
    assert detail.whatsapp_link is not None


@pytest.mark.asyncio
async def test_attach_images_defaults_to_empty_list(seeded, session, monkeypatch) -> None:
    rows = await properties_repo.list_by_category(session, "casa")
    monkeypatch.setattr(images_repo, "images_by_property", AsyncMock(return_value={}))

    listing = await catalog.attach_images(session, rows)

    assert all(prop.images == [] for prop in listing)
    assert all(prop.cover_image for prop in listing)


@pytest.mark.asyncio
async def test_property_detail_carries_contact_and_whatsapp_link(seeded, session) -> None:
    detail = await catalog.fetch_property_by_id(session, "P1")

    assert detail.profile is not None
    assert detail.profile.company_name == "Inmobiliaria Demo"
    assert detail.whatsapp_link is not None
    assert detail.whatsapp_link.startswith("https://wa.me/56987654321?text=")
    assert len(detail.images) == 2


@pytest.mark.asyncio
async def test_missing_property_raises_not_found(seeded, session) -> None:
    with pytest.raises(NotFoundError):
        await catalog.fetch_property_by_id(session, "missing")


@pytest.mark.asyncio
async def test_missing_company_profile_raises_not_found(session) -> None:
    with pytest.raises(NotFoundError, match="Company profile not found"):
        await catalog.fetch_company_profile(session)


@pytest.mark.asyncio
async def test_dashboard_counts_owner_listings(seeded, session) -> None:
    stats = await catalog.dashboard_stats(session, seeded.owner_id)

    assert stats.total_properties == 3
    assert stats.featured_properties == 2
    assert [prop.id for prop in stats.recent_properties] == ["P3", "P2", "P1"]


@pytest.mark.asyncio
async def test_property_state_reports_pending_then_success(seeded, session_factory) -> None:
    queries = CatalogQueries(QueryCache(), session_factory, settings)

    assert queries.property_state("P1").status is QueryStatus.PENDING
    detail = await queries.property("P1")
    state = queries.property_state("P1")

    assert state.status is QueryStatus.SUCCESS
    assert state.data == detail
    assert not state.is_fetching
