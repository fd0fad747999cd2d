"""Cache keys and cached reads for the catalog.

Keys are tuples so that invalidating ``("properties",)`` also covers every
``("properties", <type>, ...)`` entry.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable

from pydantic import TypeAdapter
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings
from ..schemas.company import CompanyProfileOut, TeamMemberOut
from ..schemas.leads import LeadFilters, LeadOut
from ..schemas.properties import PropertyDetail, PropertyOut, SearchFilters
from . import catalog
from .query_cache import QueryCache, QueryKey, QueryState

PROPERTIES_KEY: QueryKey = ("properties",)
FEATURED_PROPERTIES_KEY: QueryKey = ("featured_properties",)
COMPANY_PROFILE_KEY: QueryKey = ("company_profile",)
TEAM_MEMBERS_KEY: QueryKey = ("team_members",)
LEADS_KEY: QueryKey = ("leads",)


def category_key(property_type: str) -> QueryKey:
    return ("properties", property_type)


def search_key(property_type: str, filters: SearchFilters) -> QueryKey:
    return ("properties", property_type, "search", *filters.cache_key_parts())


def property_key(property_id: str) -> QueryKey:
    return ("property", property_id)


def leads_key(user_id: str | None, filters: LeadFilters) -> QueryKey:
    return ("leads", user_id, *filters.cache_key_parts())


_property_list = TypeAdapter(list[PropertyOut])
_property_detail = TypeAdapter(PropertyDetail)
_company_profile = TypeAdapter(CompanyProfileOut)
_team_members = TypeAdapter(list[TeamMemberOut])
_leads = TypeAdapter(list[LeadOut])


class CatalogQueries:
    """Bind each Data Access Layer read to its cache key and staleness window."""

    def __init__(
        self,
        cache: QueryCache,
        session_factory: async_sessionmaker[AsyncSession],
        config: Settings,
    ) -> None:
        self.cache = cache
        self._session_factory = session_factory
        self._config = config

    def _fetcher(self, read: Callable[..., Awaitable[Any]], *args: Any) -> Callable[[], Awaitable[Any]]:
        async def _run() -> Any:
            async with self._session_factory() as session:
                return await read(session, *args)

        return _run

    async def company_profile(self) -> CompanyProfileOut:
        return await self.cache.fetch(
            COMPANY_PROFILE_KEY,
            self._fetcher(catalog.fetch_company_profile),
            stale_time=self._config.company_profile_stale_seconds,
            decode=_company_profile.validate_python,
        )

    async def featured_properties(self) -> list[PropertyOut]:
        return await self.cache.fetch(
            FEATURED_PROPERTIES_KEY,
            self._fetcher(catalog.fetch_featured_properties),
            stale_time=self._config.listing_stale_seconds,
            decode=_property_list.validate_python,
        )

    async def properties_by_category(self, property_type: str) -> list[PropertyOut]:
        return await self.cache.fetch(
            category_key(property_type),
            self._fetcher(catalog.fetch_properties_by_category, property_type),
            stale_time=self._config.listing_stale_seconds,
            decode=_property_list.validate_python,
        )

    async def search(self, property_type: str, filters: SearchFilters) -> list[PropertyOut]:
        return await self.cache.fetch(
            search_key(property_type, filters),
            self._fetcher(catalog.search_filtered_properties, property_type, filters),
            stale_time=self._config.listing_stale_seconds,
            decode=_property_list.validate_python,
        )

    async def property(self, property_id: str) -> PropertyDetail:
        return await self.cache.fetch(
            property_key(property_id),
            self._fetcher(catalog.fetch_property_by_id, property_id),
            stale_time=self._config.listing_stale_seconds,
            decode=_property_detail.validate_python,
        )

    def property_state(self, property_id: str) -> QueryState:
        """Non-blocking read: last known detail plus a background refresh when stale."""

        return self.cache.read(
            property_key(property_id),
            self._fetcher(catalog.fetch_property_by_id, property_id),
            stale_time=self._config.listing_stale_seconds,
            decode=_property_detail.validate_python,
        )

    async def team_members(self) -> list[TeamMemberOut]:
        return await self.cache.fetch(
            TEAM_MEMBERS_KEY,
            self._fetcher(catalog.fetch_team_members),
            decode=_team_members.validate_python,
        )

    async def leads(self, user_id: str | None, filters: LeadFilters) -> list[LeadOut]:
        return await self.cache.fetch(
            leads_key(user_id, filters),
            self._fetcher(catalog.fetch_leads, user_id, filters),
            decode=_leads.validate_python,
        )

    def invalidate_leads(self) -> int:
        return self.cache.invalidate(LEADS_KEY)
