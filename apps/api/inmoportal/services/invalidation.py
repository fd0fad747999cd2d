"""Bridge committed row changes to query cache invalidation."""
from __future__ import annotations

import logging
from typing import Any

from . import queries
from .query_cache import QueryCache, QueryKey
from .realtime import ChangeEvent, ChangeFeed, Channel

logger = logging.getLogger(__name__)

PROPERTIES_TABLE = "properties"
PROPERTY_IMAGES_TABLE = "property_images"
COMPANY_PROFILE_TABLE = "company_profile"
TEAM_MEMBERS_TABLE = "team_members"

WATCHED_TABLES: tuple[str, ...] = (
    PROPERTIES_TABLE,
    COMPANY_PROFILE_TABLE,
    PROPERTY_IMAGES_TABLE,
    TEAM_MEMBERS_TABLE,
)


def _present(value: Any) -> bool:
    return value is not None and value != ""


def invalidation_keys(table: str, change: ChangeEvent) -> list[QueryKey]:
    """Return the cache key prefixes a change on ``table`` makes stale."""

    record = change.record
    keys: list[QueryKey] = []

    if table == PROPERTIES_TABLE:
        keys.append(queries.PROPERTIES_KEY)
        keys.append(queries.FEATURED_PROPERTIES_KEY)
        if _present(record.get("property_type")):
            keys.append(queries.category_key(record["property_type"]))
        if _present(record.get("id")):
            keys.append(queries.property_key(record["id"]))
    elif table == PROPERTY_IMAGES_TABLE:
        # Images only ever refresh their parent property.
        if _present(record.get("property_id")):
            keys.append(queries.property_key(record["property_id"]))
    elif table == COMPANY_PROFILE_TABLE:
        keys.append(queries.COMPANY_PROFILE_KEY)
    elif table == TEAM_MEMBERS_TABLE:
        keys.append(queries.TEAM_MEMBERS_KEY)

    return keys


class RealtimeInvalidationBridge:
    """Subscribe to the watched tables and invalidate the matching cache keys.

    The bridge never writes values into the cache; it only forces refetches.
    """

    def __init__(self, feed: ChangeFeed, cache: QueryCache, *, tables: tuple[str, ...] = WATCHED_TABLES) -> None:
        self._feed = feed
        self._cache = cache
        self._tables = tables
        self._channels: list[Channel] = []

    @property
    def channels(self) -> list[Channel]:
        return list(self._channels)

    async def start(self) -> None:
        for table in self._tables:
            channel = self._feed.channel(f"{table.replace('_', '-')}-changes", table, self._handler_for(table))
            try:
                await channel.subscribe()
            except Exception:
                logger.exception("Could not subscribe to changes on %s", table)
                continue
            self._channels.append(channel)

    async def stop(self) -> None:
        """Close every subscription; nothing is delivered afterwards."""

        channels, self._channels = self._channels, []
        for channel in channels:
            try:
                await channel.unsubscribe()
            except Exception:
                logger.exception("Failed to close channel %s", channel.name)

    def handle(self, table: str, change: ChangeEvent) -> list[QueryKey]:
        keys = invalidation_keys(table, change)
        for key in keys:
            self._cache.invalidate(key)
        logger.info("Change on %s (%s) invalidated %s", table, change.type.value, keys)
        return keys

    def _handler_for(self, table: str):
        async def _on_change(change: ChangeEvent) -> None:
            self.handle(table, change)

        return _on_change
