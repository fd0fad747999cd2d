"""In-process change feed fed by committed ORM writes.

Every committed insert, update or delete performed through a session of the
capturing class is published as a :class:`ChangeEvent`. Consumers open a
:class:`Channel` for one table; each channel owns a queue drained by its own
receive loop so a slow handler never blocks the writer.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, SessionTransaction

logger = logging.getLogger(__name__)

_PENDING_KEY = "inmoportal.pending_changes"
_captured_classes: set[type] = set()


class ChangeType(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChannelState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    SUBSCRIBING = "subscribing"
    SUBSCRIBED = "subscribed"
    CLOSED = "closed"


@dataclass(slots=True)
class ChangeEvent:
    """A committed row change, carrying the row before and after."""

    table: str
    type: ChangeType
    new: dict[str, Any] = field(default_factory=dict)
    old: dict[str, Any] = field(default_factory=dict)
    commit_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def record(self) -> dict[str, Any]:
        """Row image that identifies the change: ``new`` when present, else ``old``."""

        return self.new or self.old


ChangeHandler = Callable[[ChangeEvent], Awaitable[None]]


class Channel:
    """Subscription to the changes of one table."""

    def __init__(
        self,
        feed: "ChangeFeed",
        name: str,
        table: str,
        handler: ChangeHandler,
        *,
        event_filter: str = "*",
    ) -> None:
        self.name = name
        self.table = table
        self.event_filter = event_filter.upper()
        self.state = ChannelState.DISCONNECTED
        self._feed = feed
        self._handler = handler
        self._queue: asyncio.Queue[ChangeEvent] | None = None
        self._task: asyncio.Task[None] | None = None

    async def subscribe(self) -> "Channel":
        if self.state is ChannelState.SUBSCRIBED:
            return self
        if self.state is ChannelState.CLOSED:
            raise RuntimeError(f"Channel {self.name} is closed")

        self.state = ChannelState.SUBSCRIBING
        self._queue = asyncio.Queue()
        self._feed._attach(self)
        self._task = asyncio.create_task(self._receive_loop(), name=f"realtime:{self.name}")
        self.state = ChannelState.SUBSCRIBED
        logger.info("Subscribed channel %s to %s (%s)", self.name, self.table, self.event_filter)
        return self

    async def unsubscribe(self) -> None:
        """Close the channel; queued events are dropped."""

        if self.state is ChannelState.CLOSED:
            return
        self.state = ChannelState.CLOSED
        self._feed._detach(self)
        if self._task:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        self._queue = None
        logger.info("Closed channel %s", self.name)

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""

        if self._queue is not None and self.state is ChannelState.SUBSCRIBED:
            await self._queue.join()

    def matches(self, change: ChangeEvent) -> bool:
        if change.table != self.table:
            return False
        return self.event_filter == "*" or self.event_filter == change.type.value

    def _deliver(self, change: ChangeEvent) -> bool:
        if self.state is not ChannelState.SUBSCRIBED or self._queue is None:
            return False
        if not self.matches(change):
            return False
        self._queue.put_nowait(change)
        return True

    async def _receive_loop(self) -> None:
        queue = self._queue
        assert queue is not None
        while True:
            change = await queue.get()
            try:
                if self.state is ChannelState.SUBSCRIBED:
                    await self._handler(change)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Change handler failed on channel %s", self.name)
            finally:
                queue.task_done()


class ChangeFeed:
    """Fan committed row changes out to subscribed channels."""

    def __init__(self) -> None:
        self._channels: Dict[str, Channel] = {}

    def channel(
        self,
        name: str,
        table: str,
        handler: ChangeHandler,
        *,
        event_filter: str = "*",
    ) -> Channel:
        """Create an unsubscribed channel; call :meth:`Channel.subscribe` to start it."""

        return Channel(self, name, table, handler, event_filter=event_filter)

    def publish(self, change: ChangeEvent) -> int:
        """Queue ``change`` on every matching channel and return how many received it."""

        delivered = 0
        for channel in list(self._channels.values()):
            if channel._deliver(change):
                delivered += 1
        logger.debug("Published %s on %s to %d channel(s)", change.type.value, change.table, delivered)
        return delivered

    async def drain(self) -> None:
        await asyncio.gather(*(channel.drain() for channel in list(self._channels.values())))

    async def close(self) -> None:
        for channel in list(self._channels.values()):
            await channel.unsubscribe()

    @property
    def channels(self) -> list[Channel]:
        return list(self._channels.values())

    def _attach(self, channel: Channel) -> None:
        existing = self._channels.get(channel.name)
        if existing is not None and existing is not channel:
            raise RuntimeError(f"Channel {channel.name} is already subscribed")
        self._channels[channel.name] = channel

    def _detach(self, channel: Channel) -> None:
        if self._channels.get(channel.name) is channel:
            self._channels.pop(channel.name, None)


def _row_image(obj: Any) -> dict[str, Any]:
    state = inspect(obj)
    loaded = state.dict
    return {attr.key: loaded.get(attr.key) for attr in state.mapper.column_attrs}


def _old_image(obj: Any) -> dict[str, Any]:
    state = inspect(obj)
    old: dict[str, Any] = {}
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if history.deleted:
            old[attr.key] = history.deleted[0]
    for column in state.mapper.primary_key:
        key = state.mapper.get_property_by_column(column).key
        old.setdefault(key, state.dict.get(key))
    return old


def _table_name(obj: Any) -> str:
    return inspect(obj).mapper.local_table.name


def install_change_capture(session_class: type[Session], feed: ChangeFeed) -> None:
    """Publish committed ORM writes made through ``session_class`` on ``feed``."""

    def _collect(session: Session, flush_context: Any) -> None:
        pending: list[ChangeEvent] = session.info.setdefault(_PENDING_KEY, [])
        for obj in session.new:
            pending.append(ChangeEvent(table=_table_name(obj), type=ChangeType.INSERT, new=_row_image(obj)))
        for obj in session.dirty:
            if not session.is_modified(obj, include_collections=False):
                continue
            pending.append(
                ChangeEvent(
                    table=_table_name(obj),
                    type=ChangeType.UPDATE,
                    new=_row_image(obj),
                    old=_old_image(obj),
                )
            )
        for obj in session.deleted:
            pending.append(ChangeEvent(table=_table_name(obj), type=ChangeType.DELETE, old=_row_image(obj)))

    def _publish(session: Session) -> None:
        for change in session.info.pop(_PENDING_KEY, []):
            feed.publish(change)

    def _discard(session: Session, previous_transaction: SessionTransaction) -> None:
        # a savepoint rollback leaves the enclosing transaction's writes pending
        if previous_transaction.nested:
            return
        session.info.pop(_PENDING_KEY, None)

    if session_class in _captured_classes:
        logger.debug("Change capture already installed on %s", session_class.__name__)
        return
    _captured_classes.add(session_class)
    event.listen(session_class, "after_flush", _collect)
    event.listen(session_class, "after_commit", _publish)
    event.listen(session_class, "after_soft_rollback", _discard)


change_feed = ChangeFeed()
