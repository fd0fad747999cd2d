"""Image bookkeeping for the property editor.

Images are either ``PersistedImage`` (a stored row) or ``PendingImage`` (an
uploaded file without a row yet). At most one image per property is primary;
the rule is kept here rather than by a database constraint.
"""
from __future__ import annotations

import logging
from typing import Sequence
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFoundError, PermissionDeniedError
from ..models.property import PropertyImage
from ..repositories import images as images_repo
from ..repositories import properties as properties_repo
from ..schemas.properties import ImageSlot, PendingImage, PersistedImage
from .storage import LocalObjectStorage, delete_image

logger = logging.getLogger(__name__)


def slot_id(slot: ImageSlot) -> str:
    if isinstance(slot, PersistedImage):
        return slot.id
    return slot.temp_id


def to_persisted(image: PropertyImage) -> PersistedImage:
    return PersistedImage(id=image.id, url=image.image_url, is_primary=image.is_primary)


def _with_primary(slot: ImageSlot, is_primary: bool) -> ImageSlot:
    return slot.model_copy(update={"is_primary": is_primary})


def normalise_primary(slots: Sequence[ImageSlot]) -> list[ImageSlot]:
    """Keep only the first primary flag."""

    seen = False
    result: list[ImageSlot] = []
    for slot in slots:
        keep = slot.is_primary and not seen
        seen = seen or keep
        result.append(_with_primary(slot, keep))
    return result


def pending_from_urls(urls: Sequence[str], *, first_primary: bool) -> list[PendingImage]:
    return [
        PendingImage(temp_id=uuid4().hex, url=url, is_primary=first_primary and index == 0)
        for index, url in enumerate(urls)
    ]


def add_uploaded(slots: Sequence[ImageSlot], urls: Sequence[str]) -> list[ImageSlot]:
    """Append pending images; the first becomes primary when the list was empty."""

    return [*slots, *pending_from_urls(urls, first_primary=not slots)]


def set_primary(slots: Sequence[ImageSlot], target_id: str) -> list[ImageSlot]:
    if not any(slot_id(slot) == target_id for slot in slots):
        raise NotFoundError("Image not found")
    return [_with_primary(slot, slot_id(slot) == target_id) for slot in slots]


def remove_slot(slots: Sequence[ImageSlot], target_id: str) -> tuple[list[ImageSlot], ImageSlot | None]:
    """Drop one image; if it was primary the first remaining image takes over."""

    removed: ImageSlot | None = None
    remaining: list[ImageSlot] = []
    for slot in slots:
        if removed is None and slot_id(slot) == target_id:
            removed = slot
        else:
            remaining.append(slot)
    if removed is not None and removed.is_primary and remaining:
        remaining[0] = _with_primary(remaining[0], True)
    return remaining, removed


async def _owned_property(session: AsyncSession, property_id: str, user_id: str):
    prop = await properties_repo.get_property(session, property_id)
    if prop.user_id != user_id:
        raise PermissionDeniedError("Property belongs to another account")
    return prop


async def list_persisted(session: AsyncSession, property_id: str) -> list[PersistedImage]:
    return [to_persisted(image) for image in await images_repo.list_images(session, property_id)]


async def persist_images(
    session: AsyncSession, *, property_id: str, user_id: str, slots: Sequence[ImageSlot]
) -> list[PersistedImage]:
    """Insert pending images and sync the primary flag of stored ones."""

    slots = normalise_primary(slots)
    existing = {image.id: image for image in await images_repo.list_images(session, property_id)}
    primary_id: str | None = None

    for slot in slots:
        if isinstance(slot, PendingImage):
            row = await images_repo.add_image(
                session, property_id=property_id, image_url=slot.url, is_primary=False, user_id=user_id
            )
            existing[row.id] = row
            if slot.is_primary:
                primary_id = row.id
        elif slot.id in existing:
            if slot.is_primary:
                primary_id = slot.id
        else:
            logger.warning("Ignoring unknown image %s for property %s", slot.id, property_id)

    if primary_id is not None:
        await images_repo.mark_primary(session, property_id, primary_id)
    return await list_persisted(session, property_id)


async def make_primary(
    session: AsyncSession, *, property_id: str, image_id: str, user_id: str
) -> list[PersistedImage]:
    await _owned_property(session, property_id, user_id)
    image = await images_repo.get_image(session, image_id)
    if image.property_id != property_id:
        raise NotFoundError("Image not found")
    await images_repo.mark_primary(session, property_id, image_id)
    await session.commit()
    return await list_persisted(session, property_id)


async def remove_image(
    session: AsyncSession,
    storage: LocalObjectStorage,
    *,
    property_id: str,
    image_id: str,
    user_id: str,
) -> list[PersistedImage]:
    """Delete an image row and its file, handing the primary flag on if needed."""

    await _owned_property(session, property_id, user_id)
    image = await images_repo.get_image(session, image_id)
    if image.property_id != property_id:
        raise NotFoundError("Image not found")

    slots, removed = remove_slot(await list_persisted(session, property_id), image_id)
    url = image.image_url
    await images_repo.delete_image_row(session, image)
    if removed is not None and removed.is_primary and slots:
        await images_repo.mark_primary(session, property_id, slot_id(slots[0]))
    await session.commit()

    await delete_image(storage, url)
    return await list_persisted(session, property_id)
