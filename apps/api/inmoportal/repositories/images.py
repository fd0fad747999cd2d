"""Property image rows."""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFoundError
from ..models.property import PropertyImage

logger = logging.getLogger(__name__)


async def images_by_property(session: AsyncSession, property_ids: Iterable[str]) -> dict[str, list[PropertyImage]]:
    """Group the images of several properties by property id.

    A failed lookup is logged and yields no images; listings still render.
    The query runs under a savepoint so the failure leaves the session's
    transaction usable for the reads that follow.
    """

    ids = list(dict.fromkeys(property_ids))
    if not ids:
        return {}
    stmt = (
        select(PropertyImage)
        .where(PropertyImage.property_id.in_(ids))
        .order_by(PropertyImage.created_at.asc(), PropertyImage.id.asc())
    )
    try:
        async with session.begin_nested():
            images = (await session.execute(stmt)).scalars().all()
    except SQLAlchemyError as exc:
        logger.warning("Image lookup failed for %d properties: %s", len(ids), exc)
        return {}

    grouped: dict[str, list[PropertyImage]] = defaultdict(list)
    for image in images:
        grouped[image.property_id].append(image)
    return dict(grouped)


async def list_images(session: AsyncSession, property_id: str) -> list[PropertyImage]:
    grouped = await images_by_property(session, [property_id])
    return grouped.get(property_id, [])


async def get_image(session: AsyncSession, image_id: str) -> PropertyImage:
    result = await session.execute(select(PropertyImage).where(PropertyImage.id == image_id))
    image = result.scalar_one_or_none()
    if image is None:
        raise NotFoundError("Image not found")
    return image


async def add_image(
    session: AsyncSession,
    *,
    property_id: str,
    image_url: str,
    is_primary: bool = False,
    user_id: str | None = None,
) -> PropertyImage:
    image = PropertyImage(property_id=property_id, image_url=image_url, is_primary=is_primary, user_id=user_id)
    session.add(image)
    await session.flush()
    return image


async def mark_primary(session: AsyncSession, property_id: str, image_id: str | None) -> None:
    """Make ``image_id`` the only primary image of a property (``None`` clears all).

    Goes through the ORM so the change feed sees each row.
    """

    for image in await list_images(session, property_id):
        should_be_primary = image.id == image_id
        if image.is_primary != should_be_primary:
            image.is_primary = should_be_primary
    await session.flush()


async def delete_image_row(session: AsyncSession, image: PropertyImage) -> None:
    await session.delete(image)
    await session.flush()
