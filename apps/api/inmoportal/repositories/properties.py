"""Data access helpers for the property catalog."""
from __future__ import annotations

from typing import Any, Protocol

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFoundError
from ..models.property import Property, PublicationStatus

FEATURED_LIMIT = 10
CATEGORY_LIMIT = 10
RECENT_LIMIT = 5


class SearchFiltersProtocol(Protocol):
    """Filter attributes the search reads; keeps the repository free of pydantic."""

    location: str | None
    min_price: float | None
    max_price: float | None
    currency: Any
    min_bedrooms: int | None
    min_bathrooms: int | None
    sort_by: str | None
    operation_type: Any
    publication_status: Any


def _value(member: Any) -> Any:
    return getattr(member, "value", member)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_search_statement(property_type: str, filters: SearchFiltersProtocol) -> Select[tuple[Property]]:
    """Compose the filtered category query.

    Price bounds only apply together with a currency; a bare ``min_price`` or
    ``max_price`` is ignored.
    """

    stmt = select(Property).where(Property.property_type == property_type)

    if filters.location:
        location = f"%{_escape_like(filters.location.lower())}%"
        stmt = stmt.where(
            or_(
                func.lower(Property.city).like(location, escape="\\"),
                func.lower(Property.address).like(location, escape="\\"),
            )
        )

    if filters.currency and filters.min_price is not None:
        stmt = stmt.where(Property.currency == _value(filters.currency), Property.price >= filters.min_price)
    if filters.currency and filters.max_price is not None:
        stmt = stmt.where(Property.currency == _value(filters.currency), Property.price <= filters.max_price)
    if filters.min_bedrooms is not None:
        stmt = stmt.where(Property.bedrooms >= filters.min_bedrooms)
    if filters.min_bathrooms is not None:
        stmt = stmt.where(Property.bathrooms >= filters.min_bathrooms)
    if filters.operation_type:
        stmt = stmt.where(Property.operation_type == _value(filters.operation_type))
    if _value(filters.publication_status) == PublicationStatus.AVAILABLE.value:
        stmt = stmt.where(Property.publication_status == PublicationStatus.AVAILABLE.value)

    if filters.sort_by == "price_asc":
        stmt = stmt.order_by(Property.price.asc())
    elif filters.sort_by == "price_desc":
        stmt = stmt.order_by(Property.price.desc())
    else:
        stmt = stmt.order_by(Property.created_at.desc())
    return stmt


async def search_properties(
    session: AsyncSession, property_type: str, filters: SearchFiltersProtocol
) -> list[Property]:
    result = await session.execute(build_search_statement(property_type, filters))
    return list(result.scalars().all())


async def get_property(session: AsyncSession, property_id: str) -> Property:
    """Return a property or raise ``NotFoundError``."""

    result = await session.execute(select(Property).where(Property.id == property_id))
    prop = result.scalar_one_or_none()
    if prop is None:
        raise NotFoundError("Property not found")
    return prop


async def list_featured(session: AsyncSession, *, limit: int = FEATURED_LIMIT) -> list[Property]:
    stmt = (
        select(Property)
        .where(Property.is_featured.is_(True))
        .order_by(Property.created_at.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_by_category(
    session: AsyncSession, property_type: str, *, limit: int = CATEGORY_LIMIT
) -> list[Property]:
    stmt = (
        select(Property)
        .where(Property.property_type == property_type)
        .order_by(Property.created_at.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_for_owner(session: AsyncSession, user_id: str, *, limit: int | None = None) -> list[Property]:
    stmt = select(Property).where(Property.user_id == user_id).order_by(Property.created_at.desc())
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_for_owner(session: AsyncSession, user_id: str, *, featured_only: bool = False) -> int:
    stmt = select(func.count()).select_from(Property).where(Property.user_id == user_id)
    if featured_only:
        stmt = stmt.where(Property.is_featured.is_(True))
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def create_property(session: AsyncSession, *, user_id: str, values: dict[str, Any]) -> Property:
    prop = Property(user_id=user_id, **values)
    session.add(prop)
    await session.flush()
    return prop


async def update_property(session: AsyncSession, prop: Property, values: dict[str, Any]) -> Property:
    for field, value in values.items():
        setattr(prop, field, value)
    await session.flush()
    return prop


async def delete_property(session: AsyncSession, prop: Property) -> None:
    await session.delete(prop)
    await session.flush()
