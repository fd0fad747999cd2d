"""Property and property image models."""
from __future__ import annotations

from datetime import datetime
import enum
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id, utcnow

if TYPE_CHECKING:
    from .lead import Lead


class PropertyType(str, enum.Enum):
    CASA = "casa"
    DEPARTAMENTO = "departamento"
    OFICINA = "oficina"
    LOCAL = "local"
    BODEGA = "bodega"
    INDUSTRIAL = "industrial"
    TERRENO = "terreno"
    PARCELA = "parcela"
    SITIO = "sitio"
    LOTEO = "loteo"
    AGRICOLA = "agricola"


class Currency(str, enum.Enum):
    CLP = "CLP"
    UF = "UF"


class PublicationStatus(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    RENTED = "rented"
    SOLD = "sold"


class OperationType(str, enum.Enum):
    SALE = "sale"
    LEASE = "lease"


class Property(Base):
    """Listing published by an agent."""

    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default=Currency.CLP.value, nullable=False)
    address: Mapped[str] = mapped_column(String, nullable=False)
    city: Mapped[str] = mapped_column(String, nullable=False)
    longitude: Mapped[float | None] = mapped_column(Float)
    latitude: Mapped[float | None] = mapped_column(Float)
    bedrooms: Mapped[int | None] = mapped_column(Integer)
    bathrooms: Mapped[int | None] = mapped_column(Integer)
    area: Mapped[float | None] = mapped_column(Float)
    area_unit: Mapped[str] = mapped_column(String(16), default="m²", nullable=False)
    property_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    publication_status: Mapped[str] = mapped_column(
        String(16), default=PublicationStatus.AVAILABLE.value, nullable=False
    )
    operation_type: Mapped[str] = mapped_column(String(16), default=OperationType.SALE.value, nullable=False)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    neighborhood_analytics: Mapped[dict | None] = mapped_column(JSON)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    images: Mapped[list["PropertyImage"]] = relationship(
        "PropertyImage", back_populates="property", cascade="all, delete-orphan"
    )
    leads: Mapped[list["Lead"]] = relationship("Lead", back_populates="property")


class PropertyImage(Base):
    """Image attached to a property; at most one is primary."""

    __tablename__ = "property_images"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    property_id: Mapped[str] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    image_url: Mapped[str] = mapped_column(String, nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    user_id: Mapped[str | None] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    property: Mapped["Property"] = relationship("Property", back_populates="images")
