"""Schemas for the property catalog."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.property import Currency, OperationType, PropertyType, PublicationStatus


class ServicesNearby(BaseModel):
    count: int = Field(ge=0)
    distance: float = Field(ge=0)


class Demographics(BaseModel):
    families: float | None = None
    young_professionals: float | None = None
    retired: float | None = None
    students: float | None = None


class NeighborhoodAnalytics(BaseModel):
    model_config = ConfigDict(extra="allow")

    schools_nearby: ServicesNearby | None = None
    shops_nearby: ServicesNearby | None = None
    transport_nearby: ServicesNearby | None = None
    green_areas_nearby: ServicesNearby | None = None
    services_nearby: ServicesNearby | None = None
    avg_square_meter_price: float | None = None
    annual_value_increase: float | None = None
    security_index: float | None = None
    life_quality_index: float | None = None
    demographics: Demographics | None = None


class PropertyImageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    property_id: str
    image_url: str
    is_primary: bool = False
    created_at: datetime | None = None


class CompanyContact(BaseModel):
    """Subset of the owner's company profile shown on a property page."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    company_name: str
    contact_email: str
    contact_phone: str = ""
    logo_url: str | None = None
    description: str | None = None
    whatsapp_number: str | None = None


class PropertyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str = ""
    price: float
    currency: str
    address: str
    city: str
    longitude: float | None = None
    latitude: float | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    area: float | None = None
    area_unit: str = "m²"
    property_type: str
    publication_status: str = PublicationStatus.AVAILABLE.value
    operation_type: str = OperationType.SALE.value
    is_featured: bool = False
    neighborhood_analytics: NeighborhoodAnalytics | None = None
    user_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    images: list[PropertyImageOut] = Field(default_factory=list)
    cover_image: str = ""


class PropertyDetail(PropertyOut):
    profile: CompanyContact | None = None
    whatsapp_link: str | None = None


class SearchFilters(BaseModel):
    """Optional filters for a category listing.

    Values arrive as free-form query strings; blanks are treated as absent.
    """

    location: str | None = None
    min_price: float | None = Field(default=None, ge=0)
    max_price: float | None = Field(default=None, ge=0)
    currency: Currency | None = None
    min_bedrooms: int | None = Field(default=None, ge=0)
    min_bathrooms: int | None = Field(default=None, ge=0)
    sort_by: str | None = None
    operation_type: OperationType | None = None
    publication_status: PublicationStatus | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_absent(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def cache_key_parts(self) -> tuple:
        return (
            self.location,
            self.min_price,
            self.max_price,
            self.currency.value if self.currency else None,
            self.min_bedrooms,
            self.min_bathrooms,
            self.sort_by,
            self.operation_type.value if self.operation_type else None,
            self.publication_status.value if self.publication_status else None,
        )


class PropertyWrite(BaseModel):
    """Admin create/update payload for a property."""

    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    price: float = Field(ge=0)
    currency: Currency = Currency.CLP
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    longitude: float | None = None
    latitude: float | None = None
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: int | None = Field(default=None, ge=0)
    area: float | None = Field(default=None, ge=0)
    area_unit: str = "m²"
    property_type: PropertyType = PropertyType.CASA
    publication_status: PublicationStatus = PublicationStatus.AVAILABLE
    operation_type: OperationType = OperationType.SALE
    is_featured: bool = False
    neighborhood_analytics: NeighborhoodAnalytics | None = None


class PersistedImage(BaseModel):
    """Image already stored as a ``property_images`` row."""

    kind: Literal["persisted"] = "persisted"
    id: str
    url: str
    is_primary: bool = False


class PendingImage(BaseModel):
    """Uploaded image that has no row yet; identified by a client-side id."""

    kind: Literal["pending"] = "pending"
    temp_id: str
    url: str
    is_primary: bool = False


ImageSlot = Annotated[Union[PersistedImage, PendingImage], Field(discriminator="kind")]


class PropertySaveRequest(BaseModel):
    listing: PropertyWrite
    images: list[ImageSlot] = Field(default_factory=list)


class PropertySaveResponse(BaseModel):
    id: str
    images: list[PersistedImage] = Field(default_factory=list)


class ImageUploadResponse(BaseModel):
    images: list[PendingImage]


class ImageListResponse(BaseModel):
    images: list[ImageSlot]


class SetPrimaryRequest(BaseModel):
    image_id: str


class MortgageQuoteRequest(BaseModel):
    down_payment_pct: float = Field(default=20, ge=0, le=100)
    annual_rate_pct: float = Field(default=3.5, ge=0, le=100)
    term_years: int = Field(default=30, ge=1, le=50)


class MortgageQuoteResponse(BaseModel):
    price: float
    currency: str
    principal: float
    monthly_payment: float
    total_paid: float
    total_interest: float


class DashboardStats(BaseModel):
    total_properties: int
    featured_properties: int
    recent_properties: list[PropertyOut] = Field(default_factory=list)
