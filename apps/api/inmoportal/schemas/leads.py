"""Schemas for lead capture and lead management."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.lead import LeadSource, LeadStatus

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class LeadPropertySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    address: str | None = None
    city: str | None = None
    price: float | None = None
    currency: str | None = None
    user_id: str | None = None


class LeadCreate(BaseModel):
    """Contact form submission; every contact field is required."""

    name: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)
    phone: str = Field(min_length=1)
    message: str = Field(min_length=1)
    property_id: str | None = None
    user_id: str = Field(min_length=1)
    source: LeadSource = LeadSource.WEBSITE

    @field_validator("name", "phone", "message", "user_id", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("property_id", mode="before")
    @classmethod
    def _blank_property(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class LeadOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    phone: str
    message: str = ""
    property_id: str | None = None
    user_id: str
    status: LeadStatus
    source: LeadSource
    notes: str | None = None
    last_contact: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    property: LeadPropertySummary | None = None


class LeadFilters(BaseModel):
    status: LeadStatus | None = None
    source: LeadSource | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_absent(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def cache_key_parts(self) -> tuple:
        return (
            self.status.value if self.status else None,
            self.source.value if self.source else None,
            self.start_date.isoformat() if self.start_date else None,
            self.end_date.isoformat() if self.end_date else None,
        )


class LeadStatusUpdate(BaseModel):
    status: LeadStatus


class LeadNotesUpdate(BaseModel):
    notes: str


class WhatsAppLeadRequest(BaseModel):
    user_id: str = Field(min_length=1)
    referrer: str | None = None
    user_agent: str | None = None


class WhatsAppLeadResponse(BaseModel):
    lead_id: str
    whatsapp_link: str | None = None


class LeadActivityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    lead_id: str
    activity_type: str
    description: str
    created_at: datetime | None = None
