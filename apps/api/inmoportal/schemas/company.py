"""Schemas for the company profile and team members."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .leads import EMAIL_PATTERN


class CompanyProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    company_name: str
    contact_email: str
    contact_phone: str = ""
    address: str | None = None
    description: str | None = None
    logo_url: str | None = None
    facebook_url: str | None = None
    instagram_url: str | None = None
    twitter_url: str | None = None
    linkedin_url: str | None = None
    whatsapp_number: str | None = None
    mission: str | None = None
    vision: str | None = None
    history: str | None = None
    updated_at: datetime | None = None


class CompanyProfileWrite(BaseModel):
    company_name: str = Field(min_length=1)
    contact_email: str = Field(pattern=EMAIL_PATTERN)
    contact_phone: str = ""
    address: str | None = None
    description: str | None = None
    logo_url: str | None = None
    facebook_url: str | None = None
    instagram_url: str | None = None
    twitter_url: str | None = None
    linkedin_url: str | None = None
    whatsapp_number: str | None = None
    mission: str | None = None
    vision: str | None = None
    history: str | None = None


class TeamMemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    position: str = ""
    bio: str | None = None
    email: str | None = None
    phone: str | None = None
    photo_url: str | None = None
    linkedin_url: str | None = None
    twitter_url: str | None = None
    instagram_url: str | None = None
    order_number: int = 0
    is_active: bool = True


class TeamMemberWrite(BaseModel):
    name: str = Field(min_length=1)
    position: str = Field(min_length=1)
    bio: str | None = None
    email: str | None = None
    phone: str | None = None
    photo_url: str | None = None
    linkedin_url: str | None = None
    twitter_url: str | None = None
    instagram_url: str | None = None
    order_number: int = Field(default=0, ge=0)
    is_active: bool = True


class ReorderRequest(BaseModel):
    direction: Literal["up", "down"]
