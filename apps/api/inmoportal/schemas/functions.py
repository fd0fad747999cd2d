"""Payloads of the server-side email functions."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class NewLeadNotificationPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lead_id: str | None = Field(default=None, alias="leadId")
    to: str | None = None
    lead_name: str | None = Field(default=None, alias="leadName")
    lead_email: str | None = Field(default=None, alias="leadEmail")
    lead_phone: str | None = Field(default=None, alias="leadPhone")
    lead_message: str | None = Field(default=None, alias="leadMessage")
    property_title: str = Field(default="N/A", alias="propertyTitle")
    source: str | None = None

    def missing_required(self) -> bool:
        return not (self.to and self.lead_name and self.lead_email and self.lead_phone)


class LeadAutoResponsePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: str | None = None
    name: str | None = None
    property_title: str = Field(default="N/A", alias="propertyTitle")
    property_id: str = Field(default="N/A", alias="propertyId")

    def missing_required(self) -> bool:
        return not (self.to and self.name)


class FunctionResult(BaseModel):
    success: bool = True
    message: str
