"""Expose ORM models."""
from .company import CompanyProfile
from .lead import Lead, LeadActivity
from .property import Property, PropertyImage
from .team import TeamMember
from .user import User

__all__ = [
    "CompanyProfile",
    "Lead",
    "LeadActivity",
    "Property",
    "PropertyImage",
    "TeamMember",
    "User",
]
