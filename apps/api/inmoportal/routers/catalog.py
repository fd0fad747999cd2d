"""Public catalog endpoints: listings, property pages, company and lead capture."""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db.session import get_session
from ..schemas.company import CompanyProfileOut, TeamMemberOut
from ..schemas.leads import LeadCreate, LeadOut, WhatsAppLeadRequest, WhatsAppLeadResponse
from ..schemas.properties import (
    MortgageQuoteRequest,
    MortgageQuoteResponse,
    PropertyDetail,
    PropertyOut,
    SearchFilters,
)
from ..services import leads as leads_service
from ..services.functions import FunctionsClient
from ..services.mortgage import quote_mortgage
from ..services.queries import CatalogQueries
from .deps import get_functions, get_queries, get_session_factory

router = APIRouter()


@router.get("/company-profile", response_model=CompanyProfileOut)
async def company_profile(queries: CatalogQueries = Depends(get_queries)) -> CompanyProfileOut:
    return await queries.company_profile()


@router.get("/team-members", response_model=list[TeamMemberOut])
async def team_members(queries: CatalogQueries = Depends(get_queries)) -> list[TeamMemberOut]:
    """Active team members in display order."""

    return await queries.team_members()


@router.get("/properties/featured", response_model=list[PropertyOut])
async def featured_properties(queries: CatalogQueries = Depends(get_queries)) -> list[PropertyOut]:
    return await queries.featured_properties()


@router.get("/properties/category/{property_type}", response_model=list[PropertyOut])
async def properties_by_category(
    property_type: str,
    queries: CatalogQueries = Depends(get_queries),
) -> list[PropertyOut]:
    """Latest listings of one category; unknown categories are simply empty."""

    return await queries.properties_by_category(property_type)


@router.get("/properties/category/{property_type}/search", response_model=list[PropertyOut])
async def search_properties(
    property_type: str,
    filters: Annotated[SearchFilters, Query()],
    queries: CatalogQueries = Depends(get_queries),
) -> list[PropertyOut]:
    return await queries.search(property_type, filters)


@router.get("/properties/{property_id}", response_model=PropertyDetail)
async def property_detail(property_id: str, queries: CatalogQueries = Depends(get_queries)) -> PropertyDetail:
    return await queries.property(property_id)


@router.post("/properties/{property_id}/mortgage", response_model=MortgageQuoteResponse)
async def mortgage_quote(
    property_id: str,
    payload: MortgageQuoteRequest,
    queries: CatalogQueries = Depends(get_queries),
) -> MortgageQuoteResponse:
    detail = await queries.property(property_id)
    return quote_mortgage(detail.price, detail.currency, payload)


@router.post(
    "/properties/{property_id}/whatsapp-lead",
    response_model=WhatsAppLeadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def whatsapp_lead(
    property_id: str,
    payload: WhatsAppLeadRequest,
    session: AsyncSession = Depends(get_session),
    queries: CatalogQueries = Depends(get_queries),
) -> WhatsAppLeadResponse:
    """Record a WhatsApp click as a lead and return the chat link."""

    response = await leads_service.create_whatsapp_lead(session, property_id, payload)
    queries.invalidate_leads()
    return response


@router.post("/leads", response_model=LeadOut, status_code=status.HTTP_201_CREATED)
async def create_lead(
    payload: LeadCreate,
    queries: CatalogQueries = Depends(get_queries),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    functions: FunctionsClient = Depends(get_functions),
) -> LeadOut:
    """Store a contact form submission; emails go out in the background."""

    lead = await leads_service.submit_lead(payload, session_factory=session_factory, functions=functions)
    queries.invalidate_leads()
    return lead
