"""Back-office endpoints for the signed-in owner."""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import StorageError
from ..core.security import Identity, get_identity
from ..db.session import get_session
from ..repositories import properties as properties_repo
from ..schemas.company import (
    CompanyProfileOut,
    CompanyProfileWrite,
    ReorderRequest,
    TeamMemberOut,
    TeamMemberWrite,
)
from ..schemas.leads import LeadFilters, LeadNotesUpdate, LeadOut, LeadStatusUpdate
from ..schemas.properties import (
    DashboardStats,
    ImageListResponse,
    ImageUploadResponse,
    PropertyOut,
    PropertySaveRequest,
    PropertySaveResponse,
    SetPrimaryRequest,
)
from ..services import admin as admin_service
from ..services import catalog
from ..services import images as images_service
from ..services import leads as leads_service
from ..services.queries import CatalogQueries
from ..services.storage import LocalObjectStorage, upload_image
from .deps import get_object_storage, get_queries

router = APIRouter()


@router.get("/dashboard", response_model=DashboardStats)
async def dashboard(
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> DashboardStats:
    """Totals plus the five most recent listings."""

    return await catalog.dashboard_stats(session, identity.user_id)


@router.get("/properties", response_model=list[PropertyOut])
async def list_properties(
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> list[PropertyOut]:
    rows = await properties_repo.list_for_owner(session, identity.user_id)
    return await catalog.attach_images(session, rows)


@router.post("/properties", response_model=PropertySaveResponse, status_code=status.HTTP_201_CREATED)
async def create_property(
    payload: PropertySaveRequest,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> PropertySaveResponse:
    return await admin_service.save_property(session, payload, user_id=identity.user_id)


@router.put("/properties/{property_id}", response_model=PropertySaveResponse)
async def update_property(
    property_id: str,
    payload: PropertySaveRequest,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> PropertySaveResponse:
    return await admin_service.save_property(
        session, payload, user_id=identity.user_id, property_id=property_id
    )


@router.delete("/properties/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_property(
    property_id: str,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
    storage: LocalObjectStorage = Depends(get_object_storage),
) -> Response:
    await admin_service.delete_property(session, storage, property_id, user_id=identity.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/properties/{property_id}/images", response_model=ImageListResponse)
async def list_images(
    property_id: str,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> ImageListResponse:
    return ImageListResponse(images=await images_service.list_persisted(session, property_id))


@router.post("/images", response_model=ImageUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_images(
    files: list[UploadFile] = File(...),
    has_images: bool = Form(default=False),
    folder: str = Form(default="property_images"),
    identity: Identity = Depends(get_identity),
    storage: LocalObjectStorage = Depends(get_object_storage),
) -> ImageUploadResponse:
    """Store uploaded files and return them as pending images.

    The first file becomes primary unless the listing already has images.
    """

    urls: list[str] = []
    for upload in files:
        data = await upload.read()
        url = await upload_image(storage, identity, data, upload.filename or "image", folder=folder)
        if url is None:
            raise StorageError(f"Could not store {upload.filename}")
        urls.append(url)

    return ImageUploadResponse(images=images_service.pending_from_urls(urls, first_primary=not has_images))


@router.post("/properties/{property_id}/images/primary", response_model=ImageListResponse)
async def set_primary_image(
    property_id: str,
    payload: SetPrimaryRequest,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> ImageListResponse:
    images = await images_service.make_primary(
        session, property_id=property_id, image_id=payload.image_id, user_id=identity.user_id
    )
    return ImageListResponse(images=images)


@router.delete("/properties/{property_id}/images/{image_id}", response_model=ImageListResponse)
async def remove_image(
    property_id: str,
    image_id: str,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
    storage: LocalObjectStorage = Depends(get_object_storage),
) -> ImageListResponse:
    images = await images_service.remove_image(
        session, storage, property_id=property_id, image_id=image_id, user_id=identity.user_id
    )
    return ImageListResponse(images=images)


@router.get("/company-profile", response_model=CompanyProfileOut)
async def get_company_profile(
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> CompanyProfileOut:
    return await admin_service.get_company_profile(session, user_id=identity.user_id)


@router.put("/company-profile", response_model=CompanyProfileOut)
async def save_company_profile(
    payload: CompanyProfileWrite,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> CompanyProfileOut:
    return await admin_service.upsert_company_profile(session, payload, user_id=identity.user_id)


@router.get("/team", response_model=list[TeamMemberOut])
async def list_team(
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> list[TeamMemberOut]:
    return await admin_service.list_team(session, user_id=identity.user_id)


@router.post("/team", response_model=TeamMemberOut, status_code=status.HTTP_201_CREATED)
async def create_team_member(
    payload: TeamMemberWrite,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> TeamMemberOut:
    return await admin_service.create_team_member(session, payload, user_id=identity.user_id)


@router.put("/team/{member_id}", response_model=TeamMemberOut)
async def update_team_member(
    member_id: str,
    payload: TeamMemberWrite,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> TeamMemberOut:
    return await admin_service.update_team_member(session, member_id, payload, user_id=identity.user_id)


@router.delete("/team/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_team_member(
    member_id: str,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> Response:
    await admin_service.delete_team_member(session, member_id, user_id=identity.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/team/{member_id}/reorder", response_model=list[TeamMemberOut])
async def reorder_team_member(
    member_id: str,
    payload: ReorderRequest,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
) -> list[TeamMemberOut]:
    return await admin_service.reorder_team_member(
        session, member_id, payload.direction, user_id=identity.user_id
    )


@router.get("/leads", response_model=list[LeadOut])
async def list_leads(
    filters: Annotated[LeadFilters, Query()],
    identity: Identity = Depends(get_identity),
    queries: CatalogQueries = Depends(get_queries),
) -> list[LeadOut]:
    return await queries.leads(identity.user_id, filters)


@router.patch("/leads/{lead_id}/status", response_model=LeadOut)
async def update_lead_status(
    lead_id: str,
    payload: LeadStatusUpdate,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
    queries: CatalogQueries = Depends(get_queries),
) -> LeadOut:
    lead = await leads_service.update_status(session, lead_id, payload.status, identity.user_id)
    queries.invalidate_leads()
    return lead


@router.patch("/leads/{lead_id}/notes", response_model=LeadOut)
async def update_lead_notes(
    lead_id: str,
    payload: LeadNotesUpdate,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
    queries: CatalogQueries = Depends(get_queries),
) -> LeadOut:
    lead = await leads_service.update_notes(session, lead_id, payload.notes, identity.user_id)
    queries.invalidate_leads()
    return lead
