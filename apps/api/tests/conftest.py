"""Shared fixtures: an in-memory database and an app wired to it."""
from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime, timezone
from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from inmoportal import models  # noqa: F401
from inmoportal.core.config import settings
from inmoportal.db.session import ChangeCapturingSession, get_session
from inmoportal.main import app
from inmoportal.models.base import Base
from inmoportal.models.company import CompanyProfile
from inmoportal.models.property import Property, PropertyImage
from inmoportal.models.user import User
from inmoportal.routers import deps
from inmoportal.services import notifications
from inmoportal.services.functions import FunctionsClient
from inmoportal.services.queries import CatalogQueries
from inmoportal.services.query_cache import QueryCache
from inmoportal.services.storage import LocalObjectStorage

OWNER_ID = "owner-1"


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("functions host unreachable", request=request)


@pytest_asyncio.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(
        engine,
        expire_on_commit=False,
        class_=AsyncSession,
        sync_session_class=ChangeCapturingSession,
    )
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as db_session:
        yield db_session


@pytest.fixture
def unreachable_functions() -> FunctionsClient:
    return FunctionsClient("http://functions.invalid/v1", transport=httpx.MockTransport(_unreachable))


@pytest.fixture
def storage(tmp_path) -> LocalObjectStorage:
    return LocalObjectStorage(tmp_path / "storage", "images", "http://testserver/storage")


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    unreachable_functions: FunctionsClient,
    storage: LocalObjectStorage,
) -> AsyncIterator[httpx.AsyncClient]:
    async def _session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as db_session:
            yield db_session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_functions] = lambda: unreachable_functions
    app.dependency_overrides[deps.get_object_storage] = lambda: storage
    app.state.queries = CatalogQueries(QueryCache(), session_factory, settings)

    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
            yield http_client
    finally:
        await notifications.wait_for_pending(timeout=5)
        app.dependency_overrides.clear()


def _at(day: int) -> datetime:
    return datetime(2024, 1, day, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def seeded(session_factory: async_sessionmaker[AsyncSession]) -> SimpleNamespace:
    """Owner account and profile, three listings and a few images."""

    async with session_factory() as db_session:
        db_session.add(User(id=OWNER_ID, email="owner@example.com", is_admin=True))
        db_session.add(
            CompanyProfile(
                id="company-1",
                user_id=OWNER_ID,
                company_name="Inmobiliaria Demo",
                contact_email="ventas@example.com",
                contact_phone="+56 9 8765 4321",
                whatsapp_number="+56 9 8765 4321",
            )
        )
        db_session.add_all(
            [
                Property(
                    id="P1",
                    title="Casa en Ñuñoa",
                    description="Casa con patio",
                    price=5_000,
                    currency="UF",
                    address="Los Jardines 455",
                    city="Ñuñoa",
                    bedrooms=3,
                    bathrooms=2,
                    property_type="casa",
                    operation_type="sale",
                    is_featured=True,
                    user_id=OWNER_ID,
                    created_at=_at(1),
                ),
                Property(
                    id="P2",
                    title="Casa en La Reina",
                    description="Casa amplia",
                    price=250_000_000,
                    currency="CLP",
                    address="Larrain 6000",
                    city="La Reina",
                    bedrooms=4,
                    bathrooms=3,
                    property_type="casa",
                    operation_type="sale",
                    user_id=OWNER_ID,
                    created_at=_at(2),
                ),
                Property(
                    id="P3",
                    title="Departamento en Providencia",
                    description="Dos dormitorios",
                    price=650_000,
                    currency="CLP",
                    address="Av. Providencia 2020",
                    city="Providencia",
                    bedrooms=2,
                    bathrooms=1,
                    property_type="departamento",
                    operation_type="lease",
                    is_featured=True,
                    user_id=OWNER_ID,
                    created_at=_at(3),
                ),
            ]
        )
        await db_session.flush()
        db_session.add_all(
            [
                PropertyImage(
                    id="img-1a",
                    property_id="P1",
                    image_url="http://testserver/storage/images/property_images/a.jpg",
                    created_at=_at(1),
                ),
                PropertyImage(
                    id="img-1b",
                    property_id="P1",
                    image_url="http://testserver/storage/images/property_images/b.jpg",
                    is_primary=True,
                    created_at=_at(2),
                ),
                PropertyImage(
                    id="img-3a",
                    property_id="P3",
                    image_url="http://testserver/storage/images/property_images/c.jpg",
                    created_at=_at(3),
                ),
            ]
        )
        await db_session.commit()

    return SimpleNamespace(owner_id=OWNER_ID, company_email="ventas@example.com")
