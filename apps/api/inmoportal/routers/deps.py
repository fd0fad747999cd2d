"""Shared router dependencies; tests override these."""
from __future__ import annotations

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db.session import SessionLocal
from ..services.functions import FunctionsClient, get_functions_client
from ..services.mailer import Mailer, get_mailer
from ..services.queries import CatalogQueries
from ..services.storage import LocalObjectStorage, get_storage


def get_queries(request: Request) -> CatalogQueries:
    return request.app.state.queries


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return SessionLocal


def get_functions() -> FunctionsClient:
    return get_functions_client()


def get_object_storage() -> LocalObjectStorage:
    return get_storage()


def get_email_sender() -> Mailer:
    return get_mailer()
