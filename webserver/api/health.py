from __future__ import annotations

from fastapi import APIRouter, HTTPException

from webserver.config import get_settings
from webserver.db import session


router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/db")
async def database_health() -> dict[str, str]:
    if not await session.test_database_connection(get_settings().database_url):
        raise HTTPException(status_code=503, detail="Database unavailable")
    return {"database": "ok"}

