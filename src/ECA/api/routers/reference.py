# src/ECA/api/routers/reference.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ECA.db import get_session
from ECA.schemas.reference import BillingStateOut, MediaFormatOut, StatusOut
from ECA.services import reference as svc

router = APIRouter(prefix="/api", tags=["reference"])


@router.get("/statuses")
async def list_statuses(session: AsyncSession = Depends(get_session)) -> list[dict]:
    """Workflow statuses ordered by ``sortOrder`` then name."""
    return [StatusOut.model_validate(s).dump() for s in await svc.list_statuses(session)]


@router.get("/media-formats")
async def list_media_formats(session: AsyncSession = Depends(get_session)) -> list[dict]:
    return [MediaFormatOut.model_validate(m).dump() for m in await svc.list_media_formats(session)]


@router.get("/billing-states")
async def list_billing_states(session: AsyncSession = Depends(get_session)) -> list[dict]:
    return [BillingStateOut.model_validate(s).dump() for s in await svc.list_billing_states(session)]
