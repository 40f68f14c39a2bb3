# src/ECA/api/routers/assignments.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ECA.api.deps import page_params
from ECA.auth import Principal, require_auth, require_staff
from ECA.db import get_session
from ECA.db.models import QueryMode
from ECA.schemas.assignments import (
    ASSIGNMENT_DETAILED_DEFAULTS,
    ASSIGNMENT_INCLUDE_RELATIONS,
    AssignmentCreate,
    AssignmentPatch,
    AssignmentReaderOut,
    ReaderAssign,
    dump_assignment,
)
from ECA.schemas.common import Page, PageParams
from ECA.services import assignments as svc
from ECA.services.orders import parse_includes, parse_mode

router = APIRouter(prefix="/api/assignments", tags=["assignments"])

_DEFAULTS = frozenset(ASSIGNMENT_DETAILED_DEFAULTS)
_LIST_INCLUDES = frozenset({"reader", "catalogue", "status"})


@router.get("")
async def list_assignments(
    params: PageParams = Depends(page_params),
    order_id: Optional[int] = Query(None, alias="orderId"),
    status_id: Optional[int] = Query(None, alias="statusId"),
    reader_id: Optional[int] = Query(None, alias="readerId"),
    session: AsyncSession = Depends(get_session),
) -> dict:
    rows, total = await svc.list_assignments(
        session, params, order_id=order_id, status_id=status_id, reader_id=reader_id
    )
    items = [dump_assignment(a, QueryMode.DETAILED, _LIST_INCLUDES) for a in rows]
    return Page.build(items, total, params).dump()


@router.get("/{assignment_id}")
async def get_assignment(
    assignment_id: int,
    mode: Optional[str] = None,
    include: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
) -> dict:
    query_mode = parse_mode(mode)
    includes = parse_includes(include, query_mode, ASSIGNMENT_INCLUDE_RELATIONS, ASSIGNMENT_DETAILED_DEFAULTS)
    obj = await svc.get_assignment(session, assignment_id, includes)
    return dump_assignment(obj, query_mode, includes)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_assignment(
    payload: AssignmentCreate,
    user: Principal = Depends(require_staff),
    session: AsyncSession = Depends(get_session),
) -> dict:
    obj = await svc.create_assignment(session, payload, actor_id=user.user_id)
    return {"message": "Assignment created", "assignment": dump_assignment(obj, QueryMode.DETAILED, _DEFAULTS)}


@router.patch("/{assignment_id}")
async def patch_assignment(
    assignment_id: int,
    payload: AssignmentPatch,
    _user: Principal = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> dict:
    obj = await svc.patch_assignment(session, assignment_id, payload)
    return {"message": "Assignment updated", "assignment": dump_assignment(obj, QueryMode.DETAILED, _DEFAULTS)}


@router.delete("/{assignment_id}")
async def delete_assignment(
    assignment_id: int,
    _user: Principal = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> dict:
    removed = await svc.delete_assignment(session, assignment_id)
    return {"message": "Assignment deleted", "deletedId": assignment_id, "readerHistoryRemoved": removed}


# ---- reader ledger ----

@router.get("/{assignment_id}/readers")
async def list_readers(
    assignment_id: int,
    session: AsyncSession = Depends(get_session),
) -> list[dict]:
    rows = await svc.reader_history(session, assignment_id)
    return [AssignmentReaderOut.model_validate(r).dump() for r in rows]


@router.post("/{assignment_id}/readers", status_code=status.HTTP_201_CREATED)
async def assign_reader(
    assignment_id: int,
    payload: ReaderAssign,
    _user: Principal = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> dict:
    entry = await svc.assign_reader(session, assignment_id, payload)
    return {"message": "Reader assigned", "assignmentReader": AssignmentReaderOut.model_validate(entry).dump()}
