"""Client change requests: list with stats, create, resolve, delete."""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.core.auth import CurrentUser, require_permission
from app.core.dependencies import get_db
from app.models.office import ChangeRequest, Client
from app.schemas.change_requests import (
    RESOLVED_STATUSES,
    ChangeRequestCreate,
    ChangeRequestStatus,
    ChangeRequestType,
    ChangeRequestUpdate,
    format_request_type,
)
from app.utils.formatting import iso_utc

logger = logging.getLogger(__name__)

router = APIRouter()


def _full_name(first: Optional[str], last: Optional[str]) -> str:
    return f"{first or ''} {last or ''}".strip()


def _serialize(req: ChangeRequest) -> dict:
    client = req.client
    resolver = req.resolver
    return {
        "id": str(req.id),
        "requestType": req.request_type,
        "requestTypeDisplay": format_request_type(req.request_type),
        "status": req.status,
        "title": req.title,
        "description": req.description,
        "currentValue": req.current_value,
        "requestedValue": req.requested_value,
        "resolutionNotes": req.resolution_notes,
        "createdAt": iso_utc(req.created_at),
        "updatedAt": iso_utc(req.updated_at),
        "resolvedAt": iso_utc(req.resolved_at),
        "client": (
            {
                "id": str(client.id),
                "firstName": client.first_name,
                "lastName": client.last_name,
                "fullName": _full_name(client.first_name, client.last_name),
                "email": client.email,
                "phone": client.phone,
            }
            if client
            else None
        ),
        "resolvedBy": (
            {
                "id": str(resolver.id),
                "firstName": resolver.first_name,
                "lastName": resolver.last_name,
                "fullName": _full_name(resolver.first_name, resolver.last_name),
            }
            if resolver
            else None
        ),
    }


def _get_in_org(db: Session, org_id: str, request_id: uuid.UUID) -> ChangeRequest:
    req = db.execute(
        select(ChangeRequest)
        .where(ChangeRequest.id == request_id)
        .where(ChangeRequest.org_id == org_id)
    ).scalar_one_or_none()
    if req is None:
        raise HTTPException(404, "Change request not found")
    return req


@router.get("/admin/change-requests")
def list_change_requests(
    status: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    client_id: Optional[uuid.UUID] = Query(None, alias="clientId"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: CurrentUser = Depends(require_permission("clients:read")),
    db: Session = Depends(get_db),
):
    org_id = current_user.org_id
    filters = [ChangeRequest.org_id == org_id]
    # Unknown filter values are ignored rather than rejected.
    if status in ChangeRequestStatus.__members__:
        filters.append(ChangeRequest.status == status)
    if type in ChangeRequestType.__members__:
        filters.append(ChangeRequest.request_type == type)
    if client_id:
        filters.append(ChangeRequest.client_id == client_id)

    total = int(db.execute(select(func.count(ChangeRequest.id)).where(*filters)).scalar_one() or 0)
    rows = (
        db.execute(
            select(ChangeRequest)
            .options(selectinload(ChangeRequest.client), selectinload(ChangeRequest.resolver))
            .where(*filters)
            .order_by(ChangeRequest.created_at.desc(), ChangeRequest.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )

    by_status = dict(
        db.execute(
            select(ChangeRequest.status, func.count(ChangeRequest.id))
            .where(ChangeRequest.org_id == org_id)
            .group_by(ChangeRequest.status)
        ).all()
    )
    stats = {
        "total": sum(by_status.values()),
        "open": by_status.get("OPEN", 0),
        "inProgress": by_status.get("IN_PROGRESS", 0),
        "completed": by_status.get("COMPLETED", 0),
        "dismissed": by_status.get("DISMISSED", 0),
    }

    return {
        "changeRequests": [_serialize(req) for req in rows],
        "stats": stats,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit),
        },
        "requestTypes": [{"value": t.value, "label": format_request_type(t.value)} for t in ChangeRequestType],
    }


@router.post("/admin/change-requests", status_code=201)
def create_change_request(
    payload: ChangeRequestCreate,
    current_user: CurrentUser = Depends(require_permission("clients:write")),
    db: Session = Depends(get_db),
):
    client = db.execute(
        select(Client.id).where(Client.id == payload.client_id).where(Client.org_id == current_user.org_id)
    ).scalar_one_or_none()
    if client is None:
        raise HTTPException(404, "Client not found")

    req = ChangeRequest(
        org_id=current_user.org_id,
        client_id=payload.client_id,
        subscription_id=payload.subscription_id,
        request_type=payload.request_type.value,
        title=payload.title,
        description=payload.description or None,
        current_value=payload.current_value,
        requested_value=payload.requested_value,
        status=ChangeRequestStatus.OPEN.value,
    )
    db.add(req)
    db.commit()
    db.refresh(req)
    logger.info("Change request %s created for client %s", req.id, payload.client_id)
    return {"changeRequest": _serialize(req)}


@router.put("/admin/change-requests")
def update_change_request(
    payload: ChangeRequestUpdate,
    current_user: CurrentUser = Depends(require_permission("clients:write")),
    db: Session = Depends(get_db),
):
    req = _get_in_org(db, current_user.org_id, payload.id)

    if payload.status is None and "resolution_notes" not in payload.model_fields_set:
        raise HTTPException(400, "No valid fields to update")

    if payload.status is not None:
        req.status = payload.status.value
        if payload.status in RESOLVED_STATUSES:
            req.resolved_at = datetime.now(timezone.utc)
            req.resolved_by = current_user.id
    if "resolution_notes" in payload.model_fields_set:
        req.resolution_notes = payload.resolution_notes
    req.updated_at = datetime.now(timezone.utc)

    db.commit()
    db.refresh(req)
    return {"changeRequest": _serialize(req)}


@router.delete("/admin/change-requests")
def delete_change_request(
    id: uuid.UUID = Query(...),
    current_user: CurrentUser = Depends(require_permission("clients:write")),
    db: Session = Depends(get_db),
):
    req = _get_in_org(db, current_user.org_id, id)
    db.delete(req)
    db.commit()
    return {"success": True}
