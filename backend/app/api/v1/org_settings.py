"""Organization settings, owners and managers only."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.auth import CurrentUser, require_roles
from app.core.dependencies import get_db
from app.core.permissions import MANAGEMENT_ROLES
from app.models.office import Organization
from app.services.activity_log import record_activity
from app.utils.client_ip import get_client_ip, get_user_agent

router = APIRouter()


class SettingsUpdate(BaseModel):
    settings: dict[str, Any]


def _get_org(db: Session, org_id: str) -> Organization:
    org = db.get(Organization, org_id)
    if org is None:
        raise HTTPException(404, "Organization not found")
    return org


@router.get("/admin/settings")
def get_org_settings(
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
):
    org = _get_org(db, current_user.org_id)
    return {"settings": org.settings or {}, "orgName": org.name}


@router.put("/admin/settings")
def update_org_settings(
    payload: SettingsUpdate,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(*MANAGEMENT_ROLES)),
    db: Session = Depends(get_db),
):
    org = _get_org(db, current_user.org_id)

    # Shallow merge: top-level keys in the body replace stored ones wholesale.
    merged = {**(org.settings or {}), **payload.settings}
    org.settings = merged
    org.updated_at = datetime.now(timezone.utc)

    record_activity(
        db,
        org_id=current_user.org_id,
        user_id=current_user.id,
        action="SETTINGS_UPDATED",
        entity_type="ORGANIZATION",
        entity_id=current_user.org_id,
        details={"updatedKeys": list(payload.settings.keys())},
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    db.commit()
    return {"success": True, "settings": merged}
