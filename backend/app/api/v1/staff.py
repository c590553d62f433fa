"""Staff management: list, create (with auth account), update, deactivate."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.core.auth import CurrentUser, require_permission
from app.core.dependencies import get_db
from app.core.permissions import STAFF_ROLES
from app.core.supabase_admin import (
    AuthProviderError,
    create_auth_user,
    delete_auth_user,
    update_auth_user_email,
)
from app.models.office import Shift, StaffProfile, User
from app.schemas.staff import StaffCreate, StaffProfileInput, StaffUpdate
from app.services.activity_log import record_activity
from app.utils.client_ip import get_client_ip, get_user_agent
from app.utils.formatting import iso_utc

logger = logging.getLogger(__name__)

router = APIRouter()

CLOCKED_IN_SHIFT_STATUSES = ("CLOCKED_IN", "ON_BREAK", "IN_PROGRESS")

_PROFILE_COLUMNS = (
    "employee_id",
    "hire_date",
    "hourly_rate_cents",
    "vehicle_type",
    "license_plate",
    "certifications",
    "notes",
)


def _serialize_profile(profile: Optional[StaffProfile]) -> Optional[dict]:
    if profile is None:
        return None
    return {
        "id": str(profile.id),
        "employeeId": profile.employee_id,
        "hireDate": profile.hire_date.isoformat() if profile.hire_date else None,
        "hourlyRateCents": profile.hourly_rate_cents,
        "vehicleType": profile.vehicle_type,
        "licensePlate": profile.license_plate,
        "emergencyContact": profile.emergency_contact or {},
        "certifications": profile.certifications or [],
        "notes": profile.notes,
    }


def _serialize_user(user: User, clocked_in: bool = False) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "role": user.role,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "phone": user.phone,
        "isActive": user.is_active,
        "lastLoginAt": iso_utc(user.last_login_at),
        "createdAt": iso_utc(user.created_at),
        "updatedAt": iso_utc(user.updated_at),
        "staffProfile": _serialize_profile(user.staff_profile),
        "isClockedIn": clocked_in,
    }


def _emergency_contact(profile: StaffProfileInput) -> Optional[dict]:
    fields = profile.model_fields_set
    if "emergency_contact_name" not in fields and "emergency_contact_phone" not in fields:
        return None
    contact = {}
    if profile.emergency_contact_name:
        contact["name"] = profile.emergency_contact_name
    if profile.emergency_contact_phone:
        contact["phone"] = profile.emergency_contact_phone
    return contact


def _apply_profile(db: Session, org_id: str, user: User, profile: StaffProfileInput) -> None:
    existing = user.staff_profile
    if existing is None:
        existing = StaffProfile(org_id=org_id, user_id=user.id, emergency_contact={}, certifications=[])
        db.add(existing)
        user.staff_profile = existing

    for column in _PROFILE_COLUMNS:
        if column in profile.model_fields_set:
            value = getattr(profile, column)
            if column == "certifications":
                value = value or []
            setattr(existing, column, value)

    contact = _emergency_contact(profile)
    if contact is not None:
        existing.emergency_contact = {**(existing.emergency_contact or {}), **contact}


def _get_staff_in_org(db: Session, org_id: str, user_id: uuid.UUID) -> User:
    user = db.execute(
        select(User)
        .options(selectinload(User.staff_profile))
        .where(User.id == user_id)
        .where(User.org_id == org_id)
    ).scalar_one_or_none()
    if user is None:
        raise HTTPException(404, "User not found")
    return user


@router.get("/admin/staff")
def list_staff(
    role: Optional[str] = Query(None),
    status: Optional[str] = Query(None, pattern="^(active|inactive|all)$"),
    search: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(require_permission("staff:read")),
    db: Session = Depends(get_db),
):
    stmt = (
        select(User)
        .options(selectinload(User.staff_profile))
        .where(User.org_id == current_user.org_id)
        .where(User.role.in_(STAFF_ROLES))
        .order_by(User.first_name, User.id)
    )
    if role in STAFF_ROLES:
        stmt = stmt.where(User.role == role)
    if status == "active":
        stmt = stmt.where(User.is_active.is_(True))
    elif status == "inactive":
        stmt = stmt.where(User.is_active.is_(False))
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(User.first_name).like(pattern),
                func.lower(User.last_name).like(pattern),
                func.lower(User.email).like(pattern),
            )
        )
    users = db.execute(stmt).scalars().all()

    today = datetime.now(timezone.utc).date()
    clocked_in = set(
        db.execute(
            select(Shift.user_id)
            .where(Shift.org_id == current_user.org_id)
            .where(Shift.shift_date == today)
            .where(Shift.status.in_(CLOCKED_IN_SHIFT_STATUSES))
        ).scalars()
    )

    staff = [_serialize_user(user, user.id in clocked_in) for user in users]
    return {
        "staff": staff,
        "total": len(staff),
        "active": sum(1 for item in staff if item["isActive"]),
        "clockedIn": len(clocked_in),
    }


@router.post("/admin/staff", status_code=201)
def create_staff(
    payload: StaffCreate,
    request: Request,
    current_user: CurrentUser = Depends(require_permission("staff:write")),
    db: Session = Depends(get_db),
):
    if payload.role not in STAFF_ROLES:
        raise HTTPException(400, "Invalid role")

    duplicate = db.execute(select(User.id).where(func.lower(User.email) == payload.email)).first()
    if duplicate:
        raise HTTPException(400, "A user with this email already exists")

    try:
        auth_user_id = create_auth_user(payload.email, payload.password)
    except AuthProviderError:
        logger.exception("Auth account creation failed for %s", payload.email)
        raise HTTPException(500, "Failed to create user account")

    user = User(
        id=uuid.UUID(auth_user_id),
        org_id=current_user.org_id,
        email=payload.email,
        role=payload.role,
        first_name=payload.first_name,
        last_name=payload.last_name or None,
        phone=payload.phone or None,
        is_active=True,
    )
    try:
        db.add(user)
        db.flush()
    except SQLAlchemyError:
        db.rollback()
        delete_auth_user(auth_user_id)
        logger.exception("User row insert failed for %s", payload.email)
        raise HTTPException(500, "Failed to create user")

    if payload.profile is not None:
        _apply_profile(db, current_user.org_id, user, payload.profile)

    record_activity(
        db,
        org_id=current_user.org_id,
        user_id=current_user.id,
        action="STAFF_CREATED",
        entity_type="USER",
        entity_id=user.id,
        details={
            "email": payload.email,
            "role": payload.role,
            "firstName": payload.first_name,
            "lastName": payload.last_name,
        },
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        delete_auth_user(auth_user_id)
        logger.exception("Staff creation commit failed for %s", payload.email)
        raise HTTPException(500, "Failed to create user")
    db.refresh(user)
    return {"user": _serialize_user(user)}


@router.put("/admin/staff")
def update_staff(
    payload: StaffUpdate,
    request: Request,
    current_user: CurrentUser = Depends(require_permission("staff:write")),
    db: Session = Depends(get_db),
):
    user = _get_staff_in_org(db, current_user.org_id, payload.id)
    fields = payload.model_fields_set

    if str(user.id) == str(current_user.id):
        if payload.role is not None and payload.role != user.role:
            raise HTTPException(400, "Cannot change your own role")
        if payload.is_active is False:
            raise HTTPException(400, "Cannot deactivate your own account")

    changes: dict = {}
    for column in ("first_name", "last_name", "phone"):
        if column in fields:
            changes[column] = getattr(payload, column)
    if payload.role is not None and payload.role in STAFF_ROLES:
        changes["role"] = payload.role
    if payload.is_active is not None:
        changes["is_active"] = payload.is_active

    if payload.email is not None and payload.email != user.email:
        try:
            update_auth_user_email(str(user.id), payload.email)
        except AuthProviderError:
            logger.exception("Auth email update failed for %s", user.id)
            raise HTTPException(500, "Failed to update email")
        changes["email"] = payload.email

    for column, value in changes.items():
        setattr(user, column, value)
    user.updated_at = datetime.now(timezone.utc)

    if payload.profile is not None:
        _apply_profile(db, current_user.org_id, user, payload.profile)

    record_activity(
        db,
        org_id=current_user.org_id,
        user_id=current_user.id,
        action="STAFF_UPDATED",
        entity_type="USER",
        entity_id=user.id,
        details={"updates": changes},
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    db.commit()
    db.refresh(user)
    return {"user": _serialize_user(user)}


@router.delete("/admin/staff")
def deactivate_staff(
    request: Request,
    id: uuid.UUID = Query(...),
    current_user: CurrentUser = Depends(require_permission("staff:delete")),
    db: Session = Depends(get_db),
):
    user = _get_staff_in_org(db, current_user.org_id, id)
    if str(user.id) == str(current_user.id):
        raise HTTPException(400, "Cannot deactivate your own account")

    user.is_active = False
    user.updated_at = datetime.now(timezone.utc)
    record_activity(
        db,
        org_id=current_user.org_id,
        user_id=current_user.id,
        action="STAFF_DEACTIVATED",
        entity_type="USER",
        entity_id=user.id,
        details={"email": user.email},
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    db.commit()
    return {"success": True}
