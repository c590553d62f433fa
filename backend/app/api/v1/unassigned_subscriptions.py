"""Locations waiting for a tech or route assignment, and the assignment itself."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.auth import CurrentUser, require_permission
from app.core.dependencies import get_db
from app.core.permissions import STAFF_ROLES
from app.models.office import Client, Job, Location, Route, ServicePlan, Subscription, User
from app.services.activity_log import record_activity
from app.services.unassigned_locations import find_orphaned_locations, find_unassigned_subscriptions
from app.utils.client_ip import get_client_ip, get_user_agent
from app.utils.formatting import client_display_name, iso_utc

logger = logging.getLogger(__name__)

router = APIRouter()


def _item(*, item_id, client, location, plan_name, frequency, sign_up, needs_cleanup, needs_route) -> dict:
    return {
        "id": item_id,
        "clientId": str(client.id),
        "clientName": client_display_name(client),
        "locationId": str(location.id),
        "address": location.address_line1,
        "city": location.city,
        "zipCode": location.zip_code,
        "planName": plan_name,
        "frequency": frequency,
        "signUpDate": iso_utc(sign_up),
        "hasPaymentMethod": bool(client.stripe_customer_id),
        "needsInitialCleanup": needs_cleanup,
        "needsRouteAssignment": needs_route,
    }


@router.get("/admin/unassigned-subscriptions")
def list_unassigned_subscriptions(
    current_user: CurrentUser = Depends(require_permission("subscriptions:read")),
    db: Session = Depends(get_db),
):
    org_id = current_user.org_id
    today = datetime.now(timezone.utc).date()

    try:
        sub_rows = db.execute(
            select(Subscription, Client, Location, ServicePlan.name)
            .join(Client, Client.id == Subscription.client_id)
            .join(Location, Location.id == Subscription.location_id)
            .outerjoin(ServicePlan, ServicePlan.id == Subscription.plan_id)
            .where(Subscription.org_id == org_id)
            .where(Subscription.status == "ACTIVE")
            .order_by(Subscription.created_at.desc(), Subscription.id)
        ).all()

        sub_ids = [row[0].id for row in sub_rows]
        jobs = []
        if sub_ids:
            jobs = db.execute(
                select(Job.subscription_id, Job.route_id, Job.status, Job.scheduled_date)
                .where(Job.org_id == org_id)
                .where(Job.subscription_id.in_(sub_ids))
            ).all()

        location_rows = db.execute(
            select(Location, Client)
            .join(Client, Client.id == Location.client_id)
            .where(Location.org_id == org_id)
            .where(Location.is_active.is_(True))
            .order_by(Location.created_at.desc(), Location.id)
        ).all()
    except Exception:
        logger.exception("Unassigned subscriptions query failed for org %s", org_id)
        raise HTTPException(500, "Failed to fetch subscriptions")

    related = {sub.id: (client, location, plan_name) for sub, client, location, plan_name in sub_rows}
    items = []
    for sub, assignment in find_unassigned_subscriptions([row[0] for row in sub_rows], jobs, today):
        client, location, plan_name = related[sub.id]
        items.append(
            _item(
                item_id=str(sub.id),
                client=client,
                location=location,
                plan_name=plan_name,
                frequency=sub.frequency,
                sign_up=sub.created_at,
                needs_cleanup=assignment.needs_initial_cleanup,
                needs_route=assignment.needs_route_assignment or assignment.has_no_jobs,
            )
        )

    covered = {row[0].location_id for row in sub_rows}
    clients_by_location = {location.id: client for location, client in location_rows}
    candidates = [location for location, _ in location_rows]
    for location in find_orphaned_locations(
        candidates,
        covered,
        client_status=lambda loc: clients_by_location[loc.id].status,
    ):
        items.append(
            _item(
                item_id=f"loc-{location.id}",
                client=clients_by_location[location.id],
                location=location,
                plan_name=None,
                frequency="N/A",
                sign_up=location.created_at,
                needs_cleanup=True,
                needs_route=True,
            )
        )

    return {"subscriptions": items, "total": len(items)}


Weekday = Literal["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY"]

INITIAL_CLEANUP_MINUTES = 30
RECURRING_VISIT_MINUTES = 15


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InitialCleanupPlan(_CamelModel):
    cleanup_date: date = Field(..., alias="date")
    tech_id: uuid.UUID
    estimated_minutes: Optional[int] = Field(None, gt=0)


class RecurringServicePlan(_CamelModel):
    start_date: date
    service_days: list[Weekday] = Field(..., min_length=1)
    tech_id: uuid.UUID
    estimated_minutes: Optional[int] = Field(None, gt=0)


class SubscriptionAssignment(_CamelModel):
    subscription_id: uuid.UUID
    initial_cleanup: Optional[InitialCleanupPlan] = None
    recurring_service: RecurringServicePlan


def _get_tech(db: Session, org_id: str, tech_id: uuid.UUID) -> User:
    tech = db.execute(
        select(User)
        .where(User.id == tech_id)
        .where(User.org_id == org_id)
        .where(User.role.in_(STAFF_ROLES))
        .where(User.is_active.is_(True))
    ).scalar_one_or_none()
    if tech is None:
        raise HTTPException(404, "Tech not found")
    return tech


def _find_or_create_route(db: Session, org_id: str, tech: User, route_date: date) -> Route:
    """One route per tech per day."""
    route = db.execute(
        select(Route)
        .where(Route.org_id == org_id)
        .where(Route.assigned_to == tech.id)
        .where(Route.route_date == route_date)
        .order_by(Route.created_at, Route.id)
        .limit(1)
    ).scalar_one_or_none()
    if route is not None:
        return route

    tech_name = " ".join(part for part in (tech.first_name, tech.last_name) if part) or "Tech"
    route = Route(
        org_id=org_id,
        assigned_to=tech.id,
        route_date=route_date,
        name=f"{tech_name} - {route_date.isoformat()}",
        status="PLANNED",
    )
    db.add(route)
    db.flush()
    return route


def _serialize_job(job: Job) -> dict:
    return {
        "id": str(job.id),
        "scheduledDate": job.scheduled_date.isoformat(),
        "status": job.status,
        "assignedTo": str(job.assigned_to) if job.assigned_to else None,
        "routeId": str(job.route_id) if job.route_id else None,
        "durationMinutes": job.duration_minutes,
        "priceCents": job.price_cents,
        "isInitialCleanup": bool((job.meta or {}).get("is_initial_cleanup")),
    }


@router.post("/admin/unassigned-subscriptions/assign")
def assign_subscription(
    payload: SubscriptionAssignment,
    request: Request,
    current_user: CurrentUser = Depends(require_permission("subscriptions:write")),
    db: Session = Depends(get_db),
):
    """Put a subscription on a tech's routes, optionally booking its initial cleanup."""
    org_id = current_user.org_id
    today = datetime.now(timezone.utc).date()

    row = db.execute(
        select(Subscription, Client)
        .join(Client, Client.id == Subscription.client_id)
        .where(Subscription.id == payload.subscription_id)
        .where(Subscription.org_id == org_id)
    ).first()
    if row is None:
        raise HTTPException(404, "Subscription not found")
    subscription, client = row

    recurring = payload.recurring_service
    recurring_tech = _get_tech(db, org_id, recurring.tech_id)
    cleanup_tech = None
    if payload.initial_cleanup is not None:
        cleanup_tech = _get_tech(db, org_id, payload.initial_cleanup.tech_id)

    try:
        cleanup_job = None
        if payload.initial_cleanup is not None:
            cleanup = payload.initial_cleanup
            route = _find_or_create_route(db, org_id, cleanup_tech, cleanup.cleanup_date)
            cleanup_job = Job(
                org_id=org_id,
                subscription_id=subscription.id,
                client_id=subscription.client_id,
                location_id=subscription.location_id,
                assigned_to=cleanup_tech.id,
                route_id=route.id,
                scheduled_date=cleanup.cleanup_date,
                status="SCHEDULED",
                duration_minutes=cleanup.estimated_minutes or INITIAL_CLEANUP_MINUTES,
                price_cents=subscription.price_per_visit_cents or 0,
                meta={
                    "is_initial_cleanup": True,
                    "generated_by": "assignment",
                    "generated_at": datetime.now(timezone.utc).isoformat(),
                },
            )
            db.add(cleanup_job)

        # Tech assignment lives on jobs and routes; the subscription only keeps the day.
        subscription.preferred_day = recurring.service_days[0]

        pending = db.execute(
            select(Job)
            .where(Job.org_id == org_id)
            .where(Job.subscription_id == subscription.id)
            .where(Job.status == "SCHEDULED")
            .where(Job.scheduled_date >= today)
            .where(Job.route_id.is_(None))
            .order_by(Job.scheduled_date, Job.id)
        ).scalars().all()
        for job in pending:
            route = _find_or_create_route(db, org_id, recurring_tech, job.scheduled_date)
            job.assigned_to = recurring_tech.id
            job.route_id = route.id
            job.duration_minutes = recurring.estimated_minutes or RECURRING_VISIT_MINUTES

        record_activity(
            db,
            org_id=org_id,
            user_id=current_user.id,
            action="SUBSCRIPTION_ASSIGNED",
            entity_type="SUBSCRIPTION",
            entity_id=subscription.id,
            details={
                "clientName": client_display_name(client),
                "startDate": recurring.start_date.isoformat(),
                "serviceDays": list(recurring.service_days),
                "initialCleanupCreated": cleanup_job is not None,
                "recurringJobsUpdated": len(pending),
            },
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Assignment failed for subscription %s", subscription.id)
        raise HTTPException(500, "Failed to assign subscription")

    return {
        "success": True,
        "initialCleanupJob": _serialize_job(cleanup_job) if cleanup_job is not None else None,
        "recurringJobsUpdated": len(pending),
        "subscription": {"id": str(subscription.id), "preferredDay": subscription.preferred_day},
    }
