"""Service-area zip codes, kept on one pricing rule per zone."""

from __future__ import annotations

import logging
import re
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.auth import CurrentUser, require_permission
from app.core.dependencies import get_db
from app.models.office import PricingRule

logger = logging.getLogger(__name__)

router = APIRouter()

ZIP_RE = re.compile(r"[0-9]{5}")
ZONE_PRIORITY = {"REGULAR": 5, "PREMIUM": 10}


class ServiceAreaUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    action: Literal["add", "delete"]
    zone: Literal["REGULAR", "PREMIUM"]
    zip_codes: list[str] = Field(..., min_length=1)


def _rule_name(zone: str) -> str:
    return f"Service Area - {zone}"


def _result_message(action: str, changed: list[str], unchanged: list[str]) -> tuple[bool, str]:
    if action == "add":
        if changed and not unchanged:
            return True, f"Successfully added {len(changed)} zip code(s)"
        if unchanged and not changed:
            return False, f"All {len(unchanged)} zip code(s) already exist"
        return True, f"Added {len(changed)} zip code(s). {len(unchanged)} already existed"
    if changed and not unchanged:
        return True, f"Successfully deleted {len(changed)} zip code(s)"
    if unchanged and not changed:
        return False, f"None of the {len(unchanged)} zip code(s) were found in the list"
    return True, f"Deleted {len(changed)} zip code(s). {len(unchanged)} not found"


@router.get("/admin/service-area")
def get_service_area(
    current_user: CurrentUser = Depends(require_permission("settings:read")),
    db: Session = Depends(get_db),
):
    rules = db.execute(
        select(PricingRule.zone, PricingRule.zip_codes)
        .where(PricingRule.org_id == current_user.org_id)
        .where(PricingRule.is_active.is_(True))
    ).all()

    regular: set[str] = set()
    premium: set[str] = set()
    for zone, zips in rules:
        target = premium if zone == "PREMIUM" else regular
        target.update(zips or [])

    return {"zipCodes": {"regular": sorted(regular), "premium": sorted(premium)}}


@router.post("/admin/service-area")
def update_service_area(
    payload: ServiceAreaUpdate,
    current_user: CurrentUser = Depends(require_permission("settings:write")),
    db: Session = Depends(get_db),
):
    invalid = [z for z in payload.zip_codes if not ZIP_RE.fullmatch(z)]
    if invalid:
        raise HTTPException(400, f"Invalid zip codes: {', '.join(invalid)}")

    rule = db.execute(
        select(PricingRule)
        .where(PricingRule.org_id == current_user.org_id)
        .where(PricingRule.name == _rule_name(payload.zone))
        .where(PricingRule.zone == payload.zone)
    ).scalar_one_or_none()

    current = set(rule.zip_codes or []) if rule else set()
    changed: list[str] = []
    unchanged: list[str] = []
    for zip_code in payload.zip_codes:
        present = zip_code in current
        if payload.action == "add":
            if present or zip_code in changed:
                unchanged.append(zip_code)
            else:
                current.add(zip_code)
                changed.append(zip_code)
        elif present:
            current.discard(zip_code)
            changed.append(zip_code)
        else:
            unchanged.append(zip_code)

    updated = sorted(current)
    if rule is None:
        rule = PricingRule(
            org_id=current_user.org_id,
            name=_rule_name(payload.zone),
            description=f"Service area zip codes for {payload.zone.lower()} pricing",
            zone=payload.zone,
            zip_codes=updated,
            base_price_cents=0,
            priority=ZONE_PRIORITY[payload.zone],
            is_active=True,
        )
        db.add(rule)
    else:
        rule.zip_codes = updated
    db.commit()
    logger.info(
        "Service area %s %s: %d changed for org %s",
        payload.zone,
        payload.action,
        len(changed),
        current_user.org_id,
    )

    success, message = _result_message(payload.action, changed, unchanged)
    response = {
        "success": success,
        "action": payload.action,
        "zone": payload.zone,
        "zipCodes": updated,
        "message": message,
    }
    if payload.action == "add":
        response.update(added=changed, alreadyExisted=unchanged)
    else:
        response.update(deleted=changed, notFound=unchanged)
    return response
