import uuid
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _normalize_email(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    email = value.strip().lower()
    local, _, domain = email.partition("@")
    if not local or "." not in domain:
        raise ValueError("Invalid email address")
    return email


class _CamelBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StaffProfileInput(_CamelBody):
    employee_id: Optional[str] = None
    hire_date: Optional[date] = None
    hourly_rate_cents: Optional[int] = Field(None, ge=0)
    vehicle_type: Optional[str] = None
    license_plate: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    certifications: Optional[list[str]] = None
    notes: Optional[str] = None


class StaffCreate(_CamelBody):
    email: str
    role: str
    first_name: str = Field(..., min_length=1)
    last_name: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = Field(None, min_length=8)
    profile: Optional[StaffProfileInput] = None

    normalize_email = field_validator("email")(_normalize_email)


class StaffUpdate(_CamelBody):
    id: uuid.UUID
    email: Optional[str] = None
    role: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    is_active: Optional[bool] = None
    profile: Optional[StaffProfileInput] = None

    normalize_email = field_validator("email")(_normalize_email)
