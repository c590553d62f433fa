import uuid
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ChangeRequestStatus(StrEnum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    DISMISSED = "DISMISSED"


class ChangeRequestType(StrEnum):
    CHANGE_CONTACT_INFO = "CHANGE_CONTACT_INFO"
    CHANGE_ADDRESS = "CHANGE_ADDRESS"
    CHANGE_SERVICE_DAY = "CHANGE_SERVICE_DAY"
    CHANGE_SERVICE_TIME = "CHANGE_SERVICE_TIME"
    CHANGE_FREQUENCY = "CHANGE_FREQUENCY"
    PAUSE_SERVICE = "PAUSE_SERVICE"
    RESUME_SERVICE = "RESUME_SERVICE"
    CANCEL_SERVICE = "CANCEL_SERVICE"
    ADD_DOG = "ADD_DOG"
    REMOVE_DOG = "REMOVE_DOG"
    UPDATE_DOG_INFO = "UPDATE_DOG_INFO"
    CHANGE_GATE_CODE = "CHANGE_GATE_CODE"
    UPDATE_ACCESS_NOTES = "UPDATE_ACCESS_NOTES"
    CHANGE_BILLING_INFO = "CHANGE_BILLING_INFO"
    CHANGE_PAYMENT_METHOD = "CHANGE_PAYMENT_METHOD"
    REQUEST_EXTRA_CLEANUP = "REQUEST_EXTRA_CLEANUP"
    SKIP_NEXT_SERVICE = "SKIP_NEXT_SERVICE"
    RESCHEDULE_SERVICE = "RESCHEDULE_SERVICE"
    ADD_LOCATION = "ADD_LOCATION"
    REMOVE_LOCATION = "REMOVE_LOCATION"
    CHANGE_TECH_PREFERENCE = "CHANGE_TECH_PREFERENCE"
    OTHER = "OTHER"


RESOLVED_STATUSES = {ChangeRequestStatus.COMPLETED, ChangeRequestStatus.DISMISSED}


def format_request_type(value: str) -> str:
    """CHANGE_GATE_CODE -> Change Gate Code"""
    return " ".join(word[:1] + word[1:].lower() for word in value.split("_"))


class _CamelBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChangeRequestCreate(_CamelBody):
    client_id: uuid.UUID
    request_type: ChangeRequestType
    title: str = Field(..., min_length=1, max_length=255)
    subscription_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    current_value: Optional[Any] = None
    requested_value: Optional[Any] = None


class ChangeRequestUpdate(_CamelBody):
    id: uuid.UUID
    status: Optional[ChangeRequestStatus] = None
    resolution_notes: Optional[str] = None
