import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models.office import ActivityLog

logger = logging.getLogger(__name__)

PII_REDACTION_FALLBACK_FIELDS = ("phone", "email", "password", "address")


def _redact_pii(value: Any, redact_keys: set[str]) -> Any:
    if value is None:
        return None
    if isinstance(value, dict):
        redacted = {}
        for key, item in value.items():
            if isinstance(key, str) and key.lower() in redact_keys:
                redacted[key] = "[REDACTED]"
            else:
                redacted[key] = _redact_pii(item, redact_keys)
        return redacted
    if isinstance(value, list):
        return [_redact_pii(item, redact_keys) for item in value]
    return value


def record_activity(
    db: Session,
    *,
    org_id: str,
    user_id: Optional[str],
    action: str,
    entity_type: str,
    entity_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> ActivityLog:
    """Stage an activity-log row; the caller owns the commit."""
    settings = get_settings()
    if settings.pii_redaction_enabled and details is not None:
        configured = {item.lower() for item in settings.pii_redaction_fields}
        details = _redact_pii(details, configured or set(PII_REDACTION_FALLBACK_FIELDS))

    entry = ActivityLog(
        org_id=org_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    logger.info("Activity %s on %s %s by %s", action, entity_type, entity_id, user_id)
    return entry
