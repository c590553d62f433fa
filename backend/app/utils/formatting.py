from datetime import datetime, timezone
from typing import Any, Optional


def iso_utc(dt: Optional[datetime]) -> Optional[str]:
    if not dt:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def client_display_name(client: Any) -> str:
    """Company name when set, otherwise "first last"."""
    if client is None:
        return ""
    if getattr(client, "company_name", None):
        return client.company_name
    first = getattr(client, "first_name", None) or ""
    last = getattr(client, "last_name", None) or ""
    return f"{first} {last}".strip()
