import logging
import secrets

from supabase import create_client

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class AuthProviderError(Exception):
    """The hosted auth service rejected or failed an admin call."""


def get_admin_client():
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise RuntimeError("Supabase environment variables not configured")
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


def generate_temp_password() -> str:
    return secrets.token_urlsafe(16)


def create_auth_user(email: str, password: str | None = None) -> str:
    """Create a confirmed auth account and return its id."""
    client = get_admin_client()
    try:
        response = client.auth.admin.create_user(
            {
                "email": email,
                "password": password or generate_temp_password(),
                "email_confirm": True,
            }
        )
    except Exception as exc:
        raise AuthProviderError("Failed to create user account") from exc

    user = getattr(response, "user", None)
    if user is None or not getattr(user, "id", None):
        raise AuthProviderError("Failed to create user account")
    return str(user.id)


def delete_auth_user(user_id: str) -> None:
    client = get_admin_client()
    try:
        client.auth.admin.delete_user(user_id)
    except Exception:
        # The users row was never written; a dangling auth account is only logged.
        logger.exception("Failed to delete auth user %s", user_id)


def update_auth_user_email(user_id: str, email: str) -> None:
    client = get_admin_client()
    try:
        client.auth.admin.update_user_by_id(user_id, {"email": email})
    except Exception as exc:
        raise AuthProviderError("Failed to update email") from exc
