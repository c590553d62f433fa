import jwt
import pytest
from fastapi import HTTPException

from app.core.auth import get_current_user, require_permission, require_roles, CurrentUser
from app.core.config import get_settings

SECRET = "test-secret-that-is-long-enough-for-hs256"
ORG_ID = "11111111-1111-1111-1111-111111111111"


def _make_token(
    secret: str,
    aud: str,
    *,
    app_role: str | None = "OWNER",
    org_id: str | None = ORG_ID,
    user_role: str | None = None,
) -> str:
    app_meta = {}
    if app_role is not None:
        app_meta["role"] = app_role
    if org_id is not None:
        app_meta["org_id"] = org_id
    user_meta = {}
    if user_role is not None:
        user_meta["role"] = user_role
        user_meta["org_id"] = ORG_ID

    payload = {
        "sub": "00000000-0000-0000-0000-000000000123",
        "email": "owner@test.local",
        "app_metadata": app_meta,
        "user_metadata": user_meta,
        "aud": aud,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def jwt_env(monkeypatch):
    monkeypatch.setenv("SUPABASE_JWT_SECRET", SECRET)
    monkeypatch.setenv("SUPABASE_JWT_AUDIENCE", "authenticated")
    get_settings.cache_clear()


def test_get_current_user_accepts_matching_audience(jwt_env):
    token = _make_token(SECRET, "authenticated")
    user = get_current_user(authorization=f"Bearer {token}")
    assert user.role == "OWNER"
    assert user.org_id == ORG_ID
    assert user.email == "owner@test.local"


def test_get_current_user_rejects_wrong_audience(jwt_env):
    token = _make_token(SECRET, "other")
    with pytest.raises(HTTPException) as exc:
        get_current_user(authorization=f"Bearer {token}")
    assert exc.value.status_code == 401


def test_get_current_user_rejects_wrong_secret(jwt_env):
    token = _make_token("a-completely-different-secret-value-xyz", "authenticated")
    with pytest.raises(HTTPException) as exc:
        get_current_user(authorization=f"Bearer {token}")
    assert exc.value.status_code == 401


def test_get_current_user_ignores_user_metadata_role(jwt_env):
    token = _make_token(SECRET, "authenticated", app_role=None, org_id=None, user_role="OWNER")
    with pytest.raises(HTTPException) as exc:
        get_current_user(authorization=f"Bearer {token}")
    assert exc.value.status_code == 403


def test_get_current_user_requires_org_id(jwt_env):
    token = _make_token(SECRET, "authenticated", org_id=None)
    with pytest.raises(HTTPException) as exc:
        get_current_user(authorization=f"Bearer {token}")
    assert exc.value.status_code == 403


def test_unknown_role_is_forbidden(jwt_env):
    token = _make_token(SECRET, "authenticated", app_role="ADMIN")
    with pytest.raises(HTTPException) as exc:
        get_current_user(authorization=f"Bearer {token}")
    assert exc.value.status_code == 403


@pytest.mark.parametrize("header", [None, "", "Token abc", "Bearer not-a-jwt"])
def test_missing_or_malformed_bearer(jwt_env, header):
    with pytest.raises(HTTPException) as exc:
        get_current_user(authorization=header)
    assert exc.value.status_code == 401


def test_no_verification_method_configured(monkeypatch):
    monkeypatch.setenv("SUPABASE_JWT_SECRET", "")
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.delenv("NEXT_PUBLIC_SUPABASE_URL", raising=False)
    get_settings.cache_clear()
    with pytest.raises(HTTPException) as exc:
        get_current_user(authorization="Bearer abc")
    assert exc.value.status_code == 500


def test_require_permission_and_roles():
    office = CurrentUser(id="u1", role="OFFICE", org_id=ORG_ID)
    assert require_permission("reports:read")(user=office) is office
    with pytest.raises(HTTPException) as exc:
        require_permission("settings:write")(user=office)
    assert exc.value.status_code == 403
    assert exc.value.detail == "Forbidden: Insufficient permissions"

    with pytest.raises(HTTPException) as exc:
        require_roles("OWNER", "MANAGER")(user=office)
    assert exc.value.detail == "Access denied"
