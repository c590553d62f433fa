import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.admin_dashboard import router as dashboard_router
from app.api.v1.change_requests import router as change_requests_router
from app.api.v1.org_settings import router as org_settings_router
from app.api.v1.service_area import router as service_area_router
from app.api.v1.staff import router as staff_router
from app.api.v1.unassigned_subscriptions import router as unassigned_router
from app.core.config import get_settings
from app.utils.client_ip import get_client_ip, ip_in_allowlist

settings = get_settings()

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Office API",
    version="1.0.0",
    docs_url="/docs" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.openapi_enabled else None,
)

GENERIC_ERROR_DETAIL = "Internal server error"


@app.on_event("startup")
async def _startup_jobs():
    current = get_settings()
    problems = current.validate_required_config()
    if not problems:
        return
    for problem in problems:
        logger.warning("Configuration problem: %s", problem)
    if current.is_production:
        raise RuntimeError("Configuration validation failed in production environment")


if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

app.include_router(dashboard_router, prefix="/api/v1", tags=["dashboard"])
app.include_router(unassigned_router, prefix="/api/v1", tags=["subscriptions"])
app.include_router(change_requests_router, prefix="/api/v1", tags=["change-requests"])
app.include_router(service_area_router, prefix="/api/v1", tags=["settings"])
app.include_router(org_settings_router, prefix="/api/v1", tags=["settings"])
app.include_router(staff_router, prefix="/api/v1", tags=["staff"])


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    if settings.expose_error_details:
        return JSONResponse(status_code=500, content={"detail": str(exc)})
    return JSONResponse(status_code=500, content={"detail": GENERIC_ERROR_DETAIL})


@app.middleware("http")
async def admin_ip_allowlist_middleware(request: Request, call_next):
    allowlist = settings.admin_ip_allowlist
    if not allowlist:
        return await call_next(request)

    if request.url.path.startswith("/api/v1/admin/"):
        ip = get_client_ip(request) or ""
        if not ip_in_allowlist(ip, allowlist):
            return JSONResponse(status_code=403, content={"detail": "Admin IP not allowed"})
    return await call_next(request)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    if not settings.security_headers_enabled:
        return response

    headers = response.headers
    if "X-Content-Type-Options" not in headers:
        headers["X-Content-Type-Options"] = "nosniff"
    if "X-Frame-Options" not in headers:
        headers["X-Frame-Options"] = "DENY"
    if "Referrer-Policy" not in headers:
        headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if "Permissions-Policy" not in headers:
        headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
    if "Strict-Transport-Security" not in headers:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    if "Content-Security-Policy" not in headers:
        headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"
    if request.url.path.startswith("/api/v1/admin/") and "Cache-Control" not in headers:
        headers["Cache-Control"] = "no-store"

    return response


@app.get("/health")
async def health_check():
    return {"status": "ok"}
