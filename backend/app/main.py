import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.clients import router as clients_router
from app.api.v1.company_settings import router as company_settings_router
from app.api.v1.dashboard import router as dashboard_router
from app.api.v1.equipment import router as equipment_router
from app.api.v1.service_orders import router as service_orders_router
from app.api.v1.technicians import router as technicians_router
from app.api.v1.users import router as users_router
from app.core.config import get_settings
from app.services.recurring_jobs import start_notification_outbox_worker

settings = get_settings()
_notification_outbox_task = None

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Internal server error"
# 5xx messages raised on purpose by the routers; anything else is masked.
PUBLIC_5XX_DETAILS = {"PDF generation failed", "Email delivery failed"}

app = FastAPI(
    title="Field Service Orders API",
    version="1.0.0",
    docs_url="/docs" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.openapi_enabled else None,
)


@app.on_event("startup")
async def _startup_jobs():
    global _notification_outbox_task
    if _notification_outbox_task is None and settings.enable_recurring_jobs and settings.enable_notification_outbox:
        _notification_outbox_task = start_notification_outbox_worker()
        logger.info("Notification outbox worker started")
    elif settings.enable_notification_outbox and not settings.enable_recurring_jobs:
        logger.warning(
            "Notification outbox is enabled but ENABLE_RECURRING_JOBS is off: "
            "failed emails stay in RETRY until a worker runs"
        )


@app.on_event("shutdown")
async def _shutdown_jobs():
    global _notification_outbox_task
    if _notification_outbox_task is not None:
        _notification_outbox_task.cancel()
        _notification_outbox_task = None


if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

app.include_router(service_orders_router, prefix="/api", tags=["service-orders"])
app.include_router(clients_router, prefix="/api", tags=["clients"])
app.include_router(equipment_router, prefix="/api", tags=["equipment"])
app.include_router(technicians_router, prefix="/api", tags=["technicians"])
app.include_router(users_router, prefix="/api", tags=["users"])
app.include_router(company_settings_router, prefix="/api", tags=["company-settings"])
app.include_router(dashboard_router, prefix="/api", tags=["dashboard"])


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Hide internal details for 5xx in production unless explicitly enabled.
    public = isinstance(exc.detail, str) and exc.detail in PUBLIC_5XX_DETAILS
    if exc.status_code >= 500 and not public and not settings.expose_error_details:
        return JSONResponse(status_code=exc.status_code, content={"detail": GENERIC_ERROR})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "")})
    return JSONResponse(status_code=400, content={"detail": "Invalid data", "errors": errors})


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception")
    if settings.expose_error_details:
        return JSONResponse(status_code=500, content={"detail": str(exc)})
    return JSONResponse(status_code=500, content={"detail": GENERIC_ERROR})


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

    return response


@app.get("/health")
async def health_check():
    return {"status": "ok"}
