import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# IMPORTANT:
# This imports ALL models so SQLAlchemy registers tables + FKs correctly
import app.models  # noqa: F401

from app.core.config import settings
from app.core.db import SessionLocal
from app.core.logging import setup_logging
from app.core.scheduler import build_scheduler, start_scheduler, stop_scheduler
from app.services.errors import VoucherError

# Routers
from app.routers.vouchers import router as vouchers_router
from app.routers.admin_vouchers import router as admin_vouchers_router
from app.routers.admin_redemptions import router as admin_redemptions_router
from app.routers.admin_dashboard import router as admin_dashboard_router

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.EXPIRY_SWEEP_ENABLED:
        scheduler = build_scheduler(SessionLocal, interval_seconds=settings.EXPIRY_SWEEP_INTERVAL_SECONDS)
        start_scheduler(scheduler)

    yield

    if scheduler is not None:
        stop_scheduler(scheduler)


app = FastAPI(title="Voucher Redemption API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Every error body is {"error": "..."}
@app.exception_handler(VoucherError)
async def voucher_error_handler(request: Request, exc: VoucherError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "reason": exc.reason},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"error": f"{loc}: {message}" if loc else message, "reason": "ValidationError"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"error": "Internal server error"}
    if settings.EXPOSE_INTERNAL_ERRORS:
        content["detail"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# Redemption
app.include_router(vouchers_router)

# Admin
app.include_router(admin_vouchers_router)
app.include_router(admin_redemptions_router)
app.include_router(admin_dashboard_router)
