"""
Clickledger — affiliate click attribution and commission analytics.
Main application entry point.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.analytics import router as analytics_router
from app.api.campaigns import router as campaigns_router
from app.api.conversions import router as conversions_router
from app.api.links import router as links_router
from app.api.redirect import router as redirect_router
from app.core.errors import AffiliateError
from app.middleware.security import SecurityHeadersMiddleware
from app.config import get_settings

import structlog

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.dev.ConsoleRenderer() if get_settings().debug else structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("clickledger_starting", base_url=get_settings().base_url)
    yield
    logger.info("clickledger_shutting_down")


app = FastAPI(
    title="Clickledger",
    description="Affiliate click attribution, commission and campaign analytics.",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if get_settings().debug else None,
    redoc_url="/redoc" if get_settings().debug else None,
    openapi_url="/openapi.json" if get_settings().debug else None,
)

app.add_middleware(SecurityHeadersMiddleware)

ALLOWED_ORIGINS = ["*"] if get_settings().debug else [
    "https://clickledger.io",
    "https://admin.clickledger.io",
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["X-API-Key", "Content-Type"],
)


@app.exception_handler(AffiliateError)
async def affiliate_error_handler(request: Request, exc: AffiliateError):
    logger.info("request_rejected",
                path=request.url.path,
                error=type(exc).__name__,
                status=exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, **exc.extra},
    )


# --- Routes ---
app.include_router(redirect_router)
app.include_router(conversions_router)
app.include_router(campaigns_router)
app.include_router(links_router)
app.include_router(analytics_router)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "clickledger", "version": VERSION}
