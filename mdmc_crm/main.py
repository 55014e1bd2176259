"""
MDMC Music Ads CRM - FastAPI Application
Main entry point with all routes configured.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mdmc_crm import __version__
from mdmc_crm.config import settings
from mdmc_crm.database import init_db
from mdmc_crm.core.exceptions import CRMException, UnauthorizedError, TooManyRequestsError
from mdmc_crm.core.rate_limit import UserRateLimiter
from mdmc_crm.schemas.common import ErrorResponse, HealthResponse

from mdmc_crm.api import auth, users, leads, campaigns, analytics, dashboard

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    await init_db()
    logger.info("MDMC CRM API %s started", __version__)
    yield


app = FastAPI(
    title="MDMC Music Ads CRM API",
    description="Lead and campaign management for music advertising",
    version=__version__,
    lifespan=lifespan
)

app.state.rate_limiter = UserRateLimiter(
    max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
    window_seconds=settings.RATE_LIMIT_WINDOW_MINUTES * 60,
    enabled=settings.RATE_LIMIT_ENABLED
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, message: str, code: str = None, errors: list = None, headers: dict = None):
    body = ErrorResponse(message=message, code=code, errors=errors)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers
    )


@app.exception_handler(CRMException)
async def crm_exception_handler(request: Request, exc: CRMException):
    headers = None
    if isinstance(exc, UnauthorizedError):
        headers = {"WWW-Authenticate": "Bearer"}
    elif isinstance(exc, TooManyRequestsError):
        headers = {"Retry-After": str(exc.retry_after)}
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.message, exc.code, exc.errors, headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"]
        }
        for error in exc.errors()
    ]
    return _error_response(400, "Validation failed", "VALIDATION_ERROR", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(500, "Internal server error")


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(leads.router)
app.include_router(campaigns.router)
app.include_router(analytics.router)
app.include_router(dashboard.router)


@app.get("/")
async def root():
    return {
        "message": "MDMC Music Ads CRM API is running",
        "version": __version__,
        "docs": "/docs"
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(version=__version__)
