"""
Thesis Portal

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from thesis_portal.api.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware
from thesis_portal.api.v1 import router as api_v1_router
from thesis_portal.config import get_settings
from thesis_portal.database import close_db, init_db, is_lock_timeout
from thesis_portal.kernel.errors import IneligibleSubmission, PortalError
from thesis_portal.logging_config import configure_logging, get_logger
from thesis_portal.schemas.common import HealthResponse

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Configure logging, create tables, and dispose the engine on shutdown."""
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    Thesis Portal

    Supervision, thesis registration and phased thesis submission.

    ## Workflow

    - **Supervision**: students and groups request a faculty supervisor; each
      accepted student or group takes one of the supervisor's seats
    - **Registration**: the thesis topic must be approved by the supervisor
    - **Submissions**: phases P1, P2 and P3 are submitted in order, each
      approved or rejected once by the supervisor; rejected phases may be
      resubmitted when the supervisor allows it
    - **Groups**: 2 to 4 students working as a single owner
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# Last added is outermost: CORS wraps everything so every response gets its headers
_cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
]

app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _cors_headers(request: Request) -> dict:
    """CORS headers for error responses, which can bypass the CORS middleware."""
    origin = request.headers.get("origin") or ""
    allow_origin = origin if origin in _cors_origins else _cors_origins[0]
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "*",
        "Access-Control-Allow-Headers": "*",
    }


def _error_headers(request: Request) -> dict:
    headers = _cors_headers(request)
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers[REQUEST_ID_HEADER] = req_id
    return headers


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    """Domain errors carry their own status, code and caller-facing message."""
    content = {
        "detail": exc.message,
        "code": exc.code,
        "request_id": getattr(request.state, "request_id", None),
    }
    if isinstance(exc, IneligibleSubmission):
        content["reason"] = getattr(exc.reason, "value", exc.reason)
    logger.info("%s: %s", exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=content, headers=_error_headers(request))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    headers = _error_headers(request)
    if exc.headers:
        headers.update(exc.headers)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })
    content = {
        "detail": "Validation error",
        "code": "validation_error",
        "errors": errors,
        "request_id": getattr(request.state, "request_id", None),
    }
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=content,
        headers=_error_headers(request),
    )


@app.exception_handler(OperationalError)
async def database_busy_handler(request: Request, exc: OperationalError):
    """A writer that waited past the SQLite busy timeout may retry."""
    if not is_lock_timeout(exc):
        return await general_exception_handler(request, exc)
    logger.warning("Database busy: %s", exc.orig)
    content = {
        "detail": "The service is busy with another change. Please try again.",
        "code": "database_busy",
        "request_id": getattr(request.state, "request_id", None),
    }
    headers = _error_headers(request)
    headers["Retry-After"] = "1"
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=content,
        headers=headers,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    req_id = getattr(request.state, "request_id", None)
    if settings.debug:
        content = {"detail": str(exc), "type": type(exc).__name__, "request_id": req_id}
    else:
        content = {"detail": "Internal server error", "request_id": req_id}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers=_error_headers(request),
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    return HealthResponse(status="ok", version=settings.version, database="connected")


app.include_router(api_v1_router, prefix=settings.api_v1_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "thesis_portal.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
