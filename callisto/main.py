"""
FastAPI application entry point.

Sets up the app, lifespan (DB connect/disconnect), CORS, logging, error
handlers, and includes API routers.

Every failure leaves the API as `{"error": ..., "code": ..., "details"?: ...}`
with a 4xx/5xx status; unexpected exceptions are logged with their traceback
and answered with a generic 500 that carries only the exception message.
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from callisto.api import auth, categories, data, items, roadmap
from callisto.config import get_settings
from callisto.database import close_mongo_connection, connect_to_mongo
from callisto.errors import AppError

# Configure logging - single place for log format and level
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context: runs on startup and shutdown.
    We use it to connect to MongoDB at start and disconnect at end.
    """
    # Startup
    settings = get_settings()
    app.state.mongo_client = await connect_to_mongo(settings)
    # Warn if the token secret is missing or looks like a placeholder
    secret = settings.jwt_secret or ""
    if not secret:
        logger.warning("JWT_SECRET is not set. Every signup, login and protected route will fail.")
    elif len(secret) < 32 or "secret" in secret.lower() or "your-" in secret.lower():
        logger.warning("JWT_SECRET looks like a placeholder. Use a long random string in production.")
    if not settings.smtp_configured:
        logger.warning("SMTP not configured; OTP codes will be written to the log instead of emailed.")
    if not settings.groq_api_key:
        logger.warning("GROQ_API_KEY is not set; roadmap generation is disabled.")
    yield
    # Shutdown
    close_mongo_connection(app.state.mongo_client)


def _validation_details(exc: RequestValidationError) -> list:
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        details.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return details


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = _validation_details(exc)
        message = "; ".join(f"{d['field']}: {d['message']}" if d["field"] else d["message"] for d in details)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": message or "Validation failed", "code": "ValidationFailed", "details": details},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "code": "HTTPError"},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "code": "UpstreamError", "details": str(exc)},
        )


def create_application() -> FastAPI:
    """Factory for the FastAPI app. Keeps main.py clean and testable."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        description="Track learning goals, topics and sub-topics; generate roadmaps.",
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    # CORS - allow the web frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production to your frontend origin
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Auth is a dependency (get_current_user_id) used by every protected router
    app.include_router(auth.router, prefix="/auth", tags=["auth"])
    app.include_router(categories.router, prefix="/categories", tags=["categories"])
    app.include_router(items.router, prefix="/items", tags=["items"])
    app.include_router(data.router, tags=["data"])
    app.include_router(roadmap.router, tags=["roadmap"])

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_application()
