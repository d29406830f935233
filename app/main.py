# app/main.py

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.db import init_db
from app.documents.folders import DocumentFolderManager
from app.esign.exceptions import ESignBaseException, convert_to_http_exception
from app.schemas.response import error_response, success_response
from app.utils.logger import setup_app_logging, get_logger
# Local application imports - Routes
from app.esign.router import router as esign_routes, webhook_router as webhook_routes
from app.oauth.router import router as oauth_routes, callback_router as oauth_callback_routes
from app.api_logs.router import router as api_log_routes

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Prepare the document folders and the relational tables
    """
    DocumentFolderManager().ensure_directories()
    init_db()
    yield


# Create the FastAPI app
esign_app = FastAPI(
    title=f"{settings.app_name} - {settings.environment}",
    description="Bridge between the e-sign provider, the document queue and the ERP",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure logging
setup_app_logging(
    esign_app,
    log_level=settings.log_level,
    use_json=settings.is_production,
    log_file=settings.log_file,
    app_name=settings.app_name,
    environment=settings.environment,
)
logger = get_logger(__name__)

# Add CORS middleware
esign_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_cors_urls.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Render every error in the response envelope
@esign_app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        code = exc.detail.get("code", "ERROR")
        message = exc.detail.get("message", "")
    else:
        code = "NOT_FOUND" if exc.status_code == status.HTTP_404_NOT_FOUND else "ERROR"
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
        headers=getattr(exc, "headers", None),
    )


@esign_app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"Invalid request body: {location} {errors[0].get('msg', '')}".strip()
    logger.warning("Request validation failed", path=request.url.path, errors=len(errors))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response("BAD_REQUEST", message),
    )


@esign_app.exception_handler(ESignBaseException)
async def esign_exception_handler(request: Request, exc: ESignBaseException):
    http_exc = convert_to_http_exception(exc)
    return JSONResponse(
        status_code=http_exc.status_code,
        content=error_response(exc.code, exc.message),
    )


# Include routers
esign_app.include_router(esign_routes)
esign_app.include_router(webhook_routes)
esign_app.include_router(oauth_routes)
esign_app.include_router(oauth_callback_routes)
esign_app.include_router(api_log_routes)


# Root API to check if the server is up
@esign_app.get("/", tags=["Base"])
async def root():
    """
    Root API to check if the server is up
    """
    logger.info("Calling root API for testing")
    return success_response({"name": settings.app_name, "version": VERSION}, "Service is running")


@esign_app.get("/health", tags=["Base"])
async def health_check():
    return success_response(
        {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION,
        },
        "Service is healthy",
    )
