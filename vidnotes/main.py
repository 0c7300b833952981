"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from vidnotes.config.templates import get_template_engine
from vidnotes.core.config import settings
from vidnotes.core.dependencies import get_conversation_registry
from vidnotes.core.exceptions import VideoNotesBaseException
from vidnotes.api import notes_router, chatbot_router, health_router
from vidnotes.utils.logging import LoggerSetup
from vidnotes.utils.response_helpers import ResponseHelper

# Setup logging
LoggerSetup.setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"{settings.api_title} v{settings.api_version} starting up")
    engine = get_template_engine()
    prompts = engine.get_available_prompts()
    for prompt_name in prompts:
        engine.validate_configuration(prompt_name)
    logger.info(f"Validated {len(prompts)} prompt templates")
    yield
    await get_conversation_registry().close_all()
    logger.info("Application shutting down")


# Create FastAPI application
app = FastAPI(
    title=settings.api_title,
    description=settings.api_description,
    version=settings.api_version,
    lifespan=lifespan,
    swagger_ui_parameters={
        "defaultModelsExpandDepth": -1,
        "tryItOutEnabled": True,
    }
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(VideoNotesBaseException)
async def notes_exception_handler(request, exc: VideoNotesBaseException):
    """Handle custom notes engine exceptions."""
    return ResponseHelper.create_error_from_exception(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request, exc: RequestValidationError):
    """Handle malformed request bodies."""
    return ResponseHelper.create_error_response(
        error_code="VALIDATION_ERROR",
        message="Invalid request",
        status_code=422,
        details={"errors": [
            {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
            for error in exc.errors()
        ]}
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle FastAPI HTTP exceptions."""
    return ResponseHelper.create_error_response(
        error_code="HTTP_ERROR",
        message=str(exc.detail),
        status_code=exc.status_code
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error", exc_info=exc)

    return ResponseHelper.create_error_response(
        error_code="INTERNAL_SERVER_ERROR",
        message="An unexpected error occurred",
        status_code=500
    )


# Include routers
app.include_router(health_router)
app.include_router(notes_router)
app.include_router(chatbot_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "vidnotes.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug_mode,
        log_level=settings.log_level.lower()
    )
