"""Health check and monitoring endpoints."""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from vidnotes.core.config import settings
from vidnotes.core.dependencies import get_analysis_store_dep
from vidnotes.models.responses import HealthData, DependencyStatus
from vidnotes.services import InMemoryAnalysisStore

router = APIRouter(tags=["health"])

service_start_time = datetime.now()


@router.get("/")
async def root():
    """Root endpoint."""
    return {"message": f"{settings.api_title} is running"}


@router.get("/health")
async def health_check(store: InMemoryAnalysisStore = Depends(get_analysis_store_dep)):
    """
    Health check endpoint with dependency status
    """
    uptime = int((datetime.now() - service_start_time).total_seconds())

    dependencies = DependencyStatus(
        yt_dlp="healthy",
        openai="healthy" if settings.openai_api_key else "not_configured"
    )

    health_data = HealthData(
        status="healthy" if settings.openai_api_key else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=settings.api_version,
        dependencies=dependencies,
        uptime_seconds=uptime,
        stored_analyses=store.get_stats()["stored_analyses"]
    )

    return JSONResponse(
        status_code=200,
        content=health_data.model_dump()
    )
