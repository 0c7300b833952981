"""Video processing and note retrieval endpoints."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from vidnotes.config.formats import (
    get_format, get_free_formats, get_premium_formats, get_recommended_format, list_formats
)
from vidnotes.core.dependencies import get_analysis_pipeline_dep, get_note_service_dep
from vidnotes.core.exceptions import VideoNotesBaseException
from vidnotes.models.analysis import VerbosityLevel
from vidnotes.models.requests import ProcessRequest
from vidnotes.models.responses import (
    ContentAnalysis, FormatInfo, FormatRender, ProcessingResponse, QualityReport
)
from vidnotes.services import AnalysisPipeline, NoteService, PipelineResult
from vidnotes.utils.logging import CorrelatedLogger
from vidnotes.utils.response_helpers import ResponseHelper

router = APIRouter(tags=["notes"])
logger = CorrelatedLogger(__name__)


def build_processing_response(result: PipelineResult, requested_formats: Optional[list] = None) -> ProcessingResponse:
    """Shape a stored artifact into the processing response shown by the UI."""
    analysis = result.analysis

    outputs = {
        format_id: FormatRender(
            template=format_id,
            title=get_format(format_id).name,
            content=output.content,
            verbosity_versions=output.verbosity_levels
        )
        for format_id, output in analysis.all_template_outputs.items()
    }

    order = [f for f in (requested_formats or []) if f in outputs] + sorted(outputs)
    primary = outputs[order[0]] if order else None

    return ProcessingResponse(
        video_id=analysis.video_id,
        analysis_version=analysis.analysis_version,
        title=analysis.title,
        template=primary.template if primary else None,
        content=primary.content if primary else "",
        verbosity_versions=primary.verbosity_versions if primary else None,
        content_analysis=ContentAnalysis(
            primary_subject=analysis.primary_subject,
            secondary_subjects=analysis.secondary_subjects,
            difficulty_level=analysis.difficulty_level,
            content_tags=analysis.content_tags,
            chapter_titles=[chapter.title for chapter in analysis.content_structure.chapters],
            concepts=analysis.concept_map.names,
            key_timestamps=analysis.key_timestamps,
            degraded_mode=analysis.degraded_mode
        ),
        quality=QualityReport(
            transcript_confidence=analysis.transcript_confidence,
            analysis_completeness=analysis.analysis_completeness,
            backend_calls=analysis.backend_calls,
            processing_time_ms=analysis.processing_time_ms
        ),
        outputs=outputs,
        failed_formats=analysis.failed_formats,
        notices=result.notice_codes
    )


@router.post("/videos/process")
async def process_video(
    request: ProcessRequest,
    pipeline: AnalysisPipeline = Depends(get_analysis_pipeline_dep)
):
    """Analyze a video and render the requested note formats."""
    request_id = ResponseHelper.generate_request_id()
    start_time = datetime.now()

    try:
        result = await pipeline.process(
            str(request.video_url),
            user_id=request.user_id,
            formats=request.formats,
            preferred_language=request.preferred_language,
            transcript_text=request.transcript_text,
            request_id=request_id
        )
    except VideoNotesBaseException as e:
        logger.warning(f"[{request_id}] Processing failed: {e.error_code}")
        return ResponseHelper.create_error_from_exception(e, request_id)

    response = build_processing_response(result, request.formats)
    processing_time = int((datetime.now() - start_time).total_seconds() * 1000)
    return ResponseHelper.create_success_response(
        data=response.model_dump(mode="json", by_alias=True),
        request_id=request_id,
        processing_time_ms=processing_time
    )


@router.get("/videos/{video_id}/notes/{format_id}")
async def get_note(
    video_id: str,
    format_id: str,
    verbosity: VerbosityLevel = Query(VerbosityLevel.STANDARD),
    user_id: Optional[str] = Query(None),
    note_service: NoteService = Depends(get_note_service_dep)
):
    """Switch between verbosity tiers of a rendered note without regenerating it."""
    request_id = ResponseHelper.generate_request_id()

    try:
        note = await note_service.switch_verbosity(video_id, format_id, verbosity, user_id)
    except VideoNotesBaseException as e:
        return ResponseHelper.create_error_from_exception(e, request_id)

    return ResponseHelper.create_success_response(
        data=note.model_dump(mode="json", by_alias=True),
        request_id=request_id
    )


@router.get("/formats")
async def get_formats(
    category: Optional[str] = Query(None),
    tier: Optional[str] = Query(None, pattern="^(free|premium)$"),
    duration: Optional[float] = Query(None, ge=0, description="Video length in seconds, for a recommendation")
):
    """List the registered note formats, optionally with the one recommended for a video length."""
    if tier == "free":
        specs = get_free_formats()
    elif tier == "premium":
        specs = get_premium_formats()
    else:
        specs = list_formats()

    formats = [
        FormatInfo(
            id=spec.id,
            name=spec.name,
            description=spec.description,
            category=spec.category,
            is_premium=spec.is_premium
        ).model_dump(by_alias=True)
        for spec in specs
        if category is None or spec.category == category
    ]

    data = {"formats": formats}
    if duration is not None:
        data["recommended"] = get_recommended_format(duration, category).id
    return ResponseHelper.create_success_response(data=data)
