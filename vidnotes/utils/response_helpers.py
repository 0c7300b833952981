"""Response envelopes shared by every router."""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..models.responses import SuccessResponse, ErrorResponse, ResponseMetadata, ErrorInfo
from ..core.config import settings
from ..core.exceptions import VideoNotesBaseException
from .logging import CorrelatedLogger

RETRY_AFTER_SECONDS = 30

# Details that stay in the logs only
PRIVATE_DETAIL_KEYS = ("raw_payload",)


class ResponseHelper:
    """Builds the success and error envelopes returned by the API."""

    STATUS_MAPPING = {
        "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
        "UNKNOWN_FORMAT": status.HTTP_400_BAD_REQUEST,
        "ANALYSIS_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        "VIDEO_UNAVAILABLE": status.HTTP_422_UNPROCESSABLE_ENTITY,
        "NO_TRANSCRIPT_AVAILABLE": status.HTTP_422_UNPROCESSABLE_ENTITY,
        "CAPTION_EXTRACTION_FAILED": status.HTTP_502_BAD_GATEWAY,
        "BACKEND_PROVIDER_ERROR": status.HTTP_502_BAD_GATEWAY,
        "MALFORMED_BACKEND_OUTPUT": status.HTTP_502_BAD_GATEWAY,
        "BACKEND_TIMEOUT": status.HTTP_504_GATEWAY_TIMEOUT,
        "BACKEND_QUOTA_EXCEEDED": status.HTTP_429_TOO_MANY_REQUESTS,
        "BACKEND_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
        "CONFIGURATION_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "CITATION_GROUNDING_VIOLATION": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }

    @staticmethod
    def generate_request_id() -> str:
        """Generate a request id and bind it to the current task's log lines."""
        request_id = f"req_{uuid.uuid4().hex[:8]}"
        CorrelatedLogger(__name__).request_id = request_id
        return request_id

    @staticmethod
    def create_response_metadata(request_id: str, processing_time_ms: Optional[int] = None) -> ResponseMetadata:
        return ResponseMetadata(
            request_id=request_id,
            api_version=settings.api_version,
            timestamp=datetime.now(timezone.utc).isoformat(),
            processing_time_ms=processing_time_ms
        )

    @staticmethod
    def _envelope(
        body: BaseModel,
        status_code: int,
        headers: Optional[Dict[str, str]] = None
    ) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)

    @staticmethod
    def create_success_response(
        data: Any,
        request_id: Optional[str] = None,
        processing_time_ms: Optional[int] = None
    ) -> JSONResponse:
        request_id = request_id or ResponseHelper.generate_request_id()
        body = SuccessResponse(
            data=data,
            metadata=ResponseHelper.create_response_metadata(request_id, processing_time_ms)
        )
        return ResponseHelper._envelope(body, status.HTTP_200_OK)

    @staticmethod
    def create_error_response(
        error_code: str,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> JSONResponse:
        request_id = request_id or ResponseHelper.generate_request_id()
        body = ErrorResponse(
            error=ErrorInfo(code=error_code, message=message, details=details),
            metadata=ResponseHelper.create_response_metadata(request_id)
        )
        return ResponseHelper._envelope(body, status_code, headers)

    @staticmethod
    def create_error_from_exception(
        exc: VideoNotesBaseException,
        request_id: Optional[str] = None
    ) -> JSONResponse:
        """
        Error envelope for a notes engine exception.

        Retryable backend failures carry a ``Retry-After`` header.
        """
        http_status = ResponseHelper.STATUS_MAPPING.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)

        details = {
            key: value for key, value in (exc.details or {}).items()
            if key not in PRIVATE_DETAIL_KEYS
        } or None

        headers = None
        if getattr(exc, "retryable", False):
            headers = {"Retry-After": str(RETRY_AFTER_SECONDS)}

        return ResponseHelper.create_error_response(
            error_code=exc.error_code,
            message=exc.message,
            status_code=http_status,
            request_id=request_id,
            details=details,
            headers=headers
        )
