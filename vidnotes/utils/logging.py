"""Logging setup, request-correlated loggers and metrics lines."""
import logging
import sys
from contextvars import ContextVar
from typing import Optional, Sequence
from ..core.config import settings

# Per-task request id; asyncio tasks copy it when created
_current_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

QUIET_LOGGERS = ("yt_dlp", "openai", "httpx", "aiohttp")


class LoggerSetup:
    """Centralized logging configuration."""

    @staticmethod
    def setup_logging(
        level: Optional[str] = None,
        format_string: Optional[str] = None
    ) -> None:
        log_level = level or settings.log_level
        log_format = format_string or settings.log_format

        logging.basicConfig(
            level=getattr(logging, log_level.upper(), logging.INFO),
            format=log_format,
            handlers=[logging.StreamHandler(sys.stdout)]
        )

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


class CorrelatedLogger:
    """
    Logger that prefixes every message with the current request id.

    Assigning ``request_id`` binds the id to the running task rather than to
    the logger instance, so one logger can be shared by concurrent runs.
    """

    def __init__(self, name: str, request_id: Optional[str] = None):
        self.logger = logging.getLogger(name)
        self._fixed_request_id = request_id

    @property
    def request_id(self) -> Optional[str]:
        return self._fixed_request_id or _current_request_id.get()

    @request_id.setter
    def request_id(self, value: Optional[str]) -> None:
        _current_request_id.set(value)

    def _log(self, level: int, message: str, **kwargs) -> None:
        request_id = self.request_id
        if request_id:
            message = f"[{request_id}] {message}"
        self.logger.log(level, message, **kwargs)

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs) -> None:
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, message, **kwargs)


class MetricsLogger:
    """Logger for pipeline, rendering and Q&A metrics."""

    def __init__(self):
        self.logger = logging.getLogger("metrics")

    def log_pipeline_metrics(
        self,
        request_id: str,
        video_id: str,
        processing_time_ms: int,
        backend_calls: int,
        degraded: bool,
        failed_formats: Sequence[str] = ()
    ) -> None:
        """Log one complete pipeline run."""
        log_msg = (
            f"PIPELINE_METRICS request_id={request_id} "
            f"video_id={video_id} processing_time_ms={processing_time_ms} "
            f"backend_calls={backend_calls} degraded={str(degraded).lower()}"
        )

        if failed_formats:
            log_msg += f" failed_formats={','.join(failed_formats)}"

        self.logger.info(log_msg)

    def log_render_metrics(
        self,
        request_id: str,
        format_id: str,
        success: bool,
        processing_time_ms: int,
        standard_chars: int = 0,
        error_code: Optional[str] = None
    ) -> None:
        """Log a single format render."""
        status = "success" if success else "failed"

        log_msg = (
            f"RENDER_METRICS request_id={request_id} "
            f"format={format_id} status={status} "
            f"processing_time_ms={processing_time_ms} standard_chars={standard_chars}"
        )

        if error_code:
            log_msg += f" error_code={error_code}"

        self.logger.info(log_msg)

    def log_qa_metrics(
        self,
        request_id: str,
        mode: str,
        success: bool,
        processing_time_ms: int,
        citations: int = 0,
        dropped_citations: int = 0
    ) -> None:
        """Log a question/answer turn."""
        status = "success" if success else "failed"
        self.logger.info(
            f"QA_METRICS request_id={request_id} mode={mode} status={status} "
            f"processing_time_ms={processing_time_ms} citations={citations} "
            f"dropped_citations={dropped_citations}"
        )
