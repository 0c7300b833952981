"""Utility modules for the Video Notes Engine."""
from .validators import URLValidator, RequestValidator
from .logging import LoggerSetup, CorrelatedLogger, MetricsLogger

__all__ = [
    "URLValidator", "RequestValidator",
    "LoggerSetup", "CorrelatedLogger", "MetricsLogger"
]
