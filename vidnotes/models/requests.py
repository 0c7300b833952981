"""Request models for the Video Notes Engine."""
from typing import List, Optional

from pydantic import Field, HttpUrl

from .chat import ApiModel


class ProcessRequest(ApiModel):
    """Request model for processing one video into an analysis and notes."""
    video_url: HttpUrl = Field(..., description="Video page URL")
    user_id: str = Field("anonymous", description="Owner of the stored artifact")
    formats: Optional[List[str]] = Field(None, description="Format ids to render; defaults apply when omitted")
    preferred_language: Optional[str] = Field(None, description="Caption language to prefer")
    transcript_text: Optional[str] = Field(None, description="Raw transcript with [MM:SS] markers, used instead of captions")
