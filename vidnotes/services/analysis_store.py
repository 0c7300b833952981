"""In-memory persistence for analysis artifacts and rendered notes."""
import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..core.exceptions import AnalysisNotFoundError
from ..models.analysis import EnhancedVideoAnalysis, VerbosityLevel

ANONYMOUS_USER = "anonymous"


class InMemoryAnalysisStore:
    """
    Versioned artifact store keyed by (video_id, user_id).

    Saving an analysis assigns the next version and swaps the current
    artifact in one step; readers only ever see complete artifacts.
    """

    def __init__(self):
        self._analyses: Dict[Tuple[str, str], List[EnhancedVideoAnalysis]] = {}
        self._notes: Dict[Tuple[str, str, str, str], Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _make_key(video_id: str, user_id: Optional[str]) -> Tuple[str, str]:
        return video_id, user_id or ANONYMOUS_USER

    async def save_analysis(
        self,
        video_id: str,
        analysis: EnhancedVideoAnalysis,
        user_id: Optional[str] = None
    ) -> EnhancedVideoAnalysis:
        """Store a new version of the artifact, along with its rendered notes."""
        key = self._make_key(video_id, user_id)
        async with self._lock:
            versions = self._analyses.setdefault(key, [])
            stored = analysis.model_copy(update={"analysis_version": len(versions) + 1})
            versions.append(stored)

            for format_id, output in stored.all_template_outputs.items():
                for level in VerbosityLevel:
                    self._notes[(*key, format_id, level.value)] = {
                        "content": output.verbosity_levels.get(level),
                        "version": stored.analysis_version,
                        "saved_at": datetime.now(),
                    }
        return stored

    async def get_analysis(self, video_id: str, user_id: Optional[str] = None) -> Optional[EnhancedVideoAnalysis]:
        """Latest artifact for the user, falling back to the anonymous one."""
        versions = self._analyses.get(self._make_key(video_id, user_id))
        if not versions and user_id and user_id != ANONYMOUS_USER:
            versions = self._analyses.get(self._make_key(video_id, None))
        return versions[-1] if versions else None

    async def require_analysis(self, video_id: str, user_id: Optional[str] = None) -> EnhancedVideoAnalysis:
        analysis = await self.get_analysis(video_id, user_id)
        if analysis is None:
            raise AnalysisNotFoundError(video_id)
        return analysis

    async def save_rendered_note(
        self,
        video_id: str,
        format_id: str,
        content: str,
        verbosity: VerbosityLevel = VerbosityLevel.STANDARD,
        user_id: Optional[str] = None
    ) -> None:
        key = self._make_key(video_id, user_id)
        async with self._lock:
            versions = self._analyses.get(key)
            self._notes[(*key, format_id, VerbosityLevel(verbosity).value)] = {
                "content": content,
                "version": versions[-1].analysis_version if versions else None,
                "saved_at": datetime.now(),
            }

    async def get_rendered_note(
        self,
        video_id: str,
        format_id: str,
        verbosity: VerbosityLevel = VerbosityLevel.STANDARD,
        user_id: Optional[str] = None
    ) -> Optional[str]:
        item = self._notes.get((*self._make_key(video_id, user_id), format_id, VerbosityLevel(verbosity).value))
        return item["content"] if item else None

    async def list_versions(self, video_id: str, user_id: Optional[str] = None) -> List[int]:
        return [a.analysis_version for a in self._analyses.get(self._make_key(video_id, user_id), [])]

    def clear(self) -> None:
        self._analyses.clear()
        self._notes.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "stored_analyses": sum(len(versions) for versions in self._analyses.values()),
            "videos": len({video_id for video_id, _ in self._analyses}),
            "rendered_notes": len(self._notes),
        }
