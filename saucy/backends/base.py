"""Backend interfaces for hosted generative-AI providers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from ..generation.models import ImageInput, PollableOperation, VideoReference


class ProviderBackend(Protocol):
    name: str

    def generate_content(
        self,
        model: str,
        contents: List[Dict[str, Any]],
        *,
        config: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Run a synchronous generateContent call and return the raw response body."""

    def start_video(
        self,
        model: str,
        prompt: str,
        references: List[ImageInput],
        *,
        aspect_ratio: str,
        number_of_videos: int = 1,
    ) -> PollableOperation:
        """Start a long-running video job and return its operation handle."""

    def get_video_operation(self, operation: PollableOperation) -> PollableOperation:
        """Refresh ``operation`` from the provider."""

    def download_video(self, reference: VideoReference, destination: Path) -> Path:
        """Write a finished video to ``destination``."""


__all__ = ["ProviderBackend"]
