from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from PIL import Image

from saucy.credentials.resolver import CredentialResolver
from saucy.credentials.stores import LocalKeyStore
from saucy.generation.models import PollableOperation, VideoReference
from saucy.settings import Settings

REAL_KEY = "AIzaSyTESTKEY-0123456789abcdefghij"


def png_bytes(size=(16, 16), colour=(200, 40, 40)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, colour).save(buffer, format="PNG")
    return buffer.getvalue()


def gif_bytes(colours=((255, 0, 0), (0, 255, 0), (0, 0, 255)), size=(12, 12)) -> bytes:
    frames = [Image.new("RGB", size, colour) for colour in colours]
    buffer = io.BytesIO()
    frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:], duration=100, loop=0)
    return buffer.getvalue()


class FakeBackend:
    """In-process stand-in for GeminiBackend that records every call."""

    name = "fake"

    def __init__(
        self,
        response: Optional[Dict[str, Any]] = None,
        *,
        error: Optional[Exception] = None,
        start_error: Optional[Exception] = None,
        done_after: Optional[int] = None,
        video_result: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.response = response if response is not None else {}
        self.error = error
        self.start_error = start_error
        self.done_after = done_after
        self.video_result = video_result
        self.calls: List[tuple] = []
        self.polls = 0

    def generate_content(self, model, contents, *, config=None):
        self.calls.append(("generate_content", model, contents, config))
        if self.error:
            raise self.error
        return self.response

    def start_video(self, model, prompt, references, *, aspect_ratio, number_of_videos=1):
        self.calls.append(("start_video", model, prompt, len(references), aspect_ratio))
        if self.start_error:
            raise self.start_error
        return PollableOperation(name="models/veo/operations/op-1")

    def get_video_operation(self, operation):
        self.polls += 1
        if self.done_after is not None and self.polls >= self.done_after:
            return PollableOperation(name=operation.name, done=True, result=self.video_result)
        return PollableOperation(name=operation.name)

    def download_video(self, reference: VideoReference, destination: Path) -> Path:
        self.calls.append(("download_video", reference.uri))
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(b"fake-mp4")
        return destination


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(saucy_home=tmp_path / "home")


@pytest.fixture()
def local_store(settings: Settings) -> LocalKeyStore:
    return LocalKeyStore(settings.local_storage_path)


@pytest.fixture()
def demo_resolver(local_store: LocalKeyStore) -> CredentialResolver:
    return CredentialResolver(local_store=local_store, environment=lambda: None)


@pytest.fixture()
def keyed_resolver(local_store: LocalKeyStore) -> CredentialResolver:
    return CredentialResolver(local_store=local_store, environment=lambda: REAL_KEY)


@pytest.fixture()
def sleeper() -> SleepRecorder:
    return SleepRecorder()
