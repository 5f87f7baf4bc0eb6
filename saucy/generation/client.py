"""Generation client: demo switch, request building, polling and result normalisation."""

from __future__ import annotations

import base64
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..backends.base import ProviderBackend
from ..backends.gemini import GeminiBackend
from ..credentials.resolver import Credential, CredentialResolver
from ..errors import ErrorKind, ProviderError
from ..media.preprocess import MAX_PROVIDER_IMAGES, prepare_images
from ..session import Session
from ..settings import Settings, get_settings
from ..util.logging import emit_event, get_logger
from . import demo
from .models import (
    AspectRatio,
    GenerationRequest,
    GenerationResult,
    ImageInput,
    Message,
    OutputMode,
    PollableOperation,
    StickerSize,
    StickerStyle,
    TargetOperation,
    VideoReference,
)

logger = get_logger(__name__)

ProgressCallback = Callable[[str], None]
BackendFactory = Callable[[str], ProviderBackend]

CHAT_FALLBACK = "I'm sorry, I couldn't process that."

REMOVE_TEXT_DIRECTIVE = (
    "Analyze this image/GIF and re-generate a high-quality, static version of it without any text, "
    "overlays, watermarks, or captions. The output should be a clean, vibrant sticker-style image with a "
    "transparent or simple background, perfectly optimized for a Slack emoji. Keep the core character or "
    "subject but remove every single piece of written text."
)

STICKER_STYLES: Dict[str, str] = {
    "cartoon": "vibrant cartoon sticker style with bold outlines, exaggerated features, bright colors, and clean vector-like appearance",
    "emoji": "simple emoji style with minimal details, round shapes, bold expressions, flat colors, suitable for small display",
    "chibi": "cute chibi anime style with oversized head, small body, big expressive eyes, kawaii aesthetic",
    "minimalist": "minimalist line art sticker with clean simple lines, limited color palette, modern aesthetic",
}

CHAT_SYSTEM_INSTRUCTION = (
    "You are Saucy, a creative sidekick. You help users remove text from images or animated GIFs to make "
    "stickers, or help them write better prompts for generating brand new high-quality stickers. Be concise, "
    "friendly, and expert in design and Slack emoji best practices."
)


def first_inline_image(response: Dict[str, Any]) -> Optional[Tuple[bytes, str]]:
    """Return the first inline image part of ``candidates[0]`` as (bytes, mime type)."""
    candidates = response.get("candidates") or []
    if not candidates:
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            mime = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return base64.b64decode(inline["data"]), mime
    return None


def first_text(response: Dict[str, Any]) -> Optional[str]:
    candidates = response.get("candidates") or []
    if not candidates:
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    for part in parts:
        text = part.get("text")
        if text and text.strip():
            return text
    return None


def extract_video(result: Optional[Dict[str, Any]]) -> Optional[VideoReference]:
    """Pull the first generated video out of a finished operation's response."""
    if not result:
        return None
    videos = result.get("generatedVideos")
    if videos:
        video = videos[0].get("video") or {}
        raw = video.get("videoBytes")
        uri = video.get("uri") or video.get("url")
    else:
        samples = (result.get("generateVideoResponse") or {}).get("generatedSamples") or []
        if not samples:
            return None
        video = samples[0].get("video") or {}
        raw = video.get("bytesBase64Encoded")
        uri = video.get("uri")
    if not uri and not raw:
        return None
    return VideoReference(
        uri=uri,
        video_bytes=base64.b64decode(raw) if raw else None,
        mime_type=video.get("mimeType") or "video/mp4",
    )


def build_contents(request: GenerationRequest) -> List[Dict[str, Any]]:
    parts: List[Dict[str, Any]] = [
        {"inlineData": {"data": image.to_base64(), "mimeType": image.mime_type}} for image in request.images
    ]
    if request.prompt_text:
        parts.append({"text": request.prompt_text})
    return [{"role": "user", "parts": parts}]


class GenerationClient:
    """Run studio operations for one session, switching to synthetic results in demo mode."""

    def __init__(
        self,
        resolver: CredentialResolver,
        session: Session,
        *,
        settings: Optional[Settings] = None,
        backend_factory: Optional[BackendFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.resolver = resolver
        self.session = session
        self.settings = settings or get_settings()
        self.backend_factory = backend_factory or self._default_backend
        self.sleep = sleep

    def _default_backend(self, api_key: str) -> ProviderBackend:
        return GeminiBackend(api_key, timeout=self.settings.request_timeout_s)

    def _credential(self) -> Credential:
        return self.resolver.resolve(self.session)

    # ---------- image edits ----------

    def remove_text(self, image: ImageInput) -> GenerationResult:
        """Re-generate ``image`` without captions, overlays or watermarks."""
        prepared = prepare_images([image])
        if not prepared:
            return GenerationResult.failed(ErrorKind.TRANSCODE_FAILURE, "Invalid image data provided.")
        request = GenerationRequest(
            prompt_text=REMOVE_TEXT_DIRECTIVE,
            images=prepared,
            target_operation=TargetOperation.REMOVE_TEXT,
        )
        credential = self._credential()
        if credential.is_demo:
            self.sleep(demo.DEMO_IMAGE_DELAY_S)
            masked = demo.simulate_text_removal(prepared[0].data)
            return GenerationResult.ok(masked, mime_type="image/png", message=credential.message, is_demo=True)
        return self._run_image(credential, request, self.settings.image_model)

    def reimagine_as_sticker(self, image: ImageInput, style: StickerStyle = "cartoon") -> GenerationResult:
        credential = self._credential()
        if credential.is_demo:
            return GenerationResult.failed(ErrorKind.GENERIC, demo.DEMO_REIMAGINE_ERROR, is_demo=True)

        prepared = prepare_images([image])
        if not prepared:
            return GenerationResult.failed(ErrorKind.TRANSCODE_FAILURE, "Invalid image data provided.")
        directive = (
            f"Create a {STICKER_STYLES[style]} version of the subject in this image. "
            "Keep the same pose, expression, and essence but reimagine it as a premium sticker design. "
            "The result should have a transparent background and be suitable for use as a chat sticker or emoji. "
            "Make it visually striking and memorable with no text overlays."
        )
        request = GenerationRequest(
            prompt_text=directive,
            images=prepared,
            target_operation=TargetOperation.GENERATE_STICKER,
        )
        return self._run_image(
            credential,
            request,
            self.settings.image_model,
            config={"responseModalities": ["IMAGE", "TEXT"]},
        )

    def generate_sticker(self, prompt: str, size: StickerSize = "2K") -> GenerationResult:
        """Generate a brand new 1:1 sticker from a text prompt."""
        request = GenerationRequest(
            prompt_text=(
                f"Professional high-quality Slack sticker: {prompt}. Isolated on a white or transparent-style "
                "neutral background, vibrant colors, clear bold outlines, sticker aesthetic, no text."
            ),
            target_operation=TargetOperation.GENERATE_STICKER,
        )
        credential = self._credential()
        if credential.is_demo:
            self.sleep(demo.DEMO_IMAGE_DELAY_S)
            return GenerationResult.ok(demo.placeholder_sticker(prompt), mime_type="image/png", message=credential.message, is_demo=True)
        return self._run_image(
            credential,
            request,
            self.settings.sticker_model,
            config={"imageConfig": {"aspectRatio": "1:1", "imageSize": size}},
        )

    def edit_images(self, images: Sequence[ImageInput], directive: str) -> GenerationResult:
        """Apply a free-form directive to up to three images."""
        prepared = prepare_images(images, limit=MAX_PROVIDER_IMAGES)
        if not prepared:
            return GenerationResult.failed(ErrorKind.TRANSCODE_FAILURE, "No usable images were provided.")
        request = GenerationRequest(prompt_text=directive, images=prepared, target_operation=TargetOperation.REMOVE_TEXT)
        credential = self._credential()
        if credential.is_demo:
            self.sleep(demo.DEMO_IMAGE_DELAY_S)
            return GenerationResult.ok(demo.simulate_text_removal(prepared[0].data), mime_type="image/png", message=credential.message, is_demo=True)
        return self._run_image(credential, request, self.settings.image_model)

    def _run_image(
        self,
        credential: Credential,
        request: GenerationRequest,
        model: str,
        config: Optional[Dict[str, Any]] = None,
    ) -> GenerationResult:
        backend = self.backend_factory(credential.value)
        emit_event(logger, "generate.start", operation=request.target_operation.value, images=len(request.images))
        try:
            response = backend.generate_content(model, build_contents(request), config=config)
        except ProviderError as exc:
            logger.error("Provider call failed: %s", exc, extra={"event": "generate.error", "kind": exc.kind.value})
            return GenerationResult.failed(exc.kind, str(exc))

        image = first_inline_image(response)
        if image is None:
            if not response.get("candidates"):
                message = "No candidates returned from the model."
            else:
                message = "The model did not return a processed image part."
            return GenerationResult.failed(ErrorKind.EMPTY_RESULT, message)

        data, mime = image
        emit_event(logger, "generate.complete", operation=request.target_operation.value, bytes=len(data))
        return GenerationResult.ok(data, mime_type=mime)

    # ---------- text ----------

    def chat(self, messages: Sequence[Message], images: Sequence[ImageInput] = ()) -> GenerationResult:
        """Answer the last user turn given the whole conversation."""
        prepared = prepare_images(images)
        credential = self._credential()
        if credential.is_demo:
            self.sleep(demo.DEMO_TEXT_DELAY_S)
            return GenerationResult.ok(demo.DEMO_CHAT_REPLY, mime_type="text/plain", is_demo=True)
        if not messages:
            return GenerationResult.ok(CHAT_FALLBACK, mime_type="text/plain")

        contents = [{"role": m.role, "parts": [{"text": m.content}]} for m in messages]
        if prepared:
            contents[-1]["parts"] = [
                {"inlineData": {"data": img.to_base64(), "mimeType": img.mime_type}} for img in prepared
            ] + contents[-1]["parts"]
        return self._run_text(
            credential,
            TargetOperation.CHAT,
            self.settings.chat_model,
            contents,
            config={"systemInstruction": CHAT_SYSTEM_INSTRUCTION},
        )

    def brainstorm(
        self,
        prompt: str,
        images: Sequence[ImageInput] = (),
        mode: OutputMode = "sticker",
        feedback: Optional[str] = None,
    ) -> GenerationResult:
        """Suggest (or refine) a generation prompt for the uploaded media."""
        prepared = prepare_images(images)
        credential = self._credential()
        if credential.is_demo:
            self.sleep(demo.DEMO_TEXT_DELAY_S)
            return GenerationResult.ok(demo.suggestion_for(mode), mime_type="text/plain", is_demo=True)

        target = "a sticker" if mode == "sticker" else "a short looping animation"
        lines = [
            f"You are Saucy, a playful creative director. Look at the attached media and write ONE vivid prompt for {target}.",
            "Reply with the prompt only, under 60 words, no quotes.",
        ]
        if prompt:
            lines.append(f"Current idea: {prompt}")
        if feedback:
            lines.append(f"Adjust it based on this feedback: {feedback}")
        request = GenerationRequest(
            prompt_text="\n".join(lines),
            images=prepared,
            target_operation=TargetOperation.BRAINSTORM,
        )
        return self._run_text(credential, TargetOperation.BRAINSTORM, self.settings.chat_model, build_contents(request))

    def complete_text(self, prompt: str) -> GenerationResult:
        """Single-turn text call on the fast text model; demo mode yields an empty payload."""
        credential = self._credential()
        if credential.is_demo:
            return GenerationResult.ok(None, is_demo=True)
        contents = [{"role": "user", "parts": [{"text": prompt}]}]
        return self._run_text(credential, TargetOperation.CHAT, self.settings.text_model, contents, fallback=None)

    def _run_text(
        self,
        credential: Credential,
        operation: TargetOperation,
        model: str,
        contents: List[Dict[str, Any]],
        config: Optional[Dict[str, Any]] = None,
        fallback: Optional[str] = CHAT_FALLBACK,
    ) -> GenerationResult:
        backend = self.backend_factory(credential.value)
        emit_event(logger, "generate.start", operation=operation.value, turns=len(contents))
        try:
            response = backend.generate_content(model, contents, config=config)
        except ProviderError as exc:
            logger.error("Provider call failed: %s", exc, extra={"event": "generate.error", "kind": exc.kind.value})
            return GenerationResult.failed(exc.kind, str(exc))
        text = first_text(response)
        if text is None and fallback is None:
            return GenerationResult.failed(ErrorKind.EMPTY_RESULT, "The model returned no text.")
        return GenerationResult.ok(text if text is not None else fallback, mime_type="text/plain")

    # ---------- video ----------

    def generate_animation(
        self,
        prompt: str,
        references: Sequence[ImageInput],
        *,
        aspect_ratio: AspectRatio = "16:9",
        on_progress: Optional[ProgressCallback] = None,
    ) -> GenerationResult:
        """Generate a short video from up to three reference images, polling until done."""
        progress = on_progress or (lambda _status: None)
        prepared = prepare_images(references, limit=MAX_PROVIDER_IMAGES)
        credential = self._credential()
        if credential.is_demo:
            progress("Simulating video generation in demo mode...")
            self.sleep(demo.DEMO_VIDEO_DELAY_S)
            return GenerationResult.ok(None, message=demo.DEMO_VIDEO_MESSAGE, is_demo=True)

        backend = self.backend_factory(credential.value)
        progress(f"Starting video generation with {len(prepared)} reference image(s)...")
        try:
            operation = backend.start_video(
                self.settings.video_model,
                prompt,
                prepared,
                aspect_ratio=aspect_ratio,
                number_of_videos=1,
            )
            operation = self.poll_video(backend, operation, progress)
        except ProviderError as exc:
            logger.error("Video generation failed: %s", exc, extra={"event": "veo.error", "kind": exc.kind.value})
            if exc.kind in (ErrorKind.PROVIDER_UNAVAILABLE, ErrorKind.PROVIDER_FORBIDDEN):
                return GenerationResult.failed(exc.kind)
            return GenerationResult.failed(exc.kind, str(exc) or "Failed to generate animation")

        if not operation.done:
            emit_event(logger, "veo.timeout", operation=operation.name, polls=operation.poll_count)
            return GenerationResult.failed(ErrorKind.TIMEOUT)

        video = extract_video(operation.result)
        if video is None:
            return GenerationResult.failed(ErrorKind.EMPTY_RESULT, "No video was generated. Please try a different prompt.")

        progress("Video generated! Preparing download...")
        emit_event(logger, "veo.complete", operation=operation.name, polls=operation.poll_count)
        return GenerationResult.ok(video, mime_type=video.mime_type)

    def save_video(self, video: VideoReference, destination: Path) -> Path:
        """Persist a generated video, downloading it when only a URI is available."""
        if video.video_bytes:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(video.video_bytes)
            return destination
        credential = self._credential()
        if credential.is_demo:
            raise ProviderError(ErrorKind.GENERIC, "Downloading a generated video requires an API key.")
        return self.backend_factory(credential.value).download_video(video, destination)

    def poll_video(
        self,
        backend: ProviderBackend,
        operation: PollableOperation,
        progress: ProgressCallback,
    ) -> PollableOperation:
        """Refresh ``operation`` on a fixed interval until done or the poll ceiling is hit."""
        interval = self.settings.video_poll_interval_s
        max_polls = self.settings.video_max_polls
        while not operation.done and operation.poll_count < max_polls:
            poll_count = operation.poll_count + 1
            progress(f"Generating animation... ({int(poll_count * interval)}s elapsed)")
            self.sleep(interval)
            refreshed = backend.get_video_operation(operation)
            refreshed.poll_count = poll_count
            logger.debug(
                "Polling video job",
                extra={"event": "veo.poll", "operation": operation.name, "attempt": poll_count, "done": refreshed.done},
            )
            operation = refreshed
        return operation


__all__ = [
    "CHAT_FALLBACK",
    "GenerationClient",
    "build_contents",
    "extract_video",
    "first_inline_image",
    "first_text",
]
