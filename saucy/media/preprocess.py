"""Normalise user media into encodings the providers accept."""

from __future__ import annotations

import io
import tempfile
from pathlib import Path
from typing import Iterable, List

import cv2
import numpy as np
import requests
from PIL import Image, ImageSequence, UnidentifiedImageError

from ..errors import TranscodeError
from ..generation.models import ImageInput
from ..util.logging import get_logger

logger = get_logger(__name__)

PROVIDER_MIME_TYPES = {"image/png", "image/jpeg", "image/webp"}
MAX_PROVIDER_IMAGES = 3
URL_FETCH_TIMEOUT_S = 5.0


def _open(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise TranscodeError(f"Failed to load image for processing: {exc}") from exc
    return img


def _png_bytes(img: Image.Image) -> bytes:
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def is_animated_gif(data: bytes) -> bool:
    """True when ``data`` is a GIF with more than one frame."""
    if data[:6] not in (b"GIF87a", b"GIF89a"):
        return False
    try:
        img = _open(data)
    except TranscodeError:
        return False
    return getattr(img, "n_frames", 1) > 1


def extract_key_frame(data: bytes) -> bytes:
    """Return the first visual frame of an image (animated or not) as PNG bytes."""
    img = _open(data)
    first = next(ImageSequence.Iterator(img))
    return _png_bytes(first.copy())


def normalize_for_provider(image: ImageInput) -> ImageInput:
    """Return ``image`` in a provider-supported encoding.

    GIFs are rasterised to a single PNG still of their first frame; later
    frames are dropped. Supported still formats pass through untouched and
    anything else Pillow can read is re-encoded as PNG.
    """
    mime = (image.mime_type or "").lower()
    if mime == "image/gif" or image.data[:6] in (b"GIF87a", b"GIF89a"):
        png = extract_key_frame(image.data)
        logger.debug("Rasterised GIF to first-frame PNG", extra={"event": "media.gif_to_png"})
        return ImageInput(data=png, mime_type="image/png")
    if mime in PROVIDER_MIME_TYPES:
        return image
    return ImageInput(data=_png_bytes(_open(image.data)), mime_type="image/png")


def prepare_images(images: Iterable[ImageInput], limit: int = MAX_PROVIDER_IMAGES) -> List[ImageInput]:
    """Normalise up to ``limit`` images, skipping any that fail to transcode."""
    prepared: List[ImageInput] = []
    for idx, image in enumerate(list(images)[:limit], start=1):
        try:
            prepared.append(normalize_for_provider(image))
        except TranscodeError as exc:
            logger.warning("Skipping image %d: %s", idx, exc)
    return prepared


def load_image_from_url(url: str, timeout: float = URL_FETCH_TIMEOUT_S) -> ImageInput:
    """Fetch an image or GIF by URL and normalise it for the provider."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise TranscodeError(f"Could not load image from URL: {exc}") from exc
    mime = response.headers.get("Content-Type", "image/png").split(";", 1)[0].strip()
    return normalize_for_provider(ImageInput(data=response.content, mime_type=mime or "image/png"))


def load_image_file(path: Path) -> ImageInput:
    """Read a local file, inferring its MIME type from Pillow's format detection."""
    data = Path(path).read_bytes()
    fmt = (_open(data).format or "PNG").lower()
    return ImageInput(data=data, mime_type=f"image/{fmt}")


def video_first_frame(video_bytes: bytes, max_size: int = 512) -> bytes:
    """Grab the first frame of a video, scaled to fit ``max_size``, as PNG bytes."""
    with tempfile.NamedTemporaryFile(suffix=".mp4") as handle:
        handle.write(video_bytes)
        handle.flush()
        cap = cv2.VideoCapture(handle.name)
        try:
            if not cap.isOpened():
                raise TranscodeError("Failed to load video")
            ok, frame = cap.read()
        finally:
            cap.release()
    if not ok or frame is None:
        raise TranscodeError("Video contained no readable frames")

    height, width = frame.shape[:2]
    scale = min(1.0, max_size / width, max_size / height)
    size = (max(1, int(width * scale)), max(1, int(height * scale)))
    frame = cv2.resize(frame, size, interpolation=cv2.INTER_AREA)
    ok, encoded = cv2.imencode(".png", frame)
    if not ok:
        raise TranscodeError("Failed to encode video frame as PNG")
    return encoded.tobytes()


def remove_background_simple(data: bytes, tolerance: float = 30.0, sample_size: int = 5) -> bytes:
    """Make pixels close to the top-left corner colour transparent.

    A colour-keyed fallback for when ML background removal is unavailable.
    """
    rgba = np.array(_open(data).convert("RGBA"), dtype=np.int16)
    corner = rgba[:sample_size, :sample_size, :3].reshape(-1, 3)
    avg = np.round(corner.mean(axis=0))
    distance = np.sqrt(((rgba[:, :, :3] - avg) ** 2).sum(axis=2))
    rgba[:, :, 3] = np.where(distance < tolerance, 0, rgba[:, :, 3])
    return _png_bytes(Image.fromarray(rgba.astype(np.uint8)))


__all__ = [
    "MAX_PROVIDER_IMAGES",
    "extract_key_frame",
    "is_animated_gif",
    "load_image_file",
    "load_image_from_url",
    "normalize_for_provider",
    "prepare_images",
    "remove_background_simple",
    "video_first_frame",
]
