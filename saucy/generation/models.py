"""Per-action value objects for generation requests and results."""

from __future__ import annotations

import base64
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from ..errors import USER_MESSAGES, ErrorKind, ProviderError

StickerSize = Literal["1K", "2K", "4K"]
StickerStyle = Literal["cartoon", "emoji", "chibi", "minimalist"]
AspectRatio = Literal["16:9", "9:16", "1:1"]
OutputMode = Literal["sticker", "animation"]


class TargetOperation(str, Enum):
    REMOVE_TEXT = "remove-text"
    GENERATE_STICKER = "generate-sticker"
    GENERATE_VIDEO = "generate-video"
    CHAT = "chat"
    BRAINSTORM = "brainstorm"


class ImageInput(BaseModel):
    data: bytes
    mime_type: str = "image/png"

    @classmethod
    def from_base64(cls, value: str, mime_type: Optional[str] = None) -> "ImageInput":
        """Accept bare base64 or a ``data:`` URL; the URL's MIME type wins when present."""
        if value.startswith("data:") and "," in value:
            header, payload = value.split(",", 1)
            declared = header[5:].split(";", 1)[0]
            return cls(data=base64.b64decode(payload), mime_type=declared or mime_type or "image/png")
        if "," in value:
            value = value.split(",", 1)[1]
        return cls(data=base64.b64decode(value), mime_type=mime_type or "image/png")

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


class Message(BaseModel):
    role: Literal["user", "model"]
    content: str


class GenerationRequest(BaseModel):
    prompt_text: str = ""
    images: List[ImageInput] = Field(default_factory=list)
    target_operation: TargetOperation


class VideoReference(BaseModel):
    uri: Optional[str] = None
    video_bytes: Optional[bytes] = None
    mime_type: str = "video/mp4"


Payload = Union[bytes, VideoReference, str, None]


class GenerationResult(BaseModel):
    success: bool
    payload: Payload = None
    mime_type: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None
    message: Optional[str] = None
    is_demo: bool = False

    @classmethod
    def ok(
        cls,
        payload: Payload,
        *,
        mime_type: Optional[str] = None,
        message: Optional[str] = None,
        is_demo: bool = False,
    ) -> "GenerationResult":
        return cls(success=True, payload=payload, mime_type=mime_type, message=message, is_demo=is_demo)

    @classmethod
    def failed(cls, kind: ErrorKind, error: Optional[str] = None, *, is_demo: bool = False) -> "GenerationResult":
        return cls(success=False, error_kind=kind, error=error or USER_MESSAGES.get(kind, kind.value), is_demo=is_demo)

    def unwrap(self) -> Payload:
        """Return the payload, or raise ProviderError for callers that surface an inline error."""
        if not self.success:
            raise ProviderError(self.error_kind or ErrorKind.GENERIC, self.error or "Generation failed")
        return self.payload


class PollableOperation(BaseModel):
    name: str
    done: bool = False
    poll_count: int = 0
    result: Optional[dict] = None
    error: Optional[dict] = None


__all__ = [
    "AspectRatio",
    "GenerationRequest",
    "GenerationResult",
    "ImageInput",
    "Message",
    "OutputMode",
    "PollableOperation",
    "StickerSize",
    "StickerStyle",
    "TargetOperation",
    "VideoReference",
]
