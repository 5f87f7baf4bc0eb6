"""Synthetic results returned while no API key is available."""

from __future__ import annotations

import hashlib
import io

from PIL import Image, ImageDraw

DEMO_IMAGE_DELAY_S = 1.5
DEMO_TEXT_DELAY_S = 0.8
DEMO_VIDEO_DELAY_S = 3.0

DEMO_VIDEO_MESSAGE = "Demo mode: Video generation requires a Gemini API key with Veo access."
DEMO_REIMAGINE_ERROR = "Creative reimagination requires an API key"
DEMO_CHAT_REPLY = (
    "I'm running in demo mode right now, so I can't look at your media. "
    "Add a Gemini API key in settings and I can help scrub text, style stickers and brainstorm prompts."
)
DEMO_SUGGESTIONS = {
    "sticker": "Bold cartoon sticker of the main subject, thick white outline, bright flat colours, no text",
    "animation": "The subject does a quick happy bounce and winks, looping smoothly on a clean background",
}

CAPTION_BAND = 0.18


def simulate_text_removal(png_bytes: bytes) -> bytes:
    """Fill the top and bottom caption bands with the colour sampled just inside them."""
    img = Image.open(io.BytesIO(png_bytes)).convert("RGBA")
    width, height = img.size
    band = max(1, int(height * CAPTION_BAND))
    draw = ImageDraw.Draw(img)

    top_sample = img.getpixel((width // 2, min(height - 1, band)))
    bottom_sample = img.getpixel((width // 2, max(0, height - band - 1)))
    draw.rectangle([0, 0, width, band], fill=top_sample)
    draw.rectangle([0, height - band, width, height], fill=bottom_sample)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def placeholder_sticker(prompt: str, size: int = 512) -> bytes:
    """Deterministic stand-in sticker: a colour disc derived from the prompt text."""
    digest = hashlib.sha1(prompt.encode("utf-8")).digest()
    colour = (digest[0], digest[1], digest[2], 255)
    img = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    margin = size // 10
    outline = max(4, size // 32)
    draw.ellipse([margin, margin, size - margin, size - margin], fill=colour, outline=(255, 255, 255, 255), width=outline)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def suggestion_for(mode: str) -> str:
    return DEMO_SUGGESTIONS.get(mode, DEMO_SUGGESTIONS["sticker"])
