"""Application settings loaded from environment variables."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

ENV_KEY_NAMES = ("SAUCY_API_KEY", "GEMINI_API_KEY")


class Settings(BaseModel):
    saucy_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    klipy_api_key: Optional[str] = None
    saucy_log_level: Optional[str] = None
    saucy_home: Path = Path.home() / ".saucy"

    image_model: str = "gemini-2.5-flash-image"
    sticker_model: str = "gemini-3-pro-image-preview"
    chat_model: str = "gemini-3-pro-preview"
    text_model: str = "gemini-2.0-flash"
    video_model: str = "veo-3.1-fast-generate-preview"

    video_poll_interval_s: float = 10.0
    video_max_polls: int = 60
    request_timeout_s: float = 120.0

    @classmethod
    def from_env(cls) -> "Settings":
        home = os.getenv("SAUCY_HOME")
        return cls(
            saucy_api_key=os.getenv("SAUCY_API_KEY"),
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
            klipy_api_key=os.getenv("KLIPY_API_KEY"),
            saucy_log_level=os.getenv("SAUCY_LOG_LEVEL"),
            saucy_home=Path(home) if home else Path.home() / ".saucy",
        )

    def environment_key(self) -> Optional[str]:
        """Return the first configured environment credential, if any."""
        return self.saucy_api_key or self.gemini_api_key

    @property
    def local_storage_path(self) -> Path:
        return self.saucy_home / "local_storage.json"


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings.from_env()
