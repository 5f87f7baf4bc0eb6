"""Credential stores: a remote per-user store interface and the local persisted store."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Optional, Protocol

from ..util.logging import get_logger

logger = get_logger(__name__)

LOCAL_KEY_NAME = "stickify_api_key"


class UserKeyStore(Protocol):
    def get_api_key(self, uid: str) -> Optional[str]:
        """Return the stored key for ``uid`` or None."""

    def save_api_key(self, uid: str, api_key: str) -> None:
        """Persist ``api_key`` for ``uid``."""


class InMemoryUserKeyStore:
    """Process-local per-user store keyed by user id."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._keys: Dict[str, str] = dict(initial or {})

    def get_api_key(self, uid: str) -> Optional[str]:
        return self._keys.get(uid)

    def save_api_key(self, uid: str, api_key: str) -> None:
        self._keys[uid] = api_key


class LocalKeyStore:
    """String values persisted to a single JSON file, one entry per storage key."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            logger.warning("Local storage file is corrupt; ignoring", extra={"event": "local_store.corrupt"})
            return {}
        return {str(k): str(v) for k, v in data.items()} if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(self.path)

    def get(self, key: str = LOCAL_KEY_NAME) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str = LOCAL_KEY_NAME) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


__all__ = ["InMemoryUserKeyStore", "LOCAL_KEY_NAME", "LocalKeyStore", "UserKeyStore"]
