"""Resolve which API key the studio should use, falling back to demo mode."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from ..session import Authenticated, Session, describe
from ..settings import Settings, get_settings
from ..util.logging import emit_event, get_logger, redact, register_secret
from .stores import LOCAL_KEY_NAME, LocalKeyStore, UserKeyStore

logger = get_logger(__name__)

PLACEHOLDER_KEY = "PLACEHOLDER_API_KEY"
MIN_INJECTED_LENGTH = 10  # bridge and environment keys must be longer than this
MIN_STORED_LENGTH = 20  # remote and local stored keys must be longer than this
NO_KEY_MESSAGE = "No active API Key found. Please add a Gemini API key in settings."

KeySource = Callable[[], Optional[str]]


class CredentialOrigin(str, Enum):
    BRIDGE = "bridge"
    REMOTE_STORE = "remote-store"
    LOCAL_STORE = "local-store"
    ENVIRONMENT = "environment"


class Credential(BaseModel):
    value: str = ""
    origin: Optional[CredentialOrigin] = None
    is_demo: bool = False
    message: Optional[str] = None

    @classmethod
    def demo(cls, message: str = NO_KEY_MESSAGE) -> "Credential":
        return cls(value="", origin=None, is_demo=True, message=message)


def _acceptable_injected(key: Optional[str]) -> bool:
    return bool(key) and key != PLACEHOLDER_KEY and len(key) > MIN_INJECTED_LENGTH


def _acceptable_stored(key: Optional[str]) -> bool:
    # The placeholder never counts, whatever its length.
    return bool(key) and key != PLACEHOLDER_KEY and len(key) > MIN_STORED_LENGTH


class CredentialResolver:
    """Walk the bridge, remote store, local store and environment in that order."""

    def __init__(
        self,
        *,
        local_store: LocalKeyStore,
        remote_store: Optional[UserKeyStore] = None,
        bridge: Optional[KeySource] = None,
        environment: Optional[KeySource] = None,
    ) -> None:
        self.local_store = local_store
        self.remote_store = remote_store
        self.bridge = bridge
        self.environment = environment

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        remote_store: Optional[UserKeyStore] = None,
        bridge: Optional[KeySource] = None,
    ) -> "CredentialResolver":
        settings = settings or get_settings()
        return cls(
            local_store=LocalKeyStore(settings.local_storage_path),
            remote_store=remote_store,
            bridge=bridge,
            environment=settings.environment_key,
        )

    def resolve(self, session: Session) -> Credential:
        """Return the first acceptable credential, or a demo credential when none resolve."""
        steps = (
            (CredentialOrigin.BRIDGE, lambda: self._from_bridge()),
            (CredentialOrigin.REMOTE_STORE, lambda: self._from_remote(session)),
            (CredentialOrigin.LOCAL_STORE, lambda: self._from_local()),
            (CredentialOrigin.ENVIRONMENT, lambda: self._from_environment()),
        )
        for origin, step in steps:
            try:
                key = step()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Credential source %s failed: %s", origin.value, exc)
                continue
            if key:
                register_secret(key)
                emit_event(logger, "credential.resolved", origin=origin.value, key=redact(key))
                return Credential(value=key, origin=origin)

        emit_event(logger, "credential.demo", session=describe(session))
        return Credential.demo()

    def _from_bridge(self) -> Optional[str]:
        if self.bridge is None:
            return None
        key = self.bridge()
        return key if _acceptable_injected(key) else None

    def _from_remote(self, session: Session) -> Optional[str]:
        if self.remote_store is None or not isinstance(session, Authenticated):
            return None
        key = self.remote_store.get_api_key(session.uid)
        return key if _acceptable_stored(key) else None

    def _from_local(self) -> Optional[str]:
        key = self.local_store.get(LOCAL_KEY_NAME)
        return key if _acceptable_stored(key) else None

    def _from_environment(self) -> Optional[str]:
        if self.environment is None:
            return None
        key = self.environment()
        return key if _acceptable_injected(key) else None

    def save(self, session: Session, key: str) -> bool:
        """Persist ``key`` remotely (best-effort) and locally (always).

        Only keys that ``resolve`` would accept back from a store are saved.
        """
        trimmed = (key or "").strip()
        if not _acceptable_stored(trimmed):
            return False

        register_secret(trimmed)
        if self.remote_store is not None and isinstance(session, Authenticated):
            try:
                self.remote_store.save_api_key(session.uid, trimmed)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to save key to remote store, using local storage: %s", exc)

        self.local_store.set(LOCAL_KEY_NAME, trimmed)
        emit_event(logger, "credential.saved", session=describe(session), key=redact(trimmed))
        return True

    def clear(self) -> None:
        self.local_store.remove(LOCAL_KEY_NAME)


__all__ = [
    "Credential",
    "CredentialOrigin",
    "CredentialResolver",
    "PLACEHOLDER_KEY",
]
