"""Explicit session variants handed to the credential resolver."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class UserProfile:
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class Authenticated:
    profile: UserProfile

    @property
    def uid(self) -> str:
        return self.profile.uid


@dataclass(frozen=True)
class Demo:
    """A deliberately signed-in demo visitor; has no per-user storage."""


@dataclass(frozen=True)
class Anonymous:
    pass


Session = Union[Authenticated, Demo, Anonymous]


def describe(session: Session) -> str:
    if isinstance(session, Authenticated):
        return f"authenticated:{session.uid}"
    if isinstance(session, Demo):
        return "demo"
    return "anonymous"


__all__ = ["Anonymous", "Authenticated", "Demo", "Session", "UserProfile", "describe"]
