from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "ChatMessage",
    "CoachReport",
    "Identity",
    "ScoringResult",
    "SessionRecord",
    "SketchArtifact",
    "TargetArtifact",
]


@dataclass(frozen=True)
class Identity:
    """An authenticated user as reported by the identity provider."""

    uid: str
    display_name: str = ""


@dataclass(frozen=True)
class TargetArtifact:
    """The withheld reference image a session is judged against."""

    image: bytes
    handle: str
    mime_type: str = "image/jpeg"
    description: str = ""


@dataclass(frozen=True)
class SketchArtifact:
    image: bytes
    mime_type: str = "image/png"


@dataclass(frozen=True)
class ScoringResult:
    score: int
    feedback: str


@dataclass(frozen=True)
class SessionRecord:
    """Persisted result of one completed session.

    ``timestamp`` is epoch milliseconds; history is ordered by it.
    """

    id: str
    coordinate: str
    timestamp: int
    target: TargetArtifact
    sketch: SketchArtifact | None
    notes: str
    score: int
    feedback: str
    duration_seconds: int | None = None


@dataclass(frozen=True)
class CoachReport:
    trend_summary: str
    strengths: tuple[str, ...] = ()
    weaknesses: tuple[str, ...] = ()
    training_tips: tuple[str, ...] = ()
    future_steps: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChatMessage:
    """One line of a coach conversation; ``role`` is ``"user"`` or ``"model"``."""

    id: str
    role: str
    text: str
    timestamp: int
