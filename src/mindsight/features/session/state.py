from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from ...core.errors import MindSightError
from ...core.models import ChatMessage, Identity, SessionRecord, SketchArtifact, TargetArtifact

__all__ = [
    "CHAT_EMPTY_REPLY",
    "CHAT_ERROR_REPLY",
    "CHAT_WELCOME",
    "FIRST_STEP",
    "LAST_STEP",
    "NOTES_STEP",
    "SKETCH_STEP",
    "CoachChat",
    "Notice",
    "Session",
    "SessionPhase",
    "clamp_step",
]

FIRST_STEP = 1
NOTES_STEP = 2
SKETCH_STEP = 3
LAST_STEP = 4


class SessionPhase(str, Enum):
    IDLE = "idle"
    VIEWING = "viewing"
    ANALYZING = "analyzing"
    FEEDBACK = "feedback"


def clamp_step(step: int) -> int:
    return max(FIRST_STEP, min(LAST_STEP, step))


@dataclass
class Session:
    """Working state of the session the controller currently owns."""

    generation: int
    coordinate: str
    identity: Identity
    started_at: float
    step: int = FIRST_STEP
    target: TargetArtifact | None = None
    notes: str = ""
    sketch: SketchArtifact | None = None
    viewing_started_at: float | None = None

    def snapshot(self) -> Session:
        return replace(self)


@dataclass(frozen=True)
class Notice:
    """Transient, dismissible message for the presentation layer."""

    kind: str
    message: str

    @classmethod
    def from_error(cls, error: MindSightError) -> Notice:
        return cls(kind=error.kind, message=error.message)


CHAT_WELCOME = "Hi, I'm your viewing coach. I've read your recent sessions; ask me anything about them."
CHAT_EMPTY_REPLY = "I'm having trouble thinking right now."
CHAT_ERROR_REPLY = "Connection error. Please try again."


@dataclass
class CoachChat:
    """An open coach conversation.

    ``seed`` is the history window captured when the chat was opened and is
    not refreshed afterwards.  ``messages`` is everything shown to the user,
    including the welcome line and error replies; ``turns`` holds only the
    exchanges the coach service actually answered and is what it sees as
    context on the next message.
    """

    seed: tuple[SessionRecord, ...]
    messages: list[ChatMessage] = field(default_factory=list)
    turns: list[ChatMessage] = field(default_factory=list)
    pending: bool = False
