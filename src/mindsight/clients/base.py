"""Contracts of the collaborators the session controller drives.

Implementations raise the matching ``mindsight.core.errors`` failure rather
than transport-specific exceptions.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol

from ..core.models import (
    ChatMessage,
    CoachReport,
    Identity,
    ScoringResult,
    SessionRecord,
    SketchArtifact,
    TargetArtifact,
)

__all__ = [
    "CoachChatClient",
    "CoachingClient",
    "HistoryStore",
    "ScoringClient",
    "SketchSource",
    "SnapshotCallback",
    "TargetAcquisitionClient",
    "TargetDescriber",
    "Unsubscribe",
]

SnapshotCallback = Callable[[Sequence[SessionRecord]], None]
Unsubscribe = Callable[[], None]


class TargetAcquisitionClient(Protocol):
    async def acquire_target(self) -> TargetArtifact:
        """Return a fresh random target; raises ``AcquisitionFailure``."""
        ...


class TargetDescriber(Protocol):
    async def describe(self, image: bytes, mime_type: str) -> str:
        """Return a short textual description of *image*; raises ``AcquisitionFailure``."""
        ...


class ScoringClient(Protocol):
    async def score(
        self,
        target: TargetArtifact,
        sketch: SketchArtifact | None,
        notes: str,
    ) -> ScoringResult:
        """Judge the impressions against *target*; raises ``ScoringFailure``."""
        ...


class CoachingClient(Protocol):
    async def coach(self, history: Sequence[SessionRecord]) -> CoachReport:
        """Summarise *history*; raises ``CoachingFailure``."""
        ...


class CoachChatClient(Protocol):
    async def reply(
        self,
        history: Sequence[SessionRecord],
        transcript: Sequence[ChatMessage],
        message: str,
    ) -> str:
        """Answer *message* given the seeded *history* and earlier turns; raises ``CoachingFailure``."""
        ...


class HistoryStore(Protocol):
    async def write(self, identity: Identity, record: SessionRecord) -> None:
        """Append *record*; raises ``PersistenceFailure``."""
        ...

    def subscribe(self, identity: Identity, on_snapshot: SnapshotCallback) -> Unsubscribe:
        """Push the full ascending history on subscribe and after every change."""
        ...


class SketchSource(Protocol):
    def export_sketch(self) -> SketchArtifact | None: ...
