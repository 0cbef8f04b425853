"""Collaborator contracts and their concrete implementations."""

from .base import (
    CoachChatClient,
    CoachingClient,
    HistoryStore,
    ScoringClient,
    SketchSource,
    SnapshotCallback,
    TargetAcquisitionClient,
    TargetDescriber,
    Unsubscribe,
)
from .memory import InMemoryHistoryStore
from .remote import (
    HttpCoachChatClient,
    HttpCoachingClient,
    HttpScoringClient,
    HttpTargetDescriber,
    PicsumTargetClient,
)

__all__ = [
    "CoachChatClient",
    "CoachingClient",
    "HistoryStore",
    "HttpCoachChatClient",
    "HttpCoachingClient",
    "HttpScoringClient",
    "HttpTargetDescriber",
    "InMemoryHistoryStore",
    "PicsumTargetClient",
    "ScoringClient",
    "SketchSource",
    "SnapshotCallback",
    "TargetAcquisitionClient",
    "TargetDescriber",
    "Unsubscribe",
]
