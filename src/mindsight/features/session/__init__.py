"""Session feature: lifecycle controller, history projection, schemas and API router."""

from .controller import SessionController
from .history import HistoryProjection, SnapshotEvent
from .router import create_session_router
from .schemas import (
    CoachPayload,
    CoachReportPayload,
    ExitPayload,
    HistoryPayload,
    HistoryStatsPayload,
    NoticePayload,
    RecordPayload,
    SessionPayload,
    SketchPayload,
    TargetPayload,
)
from .state import Notice, Session, SessionPhase

__all__ = [
    "CoachPayload",
    "CoachReportPayload",
    "ExitPayload",
    "HistoryPayload",
    "HistoryProjection",
    "HistoryStatsPayload",
    "Notice",
    "NoticePayload",
    "RecordPayload",
    "Session",
    "SessionController",
    "SessionPayload",
    "SessionPhase",
    "SketchPayload",
    "SnapshotEvent",
    "TargetPayload",
    "create_session_router",
]
