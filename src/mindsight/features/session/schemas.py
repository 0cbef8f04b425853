from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

__all__ = [
    "ChatMessagePayload",
    "ChatPayload",
    "CoachPayload",
    "CoachReportPayload",
    "ExitPayload",
    "HistoryPayload",
    "HistoryStatsPayload",
    "NoticePayload",
    "RecordPayload",
    "SessionPayload",
    "SketchPayload",
    "TargetPayload",
]


class _APIModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class NoticePayload(_APIModel):
    kind: str
    message: str


class TargetPayload(_APIModel):
    handle: str
    mime_type: str
    description: str | None = None


class SketchPayload(_APIModel):
    image: str
    mime_type: str


class RecordPayload(_APIModel):
    id: str
    coordinate: str
    timestamp: int
    score: int
    feedback: str
    notes: str
    duration_seconds: int | None = None
    target: TargetPayload
    sketch: SketchPayload | None = None


class SessionPayload(_APIModel):
    phase: str
    authenticated: bool
    auth_required: bool
    loading: bool
    exit_pending: bool
    step: int | None = None
    coordinate: str | None = None
    notes: str | None = None
    has_target: bool = False
    sketch: SketchPayload | None = None
    notice: NoticePayload | None = None
    result: RecordPayload | None = None
    result_saved: bool = True


class ExitPayload(_APIModel):
    exited: bool
    session: SessionPayload


class HistoryPayload(_APIModel):
    records: list[RecordPayload]


class HistoryStatsPayload(_APIModel):
    total_sessions: int
    average_score: int
    best_score: int
    total_seconds: int
    total_duration: str


class CoachReportPayload(_APIModel):
    trend_summary: str
    strengths: list[str]
    weaknesses: list[str]
    training_tips: list[str]
    future_steps: list[str]


class CoachPayload(_APIModel):
    pending: bool
    available: bool
    report: CoachReportPayload | None = None


class ChatMessagePayload(_APIModel):
    id: str
    role: str
    text: str
    timestamp: int


class ChatPayload(_APIModel):
    open: bool
    pending: bool = False
    messages: list[ChatMessagePayload] = []
