"""Build API payloads from controller state.

The target of a session in progress is withheld: only ``has_target`` is
exposed until the scored record is shown.
"""

from __future__ import annotations

from collections.abc import Sequence

from ...core.analytics import format_duration, summarize_history
from ...core.encoding import data_uri
from ...core.models import CoachReport, SessionRecord, SketchArtifact
from .controller import SessionController
from .schemas import (
    ChatMessagePayload,
    ChatPayload,
    CoachPayload,
    CoachReportPayload,
    HistoryPayload,
    HistoryStatsPayload,
    NoticePayload,
    RecordPayload,
    SessionPayload,
    SketchPayload,
    TargetPayload,
)

__all__ = [
    "chat_payload",
    "coach_payload",
    "history_payload",
    "record_payload",
    "session_payload",
    "stats_payload",
]


def _sketch_payload(sketch: SketchArtifact | None) -> SketchPayload | None:
    if sketch is None:
        return None
    return SketchPayload(image=data_uri(sketch.image, sketch.mime_type), mime_type=sketch.mime_type)


def record_payload(record: SessionRecord) -> RecordPayload:
    target = record.target
    return RecordPayload(
        id=record.id,
        coordinate=record.coordinate,
        timestamp=record.timestamp,
        score=record.score,
        feedback=record.feedback,
        notes=record.notes,
        duration_seconds=record.duration_seconds,
        target=TargetPayload(
            handle=target.handle,
            mime_type=target.mime_type,
            description=target.description or None,
        ),
        sketch=_sketch_payload(record.sketch),
    )


def session_payload(controller: SessionController) -> SessionPayload:
    session = controller.session
    notice = controller.notice
    result = controller.result
    return SessionPayload(
        phase=controller.phase.value,
        authenticated=controller.identity is not None,
        auth_required=controller.auth_required,
        loading=controller.loading,
        exit_pending=controller.exit_pending,
        step=session.step if session is not None else None,
        coordinate=session.coordinate if session is not None else None,
        notes=session.notes if session is not None else None,
        has_target=session is not None and session.target is not None,
        sketch=_sketch_payload(session.sketch) if session is not None else None,
        notice=NoticePayload(kind=notice.kind, message=notice.message) if notice is not None else None,
        result=record_payload(result) if result is not None else None,
        result_saved=controller.result_saved,
    )


def history_payload(records: Sequence[SessionRecord]) -> HistoryPayload:
    return HistoryPayload(records=[record_payload(record) for record in records])


def stats_payload(records: Sequence[SessionRecord]) -> HistoryStatsPayload:
    stats = summarize_history(records)
    return HistoryStatsPayload(
        total_sessions=stats.total_sessions,
        average_score=stats.average_score,
        best_score=stats.best_score,
        total_seconds=stats.total_seconds,
        total_duration=format_duration(stats.total_seconds),
    )


def _report_payload(report: CoachReport) -> CoachReportPayload:
    return CoachReportPayload(
        trend_summary=report.trend_summary,
        strengths=list(report.strengths),
        weaknesses=list(report.weaknesses),
        training_tips=list(report.training_tips),
        future_steps=list(report.future_steps),
    )


def coach_payload(controller: SessionController) -> CoachPayload:
    report = controller.coach_report
    return CoachPayload(
        pending=controller.coach_pending,
        available=len(controller.history) >= controller.settings.coach_min_history,
        report=_report_payload(report) if report is not None else None,
    )


def chat_payload(controller: SessionController) -> ChatPayload:
    chat = controller.chat
    if chat is None:
        return ChatPayload(open=False)
    return ChatPayload(
        open=True,
        pending=chat.pending,
        messages=[
            ChatMessagePayload(id=message.id, role=message.role, text=message.text, timestamp=message.timestamp)
            for message in chat.messages
        ],
    )
