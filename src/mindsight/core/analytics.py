from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .models import SessionRecord

__all__ = ["HistoryStats", "coach_window", "format_duration", "summarize_history"]


@dataclass(frozen=True)
class HistoryStats:
    total_sessions: int
    average_score: int
    best_score: int
    total_seconds: int


def summarize_history(records: Sequence[SessionRecord]) -> HistoryStats:
    """Aggregate dashboard numbers over a history snapshot.

    The average is rounded half-up to a whole score; records without a
    duration contribute zero seconds.
    """

    if not records:
        return HistoryStats(total_sessions=0, average_score=0, best_score=0, total_seconds=0)
    total = len(records)
    score_sum = sum(record.score for record in records)
    return HistoryStats(
        total_sessions=total,
        average_score=int(score_sum / total + 0.5),
        best_score=max(record.score for record in records),
        total_seconds=sum(record.duration_seconds or 0 for record in records),
    )


def format_duration(seconds: int) -> str:
    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    return f"{hours}h {remainder // 60}m"


def coach_window(records: Sequence[SessionRecord], size: int) -> tuple[SessionRecord, ...]:
    """Return the most recent *size* records, oldest first."""

    if size <= 0:
        return ()
    return tuple(records[-size:])
