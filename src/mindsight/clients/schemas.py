"""Request/response bodies exchanged with the scoring and coaching services."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "ChatTurn",
    "CoachRequest",
    "CoachResponse",
    "CoachSession",
    "DescribeRequest",
    "DescribeResponse",
    "ScoreRequest",
    "ScoreResponse",
]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ScoreRequest(_WireModel):
    target_image: str = Field(..., alias="targetImage")
    target_mime_type: str = Field(..., alias="targetMimeType")
    sketch_image: str | None = Field(None, alias="sketchImage")
    sketch_mime_type: str | None = Field(None, alias="sketchMimeType")
    notes: str = ""


class ScoreResponse(_WireModel):
    score: int = Field(..., ge=0, le=100)
    feedback: str


class CoachSession(_WireModel):
    coordinate: str
    timestamp: int
    score: int
    feedback: str
    notes: str
    duration_seconds: int | None = Field(None, alias="durationSeconds")


class CoachRequest(_WireModel):
    sessions: list[CoachSession]


class CoachResponse(_WireModel):
    trend_summary: str = Field(..., alias="trendSummary")
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    training_tips: list[str] = Field(default_factory=list, alias="trainingTips")
    future_steps: list[str] = Field(default_factory=list, alias="futureSteps")


class ChatTurn(_WireModel):
    role: str
    text: str


class ChatRequest(_WireModel):
    sessions: list[CoachSession]
    messages: list[ChatTurn]
    message: str


class ChatResponse(_WireModel):
    reply: str = ""


class DescribeRequest(_WireModel):
    image: str
    mime_type: str = Field(..., alias="mimeType")


class DescribeResponse(_WireModel):
    description: str
