"""httpx-backed implementations of the acquisition, scoring and coaching clients."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

import httpx
from pydantic import ValidationError

from ..core.concurrency import run_blocking
from ..core.encoding import b64_encode, data_uri
from ..core.errors import AcquisitionFailure, CoachingFailure, ScoringFailure
from ..core.models import ChatMessage, CoachReport, ScoringResult, SessionRecord, SketchArtifact, TargetArtifact
from ..core.settings import DEFAULT_TARGET_URL
from .base import TargetDescriber
from .schemas import (
    ChatRequest,
    ChatResponse,
    ChatTurn,
    CoachRequest,
    CoachResponse,
    CoachSession,
    DescribeRequest,
    DescribeResponse,
    ScoreRequest,
    ScoreResponse,
)

__all__ = [
    "HttpCoachChatClient",
    "HttpCoachingClient",
    "HttpScoringClient",
    "HttpTargetDescriber",
    "PicsumTargetClient",
]

logger = logging.getLogger(__name__)

_FALLBACK_IMAGE_MIME = "image/jpeg"
FALLBACK_DESCRIPTION = "A random scene."


def _content_type(response: httpx.Response) -> str:
    raw = response.headers.get("content-type", "")
    mime = raw.split(";", 1)[0].strip().lower()
    if not mime.startswith("image/"):
        return _FALLBACK_IMAGE_MIME
    return mime


class PicsumTargetClient:
    """Fetches a random photograph; the seed changes on every call.

    With a *describer* the target also carries a textual description.  A
    failed description falls back to ``FALLBACK_DESCRIPTION``; the image
    alone is enough to run a session.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        url_template: str = DEFAULT_TARGET_URL,
        clock: Callable[[], float] = time.time,
        describer: TargetDescriber | None = None,
    ) -> None:
        self._client = client
        self._url_template = url_template
        self._clock = clock
        self._describer = describer
        self._last_seed = 0

    def _next_seed(self) -> int:
        seed = max(int(self._clock() * 1000), self._last_seed + 1)
        self._last_seed = seed
        return seed

    async def acquire_target(self) -> TargetArtifact:
        url = self._url_template.format(seed=self._next_seed())
        try:
            response = await self._client.get(url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("target fetch failed", extra={"url": url, "error": str(exc)})
            raise AcquisitionFailure() from exc
        image = response.content
        if not image:
            raise AcquisitionFailure("Target source returned an empty image.")
        mime = _content_type(response)
        handle = await run_blocking(data_uri, image, mime)
        description = await self._describe(image, mime)
        return TargetArtifact(image=image, handle=handle, mime_type=mime, description=description)

    async def _describe(self, image: bytes, mime: str) -> str:
        if self._describer is None:
            return ""
        try:
            return await self._describer.describe(image, mime)
        except AcquisitionFailure as exc:
            logger.warning("target description failed", extra={"error": str(exc)})
            return FALLBACK_DESCRIPTION


class HttpTargetDescriber:
    def __init__(self, client: httpx.AsyncClient, url: str) -> None:
        self._client = client
        self._url = url

    async def describe(self, image: bytes, mime_type: str) -> str:
        request = DescribeRequest(image=await run_blocking(b64_encode, image), mime_type=mime_type)
        try:
            response = await self._client.post(self._url, json=request.to_dict())
            response.raise_for_status()
            payload = DescribeResponse.model_validate(response.json())
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            raise AcquisitionFailure("Could not describe the target image.") from exc
        description = payload.description.strip()
        if not description:
            raise AcquisitionFailure("Target description was empty.")
        return description


def _score_request(target: TargetArtifact, sketch: SketchArtifact | None, notes: str) -> ScoreRequest:
    return ScoreRequest(
        target_image=b64_encode(target.image),
        target_mime_type=target.mime_type,
        sketch_image=b64_encode(sketch.image) if sketch is not None else None,
        sketch_mime_type=sketch.mime_type if sketch is not None else None,
        notes=notes,
    )


class HttpScoringClient:
    def __init__(self, client: httpx.AsyncClient, url: str | None) -> None:
        self._client = client
        self._url = url

    async def score(
        self,
        target: TargetArtifact,
        sketch: SketchArtifact | None,
        notes: str,
    ) -> ScoringResult:
        if not self._url:
            raise ScoringFailure("Scoring service is not configured.")
        request = await run_blocking(_score_request, target, sketch, notes)
        try:
            response = await self._client.post(self._url, json=request.to_dict())
            response.raise_for_status()
            payload = ScoreResponse.model_validate(response.json())
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            logger.warning("scoring request failed", extra={"url": self._url, "error": str(exc)})
            raise ScoringFailure() from exc
        return ScoringResult(score=payload.score, feedback=payload.feedback)


def _coach_request(history: Sequence[SessionRecord]) -> CoachRequest:
    return CoachRequest(
        sessions=[
            CoachSession(
                coordinate=record.coordinate,
                timestamp=record.timestamp,
                score=record.score,
                feedback=record.feedback,
                notes=record.notes,
                duration_seconds=record.duration_seconds,
            )
            for record in history
        ]
    )


class HttpCoachingClient:
    def __init__(self, client: httpx.AsyncClient, url: str | None) -> None:
        self._client = client
        self._url = url

    async def coach(self, history: Sequence[SessionRecord]) -> CoachReport:
        if not self._url:
            raise CoachingFailure("Coaching service is not configured.")
        request = _coach_request(history)
        try:
            response = await self._client.post(self._url, json=request.to_dict())
            response.raise_for_status()
            payload = CoachResponse.model_validate(response.json())
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            logger.warning("coaching request failed", extra={"url": self._url, "error": str(exc)})
            raise CoachingFailure() from exc
        return CoachReport(
            trend_summary=payload.trend_summary,
            strengths=tuple(payload.strengths),
            weaknesses=tuple(payload.weaknesses),
            training_tips=tuple(payload.training_tips),
            future_steps=tuple(payload.future_steps),
        )


def _chat_request(
    history: Sequence[SessionRecord],
    transcript: Sequence[ChatMessage],
    message: str,
) -> ChatRequest:
    return ChatRequest(
        sessions=_coach_request(history).sessions,
        messages=[ChatTurn(role=turn.role, text=turn.text) for turn in transcript],
        message=message,
    )


class HttpCoachChatClient:
    """Stateless chat transport: every call carries the seed history and the prior turns."""

    def __init__(self, client: httpx.AsyncClient, url: str | None) -> None:
        self._client = client
        self._url = url

    async def reply(
        self,
        history: Sequence[SessionRecord],
        transcript: Sequence[ChatMessage],
        message: str,
    ) -> str:
        if not self._url:
            raise CoachingFailure("Coach chat is not configured.")
        request = _chat_request(history, transcript, message)
        try:
            response = await self._client.post(self._url, json=request.to_dict())
            response.raise_for_status()
            payload = ChatResponse.model_validate(response.json())
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            logger.warning("coach chat request failed", extra={"url": self._url, "error": str(exc)})
            raise CoachingFailure() from exc
        return payload.reply
