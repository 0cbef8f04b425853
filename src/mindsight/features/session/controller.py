"""Session lifecycle controller.

The controller is a state machine over ``SessionPhase``::

    IDLE -> VIEWING (steps 1..4) -> ANALYZING -> FEEDBACK -> IDLE

Transition methods are synchronous and must be called on the event loop.
Network work (target acquisition, scoring, the history write, coaching and
the coach chat) runs in tasks the controller schedules; the methods hand the
task back so callers may await it, but nothing requires them to.

Every session is tagged with a generation number minted at
``start_session``.  ``active_generation`` names the session the user still
cares about; exits clear it and a later start replaces it.  Each
asynchronous continuation compares its own generation with the active one
and does nothing at all when they differ, so a late completion from an
abandoned session is never shown.  Signing out, or signing in as a
different user, abandons the running session the same way.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
import secrets
import time
from collections.abc import Callable, Coroutine
from typing import Any

from ...clients.base import (
    CoachChatClient,
    CoachingClient,
    HistoryStore,
    ScoringClient,
    SketchSource,
    TargetAcquisitionClient,
)
from ...core import feature_flags
from ...core.analytics import coach_window
from ...core.coordinates import generate_coordinate
from ...core.errors import (
    AcquisitionFailure,
    AuthenticationRequired,
    CoachingFailure,
    InvalidTransition,
    MindSightError,
    PersistenceFailure,
    ScoringFailure,
)
from ...core.identity import AuthState
from ...core.models import (
    ChatMessage,
    CoachReport,
    Identity,
    ScoringResult,
    SessionRecord,
    SketchArtifact,
    TargetArtifact,
)
from ...core.settings import Settings
from .history import HistoryProjection
from .state import (
    CHAT_EMPTY_REPLY,
    CHAT_ERROR_REPLY,
    CHAT_WELCOME,
    LAST_STEP,
    NOTES_STEP,
    CoachChat,
    Notice,
    Session,
    SessionPhase,
    clamp_step,
)

__all__ = ["SessionController"]

logger = logging.getLogger(__name__)

Listener = Callable[["SessionController"], None]


def _record_id(length: int = 20) -> str:
    return secrets.token_hex(length // 2)


def _as_failure(exc: Exception, failure_type: type[MindSightError]) -> MindSightError:
    if isinstance(exc, failure_type):
        return exc
    logger.error("unexpected client error", exc_info=exc)
    return failure_type()


class SessionController:
    """Owns one user's session lifecycle independent of the presentation layer."""

    def __init__(
        self,
        *,
        acquisition: TargetAcquisitionClient,
        scoring: ScoringClient,
        coaching: CoachingClient,
        chat: CoachChatClient,
        store: HistoryStore,
        settings: Settings | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._acquisition = acquisition
        self._scoring = scoring
        self._coaching = coaching
        self._chat_client = chat
        self._store = store
        self._settings = settings or Settings()
        self._rng = rng
        self._clock = clock

        self._history = HistoryProjection(store, on_change=self._notify)
        self._generations = itertools.count(1)
        self._tasks: set[asyncio.Task[None]] = set()
        self._listeners: list[Listener] = []

        self._identity: Identity | None = None
        self._phase = SessionPhase.IDLE
        self._session: Session | None = None
        self._active_generation: int | None = None
        self._loading = False
        self._exit_pending = False
        self._auth_required = False
        self._notice: Notice | None = None
        self._result: SessionRecord | None = None
        self._result_saved = True

        self._coach_report: CoachReport | None = None
        self._coach_pending = False
        self._coach_epoch = 0
        self._chat: CoachChat | None = None

    # ------------------------------------------------------------------ views
    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def step(self) -> int | None:
        return self._session.step if self._session is not None else None

    @property
    def active_generation(self) -> int | None:
        return self._active_generation

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def exit_pending(self) -> bool:
        return self._exit_pending

    @property
    def auth_required(self) -> bool:
        return self._auth_required

    @property
    def notice(self) -> Notice | None:
        return self._notice

    @property
    def result(self) -> SessionRecord | None:
        return self._result

    @property
    def result_saved(self) -> bool:
        return self._result_saved

    @property
    def history(self) -> tuple[SessionRecord, ...]:
        return self._history.records

    @property
    def coach_report(self) -> CoachReport | None:
        return self._coach_report

    @property
    def coach_pending(self) -> bool:
        return self._coach_pending

    @property
    def chat(self) -> CoachChat | None:
        return self._chat

    @property
    def settings(self) -> Settings:
        return self._settings

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # --------------------------------------------------------------- identity
    def bind_identity(self, auth: AuthState) -> Callable[[], None]:
        """Follow *auth* until the returned function is called."""

        return auth.subscribe(self.on_identity_changed)

    def on_identity_changed(self, identity: Identity | None) -> None:
        if identity == self._identity:
            return
        previous, self._identity = self._identity, identity
        if previous is not None and identity is not None and previous.uid == identity.uid:
            # Profile update only.
            self._notify()
            return
        self._discard_coach_report()
        self._discard_chat()
        if self._active_generation is not None or self._phase is not SessionPhase.IDLE:
            # A session never outlives the identity that started it.
            self._end_session("deauthenticated")
        if identity is None:
            # Unconditional: wins over any session still in flight.
            self._history.detach()
        else:
            self._auth_required = False
            self._history.attach(identity)
        self._notify()

    # ------------------------------------------------------------ transitions
    def start_session(self) -> asyncio.Task[None] | None:
        if self._identity is None:
            self._auth_required = True
            self._notice = Notice.from_error(AuthenticationRequired())
            logger.info("session start requires authentication")
            self._notify()
            return None
        self._require_phase(SessionPhase.IDLE, "start a session")
        loop = asyncio.get_running_loop()

        generation = next(self._generations)
        if self._loading:
            logger.info(
                "superseding session that is still loading",
                extra={"previous": self._active_generation, "generation": generation},
            )
        self._session = Session(
            generation=generation,
            coordinate=generate_coordinate(self._rng),
            identity=self._identity,
            started_at=self._clock(),
        )
        self._active_generation = generation
        self._loading = True
        self._exit_pending = False
        self._notice = None
        self._result = None
        self._result_saved = True
        self._discard_coach_report()
        logger.debug(
            "session starting",
            extra={"generation": generation, "coordinate": self._session.coordinate},
        )
        self._notify()
        return self._spawn(loop, self._acquire(generation), name=f"mindsight-acquire-{generation}")

    def advance_step(self) -> int:
        session = self._require_viewing("advance")
        session.step = clamp_step(session.step + 1)
        self._notify()
        return session.step

    def retreat_step(self) -> int:
        session = self._require_viewing("go back")
        session.step = clamp_step(session.step - 1)
        self._notify()
        return session.step

    def record_notes(self, text: str) -> None:
        session = self._require_viewing("record notes")
        if session.step != NOTES_STEP:
            raise InvalidTransition(f"notes can only be recorded at step {NOTES_STEP}")
        session.notes = text
        self._notify()

    def record_sketch(self, artifact: SketchArtifact) -> None:
        session = self._require_viewing("record a sketch")
        if session.sketch == artifact:
            return
        session.sketch = artifact
        self._notify()

    def capture_sketch(self, source: SketchSource) -> bool:
        """Pull the drawing surface's latest export; False when nothing is drawn."""

        self._require_viewing("record a sketch")
        artifact = source.export_sketch()
        if artifact is None:
            return False
        self.record_sketch(artifact)
        return True

    def submit_session(self) -> asyncio.Task[None]:
        session = self._require_viewing("submit")
        if session.step != LAST_STEP:
            raise InvalidTransition(f"sessions are submitted from step {LAST_STEP}")
        if session.target is None:
            raise InvalidTransition("no target has been acquired for this session")
        loop = asyncio.get_running_loop()

        before = session.snapshot()
        self._phase = SessionPhase.ANALYZING
        self._exit_pending = False
        self._notice = None
        logger.debug("session submitted", extra={"generation": before.generation})
        self._notify()
        return self._spawn(loop, self._score(before), name=f"mindsight-score-{before.generation}")

    def request_exit(self) -> bool:
        """Ask to leave the current session.

        Returns True when the exit happened.  While a session is viewing,
        analyzing or still loading its target, the exit only becomes pending
        and must be confirmed with ``confirm_exit``.
        """

        if self._phase is SessionPhase.IDLE and not self._loading:
            raise InvalidTransition("there is no session to exit")
        if self._phase is SessionPhase.FEEDBACK:
            self._end_session("exit")
            return True
        self._exit_pending = True
        self._notify()
        return False

    def confirm_exit(self) -> None:
        if not self._exit_pending:
            raise InvalidTransition("no exit is awaiting confirmation")
        self._end_session("abandon")

    def cancel_exit(self) -> None:
        if self._exit_pending:
            self._exit_pending = False
            self._notify()

    def finish_feedback(self) -> None:
        self._require_phase(SessionPhase.FEEDBACK, "finish feedback")
        self._end_session("finish")

    def dismiss_notice(self) -> None:
        if self._notice is not None:
            self._notice = None
            self._notify()

    def request_coach_report(self) -> asyncio.Task[None]:
        records = self._history.records
        minimum = self._settings.coach_min_history
        if len(records) < minimum:
            raise InvalidTransition(f"a coach report needs at least {minimum} completed sessions")
        if self._coach_pending:
            raise InvalidTransition("a coach report is already being prepared")
        loop = asyncio.get_running_loop()

        window = coach_window(records, self._settings.coach_window)
        epoch = self._coach_epoch
        self._coach_pending = True
        self._notify()
        return self._spawn(loop, self._coach(epoch, window), name=f"mindsight-coach-{epoch}")

    def open_coach_chat(self) -> CoachChat:
        """Open a conversation seeded with the current history window.

        Reopening an open chat returns it unchanged; the seed is not
        refreshed until the chat is closed.
        """

        if self._identity is None:
            raise AuthenticationRequired("Sign in to talk to the coach.")
        if self._chat is None:
            self._chat = CoachChat(seed=coach_window(self._history.records, self._settings.coach_window))
            self._chat.messages.append(self._chat_message("model", CHAT_WELCOME))
            logger.debug("coach chat opened", extra={"sessions": len(self._chat.seed)})
            self._notify()
        return self._chat

    def close_coach_chat(self) -> None:
        if self._chat is not None:
            self._discard_chat()
            self._notify()

    def send_chat_message(self, text: str) -> asyncio.Task[None]:
        chat = self._chat
        if chat is None:
            raise InvalidTransition("the coach chat is not open")
        if not text.strip():
            raise InvalidTransition("chat messages must not be empty")
        if chat.pending:
            raise InvalidTransition("the coach is still replying")
        loop = asyncio.get_running_loop()

        question = self._chat_message("user", text)
        transcript = tuple(chat.turns)
        chat.messages.append(question)
        chat.pending = True
        self._notify()
        return self._spawn(loop, self._chat_reply(chat, transcript, question), name="mindsight-chat")

    # ---------------------------------------------------------- continuations
    async def _acquire(self, generation: int) -> None:
        try:
            target = await self._acquisition.acquire_target()
        except Exception as exc:
            failure = _as_failure(exc, AcquisitionFailure)
            if not self._is_current(generation):
                logger.debug("ignoring acquisition failure of stale session", extra={"generation": generation})
                return
            logger.warning("target acquisition failed", extra={"generation": generation, "error": str(failure)})
            self._loading = False
            self._active_generation = None
            self._session = None
            self._notice = Notice.from_error(failure)
            self._notify()
            return

        if not self._is_current(generation):
            logger.debug("ignoring target of stale session", extra={"generation": generation})
            return
        self._enter_viewing(target)

    def _enter_viewing(self, target: TargetArtifact) -> None:
        session = self._session
        assert session is not None
        session.target = target
        session.viewing_started_at = self._clock()
        self._loading = False
        self._phase = SessionPhase.VIEWING
        logger.debug("session viewing", extra={"generation": session.generation})
        self._notify()

    async def _score(self, before: Session) -> None:
        generation = before.generation
        assert before.target is not None
        try:
            result = await self._scoring.score(before.target, before.sketch, before.notes)
            _check_score(result)
        except Exception as exc:
            self._revert(before, _as_failure(exc, ScoringFailure))
            return

        record = self._assemble_record(before, result)
        try:
            await self._store.write(before.identity, record)
        except Exception as exc:
            failure = _as_failure(exc, PersistenceFailure)
            if self._is_current(generation) and feature_flags.is_enabled(feature_flags.KEEP_UNSAVED_SCORE):
                logger.warning("showing score that could not be saved", extra={"generation": generation})
                self._enter_feedback(record, saved=False)
                self._notice = Notice.from_error(failure)
                self._notify()
                return
            self._revert(before, failure)
            return

        if not self._is_current(generation):
            logger.info(
                "result of abandoned session stored but not shown",
                extra={"generation": generation, "record_id": record.id},
            )
            return
        self._enter_feedback(record, saved=True)
        self._notify()

    def _assemble_record(self, before: Session, result: ScoringResult) -> SessionRecord:
        assert before.target is not None
        now = self._clock()
        viewing_started = before.viewing_started_at if before.viewing_started_at is not None else before.started_at
        return SessionRecord(
            id=_record_id(),
            coordinate=before.coordinate,
            timestamp=int(now * 1000),
            target=before.target,
            sketch=before.sketch,
            notes=before.notes,
            score=result.score,
            feedback=result.feedback,
            duration_seconds=max(0, int(round(now - viewing_started))),
        )

    def _enter_feedback(self, record: SessionRecord, *, saved: bool) -> None:
        self._phase = SessionPhase.FEEDBACK
        self._exit_pending = False
        self._result = record
        self._result_saved = saved
        logger.debug(
            "session scored",
            extra={"generation": self._active_generation, "score": record.score, "saved": saved},
        )

    def _revert(self, before: Session, failure: MindSightError) -> None:
        if not self._is_current(before.generation):
            logger.debug("ignoring failure of stale session", extra={"generation": before.generation})
            return
        logger.warning(
            "session submission failed",
            extra={"generation": before.generation, "kind": failure.kind, "error": str(failure)},
        )
        self._session = before.snapshot()
        self._phase = SessionPhase.VIEWING
        self._notice = Notice.from_error(failure)
        self._notify()

    async def _coach(self, epoch: int, window: tuple[SessionRecord, ...]) -> None:
        try:
            report = await self._coaching.coach(window)
        except Exception as exc:
            failure = _as_failure(exc, CoachingFailure)
            if epoch != self._coach_epoch:
                return
            logger.warning("coach report failed", extra={"error": str(failure)})
            self._coach_pending = False
            self._notice = Notice.from_error(failure)
            self._notify()
            return
        if epoch != self._coach_epoch:
            logger.debug("dropping coach report requested before reset")
            return
        self._coach_pending = False
        self._coach_report = report
        self._notify()

    async def _chat_reply(self, chat: CoachChat, transcript: tuple[ChatMessage, ...], question: ChatMessage) -> None:
        try:
            reply = await self._chat_client.reply(chat.seed, transcript, question.text)
        except Exception as exc:
            failure = _as_failure(exc, CoachingFailure)
            if chat is not self._chat:
                return
            logger.warning("coach chat reply failed", extra={"error": str(failure)})
            chat.messages.append(self._chat_message("model", CHAT_ERROR_REPLY))
            chat.pending = False
            self._notify()
            return

        if chat is not self._chat:
            logger.debug("dropping reply for a closed coach chat")
            return
        answer = self._chat_message("model", reply.strip() or CHAT_EMPTY_REPLY)
        chat.turns.extend((question, answer))
        chat.messages.append(answer)
        chat.pending = False
        self._notify()

    # ---------------------------------------------------------------- helpers
    def _is_current(self, generation: int) -> bool:
        return self._active_generation == generation

    def _require_phase(self, phase: SessionPhase, action: str) -> None:
        if self._phase is not phase:
            raise InvalidTransition(f"cannot {action} while {self._phase.value}")

    def _require_viewing(self, action: str) -> Session:
        self._require_phase(SessionPhase.VIEWING, action)
        assert self._session is not None
        return self._session

    def _end_session(self, reason: str) -> None:
        logger.debug("session ended", extra={"generation": self._active_generation, "reason": reason})
        self._active_generation = None
        self._phase = SessionPhase.IDLE
        self._session = None
        self._loading = False
        self._exit_pending = False
        self._result = None
        self._result_saved = True
        self._notify()

    def _discard_coach_report(self) -> None:
        self._coach_epoch += 1
        self._coach_report = None
        self._coach_pending = False

    def _discard_chat(self) -> None:
        self._chat = None

    def _chat_message(self, role: str, text: str) -> ChatMessage:
        return ChatMessage(id=_record_id(12), role=role, text=text, timestamp=int(self._clock() * 1000))

    def _spawn(
        self,
        loop: asyncio.AbstractEventLoop,
        coro: Coroutine[Any, Any, None],
        *,
        name: str,
    ) -> asyncio.Task[None]:
        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("session listener failed", extra={"listener": repr(listener)})

    # -------------------------------------------------------------- lifecycle
    async def settle(self) -> None:
        """Wait for outstanding work and queued history snapshots."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self._history.settle()

    async def settle_history(self) -> None:
        await self._history.settle()

    async def aclose(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._history.aclose()


def _check_score(result: ScoringResult) -> None:
    if isinstance(result.score, bool) or not isinstance(result.score, int) or not 0 <= result.score <= 100:
        raise ScoringFailure(f"score {result.score!r} is outside 0-100")
