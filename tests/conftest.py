from __future__ import annotations

import asyncio
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import pytest

# Ensure "src" is on sys.path for imports in tests
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from mindsight.clients.memory import InMemoryHistoryStore  # noqa: E402
from mindsight.core.identity import AuthState  # noqa: E402
from mindsight.core.models import (  # noqa: E402
    ChatMessage,
    CoachReport,
    Identity,
    ScoringResult,
    SessionRecord,
    SketchArtifact,
    TargetArtifact,
)
from mindsight.core.settings import Settings  # noqa: E402
from mindsight.features.session.controller import SessionController  # noqa: E402

TARGET = TargetArtifact(image=b"\xff\xd8target", handle="data:image/jpeg;base64,/9h0YXJnZXQ=", description="A lighthouse")
SKETCH = SketchArtifact(image=b"\x89PNGsketch")
USER = Identity(uid="user-1", display_name="Viewer")

_UNSET = object()


class _Scripted:
    """Async collaborator whose outcome a test can hold back and release.

    With ``hold`` set, each call parks until ``release`` provides its
    outcome; otherwise ``outcome`` is used straight away.  Exceptions are
    raised rather than returned.
    """

    def __init__(self, outcome: object) -> None:
        self.outcome = outcome
        self.hold = False
        self.calls: list[tuple[object, ...]] = []
        self._waiting: list[asyncio.Future[object]] = []
        self._released: list[object] = []

    async def _resolve(self, *args: object) -> object:
        self.calls.append(args)
        if self.hold:
            if self._released:
                outcome = self._released.pop(0)
            else:
                future: asyncio.Future[object] = asyncio.get_running_loop().create_future()
                self._waiting.append(future)
                outcome = await future
        else:
            outcome = self.outcome
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def release(self, outcome: object = _UNSET) -> None:
        value = self.outcome if outcome is _UNSET else outcome
        if self._waiting:
            self._waiting.pop(0).set_result(value)
        else:
            self._released.append(value)


class FakeAcquisition(_Scripted):
    def __init__(self) -> None:
        super().__init__(TARGET)

    async def acquire_target(self) -> TargetArtifact:
        return await self._resolve()  # type: ignore[return-value]


class FakeScoring(_Scripted):
    def __init__(self) -> None:
        super().__init__(ScoringResult(score=62, feedback="Partial shape match."))

    async def score(self, target: TargetArtifact, sketch: SketchArtifact | None, notes: str) -> ScoringResult:
        return await self._resolve(target, sketch, notes)  # type: ignore[return-value]


class FakeCoaching(_Scripted):
    def __init__(self) -> None:
        super().__init__(
            CoachReport(
                trend_summary="Scores are climbing.",
                strengths=("colour",),
                weaknesses=("shape",),
                training_tips=("Slow down at step 2.",),
                future_steps=("Try longer focus.",),
            )
        )

    async def coach(self, history: Sequence[SessionRecord]) -> CoachReport:
        return await self._resolve(tuple(history))  # type: ignore[return-value]


class FakeChat(_Scripted):
    def __init__(self) -> None:
        super().__init__("Your colour hits are strong; work on shapes.")

    async def reply(self, history: Sequence[SessionRecord], transcript: Sequence[ChatMessage], message: str) -> str:
        return await self._resolve(tuple(history), tuple(transcript), message)  # type: ignore[return-value]


class FixedRandom:
    """Stands in for ``random.Random`` so coordinates are predictable."""

    def __init__(self, *values: int) -> None:
        self._values = list(values)

    def randint(self, a: int, b: int) -> int:
        value = self._values.pop(0)
        assert a <= value <= b
        return value


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class Rig:
    controller: SessionController
    acquisition: FakeAcquisition
    scoring: FakeScoring
    coaching: FakeCoaching
    chat: FakeChat
    store: InMemoryHistoryStore
    auth: AuthState
    clock: FakeClock

    async def sign_in(self, identity: Identity = USER) -> None:
        """Bind the controller to the auth state and sign *identity* in."""

        self.controller.bind_identity(self.auth)
        self.auth.sign_in(identity)
        await self.controller.settle_history()

    async def tick(self, turns: int = 5) -> None:
        for _ in range(turns):
            await asyncio.sleep(0)

    async def to_viewing(self) -> None:
        task = self.controller.start_session()
        assert task is not None
        await task

    async def to_review(self, notes: str = "") -> None:
        await self.to_viewing()
        self.controller.advance_step()
        if notes:
            self.controller.record_notes(notes)
        self.controller.advance_step()
        self.controller.advance_step()


def make_rig(store: InMemoryHistoryStore | None = None, *, rng: object | None = None) -> Rig:
    clock = FakeClock()
    acquisition = FakeAcquisition()
    scoring = FakeScoring()
    coaching = FakeCoaching()
    chat = FakeChat()
    store = store or InMemoryHistoryStore()
    controller = SessionController(
        acquisition=acquisition,
        scoring=scoring,
        coaching=coaching,
        chat=chat,
        store=store,
        settings=Settings(),
        rng=rng,  # type: ignore[arg-type]
        clock=clock,
    )
    return Rig(
        controller=controller,
        acquisition=acquisition,
        scoring=scoring,
        coaching=coaching,
        chat=chat,
        store=store,
        auth=AuthState(),
        clock=clock,
    )


def make_record(index: int, *, score: int = 50, duration: int | None = 60) -> SessionRecord:
    return SessionRecord(
        id=f"rec-{index}",
        coordinate=f"{1000 + index}-{2000 + index}",
        timestamp=1_600_000_000_000 + index * 1000,
        target=TARGET,
        sketch=None,
        notes=f"notes {index}",
        score=score,
        feedback=f"feedback {index}",
        duration_seconds=duration,
    )


@pytest.fixture
def rig() -> Rig:
    return make_rig()
