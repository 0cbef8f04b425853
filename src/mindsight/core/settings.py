"""Runtime configuration read from ``MINDSIGHT_*`` environment variables."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

__all__ = ["DEFAULT_TARGET_URL", "Settings"]

logger = logging.getLogger(__name__)

_PREFIX: Final = "MINDSIGHT_"

DEFAULT_TARGET_URL: Final = "https://picsum.photos/seed/{seed}/800/600"


def _text(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _int(env: Mapping[str, str], name: str, default: int, *, minimum: int) -> int:
    raw = _text(env, name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("ignoring non-integer setting", extra={"setting": _PREFIX + name, "value": raw})
        return default
    return max(minimum, value)


def _float(env: Mapping[str, str], name: str, default: float, *, minimum: float) -> float:
    raw = _text(env, name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("ignoring non-numeric setting", extra={"setting": _PREFIX + name, "value": raw})
        return default
    if value != value:  # NaN
        return default
    return max(minimum, value)


@dataclass(frozen=True)
class Settings:
    """Collaborator endpoints and coaching limits.

    ``scoring_url`` and ``coaching_url`` have no default: the HTTP clients
    refuse to run without them and report a scoring/coaching failure.  The
    same holds for ``chat_url``.  Without ``describe_url`` targets carry no
    description.
    """

    target_url: str = DEFAULT_TARGET_URL
    scoring_url: str | None = None
    coaching_url: str | None = None
    chat_url: str | None = None
    describe_url: str | None = None
    http_timeout: float = 30.0
    coach_window: int = 20
    coach_min_history: int = 3

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        return cls(
            target_url=_text(env, "TARGET_URL") or DEFAULT_TARGET_URL,
            scoring_url=_text(env, "SCORING_URL"),
            coaching_url=_text(env, "COACHING_URL"),
            chat_url=_text(env, "CHAT_URL"),
            describe_url=_text(env, "DESCRIBE_URL"),
            http_timeout=_float(env, "HTTP_TIMEOUT", 30.0, minimum=1.0),
            coach_window=_int(env, "COACH_WINDOW", 20, minimum=1),
            coach_min_history=_int(env, "COACH_MIN_HISTORY", 3, minimum=1),
        )
