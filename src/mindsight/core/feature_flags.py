"""Behaviour toggles for decisions that are still open.

What to show when a scored session cannot be saved is one such decision;
it is switched with a flag rather than a setting so it can be flipped per
deployment without a config change and per test with ``override()``.

``MINDSIGHT_FEATURES`` holds a comma-separated, case-insensitive list of
enabled flags::

    MINDSIGHT_FEATURES=feedback.keep_unsaved_score mindsight serve
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Final

__all__ = ["KEEP_UNSAVED_SCORE", "enabled_from_env", "is_enabled", "override"]

_ENV_VAR: Final = "MINDSIGHT_FEATURES"

# Show the score of a session whose history write failed instead of reverting.
KEEP_UNSAVED_SCORE: Final = "feedback.keep_unsaved_score"

# Innermost override last; each maps a flag to its forced state.
_overrides: list[dict[str, bool]] = []


def _key(flag: str) -> str:
    return flag.strip().lower()


def enabled_from_env(environ: Mapping[str, str] | None = None) -> frozenset[str]:
    raw = (os.environ if environ is None else environ).get(_ENV_VAR, "")
    return frozenset(_key(entry) for entry in raw.split(",") if entry.strip())


def is_enabled(flag: str) -> bool:
    """Innermost ``override()`` wins; otherwise the environment decides."""

    key = _key(flag)
    for forced in reversed(_overrides):
        if key in forced:
            return forced[key]
    return key in enabled_from_env()


@contextmanager
def override(*, enable: Iterable[str] = (), disable: Iterable[str] = ()) -> Iterator[None]:
    forced = {_key(flag): True for flag in enable}
    forced.update({_key(flag): False for flag in disable})
    _overrides.append(forced)
    try:
        yield
    finally:
        _overrides.pop()
