from __future__ import annotations

import random
import secrets

__all__ = ["generate_coordinate"]

_SYSTEM_RANDOM = secrets.SystemRandom()


def generate_coordinate(rng: random.Random | None = None) -> str:
    """Return a target reference number such as ``"4821-0937"``.

    Both halves are four-digit numbers in ``[1000, 9999]``.
    """

    source = rng if rng is not None else _SYSTEM_RANDOM
    return f"{source.randint(1000, 9999)}-{source.randint(1000, 9999)}"
