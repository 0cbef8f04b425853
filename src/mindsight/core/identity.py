"""Process-wide authentication state.

There is exactly one ``AuthState`` per process.  The web app creates it at
startup, subscribes the session controller to it, and drops the subscription
at shutdown; nothing else reaches for the identity globally.  Credentials are
validated upstream, so ``sign_in`` trusts the identity it is handed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .models import Identity

__all__ = ["AuthState", "IdentityListener"]

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Identity | None], None]


class AuthState:
    def __init__(self) -> None:
        self._current: Identity | None = None
        self._listeners: list[IdentityListener] = []

    @property
    def current(self) -> Identity | None:
        return self._current

    def subscribe(self, listener: IdentityListener, *, replay: bool = True) -> Callable[[], None]:
        """Register *listener*; returns the function that removes it.

        With ``replay`` the listener is called straight away with the current
        identity, matching how identity providers report the initial state.
        """

        self._listeners.append(listener)
        if replay:
            listener(self._current)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def sign_in(self, identity: Identity) -> None:
        if identity == self._current:
            return
        logger.info("identity signed in", extra={"uid": identity.uid})
        self._current = identity
        self._publish()

    def sign_out(self) -> None:
        if self._current is None:
            return
        logger.info("identity signed out", extra={"uid": self._current.uid})
        self._current = None
        self._publish()

    def _publish(self) -> None:
        for listener in list(self._listeners):
            listener(self._current)
