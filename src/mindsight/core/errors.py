"""Failure taxonomy shared by the clients and the session controller."""

from __future__ import annotations

__all__ = [
    "AcquisitionFailure",
    "AuthenticationRequired",
    "CoachingFailure",
    "InvalidTransition",
    "MindSightError",
    "PersistenceFailure",
    "ScoringFailure",
]


class MindSightError(Exception):
    kind = "error"
    default_message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class AcquisitionFailure(MindSightError):
    kind = "acquisition_failure"
    default_message = "Could not load a target image. Check your connection and try again."


class ScoringFailure(MindSightError):
    kind = "scoring_failure"
    default_message = "Analysis failed. Please try again."


class CoachingFailure(MindSightError):
    kind = "coaching_failure"
    default_message = "Could not generate a coach report."


class PersistenceFailure(MindSightError):
    kind = "persistence_failure"
    default_message = "Could not save the session."


class AuthenticationRequired(MindSightError):
    """Not a fault: the caller must sign in before starting a session."""

    kind = "authentication_required"
    default_message = "Sign in to start a session."


class InvalidTransition(MindSightError, ValueError):
    """Raised when an operation is not valid in the controller's current phase."""

    kind = "invalid_transition"
    default_message = "Operation not allowed right now."
