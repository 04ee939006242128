"""Custom exception hierarchy for the dogwalk package."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable error codes surfaced to callers of the household store."""

    NOT_FOUND = "NotFound"
    NOT_AUTHORIZED = "NotAuthorized"
    INVALID_STATE = "InvalidState"
    ALREADY_ACCEPTED = "AlreadyAccepted"
    SELF_ACCEPT_NOT_ALLOWED = "SelfAcceptNotAllowed"
    NO_ACTIVE_WALK = "NoActiveWalk"
    MISSING_START_TIME = "MissingStartTime"
    PERSISTENCE_UNAVAILABLE = "PersistenceUnavailable"


class DogWalkError(Exception):
    """Base class for all dogwalk specific errors."""

    kind: ErrorKind = ErrorKind.INVALID_STATE


class NotFoundError(DogWalkError):
    """Raised when a member, walk or notification id cannot be resolved."""

    kind = ErrorKind.NOT_FOUND


class NotAuthorizedError(DogWalkError):
    """Raised when the acting member is not allowed to perform an action."""

    kind = ErrorKind.NOT_AUTHORIZED


class InvalidStateError(DogWalkError):
    """Raised when an action is not legal from the walk's current status."""

    kind = ErrorKind.INVALID_STATE


class AlreadyAcceptedError(DogWalkError):
    """Raised when a swap request was already taken by another member."""

    kind = ErrorKind.ALREADY_ACCEPTED


class SelfAcceptNotAllowedError(DogWalkError):
    """Raised when the requester tries to accept their own swap request."""

    kind = ErrorKind.SELF_ACCEPT_NOT_ALLOWED


class NoActiveWalkError(DogWalkError):
    """Raised when ending a walk while none is being tracked."""

    kind = ErrorKind.NO_ACTIVE_WALK


class MissingStartTimeError(DogWalkError):
    """Raised when the tracked walk has no recorded start time."""

    kind = ErrorKind.MISSING_START_TIME


class PersistenceUnavailableError(DogWalkError):
    """Raised (or reported) when the record store could not be reached."""

    kind = ErrorKind.PERSISTENCE_UNAVAILABLE


__all__ = [
    "ErrorKind",
    "DogWalkError",
    "NotFoundError",
    "NotAuthorizedError",
    "InvalidStateError",
    "AlreadyAcceptedError",
    "SelfAcceptNotAllowedError",
    "NoActiveWalkError",
    "MissingStartTimeError",
    "PersistenceUnavailableError",
]
