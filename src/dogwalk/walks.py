"""Walk lifecycle transitions.

Every function here is pure: it takes a :class:`~dogwalk.models.Walk` and
returns a new one (or raises). Ownership is checked before status so that a
member poking at someone else's walk always hears ``NotAuthorized``.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import FrozenSet, Iterable, Optional

from .exceptions import InvalidStateError, MissingStartTimeError, NotAuthorizedError
from .models import DogMood, Walk, WalkActivity, WalkStatus

STARTABLE: FrozenSet[WalkStatus] = frozenset({WalkStatus.NOT_STARTED, WalkStatus.CONFIRMED})
CONFIRMABLE: FrozenSet[WalkStatus] = frozenset({WalkStatus.NOT_STARTED})
SWAPPABLE: FrozenSet[WalkStatus] = frozenset({WalkStatus.NOT_STARTED})
COVERABLE: FrozenSet[WalkStatus] = frozenset({WalkStatus.NOT_STARTED, WalkStatus.CONFIRMED})

# Schedule editor guards.
REMOVAL_LOCKED: FrozenSet[WalkStatus] = frozenset({WalkStatus.CONFIRMED, WalkStatus.IN_PROGRESS})
TIME_EDITABLE: FrozenSet[WalkStatus] = frozenset({WalkStatus.NOT_STARTED, WalkStatus.SWAP_REQUESTED})
ASSIGNEE_EDITABLE: FrozenSet[WalkStatus] = frozenset({WalkStatus.NOT_STARTED})


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between ``start`` and ``end``, rounded half up."""

    seconds = Decimal(str((end - start).total_seconds()))
    minutes = (seconds / Decimal(60)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(int(minutes), 0)


def _require_assignee(walk: Walk, actor: str, verb: str) -> None:
    if walk.assigned_to != actor:
        raise NotAuthorizedError(f"Only the assigned walker can {verb} this walk.")


def _require_status(walk: Walk, allowed: FrozenSet[WalkStatus], verb: str) -> None:
    if walk.status not in allowed:
        raise InvalidStateError(f"Cannot {verb} a walk in {walk.status.value} status.")


def start(walk: Walk, actor: str, *, at: datetime) -> Walk:
    _require_assignee(walk, actor, "start")
    _require_status(walk, STARTABLE, "start")
    return replace(walk, status=WalkStatus.IN_PROGRESS, start_time=at)


def confirm(walk: Walk, actor: str) -> Walk:
    _require_assignee(walk, actor, "confirm")
    _require_status(walk, CONFIRMABLE, "confirm")
    return replace(walk, status=WalkStatus.CONFIRMED)


def request_swap(walk: Walk, actor: str) -> Walk:
    _require_assignee(walk, actor, "request a swap for")
    _require_status(walk, SWAPPABLE, "request a swap for")
    return replace(walk, status=WalkStatus.SWAP_REQUESTED, swap_requested_by=actor)


def check_cover(walk: Walk, actor: str) -> None:
    """Cover requests leave the walk untouched; only the preconditions apply."""

    _require_assignee(walk, actor, "request cover for")
    _require_status(walk, COVERABLE, "request cover for")


def hand_over(walk: Walk, new_walker: str) -> Walk:
    """Resolve a swap: the walk goes back to Not Started under its new walker."""

    _require_status(walk, frozenset({WalkStatus.SWAP_REQUESTED}), "hand over")
    return replace(walk, assigned_to=new_walker, status=WalkStatus.NOT_STARTED, swap_requested_by=None)


def finish(
    walk: Walk,
    *,
    activity: WalkActivity,
    mood: Optional[DogMood],
    at: datetime,
) -> Walk:
    if walk.start_time is None:
        raise MissingStartTimeError("Walk start time not recorded.")
    _require_status(walk, frozenset({WalkStatus.IN_PROGRESS}), "end")
    return replace(
        walk,
        status=WalkStatus.COMPLETED,
        end_time=at,
        duration=elapsed_minutes(walk.start_time, at),
        activity=activity,
        dog_mood=mood,
    )


def in_progress_for(walks: Iterable[Walk], member_id: str) -> Optional[Walk]:
    """The walk ``member_id`` is out on right now, if any."""

    for walk in walks:
        if walk.status is WalkStatus.IN_PROGRESS and walk.assigned_to == member_id:
            return walk
    return None


def ensure_removable(walk: Walk) -> None:
    if walk.status in REMOVAL_LOCKED:
        raise InvalidStateError(f"Cannot remove a walk in {walk.status.value} status.")


def ensure_time_editable(walk: Walk) -> None:
    _require_status(walk, TIME_EDITABLE, "reschedule")


def ensure_assignee_editable(walk: Walk) -> None:
    _require_status(walk, ASSIGNEE_EDITABLE, "reassign")


__all__ = [
    "ASSIGNEE_EDITABLE",
    "CONFIRMABLE",
    "COVERABLE",
    "REMOVAL_LOCKED",
    "STARTABLE",
    "SWAPPABLE",
    "TIME_EDITABLE",
    "check_cover",
    "confirm",
    "elapsed_minutes",
    "ensure_assignee_editable",
    "ensure_removable",
    "ensure_time_editable",
    "finish",
    "hand_over",
    "in_progress_for",
    "request_swap",
    "start",
]
