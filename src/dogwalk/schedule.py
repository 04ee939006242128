"""Walk schedule generation and editing."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, time, timedelta
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple

from . import walks as lifecycle
from .exceptions import InvalidStateError, NotFoundError
from .models import HouseholdMember, Walk, WalkStatus, new_id

SEED_DAYS = 14
MORNING_HOUR = 7
EVENING_HOUR = 17
MISSED_GRACE = timedelta(minutes=60)
REMINDER_LEAD = timedelta(minutes=60)


class Weekday(IntEnum):
    """Enum representing days of the week for the schedule editor."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def from_datetime(cls, moment: datetime) -> "Weekday":
        return cls(moment.weekday())


def seed_walks(
    members: Sequence[HouseholdMember],
    *,
    start: date,
    days: int = SEED_DAYS,
    morning_hour: int = MORNING_HOUR,
    evening_hour: int = EVENING_HOUR,
) -> Tuple[Walk, ...]:
    """Two walks a day for ``days`` days, handed out round-robin.

    Day ``i`` gives the morning walk to member ``i % n`` and the evening walk
    to member ``(i + 1) % n``.
    """

    if not members:
        raise InvalidStateError("A schedule needs at least one household member.")
    count = len(members)
    seeded: List[Walk] = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        seeded.append(
            Walk(
                id=new_id(),
                date=datetime.combine(day, time(hour=morning_hour)),
                assigned_to=members[offset % count].id,
            )
        )
        seeded.append(
            Walk(
                id=new_id(),
                date=datetime.combine(day, time(hour=evening_hour)),
                assigned_to=members[(offset + 1) % count].id,
            )
        )
    return tuple(seeded)


def _require_member(members: Sequence[HouseholdMember], member_id: str) -> None:
    if not any(member.id == member_id for member in members):
        raise NotFoundError(f"Member '{member_id}' does not exist.")


def new_walk(members: Sequence[HouseholdMember], *, when: datetime, assigned_to: Optional[str] = None) -> Walk:
    """Create a one-off walk; defaults to the first member like the editor does."""

    if assigned_to is None:
        if not members:
            raise InvalidStateError("Add a household member before scheduling walks.")
        assigned_to = members[0].id
    _require_member(members, assigned_to)
    return Walk(id=new_id(), date=when, assigned_to=assigned_to)


def reschedule(walk: Walk, *, hour: int, minute: int = 0) -> Walk:
    lifecycle.ensure_time_editable(walk)
    return replace(walk, date=walk.date.replace(hour=hour, minute=minute, second=0, microsecond=0))


def reassign(walk: Walk, members: Sequence[HouseholdMember], member_id: str) -> Walk:
    lifecycle.ensure_assignee_editable(walk)
    _require_member(members, member_id)
    return replace(walk, assigned_to=member_id)


def walks_on(walks: Sequence[Walk], weekday: Weekday) -> Tuple[Walk, ...]:
    return tuple(walk for walk in walks if Weekday.from_datetime(walk.date) is weekday)


def todays_walk(walks: Sequence[Walk], member_id: str, *, at: datetime) -> Optional[Walk]:
    today = at.date()
    for walk in walks:
        if walk.date.date() == today and walk.assigned_to == member_id and walk.is_open:
            return walk
    return None


def missed_walks(walks: Sequence[Walk], *, at: datetime, grace: timedelta = MISSED_GRACE) -> Tuple[Walk, ...]:
    """Walks nobody started even though their slot plus ``grace`` has passed."""

    waiting = (WalkStatus.NOT_STARTED, WalkStatus.CONFIRMED)
    return tuple(walk for walk in walks if walk.status in waiting and walk.date + grace < at)


def upcoming_walks(
    walks: Sequence[Walk],
    member_id: str,
    *,
    at: datetime,
    lead: timedelta = REMINDER_LEAD,
) -> Tuple[Walk, ...]:
    waiting = (WalkStatus.NOT_STARTED, WalkStatus.CONFIRMED)
    return tuple(
        walk
        for walk in walks
        if walk.assigned_to == member_id and walk.status in waiting and at <= walk.date <= at + lead
    )


__all__ = [
    "EVENING_HOUR",
    "MISSED_GRACE",
    "MORNING_HOUR",
    "REMINDER_LEAD",
    "SEED_DAYS",
    "Weekday",
    "missed_walks",
    "new_walk",
    "reassign",
    "reschedule",
    "seed_walks",
    "todays_walk",
    "upcoming_walks",
    "walks_on",
]
