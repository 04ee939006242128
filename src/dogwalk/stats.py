"""Walk statistics and achievement badges."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence, Tuple

from .exceptions import NotFoundError
from .models import HouseholdMember, HouseholdState, Walk, WalkStatus

WALK_CHAMPION = "Walk Champion"
LONGEST_WALK = "Longest Walk"


@dataclass(frozen=True, slots=True)
class DerivedAchievement:
    """Badge computed from the walk history rather than stored on a member."""

    title: str
    member_id: str
    member_name: str
    value: int
    description: str


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    member_id: str
    name: str
    walk_count: int
    total_walk_duration: int


def record_completion(
    members: Sequence[HouseholdMember],
    member_id: str,
    duration: int,
) -> Tuple[HouseholdMember, ...]:
    """Credit one finished walk of ``duration`` minutes to ``member_id`` only."""

    if not any(member.id == member_id for member in members):
        raise NotFoundError(f"Member '{member_id}' does not exist.")
    return tuple(
        replace(
            member,
            walk_count=member.walk_count + 1,
            total_walk_duration=member.total_walk_duration + duration,
        )
        if member.id == member_id
        else member
        for member in members
    )


def grant(member: HouseholdMember, label: str) -> Tuple[HouseholdMember, bool]:
    """Add a manual badge; returns the member and whether it was new."""

    badge = label.strip()
    if not badge:
        raise ValueError("Achievement label cannot be empty.")
    if badge in member.achievements:
        return member, False
    return replace(member, achievements=member.achievements + (badge,)), True


def walk_champion(members: Sequence[HouseholdMember]) -> Optional[DerivedAchievement]:
    if not members:
        return None
    # max() keeps the first of equal counts, which is the tie-break we want.
    champion = max(members, key=lambda member: member.walk_count)
    return DerivedAchievement(
        title=WALK_CHAMPION,
        member_id=champion.id,
        member_name=champion.name,
        value=champion.walk_count,
        description=f"Most walks ({champion.walk_count})",
    )


def completed_walks(walks: Iterable[Walk]) -> Tuple[Walk, ...]:
    return tuple(walk for walk in walks if walk.status is WalkStatus.COMPLETED)


def longest_walk(walks: Sequence[Walk], members: Sequence[HouseholdMember]) -> Optional[DerivedAchievement]:
    best: Optional[Walk] = None
    for walk in completed_walks(walks):
        if not walk.duration:
            continue
        if best is None or walk.duration > (best.duration or 0):
            best = walk
    if best is None:
        return None
    walker = next((member for member in members if member.id == best.assigned_to), None)
    if walker is None:
        return None
    return DerivedAchievement(
        title=LONGEST_WALK,
        member_id=walker.id,
        member_name=walker.name,
        value=best.duration or 0,
        description=f"{best.duration} minutes",
    )


def derived_achievements(state: HouseholdState) -> Tuple[DerivedAchievement, ...]:
    badges = (walk_champion(state.members), longest_walk(state.walks, state.members))
    return tuple(badge for badge in badges if badge is not None)


def leaderboard(members: Sequence[HouseholdMember]) -> Tuple[LeaderboardEntry, ...]:
    entries = [
        LeaderboardEntry(
            member_id=member.id,
            name=member.name,
            walk_count=member.walk_count,
            total_walk_duration=member.total_walk_duration,
        )
        for member in members
    ]
    return tuple(sorted(entries, key=lambda entry: entry.walk_count, reverse=True))


__all__ = [
    "DerivedAchievement",
    "LONGEST_WALK",
    "LeaderboardEntry",
    "WALK_CHAMPION",
    "completed_walks",
    "derived_achievements",
    "grant",
    "leaderboard",
    "longest_walk",
    "record_completion",
    "walk_champion",
]
