"""Swap and cover coordination between household members.

A swap request turns a walk into an offer to the whole household. Anyone but
the requester may take it, and only the first taker wins: acceptance checks
the notification's ``accepted_by`` and the walk's status together, inside one
transition. Cover requests are broadcasts only; nothing here resolves them.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Sequence, Tuple

from . import walks as lifecycle
from .exceptions import InvalidStateError, SelfAcceptNotAllowedError
from .models import HouseholdState, Notification, NotificationType, Walk, WalkStatus
from .notifications import (
    NotificationFeed,
    cover_request_notification,
    is_actionable,
    swap_accepted_notification,
    swap_request_notification,
)


@dataclass(frozen=True, slots=True)
class CoordinationResult:
    state: HouseholdState
    walk: Walk
    emitted: Tuple[Notification, ...] = ()
    updated: Tuple[Notification, ...] = ()


def request_swap(state: HouseholdState, actor: str, walk_id: str, *, at: datetime) -> CoordinationResult:
    walk = lifecycle.request_swap(state.walk(walk_id), actor)
    notice = swap_request_notification(walk, state.walker_name(actor), at=at)
    feed = NotificationFeed(state.notifications).append(notice)
    updated = replace(state.with_walk(walk), notifications=feed.items)
    return CoordinationResult(state=updated, walk=walk, emitted=(notice,))


def request_cover(state: HouseholdState, actor: str, walk_id: str, *, at: datetime) -> CoordinationResult:
    walk = state.walk(walk_id)
    lifecycle.check_cover(walk, actor)
    notice = cover_request_notification(walk, state.walker_name(actor), at=at)
    feed = NotificationFeed(state.notifications).append(notice)
    return CoordinationResult(state=replace(state, notifications=feed.items), walk=walk, emitted=(notice,))


def accept_swap(
    state: HouseholdState,
    actor: str,
    notification_id: str,
    walk_id: str,
    *,
    at: datetime,
) -> CoordinationResult:
    walk = state.walk(walk_id)
    offer = state.notification(notification_id)
    requester = walk.swap_requested_by or offer.sender
    if actor in (walk.swap_requested_by, offer.sender):
        raise SelfAcceptNotAllowedError("You cannot accept your own swap request.")
    feed = NotificationFeed(state.notifications).record_acceptance(notification_id, actor)
    if offer.type is not NotificationType.WALK_SWAP_REQUEST or offer.related_id != walk.id:
        raise InvalidStateError("Notification is not a swap request for this walk.")
    if walk.status is not WalkStatus.SWAP_REQUESTED:
        raise InvalidStateError("This walk is no longer available for swap.")
    state.member(actor)

    handed_over = lifecycle.hand_over(walk, actor)
    notice = swap_accepted_notification(
        handed_over,
        actor,
        state.walker_name(actor),
        requester or walk.assigned_to,
        at=at,
    )
    feed = feed.append(notice)
    updated = replace(state.with_walk(handed_over), notifications=feed.items)
    return CoordinationResult(
        state=updated,
        walk=handed_over,
        emitted=(notice,),
        updated=(feed.get(notification_id),),
    )


def open_offers(state: HouseholdState, member_id: str) -> Sequence[Notification]:
    """Swap requests ``member_id`` could still take."""

    return tuple(
        item
        for item in state.notifications
        if is_actionable(item) and item.sender != member_id
    )


__all__ = ["CoordinationResult", "accept_swap", "open_offers", "request_cover", "request_swap"]
