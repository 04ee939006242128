"""Notification feed primitives for dogwalk."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Dict, Iterable, Iterator, Optional, Sequence, Tuple

from .exceptions import AlreadyAcceptedError, NotFoundError
from .models import HouseholdMember, Notification, NotificationType, Walk, new_id

RETENTION_DAYS = 7


@dataclass(frozen=True, slots=True)
class NotificationStyle:
    """How a client should present a notification of a given type."""

    icon: str
    tone: str
    link: Optional[str] = None


NOTIFICATION_STYLES: Dict[NotificationType, NotificationStyle] = {
    NotificationType.SYSTEM: NotificationStyle(icon="bell", tone="primary"),
    NotificationType.WALK_COMPLETED: NotificationStyle(icon="check-circle", tone="green", link="/statistics"),
    NotificationType.WALK_MISSED: NotificationStyle(icon="alert-circle", tone="red", link="/schedule"),
    NotificationType.COVER_REQUEST: NotificationStyle(icon="info", tone="amber", link="/schedule"),
    NotificationType.WALK_SWAP_REQUEST: NotificationStyle(icon="arrow-right", tone="blue"),
    NotificationType.WALK_SWAP_ACCEPTED: NotificationStyle(icon="check-circle", tone="green"),
    NotificationType.ACHIEVEMENT: NotificationStyle(icon="trophy", tone="purple"),
    NotificationType.WALK_REMINDER: NotificationStyle(icon="clock", tone="blue", link="/schedule"),
}


def style_for(notification: Notification) -> NotificationStyle:
    return NOTIFICATION_STYLES[notification.type]


def is_actionable(notification: Notification) -> bool:
    """A swap request can still be taken while nobody has accepted it."""

    return notification.type is NotificationType.WALK_SWAP_REQUEST and notification.accepted_by is None


def describe_slot(moment: datetime) -> str:
    """Render a walk time the way the feed shows it, e.g. ``Mar 5 at 7:00 AM``."""

    hour = moment.hour % 12 or 12
    meridiem = "AM" if moment.hour < 12 else "PM"
    return f"{moment:%b} {moment.day} at {hour}:{moment.minute:02d} {meridiem}"


class NotificationFeed:
    """Insertion-ordered, append-only view over a household's notifications.

    The feed is immutable: every mutating method returns a new feed so the
    reducer can thread it through a transition without side effects. Expiry
    is a filter applied when listing, never a deletion.
    """

    __slots__ = ("_items", "_retention")

    def __init__(self, items: Iterable[Notification] = (), *, retention_days: int = RETENTION_DAYS) -> None:
        self._items: Tuple[Notification, ...] = tuple(items)
        self._retention = timedelta(days=retention_days)

    def __iter__(self) -> Iterator[Notification]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> Tuple[Notification, ...]:
        return self._items

    def _derive(self, items: Iterable[Notification]) -> "NotificationFeed":
        return NotificationFeed(items, retention_days=self._retention.days)

    def get(self, notification_id: str) -> Notification:
        for item in self._items:
            if item.id == notification_id:
                return item
        raise NotFoundError(f"Notification '{notification_id}' does not exist.")

    def contains(self, notification_id: str) -> bool:
        return any(item.id == notification_id for item in self._items)

    def append(self, notification: Notification) -> "NotificationFeed":
        if self.contains(notification.id):
            return self
        return self._derive(self._items + (notification,))

    def _update(self, updated: Notification) -> "NotificationFeed":
        return self._derive(updated if item.id == updated.id else item for item in self._items)

    def mark_read(self, notification_id: str) -> "NotificationFeed":
        item = self.get(notification_id)
        if item.read:
            return self
        return self._update(replace(item, read=True))

    def mark_all_read(self) -> "NotificationFeed":
        if all(item.read for item in self._items):
            return self
        return self._derive(item if item.read else replace(item, read=True) for item in self._items)

    def record_acceptance(self, notification_id: str, member_id: str) -> "NotificationFeed":
        """Set ``accepted_by`` exactly once; later attempts lose."""

        item = self.get(notification_id)
        if item.accepted_by is not None:
            raise AlreadyAcceptedError("This swap has already been accepted by another family member.")
        return self._update(replace(item, read=True, accepted_by=member_id))

    def unread(self, *, member_id: Optional[str] = None) -> Sequence[Notification]:
        return tuple(
            item
            for item in self._items
            if not item.read and (member_id is None or item.is_visible_to(member_id))
        )

    def unread_count(self, *, member_id: Optional[str] = None) -> int:
        return len(self.unread(member_id=member_id))

    def list_active(self, *, at: datetime, member_id: Optional[str] = None) -> Sequence[Notification]:
        cutoff = at - self._retention
        return tuple(
            item
            for item in self._items
            if (not item.read or item.time >= cutoff)
            and (member_id is None or item.is_visible_to(member_id))
        )

    def expired(self, *, at: datetime) -> Sequence[Notification]:
        cutoff = at - self._retention
        return tuple(item for item in self._items if item.read and item.time < cutoff)

    def related_to(self, walk_id: str, notification_type: NotificationType) -> Sequence[Notification]:
        return tuple(
            item for item in self._items if item.related_id == walk_id and item.type is notification_type
        )


# Notification builders -------------------------------------------------------
def _build(
    notification_type: NotificationType,
    title: str,
    message: str,
    *,
    at: datetime,
    related_id: Optional[str] = None,
    sender: Optional[str] = None,
    recipient: Optional[str] = None,
) -> Notification:
    return Notification(
        id=new_id(),
        type=notification_type,
        title=title,
        message=message,
        time=at,
        related_id=related_id,
        sender=sender,
        recipient=recipient,
    )


def welcome_notification(*, at: datetime) -> Notification:
    return _build(
        NotificationType.SYSTEM,
        "Welcome to the Dog Walking App!",
        "Start by scheduling walks for your family members.",
        at=at,
    )


def walk_completed_notification(walk: Walk, walker_name: str, dog_name: str, *, at: datetime) -> Notification:
    return _build(
        NotificationType.WALK_COMPLETED,
        "Walk Completed",
        f"{walker_name} completed a {walk.duration} minute walk with {dog_name or 'the dog'}",
        at=at,
        related_id=walk.id,
        sender=walk.assigned_to,
    )


def walk_missed_notification(walk: Walk, walker_name: str, *, at: datetime) -> Notification:
    return _build(
        NotificationType.WALK_MISSED,
        "Walk Missed",
        f"The walk on {describe_slot(walk.date)} assigned to {walker_name} was not completed",
        at=at,
        related_id=walk.id,
    )


def cover_request_notification(walk: Walk, requester_name: str, *, at: datetime) -> Notification:
    return _build(
        NotificationType.COVER_REQUEST,
        "Walk Cover Needed",
        f"{requester_name} needs someone to cover a walk on {describe_slot(walk.date)}",
        at=at,
        related_id=walk.id,
        sender=walk.assigned_to,
    )


def swap_request_notification(walk: Walk, requester_name: str, *, at: datetime) -> Notification:
    return _build(
        NotificationType.WALK_SWAP_REQUEST,
        "Walk Swap Request",
        f"{requester_name} is looking for someone to take over a walk on {describe_slot(walk.date)}",
        at=at,
        related_id=walk.id,
        sender=walk.swap_requested_by,
    )


def swap_accepted_notification(
    walk: Walk,
    acceptor_id: str,
    acceptor_name: str,
    requester_id: str,
    *,
    at: datetime,
) -> Notification:
    return _build(
        NotificationType.WALK_SWAP_ACCEPTED,
        "Walk Swap Accepted",
        f"{acceptor_name} has agreed to take your walk on {describe_slot(walk.date)}",
        at=at,
        related_id=walk.id,
        sender=acceptor_id,
        recipient=requester_id,
    )


def achievement_notification(member: HouseholdMember, label: str, *, at: datetime) -> Notification:
    return _build(
        NotificationType.ACHIEVEMENT,
        "New achievement unlocked",
        f'{member.name} earned the "{label}" badge',
        at=at,
        related_id=member.id,
        recipient=member.id,
    )


def walk_reminder_notification(walk: Walk, *, at: datetime) -> Notification:
    return _build(
        NotificationType.WALK_REMINDER,
        "Upcoming walk reminder",
        f"You have a walk scheduled {describe_slot(walk.date)}",
        at=at,
        related_id=walk.id,
        recipient=walk.assigned_to,
    )


__all__ = [
    "NOTIFICATION_STYLES",
    "NotificationFeed",
    "NotificationStyle",
    "RETENTION_DAYS",
    "achievement_notification",
    "cover_request_notification",
    "describe_slot",
    "is_actionable",
    "style_for",
    "swap_accepted_notification",
    "swap_request_notification",
    "walk_completed_notification",
    "walk_missed_notification",
    "walk_reminder_notification",
    "welcome_notification",
]
