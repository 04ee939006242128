from datetime import datetime, timedelta

import pytest

from dogwalk.exceptions import AlreadyAcceptedError, NotFoundError
from dogwalk.models import HouseholdMember, Notification, NotificationType, Walk
from dogwalk.notifications import (
    NotificationFeed,
    achievement_notification,
    describe_slot,
    is_actionable,
    style_for,
    walk_missed_notification,
    walk_reminder_notification,
    welcome_notification,
)

NOW = datetime(2024, 3, 20, 9, 0)


def note(note_id: str, *, at: datetime, read: bool = False, recipient=None) -> Notification:
    return Notification(
        id=note_id,
        type=NotificationType.SYSTEM,
        title="Hello",
        message="Hi",
        time=at,
        read=read,
        recipient=recipient,
    )


def test_append_keeps_insertion_order_and_ignores_duplicates() -> None:
    feed = NotificationFeed().append(note("a", at=NOW)).append(note("b", at=NOW - timedelta(days=1)))
    assert [item.id for item in feed] == ["a", "b"]

    again = feed.append(note("a", at=NOW))
    assert again is feed
    assert len(again) == 2


def test_mark_all_read_is_idempotent() -> None:
    feed = NotificationFeed([note("a", at=NOW), note("b", at=NOW, read=True), note("c", at=NOW)])
    assert feed.unread_count() == 2

    once = feed.mark_all_read()
    assert once.unread_count() == 0
    assert all(item.read for item in once)

    twice = once.mark_all_read()
    assert twice is once


def test_mark_read_single_and_unknown() -> None:
    feed = NotificationFeed([note("a", at=NOW), note("b", at=NOW)])
    updated = feed.mark_read("a")
    assert updated.get("a").read is True
    assert updated.get("b").read is False

    with pytest.raises(NotFoundError):
        feed.mark_read("zzz")


def test_list_active_hides_read_items_older_than_retention() -> None:
    feed = NotificationFeed(
        [
            note("fresh-read", at=NOW - timedelta(days=2), read=True),
            note("old-read", at=NOW - timedelta(days=8), read=True),
            note("old-unread", at=NOW - timedelta(days=30)),
        ]
    )
    active = [item.id for item in feed.list_active(at=NOW)]
    assert active == ["fresh-read", "old-unread"]
    assert [item.id for item in feed.expired(at=NOW)] == ["old-read"]
    # Expiry is a view filter; nothing is dropped from the feed itself.
    assert len(feed) == 3


def test_addressed_notifications_only_count_for_recipient() -> None:
    feed = NotificationFeed([note("all", at=NOW), note("bob-only", at=NOW, recipient="bob")])
    assert feed.unread_count(member_id="alice") == 1
    assert feed.unread_count(member_id="bob") == 2
    assert [item.id for item in feed.list_active(at=NOW, member_id="alice")] == ["all"]


def test_record_acceptance_happens_once() -> None:
    offer = Notification(
        id="offer",
        type=NotificationType.WALK_SWAP_REQUEST,
        title="Walk Swap Request",
        message="...",
        time=NOW,
        sender="bob",
    )
    feed = NotificationFeed([offer])
    assert is_actionable(offer)

    taken = feed.record_acceptance("offer", "alice")
    assert taken.get("offer").accepted_by == "alice"
    assert taken.get("offer").read is True
    assert not is_actionable(taken.get("offer"))

    with pytest.raises(AlreadyAcceptedError):
        taken.record_acceptance("offer", "carol")


def test_describe_slot_formats_like_the_feed() -> None:
    assert describe_slot(datetime(2024, 3, 5, 7, 0)) == "Mar 5 at 7:00 AM"
    assert describe_slot(datetime(2024, 3, 5, 17, 30)) == "Mar 5 at 5:30 PM"
    assert describe_slot(datetime(2024, 3, 5, 0, 5)) == "Mar 5 at 12:05 AM"
    assert describe_slot(datetime(2024, 3, 5, 12, 0)) == "Mar 5 at 12:00 PM"


def test_builders_and_styles() -> None:
    walk = Walk(id="w1", date=datetime(2024, 3, 5, 17, 0), assigned_to="bob")
    member = HouseholdMember(id="bob", name="Bob")

    welcome = welcome_notification(at=NOW)
    assert welcome.type is NotificationType.SYSTEM
    assert welcome.title == "Welcome to the Dog Walking App!"

    missed = walk_missed_notification(walk, "Bob", at=NOW)
    assert missed.message == "The walk on Mar 5 at 5:00 PM assigned to Bob was not completed"
    assert style_for(missed).link == "/schedule"

    reminder = walk_reminder_notification(walk, at=NOW)
    assert reminder.recipient == "bob"
    assert style_for(reminder).icon == "clock"

    badge = achievement_notification(member, "Early Bird", at=NOW)
    assert badge.recipient == "bob"
    assert "Early Bird" in badge.message
    assert style_for(badge).link is None
