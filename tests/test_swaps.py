from datetime import timedelta

import pytest

from dogwalk import swaps
from dogwalk.actions import AddMember
from dogwalk.exceptions import (
    AlreadyAcceptedError,
    InvalidStateError,
    NotAuthorizedError,
    NotFoundError,
    SelfAcceptNotAllowedError,
)
from dogwalk.models import NotificationType, WalkStatus
from dogwalk.reducer import reduce

from conftest import START


def bob_requests_evening_swap(state):
    bob = state.members[1]
    evening = state.walks[1]
    result = swaps.request_swap(state, bob.id, evening.id, at=START)
    (offer,) = result.emitted
    return result.state, offer, evening


def test_request_swap_broadcasts_offer(smiths) -> None:
    state, offer, evening = bob_requests_evening_swap(smiths)
    bob = state.members[1]

    walk = state.walk(evening.id)
    assert walk.status is WalkStatus.SWAP_REQUESTED
    assert walk.swap_requested_by == bob.id
    assert offer.type is NotificationType.WALK_SWAP_REQUEST
    assert offer.related_id == evening.id
    assert offer.sender == bob.id
    assert offer.recipient is None
    assert "Bob is looking for someone" in offer.message
    assert state.notifications[-1] == offer


def test_alice_accepts_bobs_swap(smiths) -> None:
    state, offer, evening = bob_requests_evening_swap(smiths)
    alice, bob = state.members

    result = swaps.accept_swap(state, alice.id, offer.id, evening.id, at=START + timedelta(minutes=5))

    walk = result.state.walk(evening.id)
    assert walk.assigned_to == alice.id
    assert walk.status is WalkStatus.NOT_STARTED
    assert walk.swap_requested_by is None

    original = result.state.notification(offer.id)
    assert original.read is True
    assert original.accepted_by == alice.id

    (accepted,) = result.emitted
    assert accepted.type is NotificationType.WALK_SWAP_ACCEPTED
    assert accepted.recipient == bob.id
    assert accepted.is_visible_to(bob.id)
    assert not accepted.is_visible_to(alice.id)
    assert "Alice has agreed to take your walk" in accepted.message


def test_requester_can_never_accept_own_swap(smiths) -> None:
    state, offer, evening = bob_requests_evening_swap(smiths)
    bob = state.members[1]

    with pytest.raises(SelfAcceptNotAllowedError):
        swaps.accept_swap(state, bob.id, offer.id, evening.id, at=START)

    # Still refused once the offer is gone, because the notification remembers its sender.
    alice = state.members[0]
    taken = swaps.accept_swap(state, alice.id, offer.id, evening.id, at=START).state
    with pytest.raises(SelfAcceptNotAllowedError):
        swaps.accept_swap(taken, bob.id, offer.id, evening.id, at=START)


def test_only_first_acceptance_wins(smiths) -> None:
    state = reduce(smiths, smiths.current_user, AddMember("Carol"), at=START).state
    state, offer, evening = bob_requests_evening_swap(state)
    alice, bob, carol = state.members

    first = swaps.accept_swap(state, carol.id, offer.id, evening.id, at=START)
    with pytest.raises(AlreadyAcceptedError):
        swaps.accept_swap(first.state, alice.id, offer.id, evening.id, at=START)

    walk = first.state.walk(evening.id)
    assert walk.assigned_to == carol.id
    assert first.state.notification(offer.id).accepted_by == carol.id


def test_accept_reports_missing_entities_first(smiths) -> None:
    state, offer, evening = bob_requests_evening_swap(smiths)
    alice = state.members[0]

    with pytest.raises(NotFoundError):
        swaps.accept_swap(state, alice.id, "missing", evening.id, at=START)
    with pytest.raises(NotFoundError):
        swaps.accept_swap(state, alice.id, offer.id, "missing", at=START)


def test_accept_rejects_mismatched_notification(smiths) -> None:
    state, offer, evening = bob_requests_evening_swap(smiths)
    alice = state.members[0]
    welcome = state.notifications[0]

    with pytest.raises(InvalidStateError):
        swaps.accept_swap(state, alice.id, welcome.id, evening.id, at=START)
    with pytest.raises(InvalidStateError):
        swaps.accept_swap(state, alice.id, offer.id, state.walks[0].id, at=START)


def test_cover_request_is_informational(smiths) -> None:
    alice = smiths.members[0]
    morning = smiths.walks[0]

    result = swaps.request_cover(smiths, alice.id, morning.id, at=START)

    assert result.state.walk(morning.id) == morning
    (notice,) = result.emitted
    assert notice.type is NotificationType.COVER_REQUEST
    assert "Alice needs someone to cover a walk on Mar 4 at 7:00 AM" == notice.message

    with pytest.raises(NotAuthorizedError):
        swaps.request_cover(smiths, smiths.members[1].id, morning.id, at=START)


def test_open_offers_hide_own_and_accepted_requests(smiths) -> None:
    state, offer, evening = bob_requests_evening_swap(smiths)
    alice, bob = state.members

    assert [item.id for item in swaps.open_offers(state, alice.id)] == [offer.id]
    assert swaps.open_offers(state, bob.id) == ()

    taken = swaps.accept_swap(state, alice.id, offer.id, evening.id, at=START).state
    assert swaps.open_offers(taken, alice.id) == ()
