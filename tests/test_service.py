import asyncio
from datetime import datetime, timedelta

from dogwalk.actions import AcceptSwap, AddMember, MarkNotificationRead, RequestSwap, StartWalk
from dogwalk.exceptions import ErrorKind
from dogwalk.interfaces import Collection, RecordStore
from dogwalk.models import DogProfile, NotificationType, WalkStatus
from dogwalk.records import LocalSnapshotStore
from dogwalk.service import HouseholdStore
from dogwalk.webapp.persistence import SqlRecordStore

from conftest import START

SEVEN = datetime(2024, 3, 4, 7, 0)
FAMILY = [AddMember("Alice"), AddMember("Bob"), AddMember("Carol")]


class OfflineStore(RecordStore):
    """Record store whose backend is always down."""

    def __init__(self) -> None:
        self.calls = 0

    def _fail(self):
        self.calls += 1
        raise ConnectionError("backend offline")

    async def insert(self, collection, records):
        self._fail()

    async def update(self, collection, record_id, changes):
        self._fail()

    async def delete(self, collection, record_ids):
        self._fail()

    async def select(self, collection, household_id):
        self._fail()

    async def find_household(self, name, secret):
        self._fail()

    async def accept_swap_if_open(self, *, notification_id, walk_id, acceptor, accepted_notice):
        self._fail()

    async def delete_expired_notifications(self, household_id, *, before):
        self._fail()

    def subscribe_notifications(self, household_id, callback):
        return lambda: None


def backend_for(tmp_path) -> SqlRecordStore:
    return SqlRecordStore.from_file(str(tmp_path / "dogwalk.db"))


async def registered(backend, members=FAMILY) -> HouseholdStore:
    household = HouseholdStore(store=backend)
    outcome = household.register("Smiths", members, secret="woof", dog=DogProfile(name="Rex"), at=START)
    assert outcome.ok
    report = await household.sync(at=START)
    assert report.ok
    return household


def test_register_sync_and_login_from_another_session(tmp_path) -> None:
    async def scenario():
        backend = backend_for(tmp_path)
        first = await registered(backend)
        assert len(first.queue) == 0
        assert first.health.status(at=START)["persistence"] == "ok"

        bob = first.state.members[1]
        second = HouseholdStore(store=backend)
        outcome = await second.login("Smiths", "woof", bob.id, at=START)
        assert outcome.ok
        assert second.state.current_user == bob.id
        assert second.state.members == first.state.members
        assert second.state.walks == first.state.walks
        assert second.state.dog == first.state.dog
        assert [n.type for n in second.state.notifications] == [NotificationType.SYSTEM]
        assert second.audit_log.latest().action == "user_logged_in"

        stranger = HouseholdStore(store=backend)
        denied = await stranger.login("Smiths", "meow", at=START)
        assert denied.error_kind is ErrorKind.NOT_FOUND
        assert not stranger.state.is_registered

        default = HouseholdStore(store=backend)
        assert (await default.login("Smiths", "woof", at=START)).ok
        assert default.state.current_user == first.state.members[0].id

    asyncio.run(scenario())


def test_login_without_record_store_is_unavailable() -> None:
    household = HouseholdStore()
    outcome = asyncio.run(household.login("Smiths", "woof", at=START))
    assert outcome.error_kind is ErrorKind.PERSISTENCE_UNAVAILABLE
    assert household.health.local_only


def test_offline_store_keeps_local_state_and_queue() -> None:
    offline = OfflineStore()
    household = HouseholdStore(store=offline)
    assert household.register("Smiths", FAMILY[:2], at=START).ok

    report = asyncio.run(household.sync(at=START))
    assert not report.ok
    assert report.warnings[0].kind is ErrorKind.PERSISTENCE_UNAVAILABLE
    assert isinstance(report.warnings[0].__cause__, ConnectionError)
    assert report.pending == 5
    assert offline.calls == 1
    assert household.health.local_only
    assert household.status(at=START)["persistence"] == "local-only"
    assert household.logger.events("persistence_unavailable")

    morning = household.state.walks[0]
    started = household.dispatch(StartWalk(morning.id), at=SEVEN)
    assert started.ok
    assert household.state.current_walk.id == morning.id
    assert len(household.queue) == 6

    refreshed = asyncio.run(household.refresh())
    assert refreshed.current_walk.id == morning.id


def test_invalid_stored_walk_is_reported_not_raised(tmp_path) -> None:
    async def scenario():
        backend = backend_for(tmp_path)
        first = await registered(backend)
        walks_before = first.state.walks
        morning = walks_before[0]
        await backend.update(Collection.WALKS, morning.id, {"status": "Completed"})

        second = HouseholdStore(store=backend)
        outcome = await second.login("Smiths", "woof", at=START)
        assert outcome.error_kind is ErrorKind.PERSISTENCE_UNAVAILABLE
        assert not second.state.is_registered
        assert second.logger.events("persistence_unavailable")

        refreshed = await first.refresh()
        assert refreshed.walks == walks_before
        assert first.health.local_only
        assert first.logger.events("persistence_unavailable")

    asyncio.run(scenario())


def test_only_first_swap_acceptance_sticks_across_sessions(tmp_path) -> None:
    async def scenario():
        backend = backend_for(tmp_path)
        alice = await registered(backend)
        alice_id, bob_id, carol_id = (member.id for member in alice.state.members)
        bob = HouseholdStore(store=backend)
        carol = HouseholdStore(store=backend)
        assert (await bob.login("Smiths", "woof", bob_id, at=START)).ok
        assert (await carol.login("Smiths", "woof", carol_id, at=START)).ok

        evening = bob.state.walks[1]
        requested = bob.dispatch(RequestSwap(evening.id), at=START)
        (offer,) = requested.notifications
        assert (await bob.sync(at=START)).ok

        await alice.refresh()
        await carol.refresh()
        assert carol.state.walk(evening.id).status is WalkStatus.SWAP_REQUESTED
        assert [n.id for n in carol.open_swap_offers()] == [offer.id]

        assert alice.dispatch(AcceptSwap(offer.id, evening.id), at=START).ok
        assert carol.dispatch(AcceptSwap(offer.id, evening.id), at=START).ok

        won = await alice.sync(at=START)
        assert won.ok and not won.conflicts
        lost = await carol.sync(at=START)
        assert lost.ok
        assert len(lost.conflicts) == 1
        assert carol.logger.events("swap_conflict")

        walk = carol.state.walk(evening.id)
        assert walk.assigned_to == alice_id
        assert walk.status is WalkStatus.NOT_STARTED
        assert carol.state.notification(offer.id).accepted_by == alice_id

        rows = await backend.select(Collection.WALKS, alice.state.household_id)
        stored = next(row for row in rows if row["id"] == evening.id)
        assert stored["assigned_to"] == alice_id

    asyncio.run(scenario())


def test_notifications_reach_subscribed_sessions(tmp_path) -> None:
    async def scenario():
        backend = backend_for(tmp_path)
        alice = await registered(backend, FAMILY[:2])
        alice.subscribe()
        bob = HouseholdStore(store=backend)
        assert (await bob.login("Smiths", "woof", alice.state.members[1].id, at=START)).ok
        bob.subscribe()

        before = alice.unread_count()
        requested = bob.dispatch(RequestSwap(bob.state.walks[1].id), at=START)
        (offer,) = requested.notifications
        await bob.sync(at=START)

        assert alice.state.notifications[-1].id == offer.id
        assert alice.unread_count() == before + 1
        assert alice.audit_log.entries(action="notification_received")
        assert [n.id for n in bob.state.notifications].count(offer.id) == 1

        alice.unsubscribe()
        later = bob.dispatch(RequestSwap(bob.state.walks[2].id), at=START)
        await bob.sync(at=START)
        assert later.notifications[0].id not in {n.id for n in alice.state.notifications}

    asyncio.run(scenario())


def test_cleanup_removes_expired_read_notifications(tmp_path) -> None:
    async def scenario():
        backend = backend_for(tmp_path)
        household = await registered(backend, FAMILY[:1])
        welcome = household.state.notifications[0]
        assert household.dispatch(MarkNotificationRead(welcome.id), at=START).ok
        await household.sync(at=START)

        report = await household.cleanup_notifications(at=START + timedelta(days=8))
        assert report.ok
        assert await backend.select(Collection.NOTIFICATIONS, household.state.household_id) == []
        assert household.active_notifications(at=START + timedelta(days=8)) == ()

    asyncio.run(scenario())


def test_remember_me_snapshot_and_logout(tmp_path) -> None:
    snapshots = LocalSnapshotStore(tmp_path / "session.json")
    household = HouseholdStore(snapshots=snapshots)
    household.register("Smiths", FAMILY[:2], dog=DogProfile(name="Rex"), remember=True, at=START)
    morning = household.state.walks[0]
    household.dispatch(StartWalk(morning.id), at=SEVEN)
    assert snapshots.read() is not None

    restored = HouseholdStore(snapshots=snapshots)
    restored.bootstrap()
    assert restored.state == household.state
    assert restored.state.current_walk.id == morning.id

    household.logout(at=SEVEN)
    assert snapshots.read() is None
    assert not household.state.is_registered
    assert household.logger.events("user_logged_out")


def test_bootstrap_ignores_corrupt_snapshot(tmp_path) -> None:
    path = tmp_path / "session.json"
    path.write_text("{ this is not a snapshot", encoding="utf-8")
    household = HouseholdStore(snapshots=LocalSnapshotStore(path))

    state = household.bootstrap()
    assert not state.is_registered
    assert household.logger.events("snapshot_restore_failed")


def test_rejections_are_logged_not_audited() -> None:
    household = HouseholdStore()
    household.register("Smiths", FAMILY[:2], dog=DogProfile(name="Rex"), at=START)
    evening = household.state.walks[1]

    outcome = household.dispatch(StartWalk(evening.id), at=SEVEN)
    assert outcome.error_kind is ErrorKind.NOT_AUTHORIZED
    (entry,) = household.logger.events("action_rejected")
    assert entry["error"] == "NotAuthorized"
    assert not household.audit_log.entries(action="walk_started")

    assert household.dispatch(StartWalk(household.state.walks[0].id), at=SEVEN).ok
    assert len(household.audit_log.entries(action="walk_started")) == 1
    assert household.todays_walk(at=SEVEN).status is WalkStatus.IN_PROGRESS
    assert household.leaderboard()[0].walk_count == 0
