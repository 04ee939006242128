import asyncio
from datetime import datetime, timedelta

from dogwalk.interfaces import Collection
from dogwalk.webapp.persistence import SqlRecordStore

from conftest import START


def walk(walk_id: str, **fields) -> dict:
    record = {
        "id": walk_id,
        "household_id": "h1",
        "date": START,
        "assigned_to": "alice",
        "status": "Not Started",
        "start_time": None,
        "end_time": None,
        "duration": None,
        "activity": None,
        "notes": None,
        "dog_mood": None,
        "swap_requested_by": None,
    }
    record.update(fields)
    return record


def notice(notice_id: str, *, time: datetime, read: bool = False, **fields) -> dict:
    record = {
        "id": notice_id,
        "household_id": "h1",
        "type": "walk_swap_request",
        "title": "Swap requested",
        "message": "Bob needs a swap",
        "time": time,
        "read": read,
        "related_id": None,
        "accepted_by": None,
        "sender": None,
        "recipient": None,
    }
    record.update(fields)
    return record


def test_local_times_are_stored_as_written(tmp_path) -> None:
    async def scenario():
        store = SqlRecordStore.from_file(str(tmp_path / "dogwalk.db"))
        await store.insert(Collection.HOUSEHOLDS, [{"id": "h1", "name": "Smiths", "secret": "woof", "created_at": START}])
        await store.insert(Collection.WALKS, [walk("w1")])
        await store.update(
            Collection.WALKS,
            "w1",
            {"status": "Completed", "start_time": START, "end_time": START + timedelta(minutes=20), "duration": 20},
        )

        (household,) = await store.select(Collection.HOUSEHOLDS, "h1")
        assert household["created_at"] == START
        (row,) = await store.select(Collection.WALKS, "h1")
        assert row["date"] == START
        assert row["date"].tzinfo is None
        assert row["end_time"] == START + timedelta(minutes=20)
        assert row["duration"] == 20

    asyncio.run(scenario())


def test_swap_acceptance_and_purge_with_local_times(tmp_path) -> None:
    async def scenario():
        store = SqlRecordStore.from_file(str(tmp_path / "dogwalk.db"))
        await store.insert(Collection.WALKS, [walk("w1", assigned_to="bob", status="Swap Requested", swap_requested_by="bob")])
        await store.insert(
            Collection.NOTIFICATIONS,
            [
                notice("n1", time=START, related_id="w1", sender="bob"),
                notice("old", time=START - timedelta(days=40), read=True, type="system"),
            ],
        )
        thanks = notice("n2", time=START + timedelta(minutes=1), type="walk_swap_accepted", recipient="bob")

        first = await store.accept_swap_if_open(
            notification_id="n1", walk_id="w1", acceptor="alice", accepted_notice=thanks
        )
        second = await store.accept_swap_if_open(
            notification_id="n1", walk_id="w1", acceptor="carol", accepted_notice=dict(thanks, id="n3")
        )
        assert (first, second) == (True, False)

        (row,) = await store.select(Collection.WALKS, "h1")
        assert row["assigned_to"] == "alice"
        assert row["status"] == "Not Started"

        purged = await store.delete_expired_notifications("h1", before=START - timedelta(days=30))
        assert purged == 1
        notices = {item["id"]: item for item in await store.select(Collection.NOTIFICATIONS, "h1")}
        assert set(notices) == {"n1", "n2"}
        assert notices["n2"]["time"] == START + timedelta(minutes=1)
        assert notices["n1"]["accepted_by"] == "alice"

    asyncio.run(scenario())
