"""Persistence and SQLModel definitions for the dogwalk web frontend."""
from __future__ import annotations

import asyncio
import hmac
import json
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from pydantic import NaiveDatetime
from sqlalchemy import DateTime, delete, update
from sqlalchemy.engine import Engine
from sqlmodel import Field, Session, SQLModel, create_engine, select

from ..interfaces import Collection, NotificationCallback, Record, RecordStore, Unsubscribe


# ---------------------------------------------------------------------------
# Database models
# ---------------------------------------------------------------------------
class Household(SQLModel, table=True):
    pk: Optional[int] = Field(default=None, primary_key=True)
    id: str = Field(index=True, unique=True)
    name: str = Field(index=True)
    secret: str = ""
    created_at: NaiveDatetime = Field(default_factory=datetime.now, sa_type=DateTime)


class Member(SQLModel, table=True):
    pk: Optional[int] = Field(default=None, primary_key=True)
    id: str = Field(index=True, unique=True)
    household_id: str = Field(index=True)
    name: str
    email: Optional[str] = None
    avatar: Optional[str] = None
    role: str = "Secondary"
    walk_count: int = 0
    total_walk_duration: int = 0
    achievements: str = "[]"


class Dog(SQLModel, table=True):
    pk: Optional[int] = Field(default=None, primary_key=True)
    id: str = Field(index=True, unique=True)
    household_id: str = Field(index=True)
    name: str = ""
    breed: str = ""
    age: int = 0
    weight: float = 0.0
    energy_level: Optional[str] = None
    special_needs: Optional[str] = None


class WalkRow(SQLModel, table=True):
    __tablename__ = "walk"

    pk: Optional[int] = Field(default=None, primary_key=True)
    id: str = Field(index=True, unique=True)
    household_id: str = Field(index=True)
    date: NaiveDatetime = Field(sa_type=DateTime)
    assigned_to: str
    status: str = "Not Started"
    start_time: Optional[NaiveDatetime] = Field(default=None, sa_type=DateTime)
    end_time: Optional[NaiveDatetime] = Field(default=None, sa_type=DateTime)
    duration: Optional[int] = None
    peed: Optional[bool] = None
    pooped: Optional[bool] = None
    notes: Optional[str] = None
    dog_mood: Optional[str] = None
    swap_requested_by: Optional[str] = None


class NotificationRow(SQLModel, table=True):
    __tablename__ = "notification"

    pk: Optional[int] = Field(default=None, primary_key=True)
    id: str = Field(index=True, unique=True)
    household_id: str = Field(index=True)
    type: str
    title: str
    message: str
    time: NaiveDatetime = Field(sa_type=DateTime)
    read: bool = False
    related_id: Optional[str] = None
    accepted_by: Optional[str] = None
    sender: Optional[str] = None
    recipient: Optional[str] = None


def make_engine(sqlite_file: str) -> Engine:
    engine = create_engine(
        f"sqlite:///{sqlite_file}",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Record <-> row mapping
# ---------------------------------------------------------------------------
def _encode_member(record: Record) -> Dict[str, Any]:
    row = dict(record)
    if "achievements" in row:
        row["achievements"] = json.dumps(list(row["achievements"] or []))
    return row


def _decode_member(row: Dict[str, Any]) -> Record:
    row["achievements"] = json.loads(row.get("achievements") or "[]")
    return row


def _encode_walk(record: Record) -> Dict[str, Any]:
    row = dict(record)
    if "activity" in row:
        activity = row.pop("activity") or {}
        row["peed"] = activity.get("peed") if activity else None
        row["pooped"] = activity.get("pooped") if activity else None
    return row


def _decode_walk(row: Dict[str, Any]) -> Record:
    peed = row.pop("peed", None)
    pooped = row.pop("pooped", None)
    row["activity"] = None if peed is None and pooped is None else {"peed": bool(peed), "pooped": bool(pooped)}
    return row


def _same(row: Dict[str, Any]) -> Dict[str, Any]:
    return dict(row)


_Codec = Tuple[Type[SQLModel], Callable[[Record], Dict[str, Any]], Callable[[Dict[str, Any]], Record]]

_TABLES: Dict[Collection, _Codec] = {
    Collection.HOUSEHOLDS: (Household, _same, _same),
    Collection.MEMBERS: (Member, _encode_member, _decode_member),
    Collection.DOGS: (Dog, _same, _same),
    Collection.WALKS: (WalkRow, _encode_walk, _decode_walk),
    Collection.NOTIFICATIONS: (NotificationRow, _same, _same),
}


def _row_to_record(collection: Collection, row: SQLModel) -> Record:
    _, _, decode = _TABLES[collection]
    data = row.model_dump()
    data.pop("pk", None)
    return decode(data)


class _SwapTaken(Exception):
    """Internal signal used to roll back a lost swap acceptance."""


# ---------------------------------------------------------------------------
# Record store
# ---------------------------------------------------------------------------
class SqlRecordStore(RecordStore):
    """SQLite-backed :class:`~dogwalk.interfaces.RecordStore`.

    Blocking SQL runs in worker threads; subscriber callbacks run back on the
    event loop once the insert has committed.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._listeners: Dict[str, List[NotificationCallback]] = {}

    @classmethod
    def from_file(cls, sqlite_file: str) -> "SqlRecordStore":
        return cls(make_engine(sqlite_file))

    # -- writes -------------------------------------------------------------
    def _insert_sync(self, collection: Collection, records: Sequence[Record]) -> None:
        table, encode, _ = _TABLES[collection]
        with Session(self.engine) as session:
            session.add_all([table(**encode(record)) for record in records])
            session.commit()

    async def insert(self, collection: Collection, records: Sequence[Record]) -> None:
        if not records:
            return
        await asyncio.to_thread(self._insert_sync, collection, records)
        if collection is Collection.NOTIFICATIONS:
            self._publish(records)

    def _update_sync(self, collection: Collection, record_id: str, changes: Record) -> None:
        table, encode, _ = _TABLES[collection]
        values = {key: value for key, value in encode(changes).items() if key not in ("id", "pk")}
        if not values:
            return
        with self.engine.begin() as connection:
            connection.execute(update(table).where(table.id == record_id).values(**values))

    async def update(self, collection: Collection, record_id: str, changes: Record) -> None:
        await asyncio.to_thread(self._update_sync, collection, record_id, changes)

    def _delete_sync(self, collection: Collection, record_ids: Sequence[str]) -> None:
        table, _, _ = _TABLES[collection]
        with self.engine.begin() as connection:
            connection.execute(delete(table).where(table.id.in_(list(record_ids))))

    async def delete(self, collection: Collection, record_ids: Sequence[str]) -> None:
        if not record_ids:
            return
        await asyncio.to_thread(self._delete_sync, collection, record_ids)

    def _accept_swap_sync(self, notification_id: str, walk_id: str, acceptor: str, notice: Record) -> bool:
        try:
            with self.engine.begin() as connection:
                claimed = connection.execute(
                    update(NotificationRow)
                    .where(NotificationRow.id == notification_id)
                    .where(NotificationRow.accepted_by.is_(None))
                    .values(accepted_by=acceptor, read=True)
                ).rowcount
                if claimed != 1:
                    raise _SwapTaken
                moved = connection.execute(
                    update(WalkRow)
                    .where(WalkRow.id == walk_id)
                    .where(WalkRow.status == "Swap Requested")
                    .values(assigned_to=acceptor, status="Not Started", swap_requested_by=None)
                ).rowcount
                if moved != 1:
                    raise _SwapTaken
                connection.execute(NotificationRow.__table__.insert().values(**notice))
        except _SwapTaken:
            return False
        return True

    async def accept_swap_if_open(
        self,
        *,
        notification_id: str,
        walk_id: str,
        acceptor: str,
        accepted_notice: Record,
    ) -> bool:
        accepted = await asyncio.to_thread(
            self._accept_swap_sync, notification_id, walk_id, acceptor, accepted_notice
        )
        if accepted:
            self._publish([accepted_notice])
        return accepted

    def _purge_sync(self, household_id: str, before: datetime) -> int:
        with self.engine.begin() as connection:
            result = connection.execute(
                delete(NotificationRow)
                .where(NotificationRow.household_id == household_id)
                .where(NotificationRow.read.is_(True))
                .where(NotificationRow.time < before)
            )
            return result.rowcount

    async def delete_expired_notifications(self, household_id: str, *, before: datetime) -> int:
        return await asyncio.to_thread(self._purge_sync, household_id, before)

    # -- reads --------------------------------------------------------------
    def _select_sync(self, collection: Collection, household_id: str) -> List[Record]:
        table, _, _ = _TABLES[collection]
        key = table.id if collection is Collection.HOUSEHOLDS else table.household_id
        with Session(self.engine) as session:
            rows = session.exec(select(table).where(key == household_id).order_by(table.pk)).all()
            return [_row_to_record(collection, row) for row in rows]

    async def select(self, collection: Collection, household_id: str) -> List[Record]:
        return await asyncio.to_thread(self._select_sync, collection, household_id)

    def _find_household_sync(self, name: str, secret: str) -> Optional[Record]:
        with Session(self.engine) as session:
            rows = session.exec(select(Household).where(Household.name == name).order_by(Household.pk)).all()
            for row in rows:
                if hmac.compare_digest(row.secret.encode("utf-8"), secret.encode("utf-8")):
                    return _row_to_record(Collection.HOUSEHOLDS, row)
        return None

    async def find_household(self, name: str, secret: str) -> Optional[Record]:
        return await asyncio.to_thread(self._find_household_sync, name, secret)

    # -- realtime -----------------------------------------------------------
    def subscribe_notifications(self, household_id: str, callback: NotificationCallback) -> Unsubscribe:
        self._listeners.setdefault(household_id, []).append(callback)

        def unsubscribe() -> None:
            listeners = self._listeners.get(household_id, [])
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def _publish(self, records: Sequence[Record]) -> None:
        for record in records:
            for listener in list(self._listeners.get(record.get("household_id", ""), ())):
                listener(dict(record))


__all__ = [
    "Dog",
    "Household",
    "Member",
    "NotificationRow",
    "SqlRecordStore",
    "WalkRow",
    "make_engine",
]
