"""Mapping between domain entities and persisted records.

Everything crossing the persistence boundary goes through a pydantic schema
first, so records loaded from the store or from a remember-me snapshot are
validated (and their text dates rehydrated) before they become entities.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .interfaces import Record
from .models import (
    DogMood,
    DogProfile,
    EnergyLevel,
    HouseholdMember,
    HouseholdState,
    MemberRole,
    Notification,
    NotificationType,
    Walk,
    WalkActivity,
    WalkStatus,
)

SNAPSHOT_VERSION = 1


class _Record(BaseModel):
    model_config = ConfigDict(use_enum_values=True, extra="ignore")


# Record schemas --------------------------------------------------------------
class HouseholdRecord(_Record):
    id: str
    name: str = Field(..., min_length=1)
    secret: str = ""
    created_at: datetime


class MemberRecord(_Record):
    id: str
    household_id: str
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    avatar: Optional[str] = None
    role: MemberRole = MemberRole.SECONDARY
    walk_count: int = Field(default=0, ge=0)
    total_walk_duration: int = Field(default=0, ge=0)
    achievements: List[str] = Field(default_factory=list)


class DogRecord(_Record):
    id: str
    household_id: str
    name: str = ""
    breed: str = ""
    age: int = Field(default=0, ge=0)
    weight: float = Field(default=0.0, ge=0)
    energy_level: Optional[EnergyLevel] = None
    special_needs: Optional[str] = None


class ActivityRecord(_Record):
    peed: bool = False
    pooped: bool = False


class WalkRecord(_Record):
    id: str
    household_id: str
    date: datetime
    assigned_to: str
    status: WalkStatus = WalkStatus.NOT_STARTED
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, ge=0)
    activity: Optional[ActivityRecord] = None
    dog_mood: Optional[DogMood] = None
    notes: Optional[str] = None
    swap_requested_by: Optional[str] = None


class NotificationRecord(_Record):
    id: str
    household_id: str
    type: NotificationType
    title: str
    message: str
    time: datetime
    read: bool = False
    related_id: Optional[str] = None
    accepted_by: Optional[str] = None
    sender: Optional[str] = None
    recipient: Optional[str] = None


class SnapshotDocument(_Record):
    """The whole session state, as saved for "remember me"."""

    version: int = SNAPSHOT_VERSION
    saved_at: datetime
    is_registered: bool = False
    household_id: str = ""
    household_name: str = ""
    current_user: str = ""
    current_walk_id: Optional[str] = None
    remember_me: bool = False
    dog: Optional[DogRecord] = None
    members: List[MemberRecord] = Field(default_factory=list)
    walks: List[WalkRecord] = Field(default_factory=list)
    notifications: List[NotificationRecord] = Field(default_factory=list)


# Entity -> record --------------------------------------------------------------
def household_record(household_id: str, name: str, secret: str, *, created_at: datetime) -> Record:
    return HouseholdRecord(id=household_id, name=name, secret=secret, created_at=created_at).model_dump()


def member_record(member: HouseholdMember, household_id: str) -> Record:
    return MemberRecord(
        id=member.id,
        household_id=household_id,
        name=member.name,
        email=member.email,
        avatar=member.avatar,
        role=member.role,
        walk_count=member.walk_count,
        total_walk_duration=member.total_walk_duration,
        achievements=list(member.achievements),
    ).model_dump()


def dog_record(dog: DogProfile, household_id: str) -> Record:
    # One dog per household, so the household id doubles as the dog id.
    return DogRecord(
        id=household_id,
        household_id=household_id,
        name=dog.name,
        breed=dog.breed,
        age=dog.age,
        weight=dog.weight,
        energy_level=dog.energy_level,
        special_needs=dog.special_needs,
    ).model_dump()


def walk_record(walk: Walk, household_id: str) -> Record:
    activity = walk.activity
    return WalkRecord(
        id=walk.id,
        household_id=household_id,
        date=walk.date,
        assigned_to=walk.assigned_to,
        status=walk.status,
        start_time=walk.start_time,
        end_time=walk.end_time,
        duration=walk.duration,
        activity=ActivityRecord(peed=activity.peed, pooped=activity.pooped) if activity else None,
        dog_mood=walk.dog_mood,
        notes=activity.notes if activity and activity.notes else None,
        swap_requested_by=walk.swap_requested_by,
    ).model_dump()


def notification_record(notification: Notification, household_id: str) -> Record:
    return NotificationRecord(
        household_id=household_id,
        id=notification.id,
        type=notification.type,
        title=notification.title,
        message=notification.message,
        time=notification.time,
        read=notification.read,
        related_id=notification.related_id,
        accepted_by=notification.accepted_by,
        sender=notification.sender,
        recipient=notification.recipient,
    ).model_dump()


# Record -> entity --------------------------------------------------------------
def _member(record: MemberRecord) -> HouseholdMember:
    return HouseholdMember(
        id=record.id,
        name=record.name,
        role=MemberRole(record.role),
        email=record.email,
        avatar=record.avatar,
        walk_count=record.walk_count,
        total_walk_duration=record.total_walk_duration,
        achievements=tuple(record.achievements),
    )


def _dog(record: DogRecord) -> DogProfile:
    return DogProfile(
        name=record.name,
        breed=record.breed,
        age=record.age,
        weight=record.weight,
        energy_level=record.energy_level,
        special_needs=record.special_needs,
    )


def _walk(record: WalkRecord) -> Walk:
    activity = None
    if record.activity is not None or record.notes:
        logged = record.activity or ActivityRecord()
        activity = WalkActivity(peed=logged.peed, pooped=logged.pooped, notes=record.notes or "")
    return Walk(
        id=record.id,
        date=record.date,
        assigned_to=record.assigned_to,
        status=record.status,
        start_time=record.start_time,
        end_time=record.end_time,
        duration=record.duration,
        activity=activity,
        dog_mood=record.dog_mood,
        swap_requested_by=record.swap_requested_by,
    )


def _notification(record: NotificationRecord) -> Notification:
    return Notification(
        id=record.id,
        type=record.type,
        title=record.title,
        message=record.message,
        time=record.time,
        read=record.read,
        related_id=record.related_id,
        accepted_by=record.accepted_by,
        sender=record.sender,
        recipient=record.recipient,
    )


def member_from_record(record: Dict[str, Any]) -> HouseholdMember:
    return _member(MemberRecord.model_validate(record))


def dog_from_record(record: Dict[str, Any]) -> DogProfile:
    return _dog(DogRecord.model_validate(record))


def walk_from_record(record: Dict[str, Any]) -> Walk:
    return _walk(WalkRecord.model_validate(record))


def notification_from_record(record: Dict[str, Any]) -> Notification:
    return _notification(NotificationRecord.model_validate(record))


def state_from_records(
    household: Dict[str, Any],
    *,
    current_user: str,
    members: Iterable[Dict[str, Any]],
    dogs: Iterable[Dict[str, Any]],
    walks: Iterable[Dict[str, Any]],
    notifications: Iterable[Dict[str, Any]],
    remember_me: bool = False,
) -> HouseholdState:
    """Assemble a session state from the collections loaded for one household.

    Walks and notifications are ordered chronologically since the store does
    not promise insertion order.
    """

    info = HouseholdRecord.model_validate(household)
    dog_rows = [dog_from_record(row) for row in dogs]
    walk_rows = sorted((walk_from_record(row) for row in walks), key=lambda walk: walk.date)
    feed = sorted((notification_from_record(row) for row in notifications), key=lambda item: item.time)
    state = HouseholdState(
        is_registered=True,
        household_id=info.id,
        household_name=info.name,
        current_user=current_user,
        dog=dog_rows[0] if dog_rows else DogProfile(),
        members=tuple(member_from_record(row) for row in members),
        walks=tuple(walk_rows),
        notifications=tuple(feed),
        remember_me=remember_me,
    )
    state.member(current_user)
    return state


# Snapshots ---------------------------------------------------------------------
def snapshot_document(state: HouseholdState, *, at: datetime) -> SnapshotDocument:
    household_id = state.household_id
    return SnapshotDocument(
        saved_at=at,
        is_registered=state.is_registered,
        household_id=household_id,
        household_name=state.household_name,
        current_user=state.current_user,
        current_walk_id=state.current_walk_id,
        remember_me=state.remember_me,
        dog=DogRecord.model_validate(dog_record(state.dog, household_id)),
        members=[MemberRecord.model_validate(member_record(m, household_id)) for m in state.members],
        walks=[WalkRecord.model_validate(walk_record(w, household_id)) for w in state.walks],
        notifications=[
            NotificationRecord.model_validate(notification_record(n, household_id)) for n in state.notifications
        ],
    )


def dump_state(state: HouseholdState, *, at: datetime) -> str:
    return snapshot_document(state, at=at).model_dump_json()


def load_state(payload: str) -> HouseholdState:
    """Rebuild a state from :func:`dump_state` output.

    Raises ``ValueError`` (pydantic's ``ValidationError`` included) when the
    document is malformed or breaks an entity invariant.
    """

    document = SnapshotDocument.model_validate_json(payload)
    if document.version != SNAPSHOT_VERSION:
        raise ValueError(f"Unsupported snapshot version {document.version}.")
    return HouseholdState(
        is_registered=document.is_registered,
        household_id=document.household_id,
        household_name=document.household_name,
        current_user=document.current_user,
        dog=_dog(document.dog) if document.dog else DogProfile(),
        members=tuple(_member(record) for record in document.members),
        walks=tuple(_walk(record) for record in document.walks),
        notifications=tuple(_notification(record) for record in document.notifications),
        current_walk_id=document.current_walk_id,
        remember_me=document.remember_me,
    )


class LocalSnapshotStore:
    """Keep the remember-me snapshot in a single JSON document on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def save(self, state: HouseholdState, *, at: datetime) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(dump_state(state, at=at), encoding="utf-8")

    def read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


__all__ = [
    "ActivityRecord",
    "DogRecord",
    "HouseholdRecord",
    "LocalSnapshotStore",
    "MemberRecord",
    "NotificationRecord",
    "SNAPSHOT_VERSION",
    "SnapshotDocument",
    "WalkRecord",
    "dog_from_record",
    "dog_record",
    "dump_state",
    "household_record",
    "load_state",
    "member_from_record",
    "member_record",
    "notification_from_record",
    "notification_record",
    "snapshot_document",
    "state_from_records",
    "walk_from_record",
    "walk_record",
]
