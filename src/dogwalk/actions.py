"""Action payloads understood by :func:`dogwalk.reducer.reduce`."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, Union

from .models import DogMood, EnergyLevel, MemberRole, Notification, WalkActivity


@dataclass(frozen=True, slots=True)
class StartWalk:
    walk_id: str


@dataclass(frozen=True, slots=True)
class ConfirmWalk:
    walk_id: str


@dataclass(frozen=True, slots=True)
class EndWalk:
    activity: WalkActivity = WalkActivity()
    dog_mood: Optional[DogMood] = None


@dataclass(frozen=True, slots=True)
class RequestSwap:
    walk_id: str


@dataclass(frozen=True, slots=True)
class RequestCover:
    walk_id: str


@dataclass(frozen=True, slots=True)
class AcceptSwap:
    notification_id: str
    walk_id: str


@dataclass(frozen=True, slots=True)
class MarkNotificationRead:
    notification_id: str


@dataclass(frozen=True, slots=True)
class MarkAllNotificationsRead:
    pass


@dataclass(frozen=True, slots=True)
class ReceiveNotification:
    """A notification pushed in by the record store subscription."""

    notification: Notification


@dataclass(frozen=True, slots=True)
class SwitchUser:
    member_id: str


@dataclass(frozen=True, slots=True)
class AddMember:
    name: str
    role: MemberRole = MemberRole.SECONDARY
    email: Optional[str] = None
    avatar: Optional[str] = None


@dataclass(frozen=True, slots=True)
class RemoveMember:
    member_id: str


@dataclass(frozen=True, slots=True)
class UpdateDog:
    name: Optional[str] = None
    breed: Optional[str] = None
    age: Optional[int] = None
    weight: Optional[float] = None
    energy_level: Optional[EnergyLevel] = None
    special_needs: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AddWalk:
    when: datetime
    assigned_to: Optional[str] = None


@dataclass(frozen=True, slots=True)
class RescheduleWalk:
    walk_id: str
    hour: int
    minute: int = 0


@dataclass(frozen=True, slots=True)
class ReassignWalk:
    walk_id: str
    member_id: str


@dataclass(frozen=True, slots=True)
class RemoveWalks:
    walk_ids: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class GrantAchievement:
    member_id: str
    label: str


@dataclass(frozen=True, slots=True)
class FlagMissedWalks:
    pass


@dataclass(frozen=True, slots=True)
class QueueReminders:
    pass


Action = Union[
    StartWalk,
    ConfirmWalk,
    EndWalk,
    RequestSwap,
    RequestCover,
    AcceptSwap,
    MarkNotificationRead,
    MarkAllNotificationsRead,
    ReceiveNotification,
    SwitchUser,
    AddMember,
    RemoveMember,
    UpdateDog,
    AddWalk,
    RescheduleWalk,
    ReassignWalk,
    RemoveWalks,
    GrantAchievement,
    FlagMissedWalks,
    QueueReminders,
]


__all__ = [
    "AcceptSwap",
    "Action",
    "AddMember",
    "AddWalk",
    "ConfirmWalk",
    "EndWalk",
    "FlagMissedWalks",
    "GrantAchievement",
    "MarkAllNotificationsRead",
    "MarkNotificationRead",
    "QueueReminders",
    "ReassignWalk",
    "ReceiveNotification",
    "RemoveMember",
    "RemoveWalks",
    "RequestCover",
    "RequestSwap",
    "RescheduleWalk",
    "StartWalk",
    "SwitchUser",
    "UpdateDog",
]
