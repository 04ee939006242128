"""dogwalk package for coordinating a household's dog walks."""

from .actions import (
    AcceptSwap,
    AddMember,
    AddWalk,
    ConfirmWalk,
    EndWalk,
    FlagMissedWalks,
    GrantAchievement,
    MarkAllNotificationsRead,
    MarkNotificationRead,
    QueueReminders,
    ReassignWalk,
    ReceiveNotification,
    RemoveMember,
    RemoveWalks,
    RequestCover,
    RequestSwap,
    RescheduleWalk,
    StartWalk,
    SwitchUser,
    UpdateDog,
)
from .admin import AuditLog
from .effects import EffectQueue, SyncReport
from .exceptions import (
    AlreadyAcceptedError,
    DogWalkError,
    ErrorKind,
    InvalidStateError,
    MissingStartTimeError,
    NoActiveWalkError,
    NotAuthorizedError,
    NotFoundError,
    PersistenceUnavailableError,
    SelfAcceptNotAllowedError,
)
from .interfaces import Collection, RecordStore
from .models import (
    AuditEvent,
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
from .notifications import NotificationFeed
from .ops import HealthMonitor, StructuredLogger
from .records import LocalSnapshotStore, dump_state, load_state
from .reducer import Outcome, Settings, Transition, reduce, register
from .service import HouseholdStore

__all__ = [
    "AcceptSwap",
    "AddMember",
    "AddWalk",
    "AlreadyAcceptedError",
    "AuditEvent",
    "AuditLog",
    "Collection",
    "ConfirmWalk",
    "DogMood",
    "DogProfile",
    "DogWalkError",
    "EffectQueue",
    "EndWalk",
    "EnergyLevel",
    "ErrorKind",
    "FlagMissedWalks",
    "GrantAchievement",
    "HealthMonitor",
    "HouseholdMember",
    "HouseholdState",
    "HouseholdStore",
    "InvalidStateError",
    "LocalSnapshotStore",
    "MarkAllNotificationsRead",
    "MarkNotificationRead",
    "MemberRole",
    "MissingStartTimeError",
    "NoActiveWalkError",
    "NotAuthorizedError",
    "NotFoundError",
    "Notification",
    "NotificationFeed",
    "NotificationType",
    "Outcome",
    "PersistenceUnavailableError",
    "QueueReminders",
    "ReassignWalk",
    "ReceiveNotification",
    "RecordStore",
    "RemoveMember",
    "RemoveWalks",
    "RequestCover",
    "RequestSwap",
    "RescheduleWalk",
    "SelfAcceptNotAllowedError",
    "Settings",
    "StartWalk",
    "StructuredLogger",
    "SwitchUser",
    "SyncReport",
    "Transition",
    "UpdateDog",
    "Walk",
    "WalkActivity",
    "WalkStatus",
    "dump_state",
    "load_state",
    "reduce",
    "register",
]
