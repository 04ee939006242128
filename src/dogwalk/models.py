"""Domain models used by the dogwalk package."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from .exceptions import NotFoundError


def new_id() -> str:
    return str(uuid4())


class MemberRole(str, Enum):
    """How involved a household member is in the walking rota."""

    PRIMARY = "Primary"
    SECONDARY = "Secondary"
    OCCASIONAL = "Occasional"


class EnergyLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class DogMood(str, Enum):
    """Mood recorded by the walker when a walk ends."""

    HAPPY = "Happy"
    CALM = "Calm"
    TIRED = "Tired"
    STRESSED = "Stressed"


class WalkStatus(str, Enum):
    """Lifecycle states for a scheduled walk."""

    NOT_STARTED = "Not Started"
    CONFIRMED = "Confirmed"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    SWAP_REQUESTED = "Swap Requested"


class NotificationType(str, Enum):
    SYSTEM = "system"
    WALK_COMPLETED = "walk_completed"
    WALK_MISSED = "walk_missed"
    COVER_REQUEST = "cover_request"
    WALK_SWAP_REQUEST = "walk_swap_request"
    WALK_SWAP_ACCEPTED = "walk_swap_accepted"
    ACHIEVEMENT = "achievement"
    WALK_REMINDER = "walk_reminder"


@dataclass(frozen=True, slots=True)
class HouseholdMember:
    """A person taking part in the household's walking rota."""

    id: str
    name: str
    role: MemberRole = MemberRole.SECONDARY
    email: Optional[str] = None
    avatar: Optional[str] = None
    walk_count: int = 0
    total_walk_duration: int = 0
    achievements: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Member name cannot be empty.")
        object.__setattr__(self, "role", MemberRole(self.role))
        object.__setattr__(self, "achievements", tuple(dict.fromkeys(self.achievements)))


@dataclass(frozen=True, slots=True)
class DogProfile:
    """The household's dog. One per household, edited but never deleted."""

    name: str = ""
    breed: str = ""
    age: int = 0
    weight: float = 0.0
    energy_level: Optional[EnergyLevel] = None
    special_needs: Optional[str] = None

    def __post_init__(self) -> None:
        if self.energy_level is not None:
            object.__setattr__(self, "energy_level", EnergyLevel(self.energy_level))


@dataclass(frozen=True, slots=True)
class WalkActivity:
    """What happened on a walk, as logged by the walker."""

    peed: bool = False
    pooped: bool = False
    notes: str = ""


@dataclass(frozen=True, slots=True)
class Walk:
    """One scheduled, trackable dog-walking session."""

    id: str
    date: datetime
    assigned_to: str
    status: WalkStatus = WalkStatus.NOT_STARTED
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    activity: Optional[WalkActivity] = None
    dog_mood: Optional[DogMood] = None
    swap_requested_by: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", WalkStatus(self.status))
        if self.dog_mood is not None:
            object.__setattr__(self, "dog_mood", DogMood(self.dog_mood))
        completed = self.status is WalkStatus.COMPLETED
        if (self.duration is not None) != completed:
            raise ValueError("Walk duration must be set exactly when the walk is completed.")
        swapping = self.status is WalkStatus.SWAP_REQUESTED
        if (self.swap_requested_by is not None) != swapping:
            raise ValueError("swap_requested_by must be set exactly when a swap is requested.")

    @property
    def is_open(self) -> bool:
        return self.status in (WalkStatus.NOT_STARTED, WalkStatus.CONFIRMED, WalkStatus.IN_PROGRESS)


@dataclass(frozen=True, slots=True)
class Notification:
    """An entry in the household notification feed."""

    id: str
    type: NotificationType
    title: str
    message: str
    time: datetime
    read: bool = False
    related_id: Optional[str] = None
    accepted_by: Optional[str] = None
    sender: Optional[str] = None
    recipient: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", NotificationType(self.type))

    def is_visible_to(self, member_id: str) -> bool:
        return self.recipient is None or self.recipient == member_id


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """Represents an auditable household action."""

    actor: str
    action: str
    target: str
    timestamp: datetime = field(default_factory=datetime.now)
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class HouseholdState:
    """Aggregate root: everything one session knows about its household."""

    is_registered: bool = False
    household_id: str = ""
    household_name: str = ""
    current_user: str = ""
    dog: DogProfile = field(default_factory=DogProfile)
    members: Tuple[HouseholdMember, ...] = ()
    walks: Tuple[Walk, ...] = ()
    notifications: Tuple[Notification, ...] = ()
    current_walk_id: Optional[str] = None
    remember_me: bool = False

    @property
    def current_walk(self) -> Optional[Walk]:
        if self.current_walk_id is None:
            return None
        return self.find_walk(self.current_walk_id)

    # Lookups ------------------------------------------------------------
    def find_member(self, member_id: str) -> Optional[HouseholdMember]:
        return next((member for member in self.members if member.id == member_id), None)

    def find_walk(self, walk_id: str) -> Optional[Walk]:
        return next((walk for walk in self.walks if walk.id == walk_id), None)

    def find_notification(self, notification_id: str) -> Optional[Notification]:
        return next((item for item in self.notifications if item.id == notification_id), None)

    def member(self, member_id: str) -> HouseholdMember:
        member = self.find_member(member_id)
        if member is None:
            raise NotFoundError(f"Member '{member_id}' does not exist.")
        return member

    def walk(self, walk_id: str) -> Walk:
        walk = self.find_walk(walk_id)
        if walk is None:
            raise NotFoundError(f"Walk '{walk_id}' does not exist.")
        return walk

    def notification(self, notification_id: str) -> Notification:
        item = self.find_notification(notification_id)
        if item is None:
            raise NotFoundError(f"Notification '{notification_id}' does not exist.")
        return item

    def walker_name(self, member_id: Optional[str]) -> str:
        member = self.find_member(member_id) if member_id else None
        return member.name if member else "Unknown"

    # Copy-on-write helpers ---------------------------------------------
    def with_walk(self, walk: Walk) -> "HouseholdState":
        walks = tuple(walk if existing.id == walk.id else existing for existing in self.walks)
        return replace(self, walks=walks)

    def with_member(self, member: HouseholdMember) -> "HouseholdState":
        members = tuple(member if existing.id == member.id else existing for existing in self.members)
        return replace(self, members=members)

    def with_notification(self, notification: Notification) -> "HouseholdState":
        notifications = tuple(
            notification if existing.id == notification.id else existing for existing in self.notifications
        )
        return replace(self, notifications=notifications)
