"""Pure household transitions.

``reduce(state, actor, action, at=...)`` is the only way the household state
changes. It never performs I/O: it returns the next state, an :class:`Outcome`
for the caller, and the persistence effects that should follow. A rejected
action returns the original state untouched and no effects.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from . import schedule, stats, swaps
from . import walks as lifecycle
from .actions import (
    AcceptSwap,
    Action,
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
from .effects import (
    AcceptSwapIfOpen,
    DeleteRecords,
    Effect,
    InsertRecords,
    UpdateRecord,
)
from .exceptions import (
    DogWalkError,
    ErrorKind,
    InvalidStateError,
    NoActiveWalkError,
    NotAuthorizedError,
)
from .interfaces import Collection
from .models import (
    DogProfile,
    HouseholdMember,
    HouseholdState,
    MemberRole,
    Notification,
    NotificationType,
    Walk,
    WalkStatus,
    new_id,
)
from .notifications import (
    RETENTION_DAYS,
    NotificationFeed,
    achievement_notification,
    walk_completed_notification,
    walk_missed_notification,
    walk_reminder_notification,
    welcome_notification,
)
from .records import (
    dog_record,
    household_record,
    member_record,
    notification_record,
    walk_record,
)


@dataclass(frozen=True, slots=True)
class Settings:
    """Tunables for scheduling and the notification feed."""

    seed_days: int = schedule.SEED_DAYS
    morning_hour: int = schedule.MORNING_HOUR
    evening_hour: int = schedule.EVENING_HOUR
    retention_days: int = RETENTION_DAYS
    missed_grace: timedelta = schedule.MISSED_GRACE
    reminder_lead: timedelta = schedule.REMINDER_LEAD


@dataclass(frozen=True, slots=True)
class Outcome:
    """Result of one action, as reported back to the caller."""

    ok: bool
    event: str
    actor: str = ""
    target: str = ""
    value: Any = None
    error: Optional[DogWalkError] = None
    notifications: Tuple[Notification, ...] = ()
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    @property
    def message(self) -> str:
        return str(self.error) if self.error else ""


@dataclass(frozen=True, slots=True)
class Transition:
    state: HouseholdState
    outcome: Outcome
    effects: Tuple[Effect, ...] = ()


@dataclass(slots=True)
class _Step:
    state: HouseholdState
    event: str
    target: str = ""
    value: Any = None
    emitted: Tuple[Notification, ...] = ()
    effects: List[Effect] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)


# Effect helpers ----------------------------------------------------------------
def _insert_notifications(state: HouseholdState, notices: Sequence[Notification]) -> List[Effect]:
    if not notices:
        return []
    records = tuple(notification_record(notice, state.household_id) for notice in notices)
    return [InsertRecords(Collection.NOTIFICATIONS, records)]


def _save_walk(state: HouseholdState, walk: Walk) -> Effect:
    return UpdateRecord(Collection.WALKS, walk.id, walk_record(walk, state.household_id))


def _save_member(state: HouseholdState, member: HouseholdMember) -> Effect:
    return UpdateRecord(Collection.MEMBERS, member.id, member_record(member, state.household_id))


def _with_notices(state: HouseholdState, notices: Sequence[Notification], settings: Settings) -> HouseholdState:
    feed = NotificationFeed(state.notifications, retention_days=settings.retention_days)
    for notice in notices:
        feed = feed.append(notice)
    return replace(state, notifications=feed.items)


# Walk lifecycle ----------------------------------------------------------------
def _start_walk(state: HouseholdState, actor: str, action: StartWalk, at: datetime, settings: Settings) -> _Step:
    walk = state.walk(action.walk_id)
    started = lifecycle.start(walk, actor, at=at)
    ongoing = state.current_walk
    if ongoing is not None and ongoing.id != walk.id and ongoing.status is WalkStatus.IN_PROGRESS:
        raise InvalidStateError("Finish your current walk before starting another one.")
    updated = state.with_walk(started)
    if actor == state.current_user:
        updated = replace(updated, current_walk_id=started.id)
    return _Step(
        state=updated,
        event="walk_started",
        target=started.id,
        value=started,
        effects=[_save_walk(state, started)],
    )


def _confirm_walk(state: HouseholdState, actor: str, action: ConfirmWalk, at: datetime, settings: Settings) -> _Step:
    confirmed = lifecycle.confirm(state.walk(action.walk_id), actor)
    return _Step(
        state=state.with_walk(confirmed),
        event="walk_confirmed",
        target=confirmed.id,
        value=confirmed,
        effects=[_save_walk(state, confirmed)],
    )


def _end_walk(state: HouseholdState, actor: str, action: EndWalk, at: datetime, settings: Settings) -> _Step:
    current = state.current_walk
    if current is None:
        raise NoActiveWalkError("There is no walk in progress.")
    if current.assigned_to != actor:
        raise NotAuthorizedError("Only the assigned walker can end this walk.")
    finished = lifecycle.finish(current, activity=action.activity, mood=action.dog_mood, at=at)
    members = stats.record_completion(state.members, finished.assigned_to, finished.duration or 0)
    notice = walk_completed_notification(
        finished,
        state.walker_name(finished.assigned_to),
        state.dog.name,
        at=at,
    )
    updated = replace(state.with_walk(finished), members=members, current_walk_id=None)
    updated = _with_notices(updated, (notice,), settings)
    walker = updated.member(finished.assigned_to)
    return _Step(
        state=updated,
        event="walk_completed",
        target=finished.id,
        value=finished,
        emitted=(notice,),
        effects=[_save_walk(state, finished), _save_member(state, walker)]
        + _insert_notifications(state, (notice,)),
        details={"duration": finished.duration, "walk_count": walker.walk_count},
    )


# Swaps and covers --------------------------------------------------------------
def _request_swap(state: HouseholdState, actor: str, action: RequestSwap, at: datetime, settings: Settings) -> _Step:
    result = swaps.request_swap(state, actor, action.walk_id, at=at)
    return _Step(
        state=result.state,
        event="swap_requested",
        target=result.walk.id,
        value=result.walk,
        emitted=result.emitted,
        effects=[_save_walk(state, result.walk)] + _insert_notifications(state, result.emitted),
    )


def _request_cover(state: HouseholdState, actor: str, action: RequestCover, at: datetime, settings: Settings) -> _Step:
    result = swaps.request_cover(state, actor, action.walk_id, at=at)
    return _Step(
        state=result.state,
        event="cover_requested",
        target=result.walk.id,
        value=result.walk,
        emitted=result.emitted,
        effects=_insert_notifications(state, result.emitted),
    )


def _accept_swap(state: HouseholdState, actor: str, action: AcceptSwap, at: datetime, settings: Settings) -> _Step:
    result = swaps.accept_swap(state, actor, action.notification_id, action.walk_id, at=at)
    (notice,) = result.emitted
    return _Step(
        state=result.state,
        event="swap_accepted",
        target=result.walk.id,
        value=result.walk,
        emitted=result.emitted,
        effects=[
            AcceptSwapIfOpen(
                notification_id=action.notification_id,
                walk_id=action.walk_id,
                acceptor=actor,
                accepted_notice=notification_record(notice, state.household_id),
            )
        ],
        details={"notification_id": action.notification_id, "requester": notice.recipient},
    )


# Notification feed -------------------------------------------------------------
def _mark_read(
    state: HouseholdState, actor: str, action: MarkNotificationRead, at: datetime, settings: Settings
) -> _Step:
    feed = NotificationFeed(state.notifications, retention_days=settings.retention_days)
    before = feed.get(action.notification_id)
    feed = feed.mark_read(action.notification_id)
    effects: List[Effect] = []
    if not before.read:
        effects.append(UpdateRecord(Collection.NOTIFICATIONS, before.id, {"read": True}))
    return _Step(
        state=replace(state, notifications=feed.items),
        event="notification_read",
        target=before.id,
        value=feed.get(before.id),
        effects=effects,
    )


def _mark_all_read(
    state: HouseholdState, actor: str, action: MarkAllNotificationsRead, at: datetime, settings: Settings
) -> _Step:
    feed = NotificationFeed(state.notifications, retention_days=settings.retention_days)
    unread = feed.unread()
    feed = feed.mark_all_read()
    return _Step(
        state=replace(state, notifications=feed.items),
        event="notifications_read_all",
        target=state.household_id,
        value=len(unread),
        effects=[UpdateRecord(Collection.NOTIFICATIONS, item.id, {"read": True}) for item in unread],
        details={"count": len(unread)},
    )


def _mirror_remote(state: HouseholdState, notice: Notification) -> HouseholdState:
    """Apply the walk change another session announced with ``notice``."""

    walk = state.find_walk(notice.related_id) if notice.related_id else None
    if walk is None or not notice.sender:
        return state
    if notice.type is NotificationType.WALK_SWAP_REQUEST:
        if walk.status is WalkStatus.NOT_STARTED and walk.assigned_to == notice.sender:
            return state.with_walk(lifecycle.request_swap(walk, notice.sender))
    elif notice.type is NotificationType.WALK_SWAP_ACCEPTED:
        if walk.status is WalkStatus.SWAP_REQUESTED and state.find_member(notice.sender):
            feed = NotificationFeed(state.notifications)
            for offer in feed.related_to(walk.id, NotificationType.WALK_SWAP_REQUEST):
                if offer.accepted_by is None:
                    feed = feed.record_acceptance(offer.id, notice.sender)
            handed_over = lifecycle.hand_over(walk, notice.sender)
            return replace(state.with_walk(handed_over), notifications=feed.items)
    return state


def _receive_notification(
    state: HouseholdState, actor: str, action: ReceiveNotification, at: datetime, settings: Settings
) -> _Step:
    notice = action.notification
    if NotificationFeed(state.notifications).contains(notice.id):
        return _Step(state=state, event="notification_received", target=notice.id, value=False)
    state = _mirror_remote(state, notice)
    return _Step(
        state=_with_notices(state, (notice,), settings),
        event="notification_received",
        target=notice.id,
        value=True,
        details={"type": notice.type.value},
    )


# Members and dog ---------------------------------------------------------------
def _switch_user(state: HouseholdState, actor: str, action: SwitchUser, at: datetime, settings: Settings) -> _Step:
    member = state.member(action.member_id)
    ongoing = lifecycle.in_progress_for(state.walks, member.id)
    updated = replace(state, current_user=member.id, current_walk_id=ongoing.id if ongoing else None)
    return _Step(state=updated, event="user_switched", target=member.id, value=member)


def _add_member(state: HouseholdState, actor: str, action: AddMember, at: datetime, settings: Settings) -> _Step:
    try:
        member = HouseholdMember(
            id=new_id(),
            name=action.name.strip(),
            role=action.role,
            email=action.email,
            avatar=action.avatar,
        )
    except ValueError as exc:
        raise InvalidStateError(str(exc)) from exc
    return _Step(
        state=replace(state, members=state.members + (member,)),
        event="member_added",
        target=member.id,
        value=member,
        effects=[InsertRecords(Collection.MEMBERS, (member_record(member, state.household_id),))],
        details={"name": member.name, "role": member.role.value},
    )


def _remove_member(state: HouseholdState, actor: str, action: RemoveMember, at: datetime, settings: Settings) -> _Step:
    if action.member_id in (actor, state.current_user):
        raise InvalidStateError("You cannot remove yourself from the household.")
    removed = state.member(action.member_id)
    remaining = tuple(member for member in state.members if member.id != removed.id)
    fallback = remaining[0].id if remaining else state.current_user

    walks: List[Walk] = []
    moved: List[Walk] = []
    for walk in state.walks:
        if walk.assigned_to != removed.id:
            walks.append(walk)
            continue
        reassigned = replace(walk, assigned_to=fallback)
        if walk.status is WalkStatus.SWAP_REQUESTED:
            reassigned = replace(reassigned, status=WalkStatus.NOT_STARTED, swap_requested_by=None)
        walks.append(reassigned)
        moved.append(reassigned)

    updated = replace(state, members=remaining, walks=tuple(walks))
    return _Step(
        state=updated,
        event="member_removed",
        target=removed.id,
        value=removed,
        effects=[DeleteRecords(Collection.MEMBERS, (removed.id,))] + [_save_walk(state, walk) for walk in moved],
        details={"fallback": fallback, "reassigned": len(moved)},
    )


def _update_dog(state: HouseholdState, actor: str, action: UpdateDog, at: datetime, settings: Settings) -> _Step:
    if action.age is not None and action.age < 0:
        raise InvalidStateError("Dog age cannot be negative.")
    if action.weight is not None and action.weight < 0:
        raise InvalidStateError("Dog weight cannot be negative.")
    changes = {
        name: getattr(action, name)
        for name in ("name", "breed", "age", "weight", "energy_level", "special_needs")
        if getattr(action, name) is not None
    }
    dog = replace(state.dog, **changes)
    return _Step(
        state=replace(state, dog=dog),
        event="dog_updated",
        target=state.household_id,
        value=dog,
        effects=[UpdateRecord(Collection.DOGS, state.household_id, dog_record(dog, state.household_id))],
        details={"fields": sorted(changes)},
    )


# Schedule editor ---------------------------------------------------------------
def _add_walk(state: HouseholdState, actor: str, action: AddWalk, at: datetime, settings: Settings) -> _Step:
    walk = schedule.new_walk(state.members, when=action.when, assigned_to=action.assigned_to)
    walks = tuple(sorted(state.walks + (walk,), key=lambda item: item.date))
    return _Step(
        state=replace(state, walks=walks),
        event="walk_added",
        target=walk.id,
        value=walk,
        effects=[InsertRecords(Collection.WALKS, (walk_record(walk, state.household_id),))],
        details={"assigned_to": walk.assigned_to, "date": walk.date.isoformat()},
    )


def _reschedule_walk(
    state: HouseholdState, actor: str, action: RescheduleWalk, at: datetime, settings: Settings
) -> _Step:
    walk = state.walk(action.walk_id)
    try:
        moved = schedule.reschedule(walk, hour=action.hour, minute=action.minute)
    except ValueError as exc:
        raise InvalidStateError(str(exc)) from exc
    return _Step(
        state=state.with_walk(moved),
        event="walk_updated",
        target=moved.id,
        value=moved,
        effects=[_save_walk(state, moved)],
        details={"field": "time", "date": moved.date.isoformat()},
    )


def _reassign_walk(state: HouseholdState, actor: str, action: ReassignWalk, at: datetime, settings: Settings) -> _Step:
    moved = schedule.reassign(state.walk(action.walk_id), state.members, action.member_id)
    return _Step(
        state=state.with_walk(moved),
        event="walk_updated",
        target=moved.id,
        value=moved,
        effects=[_save_walk(state, moved)],
        details={"field": "assigned_to", "assigned_to": moved.assigned_to},
    )


def _remove_walks(state: HouseholdState, actor: str, action: RemoveWalks, at: datetime, settings: Settings) -> _Step:
    doomed = [state.walk(walk_id) for walk_id in action.walk_ids]
    for walk in doomed:
        lifecycle.ensure_removable(walk)
    ids = tuple(dict.fromkeys(walk.id for walk in doomed))
    kept = tuple(walk for walk in state.walks if walk.id not in ids)
    return _Step(
        state=replace(state, walks=kept),
        event="walk_removed",
        target=",".join(ids),
        value=len(ids),
        effects=[DeleteRecords(Collection.WALKS, ids)] if ids else [],
        details={"count": len(ids)},
    )


# Achievements and sweeps -------------------------------------------------------
def _grant_achievement(
    state: HouseholdState, actor: str, action: GrantAchievement, at: datetime, settings: Settings
) -> _Step:
    member = state.member(action.member_id)
    try:
        awarded, is_new = stats.grant(member, action.label)
    except ValueError as exc:
        raise InvalidStateError(str(exc)) from exc
    if not is_new:
        return _Step(state=state, event="achievement_granted", target=member.id, value=False)
    notice = achievement_notification(awarded, awarded.achievements[-1], at=at)
    updated = _with_notices(state.with_member(awarded), (notice,), settings)
    return _Step(
        state=updated,
        event="achievement_granted",
        target=member.id,
        value=True,
        emitted=(notice,),
        effects=[_save_member(state, awarded)] + _insert_notifications(state, (notice,)),
        details={"label": awarded.achievements[-1]},
    )


def _flag_missed(state: HouseholdState, actor: str, action: FlagMissedWalks, at: datetime, settings: Settings) -> _Step:
    feed = NotificationFeed(state.notifications)
    notices = tuple(
        walk_missed_notification(walk, state.walker_name(walk.assigned_to), at=at)
        for walk in schedule.missed_walks(state.walks, at=at, grace=settings.missed_grace)
        if not feed.related_to(walk.id, NotificationType.WALK_MISSED)
    )
    return _Step(
        state=_with_notices(state, notices, settings),
        event="walks_flagged_missed",
        target=state.household_id,
        value=len(notices),
        emitted=notices,
        effects=_insert_notifications(state, notices),
        details={"count": len(notices)},
    )


def _queue_reminders(state: HouseholdState, actor: str, action: QueueReminders, at: datetime, settings: Settings) -> _Step:
    feed = NotificationFeed(state.notifications)
    notices = tuple(
        walk_reminder_notification(walk, at=at)
        for walk in schedule.upcoming_walks(state.walks, actor, at=at, lead=settings.reminder_lead)
        if not feed.related_to(walk.id, NotificationType.WALK_REMINDER)
    )
    return _Step(
        state=_with_notices(state, notices, settings),
        event="reminders_queued",
        target=actor,
        value=len(notices),
        emitted=notices,
        effects=_insert_notifications(state, notices),
        details={"count": len(notices)},
    )


_Handler = Callable[[HouseholdState, str, Any, datetime, Settings], _Step]

_HANDLERS: Dict[Type[Any], _Handler] = {
    StartWalk: _start_walk,
    ConfirmWalk: _confirm_walk,
    EndWalk: _end_walk,
    RequestSwap: _request_swap,
    RequestCover: _request_cover,
    AcceptSwap: _accept_swap,
    MarkNotificationRead: _mark_read,
    MarkAllNotificationsRead: _mark_all_read,
    ReceiveNotification: _receive_notification,
    SwitchUser: _switch_user,
    AddMember: _add_member,
    RemoveMember: _remove_member,
    UpdateDog: _update_dog,
    AddWalk: _add_walk,
    RescheduleWalk: _reschedule_walk,
    ReassignWalk: _reassign_walk,
    RemoveWalks: _remove_walks,
    GrantAchievement: _grant_achievement,
    FlagMissedWalks: _flag_missed,
    QueueReminders: _queue_reminders,
}


def _event_name(action: Any) -> str:
    return type(action).__name__


def reduce(
    state: HouseholdState,
    actor: str,
    action: Action,
    *,
    at: datetime,
    settings: Optional[Settings] = None,
) -> Transition:
    """Apply ``action`` on behalf of ``actor`` at time ``at``."""

    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"Unsupported action {action!r}")
    try:
        if not state.is_registered:
            raise InvalidStateError("Register or log in to a household first.")
        state.member(actor)
        step = handler(state, actor, action, at, settings or Settings())
    except DogWalkError as exc:
        outcome = Outcome(ok=False, event=_event_name(action), actor=actor, error=exc)
        return Transition(state=state, outcome=outcome)
    outcome = Outcome(
        ok=True,
        event=step.event,
        actor=actor,
        target=step.target,
        value=step.value,
        notifications=step.emitted,
        details=step.details,
    )
    return Transition(state=step.state, outcome=outcome, effects=tuple(step.effects))


def register(
    household_name: str,
    members: Sequence[AddMember],
    *,
    at: datetime,
    secret: str = "",
    dog: Optional[DogProfile] = None,
    remember: bool = False,
    settings: Optional[Settings] = None,
) -> Transition:
    """Create a household with a seeded schedule.

    The first entry becomes the Primary member and the session's current user.
    """

    rules = settings or Settings()
    try:
        name = household_name.strip()
        if not name:
            raise InvalidStateError("Household name cannot be empty.")
        if not members:
            raise InvalidStateError("A household needs at least one member.")
        roster: List[HouseholdMember] = []
        for index, entry in enumerate(members):
            try:
                roster.append(
                    HouseholdMember(
                        id=new_id(),
                        name=entry.name.strip(),
                        role=MemberRole.PRIMARY if index == 0 else entry.role,
                        email=entry.email,
                        avatar=entry.avatar,
                    )
                )
            except ValueError as exc:
                raise InvalidStateError(str(exc)) from exc
        profile = dog or DogProfile()
        if profile.age < 0 or profile.weight < 0:
            raise InvalidStateError("Dog age and weight cannot be negative.")
        walks = schedule.seed_walks(
            roster,
            start=at.date(),
            days=rules.seed_days,
            morning_hour=rules.morning_hour,
            evening_hour=rules.evening_hour,
        )
    except DogWalkError as exc:
        empty = HouseholdState()
        return Transition(state=empty, outcome=Outcome(ok=False, event="register", error=exc))

    household_id = new_id()
    welcome = welcome_notification(at=at)
    state = HouseholdState(
        is_registered=True,
        household_id=household_id,
        household_name=name,
        current_user=roster[0].id,
        dog=profile,
        members=tuple(roster),
        walks=walks,
        notifications=(welcome,),
        remember_me=remember,
    )
    effects: Tuple[Effect, ...] = (
        InsertRecords(Collection.HOUSEHOLDS, (household_record(household_id, name, secret, created_at=at),)),
        InsertRecords(Collection.MEMBERS, tuple(member_record(member, household_id) for member in roster)),
        InsertRecords(Collection.DOGS, (dog_record(profile, household_id),)),
        InsertRecords(Collection.WALKS, tuple(walk_record(walk, household_id) for walk in walks)),
        InsertRecords(Collection.NOTIFICATIONS, (notification_record(welcome, household_id),)),
    )
    outcome = Outcome(
        ok=True,
        event="household_registered",
        actor=roster[0].id,
        target=household_id,
        value=state,
        notifications=(welcome,),
        details={"name": name, "members": len(roster), "walks": len(walks)},
    )
    return Transition(state=state, outcome=outcome, effects=effects)


__all__ = ["Outcome", "Settings", "Transition", "reduce", "register"]
