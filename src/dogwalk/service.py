"""Household state store: the session-level coordinator for dogwalk."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional, Sequence, Tuple

from . import schedule, stats, swaps
from . import walks as lifecycle
from .actions import Action, AddMember, ReceiveNotification
from .admin import AuditLog
from .effects import AcceptSwapIfOpen, EffectQueue, PurgeExpiredNotifications, SyncReport
from .exceptions import DogWalkError, NotFoundError, PersistenceUnavailableError
from .interfaces import Collection, Record, RecordStore, Unsubscribe
from .models import DogProfile, HouseholdState, Notification, Walk
from .notifications import NotificationFeed, NotificationStyle, style_for
from .ops import HealthMonitor, StructuredLogger
from .records import (
    LocalSnapshotStore,
    load_state,
    notification_from_record,
    state_from_records,
    walk_from_record,
)
from .reducer import Outcome, Settings, Transition, reduce, register


class HouseholdStore:
    """Own one session's household state and keep the record store in step.

    Every mutation runs through :func:`dogwalk.reducer.reduce` and lands in
    memory immediately. The resulting persistence effects are queued and only
    reach the record store when :meth:`sync` is awaited, so a store outage can
    never undo or delay an in-memory change.
    """

    __slots__ = (
        "_state",
        "_store",
        "_queue",
        "_snapshots",
        "_settings",
        "_logger",
        "_audit_log",
        "_health",
        "_unsubscribe",
    )

    def __init__(
        self,
        *,
        store: Optional[RecordStore] = None,
        snapshots: Optional[LocalSnapshotStore] = None,
        settings: Optional[Settings] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._state = HouseholdState()
        self._store = store
        self._queue = EffectQueue(store)
        self._snapshots = snapshots
        self._settings = settings or Settings()
        self._logger = logger or StructuredLogger()
        self._audit_log = AuditLog()
        self._health = HealthMonitor()
        self._unsubscribe: Optional[Unsubscribe] = None
        if store is None:
            self._health.mark_unavailable("No record store configured.", pending=0)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def state(self) -> HouseholdState:
        return self._state

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    @property
    def audit_log(self) -> AuditLog:
        return self._audit_log

    @property
    def health(self) -> HealthMonitor:
        return self._health

    @property
    def queue(self) -> EffectQueue:
        return self._queue

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def bootstrap(self) -> HouseholdState:
        """Restore a remembered session, or start fresh if there is none."""

        payload = self._snapshots.read() if self._snapshots else None
        if payload is None:
            return self._state
        try:
            restored = load_state(payload)
        except (ValueError, DogWalkError) as exc:
            self._logger.log("snapshot_restore_failed", error=str(exc))
            self._state = HouseholdState()
            return self._state
        ongoing = lifecycle.in_progress_for(restored.walks, restored.current_user)
        self._state = replace(restored, current_walk_id=ongoing.id if ongoing else None)
        return self._state

    def register(
        self,
        household_name: str,
        members: Sequence[AddMember],
        *,
        secret: str = "",
        dog: Optional[DogProfile] = None,
        remember: bool = False,
        at: Optional[datetime] = None,
    ) -> Outcome:
        moment = at or datetime.now()
        transition = register(
            household_name,
            members,
            at=moment,
            secret=secret,
            dog=dog,
            remember=remember,
            settings=self._settings,
        )
        return self._commit(transition, at=moment)

    async def login(
        self,
        household_name: str,
        secret: str,
        member_id: Optional[str] = None,
        *,
        remember: bool = False,
        at: Optional[datetime] = None,
    ) -> Outcome:
        """Load a household from the record store and act as ``member_id``.

        Without ``member_id`` the session starts as the first listed member.
        """

        moment = at or datetime.now()
        try:
            if self._store is None:
                raise PersistenceUnavailableError("Login needs a record store.")
            state = await self._load(household_name, secret, member_id, remember=remember)
        except DogWalkError as exc:
            if isinstance(exc, PersistenceUnavailableError):
                self._logger.log("persistence_unavailable", operation="login", error=str(exc))
            return self._reject("login", "", exc)

        self._state = state
        self._health.mark_synced(moment, pending=len(self._queue))
        self._remember(moment)
        self._audit_log.record(state.current_user, "user_logged_in", state.household_id, timestamp=moment)
        self._logger.log(
            "user_logged_in",
            household=state.household_id,
            member=state.current_user,
            remember=remember,
        )
        return Outcome(ok=True, event="user_logged_in", actor=state.current_user, target=state.household_id, value=state)

    async def _load(
        self,
        household_name: str,
        secret: str,
        member_id: Optional[str],
        *,
        remember: bool,
    ) -> HouseholdState:
        assert self._store is not None
        try:
            household = await self._store.find_household(household_name.strip(), secret)
            if household is None:
                raise NotFoundError("Household not found or secret is incorrect.")
            household_id = household["id"]
            members = await self._store.select(Collection.MEMBERS, household_id)
            dogs = await self._store.select(Collection.DOGS, household_id)
            walks = await self._store.select(Collection.WALKS, household_id)
            notifications = await self._store.select(Collection.NOTIFICATIONS, household_id)
        except DogWalkError:
            raise
        except Exception as exc:  # noqa: BLE001 - backend failure of any sort
            raise PersistenceUnavailableError(f"Could not load household: {exc}") from exc
        if not members:
            raise NotFoundError("Household has no members.")
        chosen = member_id or members[0]["id"]
        try:
            state = state_from_records(
                household,
                current_user=chosen,
                members=members,
                dogs=dogs,
                walks=walks,
                notifications=notifications,
                remember_me=remember,
            )
        except DogWalkError:
            raise
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceUnavailableError(f"Stored household data is invalid: {exc}") from exc
        ongoing = lifecycle.in_progress_for(state.walks, chosen)
        return replace(state, current_walk_id=ongoing.id if ongoing else None)

    def logout(self, *, at: Optional[datetime] = None) -> Outcome:
        actor = self._state.current_user
        household_id = self._state.household_id
        self.unsubscribe()
        if self._snapshots:
            self._snapshots.clear()
        self._state = HouseholdState()
        self._audit_log.record(actor or "anonymous", "user_logged_out", household_id, timestamp=at)
        self._logger.log("user_logged_out", household=household_id, member=actor)
        return Outcome(ok=True, event="user_logged_out", actor=actor, target=household_id)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def dispatch(self, action: Action, *, at: Optional[datetime] = None) -> Outcome:
        moment = at or datetime.now()
        transition = reduce(self._state, self._state.current_user, action, at=moment, settings=self._settings)
        return self._commit(transition, at=moment)

    def _commit(self, transition: Transition, *, at: datetime) -> Outcome:
        outcome = transition.outcome
        if not outcome.ok:
            assert outcome.error is not None
            return self._reject(outcome.event, outcome.actor, outcome.error)
        self._state = transition.state
        if self._store is not None:
            pending = self._queue.enqueue(transition.effects)
            self._health.pending_effects = pending
        self._audit_log.record(outcome.actor, outcome.event, outcome.target, details=outcome.details, timestamp=at)
        self._logger.log(outcome.event, actor=outcome.actor, target=outcome.target, **outcome.details)
        self._remember(at)
        return outcome

    def _reject(self, event: str, actor: str, error: DogWalkError) -> Outcome:
        self._logger.log(
            "action_rejected",
            action=event,
            actor=actor,
            error=error.kind.value,
            message=str(error),
        )
        return Outcome(ok=False, event=event, actor=actor, error=error)

    def _remember(self, at: datetime) -> None:
        if self._snapshots and self._state.remember_me:
            self._snapshots.save(self._state, at=at)

    # ------------------------------------------------------------------
    # Persistence sync
    # ------------------------------------------------------------------
    async def sync(self, *, at: Optional[datetime] = None) -> SyncReport:
        """Flush queued effects; failures leave them queued and switch to local-only."""

        report = await self._queue.flush()
        moment = at or datetime.now()
        if report.warnings:
            for warning in report.warnings:
                self._logger.log("persistence_unavailable", error=str(warning), pending=report.pending)
            self._health.mark_unavailable(str(report.warnings[-1]), pending=report.pending)
            return report
        self._health.mark_synced(moment, pending=report.pending)
        swap_conflicts = [effect for effect in report.conflicts if isinstance(effect, AcceptSwapIfOpen)]
        for conflict in swap_conflicts:
            self._logger.log(
                "swap_conflict",
                walk=conflict.walk_id,
                notification=conflict.notification_id,
                acceptor=conflict.acceptor,
            )
        if swap_conflicts:
            await self.refresh()
        return report

    async def refresh(self) -> HouseholdState:
        """Reload walks and notifications from the store; the store wins."""

        if self._store is None or not self._state.is_registered:
            return self._state
        household_id = self._state.household_id
        try:
            walk_rows = await self._store.select(Collection.WALKS, household_id)
            notice_rows = await self._store.select(Collection.NOTIFICATIONS, household_id)
            walks = tuple(sorted((walk_from_record(row) for row in walk_rows), key=lambda walk: walk.date))
            notices = tuple(sorted((notification_from_record(row) for row in notice_rows), key=lambda item: item.time))
        except Exception as exc:  # noqa: BLE001 - backend failure or undecodable rows
            self._logger.log("persistence_unavailable", operation="refresh", error=str(exc))
            self._health.mark_unavailable(str(exc), pending=len(self._queue))
            return self._state
        ongoing = lifecycle.in_progress_for(walks, self._state.current_user)
        self._state = replace(
            self._state,
            walks=walks,
            notifications=notices,
            current_walk_id=ongoing.id if ongoing else None,
        )
        return self._state

    async def cleanup_notifications(self, *, at: Optional[datetime] = None) -> SyncReport:
        """Best-effort removal of expired notifications from the store."""

        moment = at or datetime.now()
        if self._store is None or not self._state.is_registered:
            return SyncReport(pending=len(self._queue))
        cutoff = moment - timedelta(days=self._settings.retention_days)
        self._queue.enqueue((PurgeExpiredNotifications(self._state.household_id, cutoff),))
        return await self.sync(at=moment)

    def subscribe(self) -> None:
        """Start receiving notifications other sessions insert for this household."""

        if self._store is None or not self._state.is_registered:
            return
        self.unsubscribe()
        self._unsubscribe = self._store.subscribe_notifications(self._state.household_id, self._on_notification)

    def unsubscribe(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_notification(self, record: Record) -> None:
        notice = notification_from_record(record)
        if NotificationFeed(self._state.notifications).contains(notice.id):
            return
        self.dispatch(ReceiveNotification(notice), at=notice.time)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def active_notifications(self, *, at: Optional[datetime] = None) -> Tuple[Notification, ...]:
        feed = NotificationFeed(self._state.notifications, retention_days=self._settings.retention_days)
        return tuple(feed.list_active(at=at or datetime.now(), member_id=self._state.current_user or None))

    def unread_count(self) -> int:
        feed = NotificationFeed(self._state.notifications)
        return feed.unread_count(member_id=self._state.current_user or None)

    def render(self, notification: Notification) -> NotificationStyle:
        return style_for(notification)

    def open_swap_offers(self) -> Tuple[Notification, ...]:
        return tuple(swaps.open_offers(self._state, self._state.current_user))

    def todays_walk(self, *, at: Optional[datetime] = None) -> Optional[Walk]:
        return schedule.todays_walk(self._state.walks, self._state.current_user, at=at or datetime.now())

    def walker_name(self, member_id: Optional[str]) -> str:
        return self._state.walker_name(member_id)

    def achievements(self) -> Tuple[stats.DerivedAchievement, ...]:
        return stats.derived_achievements(self._state)

    def leaderboard(self) -> Tuple[stats.LeaderboardEntry, ...]:
        return stats.leaderboard(self._state.members)

    def status(self, *, at: Optional[datetime] = None) -> dict:
        return self._health.status(at=at)


__all__ = ["HouseholdStore"]
