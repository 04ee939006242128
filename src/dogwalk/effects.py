"""Outbound persistence effects.

Transitions never talk to the record store themselves. They describe what
should be written as effect messages, and an :class:`EffectQueue` delivers
those messages later, in order, keeping anything that failed for the next
flush.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Iterable, Optional, Tuple, Union

from .exceptions import PersistenceUnavailableError
from .interfaces import Collection, Record, RecordStore


@dataclass(frozen=True, slots=True)
class InsertRecords:
    collection: Collection
    records: Tuple[Record, ...]


@dataclass(frozen=True, slots=True)
class UpdateRecord:
    collection: Collection
    record_id: str
    changes: Record


@dataclass(frozen=True, slots=True)
class DeleteRecords:
    collection: Collection
    record_ids: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class AcceptSwapIfOpen:
    """Conditional write guarding the first-acceptance-wins rule across sessions."""

    notification_id: str
    walk_id: str
    acceptor: str
    accepted_notice: Record


@dataclass(frozen=True, slots=True)
class PurgeExpiredNotifications:
    household_id: str
    before: datetime


Effect = Union[InsertRecords, UpdateRecord, DeleteRecords, AcceptSwapIfOpen, PurgeExpiredNotifications]


@dataclass(frozen=True, slots=True)
class SyncReport:
    """What one flush achieved."""

    applied: Tuple[Effect, ...] = ()
    warnings: Tuple[PersistenceUnavailableError, ...] = ()
    conflicts: Tuple[Effect, ...] = ()
    pending: int = 0
    flushed_at: datetime = field(default_factory=datetime.now)

    @property
    def ok(self) -> bool:
        return not self.warnings


class EffectQueue:
    """FIFO of effects waiting to reach the record store."""

    def __init__(self, store: Optional[RecordStore] = None) -> None:
        self._store = store
        self._pending: Deque[Effect] = deque()
        self._flushing = False

    @property
    def store(self) -> Optional[RecordStore]:
        return self._store

    @property
    def pending(self) -> Tuple[Effect, ...]:
        return tuple(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def enqueue(self, effects: Iterable[Effect]) -> int:
        self._pending.extend(effects)
        return len(self._pending)

    def clear(self) -> None:
        self._pending.clear()

    async def flush(self) -> SyncReport:
        """Deliver pending effects until the queue drains or the store fails.

        Delivery stops at the first failure so later effects never overtake an
        earlier one; the failed effect stays at the head of the queue.
        """

        if self._store is None:
            error = PersistenceUnavailableError("No record store configured; running local-only.")
            return SyncReport(warnings=(error,), pending=len(self._pending))
        if self._flushing:
            return SyncReport(pending=len(self._pending))

        applied: list[Effect] = []
        conflicts: list[Effect] = []
        warnings: list[PersistenceUnavailableError] = []
        self._flushing = True
        try:
            while self._pending:
                effect = self._pending[0]
                try:
                    accepted = await self._apply(self._store, effect)
                except Exception as exc:  # noqa: BLE001 - any backend failure means "unavailable"
                    error = PersistenceUnavailableError(f"{type(effect).__name__} failed: {exc}")
                    error.__cause__ = exc
                    warnings.append(error)
                    break
                self._pending.popleft()
                (applied if accepted else conflicts).append(effect)
        finally:
            self._flushing = False
        return SyncReport(
            applied=tuple(applied),
            warnings=tuple(warnings),
            conflicts=tuple(conflicts),
            pending=len(self._pending),
        )

    @staticmethod
    async def _apply(store: RecordStore, effect: Effect) -> bool:
        if isinstance(effect, InsertRecords):
            await store.insert(effect.collection, effect.records)
        elif isinstance(effect, UpdateRecord):
            await store.update(effect.collection, effect.record_id, effect.changes)
        elif isinstance(effect, DeleteRecords):
            await store.delete(effect.collection, effect.record_ids)
        elif isinstance(effect, AcceptSwapIfOpen):
            return await store.accept_swap_if_open(
                notification_id=effect.notification_id,
                walk_id=effect.walk_id,
                acceptor=effect.acceptor,
                accepted_notice=effect.accepted_notice,
            )
        elif isinstance(effect, PurgeExpiredNotifications):
            await store.delete_expired_notifications(effect.household_id, before=effect.before)
        else:
            raise TypeError(f"Unknown effect {effect!r}")
        return True


__all__ = [
    "AcceptSwapIfOpen",
    "DeleteRecords",
    "Effect",
    "EffectQueue",
    "InsertRecords",
    "PurgeExpiredNotifications",
    "SyncReport",
    "UpdateRecord",
]
