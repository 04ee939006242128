"""Contract for the external record store a household syncs with."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

Record = Dict[str, Any]
NotificationCallback = Callable[[Record], None]
Unsubscribe = Callable[[], None]


class Collection(str, Enum):
    """Record collections, each keyed by household id."""

    HOUSEHOLDS = "households"
    MEMBERS = "members"
    DOGS = "dogs"
    WALKS = "walks"
    NOTIFICATIONS = "notifications"


class RecordStore(ABC):
    """Asynchronous record store.

    Records are plain dictionaries already validated by :mod:`dogwalk.records`.
    Implementations raise whatever their backend raises; callers wrap those
    failures as :class:`~dogwalk.exceptions.PersistenceUnavailableError`.
    """

    @abstractmethod
    async def insert(self, collection: Collection, records: Sequence[Record]) -> None:
        pass

    @abstractmethod
    async def update(self, collection: Collection, record_id: str, changes: Record) -> None:
        pass

    @abstractmethod
    async def delete(self, collection: Collection, record_ids: Sequence[str]) -> None:
        pass

    @abstractmethod
    async def select(self, collection: Collection, household_id: str) -> List[Record]:
        pass

    @abstractmethod
    async def find_household(self, name: str, secret: str) -> Optional[Record]:
        pass

    @abstractmethod
    async def accept_swap_if_open(
        self,
        *,
        notification_id: str,
        walk_id: str,
        acceptor: str,
        accepted_notice: Record,
    ) -> bool:
        """Atomically take a swap offer.

        Updates the notification only while ``accepted_by`` is unset and the
        walk only while it is still ``Swap Requested``; inserts
        ``accepted_notice`` alongside. Returns ``False`` and changes nothing
        when either condition no longer holds.
        """

    @abstractmethod
    async def delete_expired_notifications(self, household_id: str, *, before: datetime) -> int:
        """Remove read notifications created before ``before``; returns the count."""

    @abstractmethod
    def subscribe_notifications(self, household_id: str, callback: NotificationCallback) -> Unsubscribe:
        """Call ``callback`` with every notification record inserted for the household."""


__all__ = ["Collection", "NotificationCallback", "Record", "RecordStore", "Unsubscribe"]
