"""Abstract base class for message store backends.

This module defines the interface for the per-user message collection.
The abstraction hides:
- Storage format and persistence mechanism
- Id and timestamp assignment
- How change notifications reach subscribers
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from ..errors import StoreSubscriptionError, StoreWriteError
from .models import ConversationScope, Message, sort_messages

SnapshotCallback = Callable[[list[Message]], None]
ErrorCallback = Callable[[StoreSubscriptionError], None]


def next_timestamp(last: datetime | None) -> datetime:
    """Server timestamp strictly greater than ``last``.

    Args:
        last: Newest timestamp already assigned in the scope

    Returns:
        Current UTC time, bumped by a microsecond if the clock has not
        moved past ``last``
    """
    now = datetime.now(timezone.utc)
    if last is not None and now <= last:
        return last + timedelta(microseconds=1)
    return now


class Subscription:
    """Handle for a live snapshot subscription.

    Stays active after delivering an error; only ``unsubscribe()`` ends it.
    """

    def __init__(
        self,
        scope: ConversationScope,
        on_update: SnapshotCallback,
        on_error: ErrorCallback,
        on_cancel: Callable[["Subscription"], None]
    ) -> None:
        self.scope = scope
        self._on_update = on_update
        self._on_error = on_error
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop receiving snapshots. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._on_cancel(self)

    def deliver(self, snapshot: list[Message]) -> None:
        if self._active:
            self._on_update(list(snapshot))

    def fail(self, error: StoreSubscriptionError) -> None:
        if self._active:
            self._on_error(error)


class MessageStore(ABC):
    """Abstract message store backend.

    Append-only write path plus a live subscription read path, both
    scoped per user. Every snapshot delivered is the full, timestamp-sorted
    message list of the scope (not a diff).
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._debug_callback: Any | None = None

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the store backend."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the store backend gracefully."""

    @abstractmethod
    async def _insert(self, scope: ConversationScope, message: Message) -> Message:
        """Write one record and return it with id and timestamp assigned.

        Raises:
            StoreWriteError: If the write is denied or the backend is unreachable
        """

    @abstractmethod
    async def _fetch(self, scope: ConversationScope) -> list[Message]:
        """Read every message of the scope, in any order.

        Raises:
            StoreSubscriptionError: If the read is denied or the backend is unreachable
        """

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    def set_debug_callback(self, callback: Any) -> None:
        """Set the debug callback.

        Args:
            callback: Callable(level: str, component: str, message: str)
        """
        self._debug_callback = callback

    def _debug(self, level: str, message: str) -> None:
        if self._debug_callback:
            self._debug_callback(level, type(self).__name__, message)

    async def append(self, scope: ConversationScope, message: Message) -> Message:
        """Append exactly one message to the scope.

        No deduplication is performed: two calls append two records.

        Args:
            scope: Conversation to append to
            message: Message to persist (id/timestamp are ignored)

        Returns:
            The persisted message with id and timestamp assigned

        Raises:
            StoreWriteError: On denied permission or connectivity loss
        """
        try:
            persisted = await self._insert(scope, message)
        except StoreWriteError as e:
            self._debug("error", f"Append to {scope.path} failed: {e}")
            raise

        self._debug("debug", f"Appended {persisted.sender.value} message {persisted.id} to {scope.path}")
        await self._publish(scope)
        return persisted

    async def subscribe(
        self,
        scope: ConversationScope,
        on_update: SnapshotCallback,
        on_error: ErrorCallback
    ) -> Subscription:
        """Subscribe to live snapshots of the scope.

        The current snapshot is delivered before this returns, then again
        after every change. Failures go to ``on_error``; nothing is raised.

        Args:
            scope: Conversation to watch
            on_update: Receives the full sorted message list
            on_error: Receives StoreSubscriptionError

        Returns:
            Subscription handle
        """
        subscription = Subscription(scope, on_update, on_error, self._cancel)
        self._subscriptions.setdefault(scope.path, []).append(subscription)
        await self._notify([subscription], scope)
        return subscription

    async def list_messages(self, scope: ConversationScope) -> list[Message]:
        """One-shot read of the scope's messages, oldest first.

        Raises:
            StoreSubscriptionError: If the read fails
        """
        return sort_messages(await self._fetch(scope))

    async def _publish(self, scope: ConversationScope) -> None:
        subscriptions = [s for s in self._subscriptions.get(scope.path, []) if s.active]
        if subscriptions:
            await self._notify(subscriptions, scope)

    async def _notify(self, subscriptions: list[Subscription], scope: ConversationScope) -> None:
        try:
            snapshot = sort_messages(await self._fetch(scope))
        except StoreSubscriptionError as e:
            self._debug("error", f"Snapshot of {scope.path} failed: {e}")
            for subscription in subscriptions:
                subscription.fail(e)
            return

        for subscription in subscriptions:
            try:
                subscription.deliver(snapshot)
            except Exception as e:
                # A committed write stays committed; listener bugs are reported only
                self._debug("error", f"Snapshot listener for {scope.path} raised {type(e).__name__}: {e}")

    def _cancel(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.scope.path, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        if not subscriptions:
            self._subscriptions.pop(subscription.scope.path, None)
