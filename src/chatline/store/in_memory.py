"""In-memory message store backend.

Simple dict-based storage for session-only conversations.
Data is lost when the application exits.
"""

from uuid import uuid4

from ..errors import StoreSubscriptionError, StoreWriteError
from .base import MessageStore, next_timestamp
from .models import ConversationScope, Message


class InMemoryMessageStore(MessageStore):
    """In-memory message store (session-only).

    Suitable for single-session use or testing.
    """

    def __init__(self) -> None:
        super().__init__()
        self._collections: dict[str, list[Message]] = {}
        self._connected = False

    async def connect(self) -> None:
        """Initialize store (no state to load)."""
        self._connected = True

    async def disconnect(self) -> None:
        """Close store (keeps data for a later reconnect)."""
        self._connected = False

    async def _insert(self, scope: ConversationScope, message: Message) -> Message:
        if not self._connected:
            raise StoreWriteError("Message store is not connected")

        collection = self._collections.setdefault(scope.path, [])
        last = max((m.timestamp for m in collection), default=None)
        persisted = message.model_copy(
            update={"id": uuid4().hex, "timestamp": next_timestamp(last)}
        )
        collection.append(persisted)
        return persisted

    async def _fetch(self, scope: ConversationScope) -> list[Message]:
        if not self._connected:
            raise StoreSubscriptionError("Message store is not connected")
        return list(self._collections.get(scope.path, []))

    @property
    def backend_type(self) -> str:
        return "memory"
