"""Message store module for chatline.

Append-only writes and live, timestamp-ordered snapshots of a user's
conversation.
"""

from .base import MessageStore, Subscription
from .factory import create_message_store
from .in_memory import InMemoryMessageStore
from .models import ConversationScope, Message, Sender, sort_messages
from .sqlite import SQLiteMessageStore

__all__ = [
    "ConversationScope",
    "InMemoryMessageStore",
    "Message",
    "MessageStore",
    "SQLiteMessageStore",
    "Sender",
    "Subscription",
    "create_message_store",
    "sort_messages",
]
