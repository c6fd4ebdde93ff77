"""
chatline: persisted chat conversations with a Gemini-style completion backend.

Each module hides one design decision: how the completion endpoint is
reached, where messages are stored, how a user is identified, and how a
send is sequenced.
"""

__version__ = "0.1.0"

from .chat import ChatSession, SendPipeline, SendResult, SendStatus, build_transcript
from .completion import BackoffPolicy, CompletionClient, Transcript, create_completion_client
from .errors import (
    AuthError,
    ChatlineError,
    RemoteCallError,
    StoreSubscriptionError,
    StoreWriteError,
)
from .identity import Identity, IdentityProvider, LocalIdentityProvider
from .store import ConversationScope, Message, MessageStore, Sender, create_message_store

__all__ = [
    "AuthError",
    "BackoffPolicy",
    "ChatSession",
    "ChatlineError",
    "CompletionClient",
    "ConversationScope",
    "Identity",
    "IdentityProvider",
    "LocalIdentityProvider",
    "Message",
    "MessageStore",
    "RemoteCallError",
    "Sender",
    "SendPipeline",
    "SendResult",
    "SendStatus",
    "StoreSubscriptionError",
    "StoreWriteError",
    "Transcript",
    "build_transcript",
    "create_completion_client",
    "create_message_store",
]
