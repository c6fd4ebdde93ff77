"""Remote completion client module.

Wraps one outbound call to a text-generation endpoint and owns the
retry/backoff policy around it.
"""

from .base import FALLBACK_REPLY, CompletionClient, extract_reply_text
from .factory import create_completion_client
from .models import BackoffPolicy, Role, Transcript, Turn
from .providers import GeminiCompletionClient, HTTPCompletionClient

__all__ = [
    "FALLBACK_REPLY",
    "BackoffPolicy",
    "CompletionClient",
    "GeminiCompletionClient",
    "HTTPCompletionClient",
    "Role",
    "Transcript",
    "Turn",
    "create_completion_client",
    "extract_reply_text",
]
