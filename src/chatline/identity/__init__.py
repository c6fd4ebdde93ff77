"""Identity module for chatline.

Resolves the opaque user id that scopes a conversation.
"""

from .base import IdentityProvider
from .local import LocalIdentityProvider
from .models import Identity

__all__ = [
    "Identity",
    "IdentityProvider",
    "LocalIdentityProvider",
]
