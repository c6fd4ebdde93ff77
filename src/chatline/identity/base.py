"""Abstract base class for identity providers.

The rest of chatline only needs an opaque user id to scope the message
store; token handling stays behind this interface.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from .models import Identity

IdentityCallback = Callable[[Identity | None], None]


class IdentityProvider(ABC):
    """Abstract identity provider.

    Listeners registered with ``on_identity_change`` are told about every
    sign-in and sign-out, and immediately about the current state.
    """

    def __init__(self) -> None:
        self._current: Identity | None = None
        self._listeners: list[IdentityCallback] = []

    @property
    def current(self) -> Identity | None:
        """Get the signed-in identity, if any."""
        return self._current

    @abstractmethod
    async def sign_in_anonymously(self) -> Identity:
        """Establish an anonymous session.

        Raises:
            AuthError: If no session could be established
        """

    @abstractmethod
    async def sign_in_with_custom_token(self, token: str) -> Identity:
        """Establish a session from a host-issued custom token.

        Raises:
            AuthError: If the token is rejected
        """

    async def sign_out(self) -> None:
        """End the current session."""
        self._set_current(None)

    def on_identity_change(self, callback: IdentityCallback) -> Callable[[], None]:
        """Register a listener for identity changes.

        Args:
            callback: Receives the new identity (None after sign-out)

        Returns:
            Function that removes the listener
        """
        self._listeners.append(callback)
        callback(self._current)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _set_current(self, identity: Identity | None) -> None:
        self._current = identity
        for listener in list(self._listeners):
            listener(identity)
