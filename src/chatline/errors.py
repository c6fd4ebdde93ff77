"""Error taxonomy shared by every chatline module.

Infrastructure failures (auth, store) surface as a persistent banner;
completion failures surface as an error-flagged bot message.
"""


class ChatlineError(Exception):
    """Base class for chatline errors."""


class AuthError(ChatlineError):
    """The identity provider could not establish a session."""


class StoreError(ChatlineError):
    """Base class for message store failures."""


class StoreWriteError(StoreError):
    """An append was denied or the store is unreachable."""


class StoreSubscriptionError(StoreError):
    """A live subscription could not deliver a snapshot.

    Delivered through the subscription's error callback, never raised.
    """


class RemoteCallError(ChatlineError):
    """Terminal failure of a completion call after retries were exhausted
    or a non-retryable status was returned."""

    def __init__(
        self,
        reason: str,
        status_code: int | None = None,
        attempts: int = 1
    ):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code
        self.attempts = attempts


class AttemptError(ChatlineError):
    """Failure of a single completion attempt."""

    def is_retryable(self) -> bool:
        """Override in subclasses to control retry behavior."""
        return False


class RemoteStatusError(AttemptError):
    """Non-2xx status from the completion endpoint.

    5xx is retryable, everything else is not.
    """

    def __init__(self, status_code: int, message: str = ""):
        msg = f"API call failed with status: {status_code}"
        if message:
            msg += f" ({message})"
        super().__init__(msg)
        self.status_code = status_code

    def is_retryable(self) -> bool:
        return 500 <= self.status_code < 600


class RemoteTransportError(AttemptError):
    """Network or connection error (retryable)."""

    def __init__(self, message: str):
        super().__init__(f"Network error: {message}")

    def is_retryable(self) -> bool:
        return True
