import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from ..errors import AttemptError, RemoteCallError
from .models import BackoffPolicy, Transcript

FALLBACK_REPLY = "Sorry, I couldn't generate a response."


def extract_reply_text(payload: Any) -> str:
    """Pull the first candidate's first text part out of a response payload.

    Malformed or empty payloads degrade to FALLBACK_REPLY instead of failing.

    Args:
        payload: Decoded JSON body, ``{candidates: [{content: {parts: [{text}]}}]}``

    Returns:
        Reply text
    """
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return FALLBACK_REPLY
    if not isinstance(text, str) or not text.strip():
        return FALLBACK_REPLY
    return text


class CompletionClient(ABC):
    """Abstract base class for remote completion clients.

    This module hides the design decision of how the remote text-generation
    endpoint is reached. The base class owns the retry policy; providers
    implement a single attempt.

    Hidden design decisions:
    - Transport (SDK or plain HTTP) and authentication
    - Request body shape and status classification
    - Backoff between attempts

    Supports async context manager protocol for proper resource cleanup:
        async with client:
            text = await client.complete(transcript)
    """

    def __init__(
        self,
        policy: BackoffPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None
    ):
        """Initialize the retry machinery.

        Args:
            policy: Backoff policy (default: 3 attempts, 1s base delay)
            sleep: Coroutine used to wait between attempts (default: asyncio.sleep)
        """
        self._policy = policy or BackoffPolicy()
        self._sleep = sleep or asyncio.sleep
        self._debug_callback: Any | None = None

    @property
    def policy(self) -> BackoffPolicy:
        """Get the backoff policy."""
        return self._policy

    def set_debug_callback(self, callback: Any) -> None:
        """Set the debug callback.

        Args:
            callback: Callable(level: str, component: str, message: str)
        """
        self._debug_callback = callback

    def _debug(self, level: str, message: str) -> None:
        if self._debug_callback:
            self._debug_callback(level, type(self).__name__, message)

    async def complete(self, transcript: Transcript) -> str:
        """Send a transcript and return the reply text.

        Retries 5xx and transport failures with exponential backoff; any
        other non-2xx status fails immediately.

        Args:
            transcript: Non-empty transcript ending with the newest user turn

        Returns:
            Reply text, or FALLBACK_REPLY if the response was malformed

        Raises:
            RemoteCallError: On a non-retryable status or once retries are exhausted
        """
        max_attempts = self._policy.max_attempts
        last_error: AttemptError | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                payload = await self._request(transcript)
            except AttemptError as e:
                last_error = e
                status_code = getattr(e, "status_code", None)
                if not e.is_retryable():
                    self._debug("error", f"Attempt {attempt} failed, not retrying: {e}")
                    raise RemoteCallError(str(e), status_code=status_code, attempts=attempt) from e

                if attempt < max_attempts:
                    delay = self._policy.delay_for(attempt)
                    self._debug(
                        "warning",
                        f"Attempt {attempt}/{max_attempts} failed: {e}. Retrying in {delay:.1f}s"
                    )
                    await self._sleep(delay)
                continue

            self._debug("debug", f"Completion succeeded on attempt {attempt}")
            return extract_reply_text(payload)

        self._debug("error", f"Giving up after {max_attempts} attempts: {last_error}")
        raise RemoteCallError(
            str(last_error),
            status_code=getattr(last_error, "status_code", None),
            attempts=max_attempts
        ) from last_error

    @abstractmethod
    async def _request(self, transcript: Transcript) -> Any:
        """Perform exactly one network call.

        Args:
            transcript: Transcript to send

        Returns:
            Decoded response payload (None if the body could not be decoded)

        Raises:
            RemoteStatusError: On a non-2xx status
            RemoteTransportError: On a network failure
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""
        pass

    async def __aenter__(self) -> "CompletionClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup.
        This is a known harmless race condition in httpx/anyio cleanup:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
