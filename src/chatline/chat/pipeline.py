"""Send pipeline orchestrator.

Sequences one send: persist the user message, assemble the transcript,
call the completion client, persist the reply (or an error reply).

State per send: idle -> sending -> {succeeded, failed} -> idle.
"""

from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ..completion.base import CompletionClient
from ..errors import RemoteCallError, StoreWriteError
from ..store.base import MessageStore
from ..store.models import ConversationScope, Message, Sender
from .assembler import build_transcript
from .config import ERROR_REPLY_TEMPLATE, REPLY_WRITE_ERROR_BANNER, USER_WRITE_ERROR_BANNER


class PipelineState(str, Enum):
    """Orchestrator state."""

    IDLE = "idle"
    SENDING = "sending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SendStatus(str, Enum):
    """Outcome of one ``send`` call."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REJECTED = "rejected"   # Precondition failed, nothing happened


class SendResult(BaseModel):
    """Result of one ``send`` call.

    Attributes:
        status: Outcome of the send
        user_message: Persisted user message (None if rejected or not stored)
        bot_message: Persisted reply or error reply, if one was stored
        error: Human-readable failure description
    """

    status: SendStatus
    user_message: Message | None = None
    bot_message: Message | None = None
    error: str | None = Field(default=None)


class SendPipeline:
    """Single-flight send orchestrator for one conversation.

    Hidden design decisions:
    - Ordering of persistence and completion calls
    - Which failures become error replies and which only set the error indicator
    - Single-flight guard

    The orchestrator never mutates the caller's message list; it writes to
    the store and the caller sees the result through its subscription.
    """

    def __init__(
        self,
        store: MessageStore,
        completion: CompletionClient,
        scope: ConversationScope
    ):
        """Initialize the pipeline.

        Args:
            store: Connected message store
            completion: Completion client
            scope: Conversation the pipeline writes to
        """
        self._store = store
        self._completion = completion
        self._scope = scope
        self._busy = False
        self._state = PipelineState.IDLE
        self._last_state: PipelineState | None = None
        self._error: str | None = None
        self._debug_callback: Any | None = None

    @property
    def scope(self) -> ConversationScope:
        return self._scope

    @property
    def busy(self) -> bool:
        """Whether a send is in flight."""
        return self._busy

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def last_state(self) -> PipelineState | None:
        """Terminal state of the most recent accepted send."""
        return self._last_state

    @property
    def error(self) -> str | None:
        """Error indicator for failures that could not be stored as a reply."""
        return self._error

    def set_debug_callback(self, callback: Any) -> None:
        """Set the debug callback.

        Args:
            callback: Callable(level: str, component: str, message: str)
        """
        self._debug_callback = callback

    def _debug(self, level: str, message: str) -> None:
        if self._debug_callback:
            self._debug_callback(level, "SendPipeline", message)

    async def send(
        self,
        text: str,
        history: Sequence[Message],
        clear_input: Callable[[], None] | None = None
    ) -> SendResult:
        """Send a user message and persist the reply.

        A second call while one is in flight is ignored, not queued.

        Args:
            text: User input (sent as typed; must be non-empty after trimming)
            history: Message list as rendered before this send
            clear_input: Called once the send is accepted (optimistic clear)

        Returns:
            SendResult describing the outcome. Never raises for store or
            completion failures.
        """
        if not text or not text.strip():
            return SendResult(status=SendStatus.REJECTED, error="Message is empty")
        if self._busy:
            self._debug("debug", "Send ignored: another send is in flight")
            return SendResult(status=SendStatus.REJECTED, error="A message is already being sent")

        # Copy before the first await; snapshots may replace the list meanwhile
        history = list(history)
        self._busy = True
        self._state = PipelineState.SENDING
        self._error = None
        try:
            if clear_input is not None:
                clear_input()
            result = await self._run(text, history)
            self._last_state = (
                PipelineState.SUCCEEDED if result.status == SendStatus.SUCCEEDED
                else PipelineState.FAILED
            )
            return result
        finally:
            self._busy = False
            self._state = PipelineState.IDLE

    async def _run(self, text: str, history: list[Message]) -> SendResult:
        try:
            user_message = await self._store.append(
                self._scope, Message(text=text, sender=Sender.USER)
            )
        except StoreWriteError as e:
            # Nothing stored, so there is no conversation turn to attach an error to
            self._error = USER_WRITE_ERROR_BANNER.format(reason=e)
            self._debug("error", self._error)
            return SendResult(status=SendStatus.FAILED, error=self._error)

        transcript = build_transcript(history, text)
        self._debug("info", f"Requesting completion for {len(transcript)} turns")

        try:
            reply = await self._completion.complete(transcript)
        except RemoteCallError as e:
            self._debug("error", f"Completion failed after {e.attempts} attempt(s): {e.reason}")
            return await self._fail_with_reply(user_message, e.reason)
        except Exception as e:
            # The user message is stored; it still gets exactly one reply
            self._debug("error", f"Unexpected completion failure: {type(e).__name__}: {e}")
            return await self._fail_with_reply(user_message, str(e) or type(e).__name__)

        try:
            bot_message = await self._store.append(
                self._scope, Message(text=reply, sender=Sender.BOT)
            )
        except StoreWriteError as e:
            self._debug("error", f"Could not store reply: {e}")
            return await self._fail_with_reply(user_message, str(e))

        return SendResult(
            status=SendStatus.SUCCEEDED,
            user_message=user_message,
            bot_message=bot_message
        )

    async def _fail_with_reply(self, user_message: Message, reason: str) -> SendResult:
        text = ERROR_REPLY_TEMPLATE.format(reason=reason)
        try:
            error_message = await self._store.append(
                self._scope, Message(text=text, sender=Sender.BOT, is_error=True)
            )
        except StoreWriteError as e:
            self._error = REPLY_WRITE_ERROR_BANNER.format(reason=e)
            self._debug("error", self._error)
            return SendResult(status=SendStatus.FAILED, user_message=user_message, error=self._error)

        return SendResult(
            status=SendStatus.FAILED,
            user_message=user_message,
            bot_message=error_message,
            error=text
        )
