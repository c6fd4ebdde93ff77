"""Chat session state.

Holds what a front end renders: the ordered message list, the input
buffer, the loading flag and the error banner. Wires the identity provider,
the store subscription and the send pipeline together.

The message list is only ever replaced wholesale by the latest snapshot.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from ..completion.base import CompletionClient
from ..errors import AuthError
from ..identity.base import IdentityProvider
from ..identity.models import Identity
from ..store.base import MessageStore, Subscription
from ..store.models import ConversationScope, Message, Sender, sort_messages
from .config import (
    AUTH_ERROR_BANNER,
    DEFAULT_APP_ID,
    STARTER_PROMPTS,
    SUBSCRIPTION_ERROR_BANNER,
    WELCOME_MESSAGE_ID,
    WELCOME_TEXT,
)
from .pipeline import SendPipeline, SendResult, SendStatus

SnapshotListener = Callable[[list[Message]], None]

WELCOME_MESSAGE = Message(id=WELCOME_MESSAGE_ID, text=WELCOME_TEXT, sender=Sender.BOT)


class ChatSession:
    """One user's chat, as seen by a front end.

    Usage:
        session = ChatSession(identity, store, completion)
        await session.start()
        session.input = "hi"
        await session.submit()
        print(session.messages)
        session.close()
    """

    def __init__(
        self,
        identity: IdentityProvider,
        store: MessageStore,
        completion: CompletionClient,
        app_id: str = DEFAULT_APP_ID,
        auth_token: str | None = None
    ):
        """Initialize the session.

        Args:
            identity: Identity provider used to sign in
            store: Connected message store
            completion: Completion client
            app_id: Application id used in the store path
            auth_token: Custom token to sign in with instead of anonymously
        """
        self._identity = identity
        self._store = store
        self._completion = completion
        self._app_id = app_id
        self._auth_token = auth_token

        self._messages: list[Message] = []
        self._input = ""
        self._banner: str | None = None
        self._auth_ready = False
        self._auth_failed = False
        self._starting = False
        self._pipeline: SendPipeline | None = None
        self._subscription: Subscription | None = None
        self._unsubscribe_identity: Callable[[], None] | None = None
        self._attach_task: asyncio.Task | None = None
        self._listeners: list[SnapshotListener] = []
        self._debug_callback: Any | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def messages(self) -> list[Message]:
        """Rendered messages, oldest first."""
        return list(self._messages)

    @property
    def input(self) -> str:
        return self._input

    @input.setter
    def input(self, value: str) -> None:
        self._input = value

    @property
    def identity(self) -> Identity | None:
        return self._identity.current

    @property
    def scope(self) -> ConversationScope | None:
        return self._pipeline.scope if self._pipeline else None

    @property
    def auth_ready(self) -> bool:
        """Whether the sign-in attempt has finished (successfully or not)."""
        return self._auth_ready

    @property
    def is_loading(self) -> bool:
        return self._pipeline is not None and self._pipeline.busy

    @property
    def error(self) -> str | None:
        """Banner text: infrastructure errors first, then the last send's indicator."""
        if self._banner:
            return self._banner
        return self._pipeline.error if self._pipeline else None

    @property
    def can_send(self) -> bool:
        return not self._auth_failed and self._pipeline is not None and not self._pipeline.busy

    @property
    def starter_prompts(self) -> list[tuple[str, str]]:
        """(title, prompt) pairs offered on an empty conversation."""
        return list(STARTER_PROMPTS)

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a callback invoked with the message list after each snapshot.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def set_debug_callback(self, callback: Any) -> None:
        """Set the debug callback.

        Args:
            callback: Callable(level: str, component: str, message: str)
        """
        self._debug_callback = callback
        if self._pipeline is not None:
            self._pipeline.set_debug_callback(callback)

    def _debug(self, level: str, message: str) -> None:
        if self._debug_callback:
            self._debug_callback(level, "ChatSession", message)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Sign in and subscribe to the user's messages.

        Authentication failures set the banner and block sending; they are
        not raised.
        """
        self._starting = True
        try:
            self._unsubscribe_identity = self._identity.on_identity_change(self._on_identity_change)

            if self._identity.current is None:
                try:
                    if self._auth_token:
                        await self._identity.sign_in_with_custom_token(self._auth_token)
                    else:
                        await self._identity.sign_in_anonymously()
                except AuthError as e:
                    self._debug("error", f"Authentication failed: {e}")
                    self._auth_failed = True
                    self._banner = AUTH_ERROR_BANNER

            await self._attach(self._identity.current)
        finally:
            self._starting = False
            self._auth_ready = True

    def close(self) -> None:
        """Stop listening to identity changes and store snapshots."""
        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None
        if self._attach_task is not None and not self._attach_task.done():
            self._attach_task.cancel()
        self._detach()

    async def wait_attached(self) -> None:
        """Wait for a re-subscription triggered by an identity change."""
        if self._attach_task is not None:
            await self._attach_task

    def _on_identity_change(self, identity: Identity | None) -> None:
        if self._starting:
            return
        self._attach_task = asyncio.get_running_loop().create_task(self._attach(identity))

    async def _attach(self, identity: Identity | None) -> None:
        if identity is None:
            self._detach()
            return

        scope = ConversationScope(app_id=self._app_id, user_id=identity.user_id)
        if self._pipeline is not None and self._pipeline.scope == scope:
            return

        self._detach()
        self._auth_failed = False
        if self._banner == AUTH_ERROR_BANNER:
            self._banner = None

        self._pipeline = SendPipeline(self._store, self._completion, scope)
        if self._debug_callback:
            self._pipeline.set_debug_callback(self._debug_callback)

        self._debug("info", f"Subscribing to {scope.path}")
        self._subscription = await self._store.subscribe(
            scope, self._on_snapshot, self._on_subscription_error
        )

    def _detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._pipeline = None
        self._messages = []

    # ------------------------------------------------------------------
    # Store callbacks
    # ------------------------------------------------------------------

    def _on_snapshot(self, snapshot: list[Message]) -> None:
        ordered = sort_messages(snapshot)
        self._messages = ordered if ordered else [WELCOME_MESSAGE]
        for listener in list(self._listeners):
            listener(self.messages)

    def _on_subscription_error(self, error: Exception) -> None:
        # Keep the last rendered list; the subscription stays open
        self._debug("error", f"Error fetching messages: {error}")
        self._banner = SUBSCRIPTION_ERROR_BANNER

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def submit(self, prompt: str | None = None) -> SendResult:
        """Send the input buffer, or a starter prompt when given.

        Returns:
            SendResult from the pipeline; REJECTED when not signed in, the
            text is blank or a send is already in flight.
        """
        text = prompt if prompt is not None else self._input

        if self._auth_failed or self._pipeline is None:
            return SendResult(status=SendStatus.REJECTED, error="Not signed in")

        return await self._pipeline.send(text, self._messages, clear_input=self._clear_input)

    def _clear_input(self) -> None:
        self._input = ""
