"""Pytest configuration and shared fixtures."""
import os
from typing import Any

import pytest
import pytest_asyncio

from chatline.completion.base import CompletionClient
from chatline.completion.models import BackoffPolicy, Transcript
from chatline.errors import StoreWriteError
from chatline.identity import LocalIdentityProvider
from chatline.store import ConversationScope, InMemoryMessageStore, Message


def gemini_payload(text: str) -> dict[str, Any]:
    """Successful generateContent response body."""
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class ScriptedCompletionClient(CompletionClient):
    """Completion client whose attempts follow a script.

    Each script entry is either a payload to return or an exception to raise.
    Once the script runs out, every attempt echoes the last user turn.
    """

    def __init__(self, script: list[Any] | None = None, policy: BackoffPolicy | None = None):
        self.sleep = RecordingSleep()
        super().__init__(policy=policy, sleep=self.sleep)
        self._script = list(script or [])
        self.transcripts: list[Transcript] = []
        self.gate = None  # Optional asyncio.Event awaited before answering

    async def _request(self, transcript: Transcript) -> Any:
        self.transcripts.append(transcript)
        if self.gate is not None:
            await self.gate.wait()
        if self._script:
            step = self._script.pop(0)
            if isinstance(step, Exception):
                raise step
            return step
        return gemini_payload(f"echo: {transcript.turns[-1].text}")

    @property
    def calls(self) -> int:
        return len(self.transcripts)

    async def close(self) -> None:
        pass


class FailingStore(InMemoryMessageStore):
    """In-memory store that can be told to deny writes.

    ``fail_on`` holds 1-based append numbers that raise StoreWriteError.
    """

    def __init__(self, fail_on: set[int] | None = None, deny_all: bool = False):
        super().__init__()
        self.fail_on = set(fail_on or ())
        self.deny_all = deny_all
        self.append_calls = 0

    async def _insert(self, scope: ConversationScope, message: Message) -> Message:
        self.append_calls += 1
        if self.deny_all or self.append_calls in self.fail_on:
            raise StoreWriteError("Missing or insufficient permissions")
        return await super()._insert(scope, message)


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "gemini": os.getenv("GEMINI_API_KEY"),
    }


@pytest.fixture
def scope():
    """Conversation scope of a test user."""
    return ConversationScope(app_id="test-app", user_id="user-1")


@pytest_asyncio.fixture
async def store():
    """Connected in-memory message store."""
    store = InMemoryMessageStore()
    await store.connect()
    yield store
    await store.disconnect()


@pytest.fixture
def completion():
    """Completion client that echoes the last user turn."""
    return ScriptedCompletionClient()


@pytest.fixture
def identity():
    """Session-only local identity provider."""
    return LocalIdentityProvider(tokens={"valid-token": "custom-user"})
