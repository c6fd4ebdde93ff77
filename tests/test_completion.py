"""Unit tests for the completion module."""
import json

import httpx
import pytest
from conftest import ScriptedCompletionClient, gemini_payload
from hypothesis import given
from hypothesis import strategies as st

from chatline.completion import (
    FALLBACK_REPLY,
    BackoffPolicy,
    CompletionClient,
    GeminiCompletionClient,
    HTTPCompletionClient,
    Role,
    Transcript,
    Turn,
    create_completion_client,
    extract_reply_text,
)
from chatline.errors import RemoteCallError, RemoteStatusError, RemoteTransportError


def make_transcript(*texts: str) -> Transcript:
    turns = []
    for i, text in enumerate(texts):
        role = Role.USER if i % 2 == 0 else Role.MODEL
        turns.append(Turn(role=role, text=text))
    return Transcript(turns=tuple(turns))


class TestTranscript:
    """Tests for the Transcript model."""

    def test_empty_transcript_fails(self):
        """Test that an empty transcript is rejected."""
        with pytest.raises(ValueError):
            Transcript(turns=())

    def test_transcript_must_end_with_user(self):
        """Test that the last turn must be a user turn."""
        with pytest.raises(ValueError):
            Transcript(turns=(
                Turn(role=Role.USER, text="hi"),
                Turn(role=Role.MODEL, text="hello"),
            ))

    def test_to_contents(self):
        """Test the wire form of a transcript."""
        transcript = make_transcript("hi", "hello", "how are you")

        assert transcript.to_contents() == [
            {"role": "user", "parts": [{"text": "hi"}]},
            {"role": "model", "parts": [{"text": "hello"}]},
            {"role": "user", "parts": [{"text": "how are you"}]},
        ]

    def test_transcript_is_immutable(self):
        """Test that a transcript cannot be modified after construction."""
        transcript = make_transcript("hi")
        with pytest.raises(ValueError):
            transcript.turns = ()  # type: ignore


class TestBackoffPolicy:
    """Tests for BackoffPolicy."""

    def test_defaults(self):
        """Test the observed default policy."""
        policy = BackoffPolicy()

        assert policy.max_attempts == 3
        assert policy.base_delay == 1.0
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    @given(st.integers(min_value=1, max_value=10), st.floats(min_value=0.01, max_value=10))
    def test_delay_doubles(self, attempt: int, base_delay: float):
        """Property test: each delay is twice the previous one."""
        policy = BackoffPolicy(base_delay=base_delay)
        assert policy.delay_for(attempt + 1) == pytest.approx(2 * policy.delay_for(attempt))


class TestExtractReplyText:
    """Tests for extract_reply_text."""

    def test_first_candidate_first_part(self):
        """Test that the first candidate's first part is returned."""
        payload = {
            "candidates": [
                {"content": {"parts": [{"text": "first"}, {"text": "second"}]}},
                {"content": {"parts": [{"text": "other"}]}},
            ]
        }
        assert extract_reply_text(payload) == "first"

    @pytest.mark.parametrize("payload", [
        None,
        {},
        {"candidates": []},
        {"candidates": [{}]},
        {"candidates": [{"content": {}}]},
        {"candidates": [{"content": {"parts": []}}]},
        {"candidates": [{"content": {"parts": [{}]}}]},
        {"candidates": [{"content": {"parts": [{"text": ""}]}}]},
        "not a dict",
    ])
    def test_malformed_payload_falls_back(self, payload):
        """Test that malformed payloads degrade to the fallback reply."""
        assert extract_reply_text(payload) == FALLBACK_REPLY


class TestCompletionClientInterface:
    """Tests for the abstract CompletionClient interface."""

    def test_client_is_abstract(self):
        """Test that CompletionClient cannot be instantiated directly."""
        with pytest.raises(TypeError):
            CompletionClient()  # type: ignore


class TestRetryPolicy:
    """Tests for the retry loop in CompletionClient.complete."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        """Test that a successful call is made exactly once."""
        client = ScriptedCompletionClient([gemini_payload("hello")])

        assert await client.complete(make_transcript("hi")) == "hello"
        assert client.calls == 1
        assert client.sleep.delays == []

    @pytest.mark.asyncio
    async def test_two_server_errors_then_success(self):
        """Test that 5xx errors are retried with doubling delays."""
        client = ScriptedCompletionClient([
            RemoteStatusError(500),
            RemoteStatusError(503),
            gemini_payload("finally"),
        ])

        assert await client.complete(make_transcript("hi")) == "finally"
        assert client.calls == 3
        assert client.sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        """Test that a 4xx error fails after exactly one attempt."""
        client = ScriptedCompletionClient([RemoteStatusError(404)])

        with pytest.raises(RemoteCallError) as exc_info:
            await client.complete(make_transcript("hi"))

        assert client.calls == 1
        assert client.sleep.delays == []
        assert exc_info.value.status_code == 404
        assert exc_info.value.attempts == 1

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        """Test that network failures are retried."""
        client = ScriptedCompletionClient([
            RemoteTransportError("connection reset"),
            gemini_payload("ok"),
        ])

        assert await client.complete(make_transcript("hi")) == "ok"
        assert client.calls == 2
        assert client.sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_reason(self):
        """Test that exhausting retries raises with the last failure."""
        client = ScriptedCompletionClient([
            RemoteStatusError(500),
            RemoteTransportError("timed out"),
            RemoteStatusError(502, "Bad Gateway"),
            gemini_payload("never reached"),
        ])

        with pytest.raises(RemoteCallError) as exc_info:
            await client.complete(make_transcript("hi"))

        assert client.calls == 3
        assert client.sleep.delays == [1.0, 2.0]
        assert exc_info.value.status_code == 502
        assert exc_info.value.attempts == 3
        assert "502" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_malformed_success_is_not_an_error(self):
        """Test that a 2xx with an unexpected body returns the fallback."""
        client = ScriptedCompletionClient([{"candidates": []}])

        assert await client.complete(make_transcript("hi")) == FALLBACK_REPLY
        assert client.calls == 1

    @pytest.mark.asyncio
    async def test_debug_callback_receives_retries(self):
        """Test that retries are reported through the debug callback."""
        events = []
        client = ScriptedCompletionClient([RemoteStatusError(500), gemini_payload("ok")])
        client.set_debug_callback(lambda level, component, message: events.append(level))

        await client.complete(make_transcript("hi"))

        assert "warning" in events

    @given(st.integers(min_value=400, max_value=499))
    def test_4xx_statuses_are_not_retryable(self, status: int):
        """Property test: every 4xx status is final."""
        assert not RemoteStatusError(status).is_retryable()

    @given(st.integers(min_value=500, max_value=599))
    def test_5xx_statuses_are_retryable(self, status: int):
        """Property test: every 5xx status is retried."""
        assert RemoteStatusError(status).is_retryable()


def mock_client(handler, **kwargs) -> tuple[HTTPCompletionClient, list[float]]:
    """HTTP client wired to an httpx MockTransport."""
    delays: list[float] = []

    async def sleep(delay: float) -> None:
        delays.append(delay)

    client = HTTPCompletionClient(
        transport=httpx.MockTransport(handler),
        sleep=sleep,
        **kwargs
    )
    return client, delays


class TestHTTPCompletionClient:
    """Tests for HTTPCompletionClient."""

    @pytest.mark.asyncio
    async def test_rest_request_shape(self):
        """Test that the REST client posts {contents} with the key as a query param."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=gemini_payload("hello"))

        delays: list[float] = []

        async def sleep(delay: float) -> None:
            delays.append(delay)

        client = HTTPCompletionClient.for_gemini(
            api_key="test-key",
            model="gemini-2.0-flash",
            transport=httpx.MockTransport(handler),
            sleep=sleep
        )
        try:
            reply = await client.complete(make_transcript("hi"))
        finally:
            await client.close()

        assert reply == "hello"
        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path.endswith("/models/gemini-2.0-flash:generateContent")
        assert request.url.params["key"] == "test-key"
        assert json.loads(request.content) == {
            "contents": [{"role": "user", "parts": [{"text": "hi"}]}]
        }

    @pytest.mark.asyncio
    async def test_proxy_request_shape(self):
        """Test that the proxy client posts {chatHistory} without a key."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=gemini_payload("proxied"))

        client = HTTPCompletionClient.for_proxy(
            "http://proxy.test/api/gemini",
            transport=httpx.MockTransport(handler)
        )
        try:
            reply = await client.complete(make_transcript("hi", "hello", "again"))
        finally:
            await client.close()

        assert reply == "proxied"
        body = json.loads(seen[0].content)
        assert list(body) == ["chatHistory"]
        assert [turn["role"] for turn in body["chatHistory"]] == ["user", "model", "user"]
        assert "key" not in seen[0].url.params

    @pytest.mark.asyncio
    async def test_server_errors_retried_over_http(self):
        """Test that HTTP 500 responses are retried."""
        statuses = iter([500, 500, 200])

        def handler(request: httpx.Request) -> httpx.Response:
            status = next(statuses)
            if status == 200:
                return httpx.Response(200, json=gemini_payload("third time"))
            return httpx.Response(status)

        client, delays = mock_client(handler, url="http://api.test/generate")
        try:
            assert await client.complete(make_transcript("hi")) == "third time"
        finally:
            await client.close()

        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_not_found_fails_immediately(self):
        """Test that HTTP 404 fails after one request."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404)

        client, delays = mock_client(handler, url="http://api.test/generate")
        try:
            with pytest.raises(RemoteCallError) as exc_info:
                await client.complete(make_transcript("hi"))
        finally:
            await client.close()

        assert len(calls) == 1
        assert delays == []
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_network_failure_exhausts_retries(self):
        """Test that connection errors are retried up to the attempt limit."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        client, delays = mock_client(handler, url="http://api.test/generate")
        try:
            with pytest.raises(RemoteCallError) as exc_info:
                await client.complete(make_transcript("hi"))
        finally:
            await client.close()

        assert len(calls) == 3
        assert delays == [1.0, 2.0]
        assert exc_info.value.status_code is None
        assert "connection refused" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_undecodable_body_is_transport_failure(self):
        """Test that a corrupt compressed body is retried and then reported, not leaked."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, headers={"content-encoding": "gzip"}, content=b"not gzip")

        client, delays = mock_client(handler, url="http://api.test/generate")
        try:
            with pytest.raises(RemoteCallError) as exc_info:
                await client.complete(make_transcript("hi"))
        finally:
            await client.close()

        assert len(calls) == 3
        assert delays == [1.0, 2.0]
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, RemoteTransportError)

    @pytest.mark.asyncio
    async def test_non_json_success_falls_back(self):
        """Test that a 2xx body that is not JSON yields the fallback reply."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        client, _ = mock_client(handler, url="http://api.test/generate")
        try:
            assert await client.complete(make_transcript("hi")) == FALLBACK_REPLY
        finally:
            await client.close()


class FakeModels:
    """Stand-in for genai client.aio.models."""

    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.calls = []

    async def generate_content(self, model, contents, **kwargs):
        self.calls.append((model, contents))
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeGenaiClient:
    def __init__(self, outcomes):
        self.models = FakeModels(outcomes)
        self.aio = self


class TestGeminiCompletionClient:
    """Tests for GeminiCompletionClient."""

    def _response(self, text: str):
        from google.genai import types

        return types.GenerateContentResponse(
            candidates=[
                types.Candidate(content=types.Content(role="model", parts=[types.Part(text=text)]))
            ]
        )

    @pytest.mark.asyncio
    async def test_reply_extracted_from_sdk_response(self):
        """Test that the SDK response is reduced to its first text part."""
        fake = FakeGenaiClient([self._response("from sdk")])
        client = GeminiCompletionClient(api_key="fake-key", client=fake)

        reply = await client.complete(make_transcript("hi", "hello", "again"))

        assert reply == "from sdk"
        model, contents = fake.models.calls[0]
        assert model == "gemini-2.0-flash"
        assert [c.role for c in contents] == ["user", "model", "user"]
        assert contents[-1].parts[0].text == "again"

    @pytest.mark.asyncio
    async def test_sdk_errors_follow_retry_policy(self):
        """Test that SDK server errors retry and client errors do not."""
        from google.genai import errors

        delays = []

        async def sleep(delay):
            delays.append(delay)

        server_error = errors.ServerError(503, {"error": {"code": 503, "message": "overloaded"}})
        fake = FakeGenaiClient([server_error, self._response("recovered")])
        client = GeminiCompletionClient(api_key="fake-key", client=fake, sleep=sleep)

        assert await client.complete(make_transcript("hi")) == "recovered"
        assert delays == [1.0]

        client_error = errors.ClientError(400, {"error": {"code": 400, "message": "bad request"}})
        fake = FakeGenaiClient([client_error])
        client = GeminiCompletionClient(api_key="fake-key", client=fake, sleep=sleep)

        with pytest.raises(RemoteCallError) as exc_info:
            await client.complete(make_transcript("hi"))
        assert exc_info.value.status_code == 400
        assert len(fake.models.calls) == 1

    @pytest.mark.asyncio
    async def test_sdk_decoding_error_is_transport_failure(self):
        """Test that httpx request errors other than transport errors are retried."""
        delays = []

        async def sleep(delay):
            delays.append(delay)

        fake = FakeGenaiClient([httpx.DecodingError("bad gzip"), self._response("second try")])
        client = GeminiCompletionClient(api_key="fake-key", client=fake, sleep=sleep)

        assert await client.complete(make_transcript("hi")) == "second try"
        assert delays == [1.0]

    @pytest.mark.asyncio
    async def test_empty_sdk_response_falls_back(self):
        """Test that a response without candidates yields the fallback reply."""
        from google.genai import types

        fake = FakeGenaiClient([types.GenerateContentResponse()])
        client = GeminiCompletionClient(api_key="fake-key", client=fake)

        assert await client.complete(make_transcript("hi")) == FALLBACK_REPLY

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_complete_real_api(self, api_keys):
        """Integration test: complete a transcript with the real API."""
        if not api_keys["gemini"]:
            pytest.skip("GEMINI_API_KEY not set")

        client = GeminiCompletionClient(api_key=api_keys["gemini"])
        try:
            reply = await client.complete(make_transcript("Reply with the single word: pong"))
            assert isinstance(reply, str)
            assert reply
        finally:
            await client.close()


class TestCompletionFactory:
    """Tests for completion factory function."""

    def test_create_gemini_client(self):
        """Test creating the SDK client via factory."""
        client = create_completion_client("gemini", api_key="test-key", model="gemini-2.5-flash")

        assert isinstance(client, GeminiCompletionClient)
        assert client.model == "gemini-2.5-flash"

    @pytest.mark.asyncio
    async def test_create_rest_and_proxy_clients(self):
        """Test creating the HTTP clients via factory."""
        rest = create_completion_client("rest", api_key="test-key")
        proxy = create_completion_client("proxy", url="http://localhost:3000/api/gemini")
        try:
            assert isinstance(rest, HTTPCompletionClient)
            assert rest.url.endswith("gemini-2.0-flash:generateContent")
            assert isinstance(proxy, HTTPCompletionClient)
            assert proxy.url == "http://localhost:3000/api/gemini"
        finally:
            await rest.close()
            await proxy.close()

    def test_create_client_unknown_type(self):
        """Test that unknown provider type raises ValueError."""
        with pytest.raises(ValueError, match="Unsupported provider"):
            create_completion_client("unknown", api_key="test-key")

    def test_create_client_missing_api_key(self):
        """Test that missing API key raises TypeError."""
        with pytest.raises(TypeError, match="requires 'api_key'"):
            create_completion_client("gemini")

    def test_create_proxy_missing_url(self):
        """Test that missing proxy URL raises TypeError."""
        with pytest.raises(TypeError, match="requires 'url'"):
            create_completion_client("proxy")
