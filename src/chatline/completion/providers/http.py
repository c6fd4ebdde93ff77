"""Plain-HTTP completion client.

Covers both ways the generateContent endpoint is reached without an SDK:
- directly, with the API key as a query parameter (body ``{contents}``)
- through a thin proxy that holds the credential (body ``{chatHistory}``)
"""

import json
from typing import Any

import httpx

from ...errors import RemoteStatusError, RemoteTransportError
from ..base import CompletionClient
from ..models import BackoffPolicy, Transcript

GENERATIVE_LANGUAGE_URL = "https://generativelanguage.googleapis.com/v1beta"


class HTTPCompletionClient(CompletionClient):
    """Completion client that POSTs the transcript over HTTP.

    Hidden design decisions:
    - httpx client lifecycle
    - Body key the endpoint expects
    - Status classification (5xx retryable, everything else final)
    """

    def __init__(
        self,
        url: str,
        payload_key: str = "contents",
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = 60.0,
        policy: BackoffPolicy | None = None,
        sleep: Any | None = None,
        **client_kwargs: Any
    ):
        """Initialize HTTP completion client.

        Args:
            url: Endpoint URL
            payload_key: Top-level body key holding the contents list
            params: Query parameters sent with every request
            headers: Extra request headers
            timeout: Request timeout in seconds
            policy: Backoff policy
            sleep: Coroutine used between attempts
            **client_kwargs: Additional kwargs for httpx.AsyncClient
        """
        super().__init__(policy=policy, sleep=sleep)
        self._url = url
        self._payload_key = payload_key
        self._params = params or {}
        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json", **(headers or {})},
            timeout=timeout,
            **client_kwargs
        )

    @classmethod
    def for_gemini(
        cls,
        api_key: str,
        model: str = "gemini-2.0-flash",
        base_url: str = GENERATIVE_LANGUAGE_URL,
        **kwargs: Any
    ) -> "HTTPCompletionClient":
        """Client for the public generateContent REST endpoint."""
        return cls(
            url=f"{base_url.rstrip('/')}/models/{model}:generateContent",
            payload_key="contents",
            params={"key": api_key},
            **kwargs
        )

    @classmethod
    def for_proxy(cls, url: str, **kwargs: Any) -> "HTTPCompletionClient":
        """Client for a credential-hiding proxy endpoint."""
        return cls(url=url, payload_key="chatHistory", **kwargs)

    @property
    def url(self) -> str:
        """Get the endpoint URL."""
        return self._url

    async def _request(self, transcript: Transcript) -> Any:
        body = {self._payload_key: transcript.to_contents()}

        try:
            response = await self._client.post(self._url, params=self._params, json=body)
        except httpx.RequestError as e:
            # Transport failures, undecodable bodies and redirect loops
            raise RemoteTransportError(str(e) or type(e).__name__) from e

        if not response.is_success:
            raise RemoteStatusError(response.status_code, response.reason_phrase)

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            # A 2xx body that is not JSON degrades to the fallback reply
            return None

    async def close(self) -> None:
        """Close the httpx client."""
        await self._client.aclose()
