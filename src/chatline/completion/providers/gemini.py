"""Google Gemini completion client.

Uses the official Google GenAI SDK for async generateContent calls.
Reference: https://github.com/googleapis/python-genai

The SDK is constructed without retry options, so each ``_request`` is
exactly one network call and the backoff stays in CompletionClient.
"""

from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ...errors import RemoteStatusError, RemoteTransportError
from ..base import CompletionClient
from ..models import BackoffPolicy, Transcript


class GeminiCompletionClient(CompletionClient):
    """Google Gemini completion client.

    Hidden design decisions:
    - Google GenAI client initialization
    - Transcript to SDK Content conversion
    - Mapping SDK errors onto the retry taxonomy
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        policy: BackoffPolicy | None = None,
        sleep: Any | None = None,
        client: Any | None = None,
        **client_kwargs: Any
    ):
        """Initialize Gemini client.

        Args:
            api_key: Google AI API key
            model: Model name (gemini-2.0-flash, gemini-2.5-flash, ...)
            policy: Backoff policy
            sleep: Coroutine used between attempts
            client: Pre-built genai.Client (mainly for tests)
            **client_kwargs: Additional kwargs for genai.Client
        """
        super().__init__(policy=policy, sleep=sleep)
        self._model = model
        self._client = client or genai.Client(api_key=api_key, **client_kwargs)

    @property
    def model(self) -> str:
        """Get the model name."""
        return self._model

    def _convert_transcript(self, transcript: Transcript) -> list[types.Content]:
        return [
            types.Content(role=turn.role.value, parts=[types.Part(text=turn.text)])
            for turn in transcript.turns
        ]

    async def _request(self, transcript: Transcript) -> Any:
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=self._convert_transcript(transcript)
            )
        except genai_errors.APIError as e:
            raise RemoteStatusError(e.code or 0, e.message or "") from e
        except (httpx.RequestError, ConnectionError, TimeoutError) as e:
            raise RemoteTransportError(str(e) or type(e).__name__) from e

        # Dump to the same dict shape the REST endpoint returns
        return response.model_dump(mode="json", exclude_none=True)

    async def close(self) -> None:
        """Close the Gemini client.

        Note: The Google GenAI client doesn't require explicit closing,
        but we implement this for interface consistency.
        """
        pass
