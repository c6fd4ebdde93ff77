from .gemini import GeminiCompletionClient
from .http import HTTPCompletionClient

__all__ = ["GeminiCompletionClient", "HTTPCompletionClient"]
