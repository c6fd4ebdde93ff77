"""Provider factory functions for CLI.

Centralizes creation of the store, completion client and identity provider
from environment variables. Hides configuration details from command
implementations.
"""

import os
from typing import Any

from rich.console import Console
from rich.markup import escape

from ..chat.config import DEFAULT_APP_ID, LogLevel
from ..completion import CompletionClient, create_completion_client
from ..identity import LocalIdentityProvider
from ..store import MessageStore, create_message_store

# Default console for output
_console = Console()

_LEVEL_STYLES = {
    LogLevel.DEBUG: "dim",
    LogLevel.INFO: "cyan",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "red",
}


def get_app_id() -> str:
    """Application id used in the store path.

    Environment variables:
        CHATLINE_APP_ID: Application id (default: simple-gemini-chatbot)
    """
    return os.getenv("CHATLINE_APP_ID", DEFAULT_APP_ID)


def get_auth_token() -> str | None:
    """Custom sign-in token, if the host supplied one.

    Environment variables:
        CHATLINE_AUTH_TOKEN: Custom token (optional)
    """
    return os.getenv("CHATLINE_AUTH_TOKEN") or None


def get_store() -> MessageStore:
    """Create message store from environment variables.

    Returns:
        Message store instance (not yet connected)

    Environment variables:
        STORE_BACKEND: Backend type (memory, sqlite; default: sqlite)
        STORE_PATH: SQLite database path (default: ./chatline.db)
    """
    backend = os.getenv("STORE_BACKEND", "sqlite").lower()
    if backend == "sqlite":
        return create_message_store("sqlite", path=os.getenv("STORE_PATH", "./chatline.db"))
    return create_message_store(backend)


def get_identity() -> LocalIdentityProvider:
    """Create identity provider from environment variables.

    Environment variables:
        IDENTITY_STATE_PATH: File remembering the signed-in user
            (default: ./.chatline_identity.json)
        CHATLINE_AUTH_TOKEN / CHATLINE_AUTH_UID: Custom token and the user it signs in
    """
    tokens = {}
    token = get_auth_token()
    uid = os.getenv("CHATLINE_AUTH_UID")
    if token and uid:
        tokens[token] = uid

    return LocalIdentityProvider(
        state_path=os.getenv("IDENTITY_STATE_PATH", "./.chatline_identity.json"),
        tokens=tokens
    )


def get_completion(console: Console | None = None) -> CompletionClient | None:
    """Create completion client from environment variables.

    Args:
        console: Optional Rich console for output

    Returns:
        Completion client instance, or None if not configured

    Environment variables:
        COMPLETION_PROVIDER: Provider type (gemini, rest, proxy; default: gemini)
        GEMINI_API_KEY: Gemini API key (for gemini and rest providers)
        GEMINI_MODEL: Gemini model (default: gemini-2.0-flash)
        COMPLETION_PROXY_URL: Proxy endpoint (default: http://localhost:3000/api/gemini)
    """
    con = console or _console
    provider = os.getenv("COMPLETION_PROVIDER", "gemini").lower()

    if provider in ("gemini", "rest"):
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            con.print("[yellow]Warning: GEMINI_API_KEY not set, completions disabled[/yellow]")
            return None
        model = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
        return create_completion_client(provider, api_key=api_key, model=model)

    elif provider == "proxy":
        url = os.getenv("COMPLETION_PROXY_URL", "http://localhost:3000/api/gemini")
        return create_completion_client("proxy", url=url)

    else:
        con.print(f"[red]Error: Unknown completion provider: {provider}[/red]")
        return None


def make_debug_printer(console: Console | None = None, level: str = "info") -> Any:
    """Build a debug callback that prints to the console.

    Args:
        console: Optional Rich console for output
        level: Minimum level to show (debug, info, warning, error)

    Returns:
        Callable(level, component, message)
    """
    con = console or _console
    threshold = LogLevel.parse(level)

    def _print(msg_level: str, component: str, message: str) -> None:
        severity = LogLevel.parse(msg_level)
        if severity < threshold:
            return
        style = _LEVEL_STYLES[severity]
        con.print(f"[{style}]{severity.name}[/{style}] [bold]{component}[/bold]: {escape(message)}")

    return _print
