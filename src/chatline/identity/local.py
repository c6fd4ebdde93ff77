"""Local identity provider.

Issues anonymous uuid identities and resolves custom tokens from a token
table. Optionally remembers the signed-in identity in a JSON state file so
a persistent message store keeps the same scope across runs.
"""

import json
from pathlib import Path
from uuid import uuid4

from pydantic import ValidationError

from ..errors import AuthError
from .base import IdentityProvider
from .models import Identity


class LocalIdentityProvider(IdentityProvider):
    """Identity provider that never leaves the machine."""

    def __init__(
        self,
        state_path: str | Path | None = None,
        tokens: dict[str, str] | None = None
    ):
        """Initialize the provider.

        Args:
            state_path: JSON file remembering the last identity (None: session only)
            tokens: Custom token to user id table
        """
        super().__init__()
        self._state_path = Path(state_path) if state_path else None
        self._tokens = dict(tokens or {})
        self._current = self._load_state()

    def _load_state(self) -> Identity | None:
        if self._state_path is None or not self._state_path.exists():
            return None
        try:
            return Identity.model_validate_json(self._state_path.read_text())
        except (OSError, ValidationError):
            # Unreadable state means a fresh sign-in
            return None

    def _save_state(self, identity: Identity | None) -> None:
        if self._state_path is None:
            return
        try:
            if identity is None:
                self._state_path.unlink(missing_ok=True)
                return
            self._state_path.parent.mkdir(parents=True, exist_ok=True)
            self._state_path.write_text(json.dumps(identity.model_dump()))
        except OSError as e:
            raise AuthError(f"Could not persist identity: {e}") from e

    async def sign_in_anonymously(self) -> Identity:
        """Reuse the current anonymous identity or create a new one."""
        if self._current is not None and self._current.is_anonymous:
            return self._current

        identity = Identity(user_id=uuid4().hex, is_anonymous=True)
        self._save_state(identity)
        self._set_current(identity)
        return identity

    async def sign_in_with_custom_token(self, token: str) -> Identity:
        """Sign in as the user the token maps to."""
        user_id = self._tokens.get(token)
        if user_id is None:
            raise AuthError("Custom token was rejected")

        identity = Identity(user_id=user_id, is_anonymous=False)
        self._save_state(identity)
        self._set_current(identity)
        return identity

    async def sign_out(self) -> None:
        """Forget the current identity."""
        self._save_state(None)
        await super().sign_out()

    @property
    def state_path(self) -> Path | None:
        return self._state_path
