from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, Enum):
    """Role of a transcript turn as understood by the completion endpoint."""

    USER = "user"
    MODEL = "model"


class Turn(BaseModel):
    """A single role-tagged turn of a transcript."""

    model_config = ConfigDict(frozen=True)

    role: Role = Field(description="Author of the turn: 'user' or 'model'")
    text: str = Field(description="Text content of the turn")


class Transcript(BaseModel):
    """Ordered, immutable conversation sent to the completion endpoint.

    Always non-empty and always ends with the newest user turn.
    """

    model_config = ConfigDict(frozen=True)

    turns: tuple[Turn, ...] = Field(description="Turns, oldest first")

    @field_validator("turns")
    @classmethod
    def validate_turns(cls, v: tuple[Turn, ...]) -> tuple[Turn, ...]:
        """Ensure the transcript ends with a user turn."""
        if not v:
            raise ValueError("transcript must not be empty")
        if v[-1].role != Role.USER:
            raise ValueError("transcript must end with a user turn")
        return v

    def __len__(self) -> int:
        return len(self.turns)

    def to_contents(self) -> list[dict[str, Any]]:
        """Render the wire form: [{role, parts: [{text}]}, ...]."""
        return [
            {"role": turn.role.value, "parts": [{"text": turn.text}]}
            for turn in self.turns
        ]


class BackoffPolicy(BaseModel):
    """Exponential backoff without jitter.

    The delay before retry number ``attempt`` (1-based attempt that just
    failed) is ``base_delay * 2 ** (attempt - 1)``: 1s, 2s, 4s by default.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, description="Total attempts, first call included")
    base_delay: float = Field(default=1.0, ge=0.0, description="Delay after the first failure, in seconds")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given failed attempt."""
        return self.base_delay * (2 ** (attempt - 1))
