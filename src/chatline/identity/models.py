from pydantic import BaseModel, ConfigDict, Field


class Identity(BaseModel):
    """A signed-in user. ``user_id`` is an opaque scoping key."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1, description="Opaque user identifier")
    is_anonymous: bool = Field(default=True)
