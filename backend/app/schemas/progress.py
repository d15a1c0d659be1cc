from datetime import datetime
from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel

from app.models.progress import MediaType
from app.services.identity import Identity


class WatchProgressRecord(BaseModel):
    """One playback position, in the wire shape the UI layer speaks (camelCase)."""

    model_config = {"from_attributes": True, "alias_generator": to_camel, "populate_by_name": True}

    user_id: str | None = None
    session_id: str | None = None
    movie_id: int
    media_type: MediaType
    progress: float = 0.0
    timestamp: float = Field(0.0, ge=0)
    duration: float = Field(0.0, ge=0)
    season: int | None = None
    episode: int | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def resolve_identity(self) -> "WatchProgressRecord":
        # An account record never also carries a guest token
        if self.user_id:
            self.session_id = None
        elif not self.session_id:
            raise ValueError("either userId or sessionId is required")
        return self

    @property
    def identity(self) -> Identity:
        return Identity(user_id=self.user_id) if self.user_id else Identity(session_id=self.session_id)


class ProgressSaveResponse(BaseModel):
    message: str = "Progress saved successfully"


class ProgressLookupResponse(BaseModel):
    progress: WatchProgressRecord | None


class ProgressListResponse(BaseModel):
    progress: list[WatchProgressRecord]
