"""Data models for the textpod server."""

from enum import Enum

from pydantic import BaseModel, Field


class Note(BaseModel):
    """A timestamped markdown note with its rendered HTML."""

    id: int = Field(..., ge=0, description="Position-independent note ID")
    timestamp: str = Field(..., description="Local creation time, YYYY-MM-DD HH:MM:SS")
    content: str = Field(..., description="Markdown source of the note")
    html: str = Field(..., description="HTML rendered from content")

    model_config = {"extra": "forbid"}

    def __str__(self) -> str:
        return f"#{self.id}"


class LinkKind(str, Enum):
    """What a marker link points at, deciding how it is fetched."""

    VIDEO = "video"
    WEBPAGE = "webpage"


class LinkState(str, Enum):
    """Progress of a single marker link through resolution.

    PENDING -> CLASSIFYING -> FETCHING -> RESOLVED | UNRESOLVED
    """

    PENDING = "pending"
    CLASSIFYING = "classifying"
    FETCHING = "fetching"
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"

    @property
    def is_final(self) -> bool:
        return self in (LinkState.RESOLVED, LinkState.UNRESOLVED)
