"""
Note Models

Short free-text reminders the user keeps next to their finances.
Notes carry a calendar date so the dashboard can show
"today", "this week" and "this month" views.
"""

import datetime as dt
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NoteFilter(str, Enum):
    """Date window used when listing notes."""
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


class Note(BaseModel):
    """A single user note."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    content: str = Field(..., min_length=1, max_length=2000)
    date: dt.date = Field(default_factory=dt.date.today)
    created_at: dt.datetime = Field(default_factory=dt.datetime.now)
    tags: list[str] = Field(default_factory=list)

    @field_validator('tags')
    @classmethod
    def clean_tags(cls, v: list[str]) -> list[str]:
        """Drop blank tags, strip the rest."""
        return [tag.strip() for tag in v if tag.strip()]

    @classmethod
    def from_tag_string(cls, content: str, tags: str = "", **kwargs) -> "Note":
        """Build a note from a comma-separated tag string."""
        return cls(content=content, tags=tags.split(","), **kwargs)
