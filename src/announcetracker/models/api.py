"""Request and response models for the HTTP handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from announcetracker.models.announcement import Announcement

MAX_SEARCH_LENGTH = 100


class AnnouncementsQuery(BaseModel):
    category: str | None = None
    search: str | None = Field(default=None, max_length=MAX_SEARCH_LENGTH)
    limit: int | None = Field(default=None, ge=1)

    @field_validator("category", "search", mode="before")
    @classmethod
    def blank_as_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnnouncementsOutput(_CamelModel):
    announcements: list[Announcement]
    total: int
    last_update: AwareDatetime
    cached: bool


class StatsOutput(_CamelModel):
    total: int
    last_update: AwareDatetime
    new_count: int
    categories: dict[str, int]
    sources: dict[str, int]


class HealthOutput(_CamelModel):
    status: str = "healthy"
    timestamp: datetime
    service: str
    version: str


class DiagnoseOutput(_CamelModel):
    timestamp: datetime
    api_key_status: str
    api_key_present: bool
    api_key_valid: bool
    summarizer_configured: bool
    test_summary: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class HandlerResult:
    """JSON body plus the response headers a handler wants set."""

    body: dict
    headers: dict[str, str] = field(default_factory=dict)
