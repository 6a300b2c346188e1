from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Category(StrEnum):
    AI_ML = "AI_ML"
    COMPUTE = "COMPUTE"
    STORAGE = "STORAGE"
    DATABASE = "DATABASE"
    ANALYTICS = "ANALYTICS"
    SECURITY = "SECURITY"
    NETWORKING = "NETWORKING"
    DEVTOOLS = "DEVTOOLS"
    CONTAINERS = "CONTAINERS"
    SERVERLESS = "SERVERLESS"
    OTHER = "OTHER"


# Request-side sentinel meaning "no category filter"
ALL_CATEGORIES = "ALL"


class RawItem(BaseModel):
    """One feed entry after the fetcher applied its defaulting rules."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    link: str = Field(min_length=1)
    published: AwareDatetime
    content: str = ""  # Plain text, HTML stripped
    full_text: str | None = None  # Original markup, when the feed carried any
    guid: str | None = None


class Announcement(BaseModel):
    """A normalized, categorized, summarized feed item.

    ``is_new`` is derived from ``timestamp`` and the clock; call
    :meth:`with_recency` at read time rather than trusting the stored value.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str
    title: str = Field(min_length=1)
    category: Category = Category.OTHER
    summary: str
    full_text: str | None = None
    timestamp: AwareDatetime
    link: str
    source: str
    is_new: bool = False

    def with_recency(self, now: datetime, window: timedelta) -> Announcement:
        """Return a copy whose ``is_new`` reflects ``now``."""
        is_new = now - self.timestamp < window
        if is_new == self.is_new:
            return self
        return self.model_copy(update={"is_new": is_new})

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
