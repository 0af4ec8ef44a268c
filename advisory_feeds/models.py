"""Data models for Advisory Feeds."""

from dataclasses import dataclass, field
from datetime import UTC, datetime


class _Missing:
    """Marker for a field that is absent or unusable in a raw record."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an ISO-8601 UTC string with millisecond precision.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def utc_now() -> str:
    return format_timestamp(datetime.now(UTC))


@dataclass
class FeedEntry:
    """Represents a single normalized feed entry."""

    id: str
    title: str = ""
    link: str | None = None
    updated: str | None = None
    summary: str = ""


@dataclass
class FeedMetadata:
    """Feed-level constants shared by every entry."""

    title: str
    link: str
    id: str
    updated: str = field(default_factory=utc_now)


@dataclass
class Feed:
    """Feed metadata plus entries ordered newest first."""

    metadata: FeedMetadata
    entries: list[FeedEntry] = field(default_factory=list)


@dataclass
class RenderedFeed:
    """Rendered response payload handed back to the host environment."""

    body: str
    content_type: str
    status_code: int = 200
    metrics: dict | None = None
