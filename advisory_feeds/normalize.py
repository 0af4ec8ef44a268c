"""Entry normalization: raw upstream records to canonical feed entries."""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from dateutil import parser as date_parser

from .errors import SchemaBreakError
from .extract import FieldSpec, detect_drift, lookup
from .logging_config import create_execution_logger
from .models import MISSING, FeedEntry, format_timestamp

SUMMARY_STYLES = ("inline", "list", "bullets", "paragraph", "object")

# Differ in year, month and day, so a string parses to the same value under
# both only when it names all three itself.
_FILL_DEFAULTS = (datetime(1970, 1, 1), datetime(1971, 2, 2))


def parse_timestamp(value: Any) -> str | None:
    """Parse a date string into an ISO-8601 UTC timestamp.

    Strings lacking a year, month or day ("5", "2024-03", "10:30") are
    rejected rather than completed from a default date.

    Args:
        value: Raw date value from upstream

    Returns:
        Timestamp string, or None if the value is not a complete, parseable date
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed, check = [
                date_parser.parse(value, default=default) for default in _FILL_DEFAULTS
            ]
        except (ValueError, ArithmeticError, TypeError):
            return None
        if parsed != check:
            return None
    else:
        return None

    try:
        return format_timestamp(parsed)
    except (ValueError, ArithmeticError):
        return None


def _field_name(spec: FieldSpec) -> str:
    return ".".join(spec) if isinstance(spec, tuple) else spec


@dataclass(frozen=True)
class SummaryField:
    """One optional field rendered into an entry summary.

    Attributes:
        field: Field name or nested path
        label: Line label, None renders the bare value
        kind: Accepted type(s) for the value
        style: One of SUMMARY_STYLES
        subfields: (key, label, kind) triples read from an object value
        transform: Optional value-to-text conversion applied before rendering
    """

    field: FieldSpec
    label: str | None = None
    kind: type | tuple[type, ...] | None = str
    style: str = "inline"
    subfields: tuple[tuple[str, str, Any], ...] = ()
    transform: Callable[[Any], str] | None = None

    def __post_init__(self):
        if self.style not in SUMMARY_STYLES:
            raise ValueError(f"Unknown summary style: {self.style}")

    def render(self, record: Mapping) -> str | None:
        """Render this field for a record, None when there is nothing to show."""
        value = lookup(record, self.field, self.kind)
        if value is MISSING:
            return None

        if self.style == "object":
            return self._render_object(value)

        if self.transform is not None:
            value = self.transform(value)
            if not value:
                return None

        if self.style == "paragraph":
            return str(value).strip() or None

        if self.style in ("list", "bullets") and isinstance(value, list):
            items = [str(item) for item in value if item is not None]
            if not items:
                return None
            if self.style == "bullets":
                lines = "\n".join(f"- {item}" for item in items)
                return f"{self.label}:\n{lines}" if self.label else lines
            value = ", ".join(items)

        return f"{self.label}: {value}" if self.label else str(value)

    def _render_object(self, value: Any) -> str | None:
        if not isinstance(value, Mapping):
            return None
        lines = []
        for key, label, kind in self.subfields:
            sub_value = lookup(value, key, kind)
            if sub_value is not MISSING:
                lines.append(f"{label}: {sub_value}")
        return "\n".join(lines) or None


def _identity_id(record: Mapping, identity: str, updated: str | None) -> str:
    return identity


def _no_link(record: Mapping, identity: str) -> str | None:
    return None


@dataclass(frozen=True)
class EntryProfile:
    """Source-specific mapping from raw records to feed entries.

    The normalization algorithm is shared, a profile only declares which
    fields to read and how to name the result.
    """

    identity_field: FieldSpec
    title_builder: Callable[[Mapping, str], str]
    id_builder: Callable[[Mapping, str, str | None], str] = _identity_id
    link_builder: Callable[[Mapping, str], str | None] = _no_link
    identity_kind: type | tuple[type, ...] = str
    identity_fallbacks: tuple[FieldSpec, ...] = ()
    sentinel_values: frozenset[str] = frozenset()
    summary_fields: tuple[SummaryField, ...] = ()
    date_fields: tuple[FieldSpec, ...] = ()
    expected_fields: frozenset[str] | None = None
    tolerated_fields: frozenset[str] = frozenset()
    record_filter: Callable[[Mapping], bool] | None = None
    missing_identity_threshold: float | None = None


@dataclass
class NormalizationStats:
    """Counters collected while normalizing one response."""

    records: int = 0
    entries: int = 0
    skipped_missing_identity: int = 0
    skipped_sentinel: int = 0
    skipped_filtered: int = 0
    schema_drift: int = 0
    drift_fields: set[str] = field(default_factory=set)

    @property
    def skipped(self) -> int:
        return (
            self.skipped_missing_identity
            + self.skipped_sentinel
            + self.skipped_filtered
        )


class EntryNormalizer:
    """Maps raw upstream records into FeedEntry objects."""

    def __init__(self, profile: EntryProfile, execution_id: str | None = None):
        """Initialize the normalizer for one source profile.

        Args:
            profile: Source-specific field mapping
            execution_id: Execution ID for logging context
        """
        self.profile = profile
        self.logger = create_execution_logger("normalizer", execution_id)
        self.stats = NormalizationStats()

    def normalize_all(self, records: Iterable[Any]) -> list[FeedEntry | None]:
        """Normalize every record of one response.

        Returns one result per record, None marking a skipped record.

        Raises:
            SchemaBreakError: If the share of records without an identity
                value exceeds the profile's threshold
        """
        records = list(records)
        self.stats.records += len(records)
        results = [self.normalize(record) for record in records]

        threshold = self.profile.missing_identity_threshold
        missing = self.stats.skipped_missing_identity
        if threshold is not None and records and missing / len(records) > threshold:
            raise SchemaBreakError(
                _field_name(self.profile.identity_field),
                missing,
                len(records),
                threshold,
            )

        if self.stats.schema_drift:
            self.logger.info(
                f"Schema drift detected in {self.stats.schema_drift} records",
                drift_fields=sorted(self.stats.drift_fields),
            )
        return results

    def normalize(self, record: Any) -> FeedEntry | None:
        """Normalize one record.

        Returns:
            The entry, or None if the record has no usable identity, carries
            a sentinel value, or is rejected by the profile's filter
        """
        profile = self.profile

        identity = MISSING
        for spec in (profile.identity_field,) + profile.identity_fallbacks:
            identity = lookup(record, spec, profile.identity_kind)
            if identity is not MISSING:
                break
        if identity is MISSING:
            self.stats.skipped_missing_identity += 1
            self.logger.debug(
                "Skipping record without identity",
                identity_field=_field_name(profile.identity_field),
            )
            return None
        identity = str(identity)

        if identity in profile.sentinel_values:
            self.stats.skipped_sentinel += 1
            self.logger.debug("Skipping sentinel record", entry_id=identity)
            return None

        if profile.record_filter is not None and not profile.record_filter(record):
            self.stats.skipped_filtered += 1
            return None

        blocks = []
        for summary_field in profile.summary_fields:
            text = summary_field.render(record)
            if text:
                blocks.append(text)
        summary = "\n".join(blocks)

        updated = None
        for spec in profile.date_fields:
            updated = parse_timestamp(lookup(record, spec, (str, datetime)))
            if updated:
                break

        if profile.expected_fields is not None:
            drift = detect_drift(
                record, profile.expected_fields, profile.tolerated_fields
            )
            if drift.detected:
                self.stats.schema_drift += 1
                self.stats.drift_fields.update(drift.unexpected | drift.missing)
                summary += "\n\n" + format_drift(drift.unexpected, drift.missing)

        self.stats.entries += 1
        return FeedEntry(
            id=profile.id_builder(record, identity, updated),
            title=profile.title_builder(record, identity),
            link=profile.link_builder(record, identity),
            updated=updated,
            summary=summary.strip(),
        )


def format_drift(unexpected: set[str], missing: set[str]) -> str:
    lines = ["Schema changes detected:"]
    if unexpected:
        lines.append(f"Unexpected fields: {', '.join(sorted(unexpected))}")
    if missing:
        lines.append(f"Missing fields: {', '.join(sorted(missing))}")
    return "\n".join(lines)
