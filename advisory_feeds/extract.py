"""Type-checked field access and schema drift detection for raw records."""

from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

from .models import MISSING

FieldSpec = str | tuple[str, ...]


def _matches_kind(value: Any, kind: type | tuple[type, ...] | None) -> bool:
    if kind is None:
        return True
    kinds = kind if isinstance(kind, tuple) else (kind,)
    # bool is an int subclass but never a valid number here
    if isinstance(value, bool) and bool not in kinds:
        return False
    return isinstance(value, kinds)


def _is_empty(value: Any) -> bool:
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, Mapping)):
        return len(value) == 0
    return False


def extract(
    record: Any, field_name: str, kind: type | tuple[type, ...] | None = None
) -> Any:
    """Pull a field from a raw record, validating its type.

    Args:
        record: Raw record as decoded from upstream
        field_name: Name of the field to read
        kind: Accepted type or tuple of types, None accepts anything

    Returns:
        The field value, or MISSING if the record is not a mapping, the
        field is absent, null, empty, or of the wrong type
    """
    if not isinstance(record, Mapping) or field_name not in record:
        return MISSING

    value = record[field_name]
    if value is None or _is_empty(value) or not _matches_kind(value, kind):
        return MISSING
    return value


def extract_path(
    record: Any, *keys: str, kind: type | tuple[type, ...] | None = None
) -> Any:
    """Walk nested mappings, returning MISSING as soon as a level is unusable."""
    current = record
    for key in keys[:-1]:
        current = extract(current, key, Mapping)
        if current is MISSING:
            return MISSING
    return extract(current, keys[-1], kind)


def lookup(
    record: Any, spec: FieldSpec, kind: type | tuple[type, ...] | None = None
) -> Any:
    """Extract by field name or by tuple path."""
    if isinstance(spec, tuple):
        return extract_path(record, *spec, kind=kind)
    return extract(record, spec, kind)


class SchemaDrift(NamedTuple):
    """Field names that differ from the expected record schema."""

    unexpected: set[str]
    missing: set[str]

    @property
    def detected(self) -> bool:
        return bool(self.unexpected or self.missing)


def detect_drift(
    record: Any, expected: Iterable[str], tolerated: Iterable[str] = ()
) -> SchemaDrift:
    """Compare a record's field names with the expected field set.

    A renamed field shows up once in each set. Tolerated fields are optional
    extras that are neither expected nor reported as unexpected.
    """
    present = set(record.keys()) if isinstance(record, Mapping) else set()
    expected = set(expected)
    unexpected = present - expected - set(tolerated)
    missing = expected - present
    return SchemaDrift(unexpected=unexpected, missing=missing)
