"""Custom exceptions for Advisory Feeds.

Errors raised between fetch and render are turned into a synthetic error
feed by the pipeline. Parameter and routing errors are reported to the
caller as plain text before any fetch happens.
"""


class AdvisoryFeedError(Exception):
    """Base exception class for all Advisory Feeds errors."""

    pass


class MissingParameterError(AdvisoryFeedError):
    """Raised when required request parameters are absent.

    Attributes:
        names: The missing parameter names, in declaration order.
    """

    def __init__(self, names: list[str]):
        self.names = list(names)
        super().__init__(f"Missing required parameters: {', '.join(self.names)}")


class UnknownSourceError(AdvisoryFeedError):
    """Raised when a request names a source that is not registered."""

    def __init__(self, name: str | None):
        self.name = name
        super().__init__(f"Unknown feed source: {name or '(none)'}")


class FetchError(AdvisoryFeedError):
    """Raised when the upstream request fails.

    Attributes:
        url: The URL that was requested.
    """

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Failed to fetch {url}: {message}")


class ParseError(AdvisoryFeedError):
    """Raised when upstream content cannot be decoded into records."""

    def __init__(self, what: str, message: str):
        self.what = what
        super().__init__(f"Failed to parse {what}: {message}")


class SchemaBreakError(AdvisoryFeedError):
    """Raised when too many records lack their identity field.

    Attributes:
        missing: Number of records without an identity value.
        total: Number of records in the response.
    """

    def __init__(self, field_name: str, missing: int, total: int, threshold: float):
        self.field_name = field_name
        self.missing = missing
        self.total = total
        self.threshold = threshold
        super().__init__(
            f"{missing} of {total} records lack required field '{field_name}' "
            f"(threshold {threshold:.0%}), upstream schema has likely changed"
        )


class DuplicateEntryIdError(AdvisoryFeedError):
    """Raised when two normalized entries share the same id."""

    def __init__(self, ids: list[str]):
        self.ids = list(ids)
        super().__init__(f"Duplicate entry IDs found: {', '.join(self.ids)}")


class MissingEntryIdError(AdvisoryFeedError):
    """Raised when a normalized entry has an empty id."""

    def __init__(self, entry):
        self.entry = entry
        super().__init__(f"Missing entry ID: {entry!r}")


class InvalidParameterError(AdvisoryFeedError):
    """Raised when a request parameter has an unsupported value."""

    def __init__(self, name: str, value: str, allowed: list[str]):
        self.name = name
        self.value = value
        super().__init__(
            f"Invalid value for parameter {name}: {value!r} "
            f"(expected one of: {', '.join(allowed)})"
        )
