"""Fetch, normalize, assemble and render one feed per request."""

import traceback
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .assemble import FeedAssembler
from .fetch import parse_atom, parse_json
from .logging_config import create_execution_logger
from .models import Feed, FeedEntry, FeedMetadata, RenderedFeed
from .normalize import EntryNormalizer, NormalizationStats
from .render import ATOM, RENDERERS, render_feed
from .sources import SourceDefinition

Fetch = Callable[[str, dict[str, str] | None], str]


@dataclass
class FeedContext:
    """Capabilities shared by every request of one process.

    Attributes:
        fetch: Returns the text body of a URL, raising on transport failure
        base_url: Public URL of this handler, used as the feed id
        default_format: Feed format used when a request does not choose one
    """

    fetch: Fetch
    base_url: str
    default_format: str = "atom"


@dataclass
class PipelineMetrics:
    """Outcome of one pipeline run, reported in logs and metrics."""

    source: str
    entries_rendered: int = 0
    records_skipped: int = 0
    records_with_schema_drift: int = 0
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "entries_rendered": self.entries_rendered,
            "records_skipped": self.records_skipped,
            "records_with_schema_drift": self.records_with_schema_drift,
            "errors": list(self.errors),
        }


class FeedPipeline:
    """Runs one source end to end and always yields a valid feed."""

    def __init__(
        self,
        source: SourceDefinition,
        params: Mapping[str, str],
        context: FeedContext,
        execution_id: str | None = None,
    ):
        """Initialize the pipeline for one request.

        Args:
            source: Upstream source definition
            params: Request parameters, already checked for required names
            context: Process-wide capabilities
            execution_id: Execution ID for logging context
        """
        self.source = source
        self.params = params
        self.context = context
        self.execution_id = execution_id
        self.logger = create_execution_logger("pipeline", execution_id)
        self.metadata = source.metadata(params, context.base_url)
        self.data_url = source.data_url(params)
        self.response_text: str | None = None
        self.metrics = PipelineMetrics(source=source.name)

    def build_feed(self) -> Feed:
        """Fetch the upstream document and turn it into an assembled feed.

        Raises:
            Exception: Any failure from fetch, parse, normalization or assembly
        """
        self.logger.info(
            f"Fetching {self.source.name} data",
            source=self.source.name,
            feed_url=self.data_url,
        )
        self.response_text = self.context.fetch(
            self.data_url, dict(self.source.request_headers) or None
        )

        if self.source.document_format == "atom":
            document = parse_atom(self.response_text)
            if document.bozo:
                self.logger.warning(
                    f"Feed parsing warning: {document.get('bozo_exception')}",
                    feed_url=self.data_url,
                )
        else:
            document = parse_json(self.response_text)

        if self.source.retitle is not None:
            self.metadata = self.source.retitle(self.metadata, document, self.params)

        normalizer = EntryNormalizer(
            self.source.profile(self.params, self.context.base_url),
            execution_id=self.execution_id,
        )
        candidates = normalizer.normalize_all(self.source.records(document))
        self._record_stats(normalizer.stats)

        assembler = FeedAssembler(execution_id=self.execution_id)
        return assembler.assemble(self.metadata, candidates)

    def error_feed(self, error: BaseException) -> Feed:
        """Build a one-entry feed describing a failure."""
        details = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        ).strip()
        summary = (
            f"Error generating feed from {self.data_url}\n\n"
            f"{details}\n\n"
            f"{self.response_text or ''}"
        )
        entry = FeedEntry(
            id=f"{self.metadata.id}#error",
            title="Error",
            summary=summary.strip(),
        )
        return Feed(metadata=self.metadata, entries=[entry])

    def run(self, feed_format: str | None = None) -> RenderedFeed:
        """Run the pipeline and render the result.

        Any failure is rendered as an error feed instead of being raised.
        """
        feed_format = feed_format or self.context.default_format
        if feed_format not in RENDERERS:
            fallback = (
                self.context.default_format
                if self.context.default_format in RENDERERS
                else ATOM
            )
            self.logger.warning(
                f"Unsupported feed format {feed_format!r}, rendering {fallback}",
                source=self.source.name,
            )
            feed_format = fallback

        try:
            feed = self.build_feed()
            rendered = render_feed(feed, feed_format)
            self.metrics.entries_rendered = len(feed.entries)
        except Exception as e:
            self.logger.error(
                f"Failed to generate {self.source.name} feed: {e}",
                source=self.source.name,
                feed_url=self.data_url,
                error=str(e),
            )
            self.metrics.errors.append(str(e))
            rendered = render_feed(self.error_feed(e), feed_format)
        return rendered

    def _record_stats(self, stats: NormalizationStats) -> None:
        self.metrics.records_skipped = stats.skipped
        self.metrics.records_with_schema_drift = stats.schema_drift
        self.logger.info(
            f"Normalized {stats.entries} of {stats.records} records",
            source=self.source.name,
            records=stats.records,
            entries=stats.entries,
            skipped=stats.skipped,
            schema_drift=stats.schema_drift,
        )
