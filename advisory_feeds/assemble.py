"""Feed assembly: ordering and identity checks over normalized entries."""

from collections.abc import Iterable

from .errors import DuplicateEntryIdError, MissingEntryIdError
from .logging_config import create_execution_logger
from .models import Feed, FeedEntry, FeedMetadata


class FeedAssembler:
    """Builds a Feed from candidate entries."""

    def __init__(self, execution_id: str | None = None):
        self.logger = create_execution_logger("assembler", execution_id)

    def assemble(
        self, metadata: FeedMetadata, candidates: Iterable[FeedEntry | None]
    ) -> Feed:
        """Drop skipped records, sort newest first and verify id uniqueness.

        Entries without a timestamp sort after every dated entry. Entries
        with equal timestamps keep their upstream order.

        Args:
            metadata: Feed-level metadata
            candidates: Normalized entries, None marking a skipped record

        Returns:
            The assembled Feed

        Raises:
            MissingEntryIdError: If an entry has an empty id
            DuplicateEntryIdError: If two entries share an id
        """
        entries = [entry for entry in candidates if entry is not None]
        entries = sorted(entries, key=lambda entry: entry.updated or "", reverse=True)

        seen_ids = set()
        duplicate_ids = []
        for entry in entries:
            if not entry.id:
                raise MissingEntryIdError(entry)
            if entry.id in seen_ids:
                if entry.id not in duplicate_ids:
                    duplicate_ids.append(entry.id)
            else:
                seen_ids.add(entry.id)

        if duplicate_ids:
            self.logger.error(
                f"Duplicate entry IDs found: {', '.join(duplicate_ids)}",
                duplicate_ids=duplicate_ids,
            )
            raise DuplicateEntryIdError(duplicate_ids)

        self.logger.info(
            f"Assembled feed with {len(entries)} entries",
            feed_title=metadata.title,
            entries_count=len(entries),
        )
        return Feed(metadata=metadata, entries=entries)
