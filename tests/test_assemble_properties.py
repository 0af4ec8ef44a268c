"""Property-based tests for the feed assembler."""

from datetime import datetime

import pytest
from hypothesis import given
from hypothesis import strategies as st

from advisory_feeds.assemble import FeedAssembler
from advisory_feeds.errors import DuplicateEntryIdError
from advisory_feeds.models import FeedEntry, FeedMetadata

timestamps = st.one_of(
    st.none(),
    st.datetimes(
        min_value=datetime(2000, 1, 1),
        max_value=datetime(2030, 12, 31),
    ).map(lambda value: value.strftime("%Y-%m-%dT%H:%M:%S.000Z")),
)

METADATA = FeedMetadata(title="t", link="https://example.com", id="https://example.com/feed")


class TestFeedAssemblerProperties:
    """Property-based tests for FeedAssembler."""

    @given(st.lists(timestamps, max_size=25))
    def test_sorted_non_increasing_and_stable(self, stamps):
        """
        For any entry set, the assembled order is non-increasing by timestamp,
        undated entries come last, and ties keep their input order.
        """
        candidates = [FeedEntry(id=f"entry-{i}", updated=stamp) for i, stamp in enumerate(stamps)]

        feed = FeedAssembler().assemble(METADATA, candidates)

        keys = [entry.updated or "" for entry in feed.entries]
        assert keys == sorted(keys, reverse=True)

        dated = [entry for entry in feed.entries if entry.updated]
        assert feed.entries[: len(dated)] == dated

        for earlier, later in zip(feed.entries, feed.entries[1:]):
            if (earlier.updated or "") == (later.updated or ""):
                assert int(earlier.id.split("-")[1]) < int(later.id.split("-")[1])

    @given(
        st.lists(st.text(min_size=1, max_size=5), min_size=1, max_size=10),
        st.data(),
    )
    def test_any_repeated_id_fails(self, ids, data):
        """For any entry set containing a repeated id, assembly fails."""
        duplicate = data.draw(st.sampled_from(ids))
        candidates = [FeedEntry(id=entry_id) for entry_id in ids + [duplicate]]

        with pytest.raises(DuplicateEntryIdError) as exc_info:
            FeedAssembler().assemble(METADATA, candidates)

        assert duplicate in exc_info.value.ids
