"""Property-based tests for the feed renderers."""

import json
import xml.etree.ElementTree as ET

from hypothesis import given
from hypothesis import strategies as st

from advisory_feeds.models import Feed, FeedEntry, FeedMetadata
from advisory_feeds.render import render_atom, render_json_feed, xml_escape

ATOM_NS = {"atom": "http://www.w3.org/2005/Atom"}

xml_text = st.text(
    alphabet=st.one_of(
        st.sampled_from("<>&'\""),
        st.characters(blacklist_categories=("Cs", "Cc", "Cn")),
    ),
    max_size=60,
)


def unescape(text: str) -> str:
    for escaped, original in (
        ("&lt;", "<"),
        ("&gt;", ">"),
        ("&apos;", "'"),
        ("&quot;", '"'),
        ("&amp;", "&"),
    ):
        text = text.replace(escaped, original)
    return text


class TestRenderProperties:
    """Property-based tests for the renderers."""

    @given(xml_text)
    def test_escaping_is_reversible(self, text):
        """
        For any text containing the XML special characters, reversing the five
        escapes reproduces the original text.
        """
        escaped = xml_escape(text)

        assert not any(char in escaped for char in "<>'\"")
        assert unescape(escaped) == text

    @given(
        st.lists(xml_text.filter(lambda text: text.strip()), max_size=8, unique=True),
        xml_text,
    )
    def test_atom_and_json_carry_the_same_entries(self, ids, title):
        """
        For any entry set, the Atom and JSON Feed renderings contain the same
        number of entries with the same ids, and both parse.
        """
        feed = Feed(
            metadata=FeedMetadata(title=title, link="https://example.com", id="https://example.com/feed"),
            entries=[FeedEntry(id=entry_id, title=title, summary=title) for entry_id in ids],
        )

        root = ET.fromstring(render_atom(feed))
        atom_ids = [entry.find("atom:id", ATOM_NS).text for entry in root.findall("atom:entry", ATOM_NS)]
        json_ids = [item["id"] for item in json.loads(render_json_feed(feed))["items"]]

        assert len(atom_ids) == len(json_ids) == len(ids)
        assert set(atom_ids) == set(json_ids) == set(ids)
