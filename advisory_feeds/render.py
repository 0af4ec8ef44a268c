"""Feed rendering to JSON Feed and Atom documents."""

import json
import re

from .models import Feed, RenderedFeed

ATOM = "atom"
JSON_FEED = "json"

CONTENT_TYPES = {
    ATOM: "application/atom+xml",
    JSON_FEED: "application/json",
}

JSON_FEED_VERSION = "https://jsonfeed.org/version/1"

# Characters that may not appear in an XML 1.0 document even when escaped
_ILLEGAL_XML_CHARS = re.compile(
    "[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]"
)

_XML_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    "'": "&apos;",
    '"': "&quot;",
}
_XML_SPECIAL = re.compile("[<>&'\"]")


def xml_escape(text: str | None) -> str:
    """Escape the five XML special characters.

    Args:
        text: Text to escape

    Returns:
        XML-safe text
    """
    if not text:
        return ""
    text = _ILLEGAL_XML_CHARS.sub("", str(text))
    return _XML_SPECIAL.sub(lambda match: _XML_ESCAPES[match.group()], text)


def render_json_feed(feed: Feed) -> str:
    """Serialize a feed as a JSON Feed version 1 document."""
    metadata = feed.metadata
    items = []
    for entry in feed.entries:
        item = {"id": entry.id}
        if entry.link:
            item["url"] = entry.link
        item["title"] = entry.title
        item["content_text"] = entry.summary
        if entry.updated:
            item["date_published"] = entry.updated
        items.append(item)

    document = {
        "version": JSON_FEED_VERSION,
        "title": metadata.title,
        "home_page_url": metadata.link,
        "feed_url": metadata.id,
        "items": items,
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def render_atom(feed: Feed) -> str:
    """Serialize a feed as an Atom document.

    Entries without a timestamp or link inherit the feed's own. The summary
    element is left out when an entry has no summary.
    """
    metadata = feed.metadata
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<feed xmlns="http://www.w3.org/2005/Atom">',
        "  <author>",
        "    <name>Generated</name>",
        "  </author>",
        f"  <title>{xml_escape(metadata.title)}</title>",
        f'  <link rel="self" type="application/atom+xml" href="{xml_escape(metadata.id)}" />',
        f'  <link rel="alternate" type="text/html" href="{xml_escape(metadata.link)}" />',
        f"  <updated>{xml_escape(metadata.updated)}</updated>",
        f"  <id>{xml_escape(metadata.id)}</id>",
    ]

    for entry in feed.entries:
        lines.append("  <entry>")
        lines.append(f"    <id>{xml_escape(entry.id)}</id>")
        lines.append(f"    <title>{xml_escape(entry.title)}</title>")
        lines.append(
            f"    <updated>{xml_escape(entry.updated or metadata.updated)}</updated>"
        )
        lines.append(f'    <link href="{xml_escape(entry.link or metadata.link)}" />')
        if entry.summary:
            lines.append(f"    <summary>{xml_escape(entry.summary)}</summary>")
        lines.append("  </entry>")

    lines.append("</feed>")
    return "\n".join(lines) + "\n"


RENDERERS = {
    ATOM: render_atom,
    JSON_FEED: render_json_feed,
}


def render_feed(feed: Feed, feed_format: str) -> RenderedFeed:
    """Render a feed in the requested format.

    Raises:
        ValueError: If the format is not supported
    """
    if feed_format not in RENDERERS:
        raise ValueError(f"Unsupported feed format: {feed_format}")
    return RenderedFeed(
        body=RENDERERS[feed_format](feed),
        content_type=CONTENT_TYPES[feed_format],
    )
