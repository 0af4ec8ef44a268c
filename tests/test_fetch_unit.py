"""Unit tests for upstream fetching and document parsing."""

from unittest.mock import Mock, patch

import pytest
import requests

from advisory_feeds.errors import FetchError, ParseError
from advisory_feeds.fetch import (
    DEFAULT_USER_AGENT,
    HttpFetcher,
    first_link,
    html_to_text,
    parse_atom,
    parse_json,
)

SAMPLE_RSS = """<?xml version="1.0"?>
<rss version="2.0">
  <channel>
    <title>Vendor advisories</title>
    <link>https://vendor.example.com/</link>
    <item>
      <title>Advisory 1</title>
      <guid>https://vendor.example.com/a/1</guid>
      <pubDate>Tue, 02 Jan 2024 10:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>
"""


class TestHttpFetcherUnit:
    """Unit tests for HttpFetcher."""

    def setup_method(self):
        self.fetcher = HttpFetcher(timeout=5, execution_id="test-exec")

    def test_session_sends_user_agent(self):
        assert self.fetcher.session.headers["User-Agent"] == DEFAULT_USER_AGENT

    def test_fetch_returns_text(self):
        response = Mock()
        response.text = '{"data": []}'
        response.content = b'{"data": []}'
        response.status_code = 200

        with patch.object(self.fetcher.session, "get", return_value=response) as mock_get:
            text = self.fetcher("https://api.example.com/data", {"Accept": "application/json"})

        assert text == '{"data": []}'
        mock_get.assert_called_once_with(
            "https://api.example.com/data",
            headers={"Accept": "application/json"},
            timeout=5,
        )
        response.raise_for_status.assert_called_once()

    def test_http_error_status_raises_fetch_error(self):
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError("503 Server Error")

        with patch.object(self.fetcher.session, "get", return_value=response):
            with pytest.raises(FetchError) as exc_info:
                self.fetcher.fetch_text("https://api.example.com/data")

        assert exc_info.value.url == "https://api.example.com/data"
        assert "503 Server Error" in str(exc_info.value)

    def test_connection_error_raises_fetch_error(self):
        with patch.object(
            self.fetcher.session, "get", side_effect=requests.ConnectionError("refused")
        ):
            with pytest.raises(FetchError):
                self.fetcher.fetch_text("https://api.example.com/data")

    @pytest.mark.parametrize(
        "url", ["file:///etc/passwd", "ftp://example.com/feed.xml", "example.com/feed"]
    )
    def test_non_http_url_is_refused(self, url):
        with patch.object(self.fetcher.session, "get") as mock_get:
            with pytest.raises(FetchError):
                self.fetcher.fetch_text(url)

        mock_get.assert_not_called()


class TestParseUnit:
    """Unit tests for response parsing helpers."""

    def test_parse_json(self):
        assert parse_json('{"items": [1, 2]}') == {"items": [1, 2]}

    def test_parse_json_invalid(self):
        with pytest.raises(ParseError) as exc_info:
            parse_json("<html>502 Bad Gateway</html>")

        assert str(exc_info.value).startswith("Failed to parse JSON response:")

    def test_parse_atom_accepts_rss(self):
        document = parse_atom(SAMPLE_RSS)

        assert document.feed.title == "Vendor advisories"
        assert [entry.id for entry in document.entries] == ["https://vendor.example.com/a/1"]

    def test_parse_atom_rejects_non_feed(self):
        with pytest.raises(ParseError):
            parse_atom("this is not a feed <<<")


class TestHtmlHelpersUnit:
    """Unit tests for HTML text helpers."""

    def test_html_to_text_strips_tags_and_scripts(self):
        html = "<p>Fixed in <b>1.2</b></p><script>alert(1)</script>\n<p>Upgrade   now</p>"

        assert html_to_text(html) == "Fixed in 1.2 Upgrade now"

    def test_html_to_text_plain_and_empty(self):
        assert html_to_text("  plain\ttext  ") == "plain text"
        assert html_to_text(None) == ""
        assert html_to_text("") == ""

    def test_first_link(self):
        html = "<a name='top'>x</a><a href=' https://example.com/a '>A</a><a href='/b'>B</a>"

        assert first_link(html) == "https://example.com/a"

    def test_first_link_without_anchor(self):
        assert first_link("plain title") is None
        assert first_link("<b>bold</b>") is None
        assert first_link(None) is None
