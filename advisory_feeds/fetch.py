"""Upstream fetching and document parsing for Advisory Feeds."""

import json
from typing import Any
from urllib.parse import urlparse

import feedparser
import requests
from bs4 import BeautifulSoup

from .errors import FetchError, ParseError
from .logging_config import create_execution_logger

DEFAULT_USER_AGENT = "Advisory-Feeds/1.0 (+security advisory syndication)"


class HttpFetcher:
    """Fetches upstream documents over HTTP as text."""

    def __init__(
        self,
        timeout: float | None = 30,
        user_agent: str = DEFAULT_USER_AGENT,
        execution_id: str | None = None,
    ):
        """Initialize HttpFetcher with configuration.

        Args:
            timeout: HTTP request timeout in seconds, None waits indefinitely
            user_agent: User-Agent header sent with every request
            execution_id: Execution ID for logging context
        """
        self.timeout = timeout
        self.logger = create_execution_logger("fetcher", execution_id)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def __call__(self, url: str, headers: dict[str, str] | None = None) -> str:
        return self.fetch_text(url, headers)

    def fetch_text(self, url: str, headers: dict[str, str] | None = None) -> str:
        """Download a document and return its decoded text.

        Args:
            url: URL to fetch
            headers: Extra request headers

        Returns:
            Response body as text

        Raises:
            FetchError: If the request fails or returns an error status
        """
        scheme = urlparse(url).scheme
        if scheme not in ("http", "https"):
            self.logger.error(
                f"Refusing to fetch non-HTTP URL: {url}", feed_url=url, scheme=scheme
            )
            raise FetchError(url, f"URL must use HTTP or HTTPS, got {scheme!r}")

        self.logger.info("Downloading upstream content", feed_url=url)
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.error(
                f"Failed to download {url}: {e}", feed_url=url, error=str(e)
            )
            raise FetchError(url, str(e)) from e

        self.logger.info(
            "Upstream content downloaded successfully",
            feed_url=url,
            status_code=response.status_code,
            content_length=len(response.content),
        )
        return response.text


def parse_json(text: str) -> Any:
    """Decode a JSON response body.

    Raises:
        ParseError: If the text is not valid JSON
    """
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError("JSON response", str(e)) from e


def parse_atom(text: str) -> feedparser.FeedParserDict:
    """Parse an Atom or RSS document with feedparser.

    feedparser recovers from most malformed markup, so a document is only
    rejected when nothing feed-like could be read from it.

    Raises:
        ParseError: If the text is not a syndication feed
    """
    document = feedparser.parse(text)
    if document.bozo and not document.entries and not document.feed:
        reason = document.get("bozo_exception", "not a feed document")
        raise ParseError("feed document", str(reason))
    return document


def html_to_text(content: str | None) -> str:
    """Remove HTML tags from content and normalize whitespace.

    Args:
        content: Raw content that may contain HTML

    Returns:
        Clean text content without HTML tags
    """
    if not content:
        return ""

    if "<" not in content and ">" not in content:
        return " ".join(content.split())

    soup = BeautifulSoup(content, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()

    text = soup.get_text(separator=" ")
    return " ".join(text.split())


def first_link(content: str | None) -> str | None:
    """Return the href of the first anchor in an HTML fragment."""
    if not content or "<" not in content:
        return None
    anchor = BeautifulSoup(content, "html.parser").find("a", href=True)
    if anchor is None:
        return None
    return anchor["href"].strip() or None
