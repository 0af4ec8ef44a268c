"""Upstream advisory sources and their normalization profiles.

Each source is a configuration value consumed by the shared pipeline: where
to fetch, how to find the records in the response, and how to map one record
to a feed entry.
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urlencode

from .errors import MissingParameterError, ParseError, UnknownSourceError
from .extract import extract, extract_path
from .fetch import first_link, html_to_text
from .models import MISSING, FeedMetadata
from .normalize import EntryProfile, SummaryField

Params = Mapping[str, str]

NUMBER = (int, float)

# Share of records allowed to lack an identity before the response is
# treated as a schema break rather than a few bad records.
DEFAULT_MISSING_IDENTITY_THRESHOLD = 0.5


@dataclass(frozen=True)
class SourceDefinition:
    """Everything the pipeline needs to know about one upstream source.

    Attributes:
        name: Registry key, also used in logs and metrics
        data_url: Builds the upstream URL from request parameters
        title: Builds the feed title from request parameters
        link: Builds the feed home page URL from request parameters
        profile: Builds the entry profile from parameters and the feed base URL
        required_params: Parameters that must be present and non-empty
        document_format: "json" or "atom"
        records_path: Keys leading to the record list in a JSON document
        request_headers: Extra headers sent with the upstream request
        retitle: Optional hook adjusting feed metadata once the document is parsed
    """

    name: str
    data_url: Callable[[Params], str]
    title: Callable[[Params], str]
    link: Callable[[Params], str]
    profile: Callable[[Params, str], EntryProfile]
    required_params: tuple[str, ...] = ()
    document_format: str = "json"
    records_path: tuple[str, ...] = ()
    request_headers: dict[str, str] = field(default_factory=dict)
    retitle: Callable[[FeedMetadata, Any, Params], FeedMetadata] | None = None

    def check_params(self, params: Params) -> None:
        """Raise MissingParameterError if a required parameter is absent."""
        missing = [
            name
            for name in self.required_params
            if not isinstance(params.get(name), str) or not params[name].strip()
        ]
        if missing:
            raise MissingParameterError(missing)

    def metadata(self, params: Params, base_url: str) -> FeedMetadata:
        return FeedMetadata(title=self.title(params), link=self.link(params), id=base_url)

    def records(self, document: Any) -> list:
        """Locate the record list inside a parsed document.

        Raises:
            ParseError: If the document does not have the expected shape
        """
        if self.document_format == "atom":
            return list(document.entries)

        records = document
        for key in self.records_path:
            records = records.get(key) if isinstance(records, Mapping) else None
        if not isinstance(records, list):
            where = ".".join(self.records_path) or "top level"
            raise ParseError(
                f"{self.name} response",
                f"expected a list of records at {where}, got {type(records).__name__}",
            )
        return records


# Red Hat Security Data API

REDHAT_API_URL = "https://access.redhat.com/hydra/rest/securitydata/cve.json"
REDHAT_CVE_URL = "https://access.redhat.com/security/cve/"
REDHAT_FILTER_PARAMS = ("after", "before", "severity", "cwe", "cvss_score", "per_page")


def _redhat_data_url(params: Params) -> str:
    query = {"package": params["package"]}
    for name in REDHAT_FILTER_PARAMS:
        if params.get(name):
            query[name] = params[name]
    return f"{REDHAT_API_URL}?{urlencode(query)}"


def _redhat_title(record: Mapping, cve: str) -> str:
    description = extract(record, "bugzilla_description", str)
    return f"{cve}: {description or 'No description available'}"


def _redhat_profile(params: Params, base_url: str) -> EntryProfile:
    return EntryProfile(
        identity_field="CVE",
        title_builder=_redhat_title,
        link_builder=lambda record, cve: REDHAT_CVE_URL + quote(cve),
        summary_fields=(
            SummaryField("severity", "Severity"),
            SummaryField("bugzilla_description", "Description"),
            SummaryField("cvss3_score", "CVSS v3 Score", kind=(str,) + NUMBER),
            SummaryField("CWE", "CWE"),
            SummaryField("advisories", "Advisories", kind=list, style="list"),
            SummaryField(
                "affected_packages", "Affected Packages", kind=list, style="bullets"
            ),
        ),
        date_fields=("public_date",),
        expected_fields=frozenset(
            {
                "CVE",
                "severity",
                "public_date",
                "advisories",
                "bugzilla",
                "bugzilla_description",
                "cvss_score",
                "cvss_scoring_vector",
                "CWE",
                "affected_packages",
                "package_state",
                "resource_url",
            }
        ),
        # only present on newer CVEs
        tolerated_fields=frozenset({"cvss3_scoring_vector", "cvss3_score"}),
        missing_identity_threshold=DEFAULT_MISSING_IDENTITY_THRESHOLD,
    )


REDHAT = SourceDefinition(
    name="redhat",
    data_url=_redhat_data_url,
    title=lambda params: f"Red Hat Security Data API - CVEs for {params['package']}",
    link=lambda params: "https://access.redhat.com/security/security-updates/cve",
    profile=_redhat_profile,
    required_params=("package",),
)


# Mattermost security updates

MATTERMOST_SENTINELS = frozenset({"Issue Identifier"})


def _mattermost_title(record: Mapping, issue_id: str) -> str:
    cve_id = extract(record, "cve_id", str)
    return f"{issue_id} ({cve_id})" if cve_id else issue_id


def _collapse_tabs(text: str) -> str:
    return re.sub(r"\n\t+", " ", text).strip()


def _mattermost_profile(params: Params, base_url: str) -> EntryProfile:
    def entry_id(record: Mapping, issue_id: str, updated: str | None) -> str:
        key = f"{issue_id}_{updated or ''}"
        return f"{base_url}#{quote(key, safe='')}"

    return EntryProfile(
        identity_field="issue_id",
        title_builder=_mattermost_title,
        id_builder=entry_id,
        sentinel_values=MATTERMOST_SENTINELS,
        summary_fields=(
            SummaryField("severity", "Severity", kind=(str,) + NUMBER),
            SummaryField("affected_versions", "Affected versions", kind=(str, list), style="list"),
            SummaryField("fix_versions", "Fix versions", kind=(str, list), style="list"),
            SummaryField("details", style="paragraph", transform=_collapse_tabs),
            SummaryField("platform", "Platform"),
        ),
        date_fields=("fix_release_date",),
        expected_fields=frozenset(
            {
                "issue_id",
                "cve_id",
                "severity",
                "affected_versions",
                "fix_release_date",
                "fix_versions",
                "details",
                "platform",
            }
        ),
        missing_identity_threshold=DEFAULT_MISSING_IDENTITY_THRESHOLD,
    )


MATTERMOST = SourceDefinition(
    name="mattermost",
    data_url=lambda params: "https://securityupdates.mattermost.com/security_updates.json",
    title=lambda params: "Mattermost Security Updates",
    link=lambda params: "https://mattermost.com/security-updates/",
    profile=_mattermost_profile,
)


# NVIDIA product security bulletins

def _nvidia_profile(params: Params, base_url: str) -> EntryProfile:
    def entry_id(record: Mapping, title: str, updated: str | None) -> str:
        bulletin_id = extract(record, "bulletin id", (str, int))
        if bulletin_id is not MISSING:
            return f"{base_url}#bulletin-{quote(str(bulletin_id), safe='')}"
        slug = re.sub(r"[^a-zA-Z0-9]+", "-", html_to_text(title))
        return f"{base_url}#{slug}"

    return EntryProfile(
        identity_field="title",
        title_builder=lambda record, title: html_to_text(title),
        id_builder=entry_id,
        link_builder=lambda record, title: first_link(title),
        summary_fields=(
            SummaryField("severity", "Severity"),
            SummaryField("cve identifier(s)", "CVE Identifier(s)", kind=(str, list), style="list"),
            SummaryField("publish date", "Published"),
            SummaryField("last updated", "Last Updated"),
        ),
        date_fields=("last updated", "publish date"),
        expected_fields=frozenset(
            {
                "title",
                "bulletin id",
                "severity",
                "cve identifier(s)",
                "publish date",
                "last updated",
            }
        ),
        missing_identity_threshold=DEFAULT_MISSING_IDENTITY_THRESHOLD,
    )


NVIDIA = SourceDefinition(
    name="nvidia",
    data_url=lambda params: (
        "https://www.nvidia.com/content/dam/en-zz/Solutions/"
        "product-security/product-security.json"
    ),
    title=lambda params: "NVIDIA Security Bulletins",
    link=lambda params: "https://www.nvidia.com/en-us/product-security/",
    profile=_nvidia_profile,
    records_path=("data",),
)


# GitHub repository security advisories

GITHUB_ADVISORY_FIELDS = frozenset(
    {
        "ghsa_id",
        "cve_id",
        "url",
        "html_url",
        "summary",
        "description",
        "severity",
        "author",
        "publisher",
        "identifiers",
        "state",
        "created_at",
        "updated_at",
        "published_at",
        "closed_at",
        "withdrawn_at",
        "submission",
        "vulnerabilities",
        "cvss_severities",
        "cwes",
        "cwe_ids",
        "credits",
        "credits_detailed",
        "collaborating_users",
        "collaborating_teams",
        "private_fork",
        "cvss",
    }
)


def _repository(params: Params) -> str:
    return f"{params['owner']}/{params['repo']}"


def _github_profile(params: Params, base_url: str) -> EntryProfile:
    repository = _repository(params)

    def title(record: Mapping, ghsa_id: str) -> str:
        summary = extract(record, "summary", str)
        return f"{repository} {ghsa_id}: {summary}" if summary else f"{repository} {ghsa_id}"

    def entry_id(record: Mapping, ghsa_id: str, updated: str | None) -> str:
        owner, repo = quote(params["owner"], safe=""), quote(params["repo"], safe="")
        return f"https://github.com/{owner}/{repo}/security/advisories/{quote(ghsa_id)}"

    def link(record: Mapping, ghsa_id: str) -> str | None:
        return extract(record, "html_url", str) or None

    return EntryProfile(
        identity_field="ghsa_id",
        title_builder=title,
        id_builder=entry_id,
        link_builder=link,
        summary_fields=(
            SummaryField("summary", "Summary"),
            SummaryField("description", "Description"),
            SummaryField("severity", "Severity"),
            SummaryField(
                "cvss",
                kind=Mapping,
                style="object",
                subfields=(
                    ("score", "CVSS Score", NUMBER),
                    ("vector_string", "CVSS Vector", str),
                ),
            ),
            SummaryField("cve_id"),
        ),
        date_fields=("updated_at", "published_at", "created_at"),
        expected_fields=GITHUB_ADVISORY_FIELDS,
        missing_identity_threshold=DEFAULT_MISSING_IDENTITY_THRESHOLD,
    )


GITHUB = SourceDefinition(
    name="github",
    data_url=lambda params: (
        f"https://api.github.com/repos/{quote(params['owner'], safe='')}/"
        f"{quote(params['repo'], safe='')}/security-advisories"
    ),
    title=lambda params: f"Security Advisories for {_repository(params)}",
    link=lambda params: f"https://github.com/{_repository(params)}/security/advisories",
    profile=_github_profile,
    required_params=("owner", "repo"),
    request_headers={"Accept": "application/vnd.github+json"},
)


# Jenkins security commits found through the GitHub commit search API

def _first_line(text: str) -> str:
    return text.split("\n", 1)[0].strip()


def _jenkins_title(record: Mapping, html_url: str) -> str:
    repository = extract_path(record, "repository", "full_name", kind=str)
    message = extract_path(record, "commit", "message", kind=str)
    if repository and message:
        return f"{repository}: {_first_line(message)}"
    return _first_line(message) if message else html_url


def _jenkins_profile(params: Params, base_url: str) -> EntryProfile:
    return EntryProfile(
        identity_field="html_url",
        title_builder=_jenkins_title,
        link_builder=lambda record, html_url: html_url,
        summary_fields=(
            SummaryField(("repository", "full_name"), "Repository"),
            SummaryField(("commit", "author", "name"), "Author"),
            SummaryField(("commit", "message"), style="paragraph"),
        ),
        date_fields=(("commit", "committer", "date"), ("commit", "author", "date")),
        expected_fields=frozenset(
            {
                "url",
                "sha",
                "node_id",
                "html_url",
                "comments_url",
                "commit",
                "author",
                "committer",
                "parents",
                "repository",
                "score",
            }
        ),
        tolerated_fields=frozenset({"text_matches"}),
        missing_identity_threshold=DEFAULT_MISSING_IDENTITY_THRESHOLD,
    )


JENKINS = SourceDefinition(
    name="jenkins",
    data_url=lambda params: (
        "https://api.github.com/search/commits"
        "?sort=committer-date&order=desc&q=org:jenkinsci%20security"
    ),
    title=lambda params: "Jenkins Security Commit Search",
    link=lambda params: (
        "https://github.com/search?o=desc&q=org%3Ajenkinsci+security"
        "&s=committer-date&type=Commits"
    ),
    profile=_jenkins_profile,
    records_path=("items",),
    request_headers={"Accept": "application/vnd.github+json"},
)


# Generic Atom/RSS feed filtered by a regular expression

REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    # no Python equivalent, accepted for compatibility with JavaScript flags
    "g": 0,
    "u": 0,
    "y": 0,
}


def compile_filter(pattern: str, flags: str | None) -> re.Pattern:
    """Compile a regex using JavaScript-style flag letters.

    Raises:
        ValueError: If a flag letter is unknown
        re.error: If the pattern is invalid
    """
    value = 0
    for letter in flags or "":
        if letter not in REGEX_FLAGS:
            raise ValueError(f"Unsupported regex flag: {letter!r}")
        value |= REGEX_FLAGS[letter]
    return re.compile(pattern, value)


def entry_text(record: Mapping) -> str:
    """Flatten the searchable text of a parsed feed entry."""
    parts = []
    for name in ("id", "title", "link", "summary", "author"):
        value = extract(record, name, str)
        if value:
            parts.append(value)
    for content in extract(record, "content", list) or []:
        value = extract(content, "value", str)
        if value:
            parts.append(value)
    for tag in extract(record, "tags", list) or []:
        value = extract(tag, "term", str)
        if value:
            parts.append(value)
    return "\n".join(parts)


def _atom_regex_profile(params: Params, base_url: str) -> EntryProfile:
    matcher = compile_filter(params["regex"], params.get("flags"))

    return EntryProfile(
        identity_field="id",
        # RSS items without a <guid> have no id
        identity_fallbacks=("link",),
        title_builder=lambda record, entry_id: extract(record, "title", str) or entry_id,
        link_builder=lambda record, entry_id: extract(record, "link", str) or None,
        summary_fields=(
            SummaryField("author", "Author"),
            SummaryField("summary", style="paragraph", transform=html_to_text),
        ),
        date_fields=("updated", "published"),
        record_filter=lambda record: matcher.search(entry_text(record)) is not None,
        missing_identity_threshold=DEFAULT_MISSING_IDENTITY_THRESHOLD,
    )


def _atom_regex_retitle(metadata: FeedMetadata, document: Any, params: Params) -> FeedMetadata:
    original_title = extract(document.feed, "title", str) or ""
    metadata.title = (
        f"/{params['regex']}/{params.get('flags') or ''} Filtered Feed: {original_title}"
    )
    metadata.link = extract(document.feed, "link", str) or metadata.link
    return metadata


ATOM_REGEX = SourceDefinition(
    name="atom-regex",
    data_url=lambda params: params["url"],
    title=lambda params: f"/{params['regex']}/{params.get('flags') or ''} Filtered Feed",
    link=lambda params: params["url"],
    profile=_atom_regex_profile,
    required_params=("url", "regex"),
    document_format="atom",
    retitle=_atom_regex_retitle,
)


SOURCES = {
    source.name: source
    for source in (REDHAT, MATTERMOST, NVIDIA, GITHUB, JENKINS, ATOM_REGEX)
}


def get_source(name: str | None) -> SourceDefinition:
    """Look up a registered source by name.

    Raises:
        UnknownSourceError: If no source is registered under that name
    """
    if not name or name not in SOURCES:
        raise UnknownSourceError(name)
    return SOURCES[name]
