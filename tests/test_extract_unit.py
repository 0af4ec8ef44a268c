"""Unit tests for field extraction and schema drift detection."""

from collections.abc import Mapping

from advisory_feeds.extract import detect_drift, extract, extract_path, lookup
from advisory_feeds.models import MISSING


class TestExtractUnit:
    """Unit tests for extract, extract_path and lookup."""

    def test_present_field_with_matching_kind(self):
        record = {"CVE": "CVE-2021-1", "score": 7.5}

        assert extract(record, "CVE", str) == "CVE-2021-1"
        assert extract(record, "score", (int, float)) == 7.5

    def test_absent_null_and_mistyped_fields_are_missing(self):
        record = {"severity": None, "advisories": "RHSA-1", "count": True}

        assert extract(record, "CVE", str) is MISSING
        assert extract(record, "severity", str) is MISSING
        assert extract(record, "advisories", list) is MISSING
        # bool is never a number
        assert extract(record, "count", (int, float)) is MISSING

    def test_empty_values_are_missing_but_zero_is_present(self):
        record = {"details": "   ", "fix_versions": [], "cvss": {}, "score": 0}

        assert extract(record, "details", str) is MISSING
        assert extract(record, "fix_versions", list) is MISSING
        assert extract(record, "cvss", Mapping) is MISSING
        assert extract(record, "score", (int, float)) == 0

    def test_non_mapping_record_is_missing(self):
        assert extract(["CVE"], "CVE") is MISSING
        assert extract(None, "CVE") is MISSING
        assert extract("CVE-2021-1", "CVE") is MISSING

    def test_missing_sentinel_is_falsy(self):
        assert not MISSING
        assert repr(MISSING) == "MISSING"

    def test_extract_path_walks_nested_mappings(self):
        record = {"commit": {"committer": {"date": "2024-01-01T00:00:00Z"}}}

        assert extract_path(record, "commit", "committer", "date", kind=str) == (
            "2024-01-01T00:00:00Z"
        )
        assert extract_path(record, "commit", "author", "date", kind=str) is MISSING
        assert extract_path({"commit": "oops"}, "commit", "message", kind=str) is MISSING

    def test_lookup_accepts_names_and_paths(self):
        record = {"title": "t", "repository": {"full_name": "jenkinsci/core"}}

        assert lookup(record, "title", str) == "t"
        assert lookup(record, ("repository", "full_name"), str) == "jenkinsci/core"


class TestDetectDriftUnit:
    """Unit tests for detect_drift."""

    EXPECTED = {"issue_id", "cve_id", "severity"}

    def test_matching_schema_has_no_drift(self):
        drift = detect_drift(
            {"issue_id": "MMSA-1", "cve_id": None, "severity": "High"}, self.EXPECTED
        )

        assert drift.unexpected == set()
        assert drift.missing == set()
        assert not drift.detected

    def test_added_and_removed_fields(self):
        drift = detect_drift({"issue_id": "MMSA-1", "score": 3}, self.EXPECTED)

        assert drift.unexpected == {"score"}
        assert drift.missing == {"cve_id", "severity"}
        assert drift.detected

    def test_renamed_field_shows_up_once_in_each_set(self):
        drift = detect_drift(
            {"issue_id": "MMSA-1", "cve": "CVE-1", "severity": "Low"}, self.EXPECTED
        )

        assert drift.unexpected == {"cve"}
        assert drift.missing == {"cve_id"}

    def test_tolerated_fields_are_not_unexpected(self):
        drift = detect_drift(
            {"issue_id": "a", "cve_id": "b", "severity": "c", "cvss3_score": "7"},
            self.EXPECTED,
            tolerated={"cvss3_score"},
        )

        assert not drift.detected

    def test_non_mapping_record_misses_everything(self):
        drift = detect_drift("not a record", self.EXPECTED)

        assert drift.unexpected == set()
        assert drift.missing == self.EXPECTED
