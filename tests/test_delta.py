"""Tests for the delta system validator."""

import httpx
import pytest

from deploy_validator.models.delta import Delta, DeltaEntry, parse_manifest
from deploy_validator.models.validation import ResultStatus
from deploy_validator.services.validators.delta import (
    MANIFEST_PATH,
    DeltaValidator,
    apply_to_synthetic,
    check_delta_structure,
    check_manifest_structure,
)

from conftest import SiteSimulator, make_context, mock_client

ENTRY = {"from_version": "v1", "to_version": "v2", "patch_size": 512, "total_operations": 2}

MANIFEST = {
    "current_version": "v2",
    "oldest_supported_version": "v1",
    "deltas": [ENTRY],
}

DELTA = {
    "from_version": "v1",
    "to_version": "v2",
    "generated_at": "2026-10-01T00:00:00Z",
    "patch": [
        {"op": "replace", "path": "/cards/1/name", "value": "Renamed"},
        {"op": "add", "path": "/cards/2", "value": {"id": "2", "name": "New"}},
    ],
    "stats": {"total_operations": 2, "add_operations": 1, "replace_operations": 1},
}


def delta(**changes):
    data = dict(DELTA)
    data.update(changes)
    return Delta.model_validate(data)


def delta_site(manifest=MANIFEST, delta_doc=DELTA):
    return SiteSimulator(overrides={
        MANIFEST_PATH: httpx.Response(200, json=manifest),
        "/data/delta/v1_to_v2.json": httpx.Response(200, json=delta_doc),
    })


class TestManifestStructure:
    """Tests for manifest schema checks."""

    def test_valid_manifest(self):
        """Should accept a well-formed manifest."""
        manifest, issues = check_manifest_structure(MANIFEST)
        assert issues == []
        assert manifest.deltas[0].filename == "v1_to_v2.json"

    def test_empty_delta_list(self):
        """Should flag a manifest without deltas."""
        manifest, issues = check_manifest_structure({"current_version": "v1", "deltas": []})
        assert manifest is not None
        assert issues == ["Manifest has no deltas (expected at least 1 after first sync)"]

    def test_schema_violation(self):
        """Should report schema violations without a manifest."""
        manifest, issues = check_manifest_structure({"deltas": "nope"})
        assert manifest is None
        assert any(issue.startswith("Manifest current_version") for issue in issues)

    def test_parse_result_is_tagged(self):
        """Should mark a failed parse as not ok."""
        assert not parse_manifest([]).ok


class TestDeltaStructure:
    """Tests for delta/manifest agreement."""

    entry = DeltaEntry.model_validate(ENTRY)

    def test_consistent_delta(self):
        """Should accept a delta that matches its manifest entry."""
        assert check_delta_structure(delta(), self.entry) == []

    def test_version_mismatch(self):
        """Should flag a to_version that differs from the manifest."""
        issues = check_delta_structure(delta(to_version="v3"), self.entry)
        assert issues == ["to_version mismatch: expected v2, got v3"]

    def test_stats_must_add_up(self):
        """Should flag stats whose op counts do not sum to the total."""
        issues = check_delta_structure(
            delta(stats={"total_operations": 2, "add_operations": 2, "replace_operations": 1}),
            self.entry,
        )
        assert issues == ["stats inconsistent: operation counts sum to 3, but total_operations=2"]

    def test_invalid_operations(self):
        """Should flag unknown ops and operations without a path."""
        issues = check_delta_structure(
            delta(patch=[{"op": "frobnicate", "path": "/x"}, {"op": "remove"}]),
            self.entry,
        )
        assert "patch operation 0 has invalid op: frobnicate" in issues
        assert "patch operation 1 missing 'path' field" in issues

    def test_missing_timestamp_and_stats(self):
        """Should flag a delta without timestamp or stats."""
        issues = check_delta_structure(delta(generated_at=None, stats=None), self.entry)
        assert issues == ["missing generated_at timestamp", "missing stats object"]


class TestApplyToSynthetic:
    """Tests for applying patches to the synthetic document."""

    def test_clean_application(self):
        """Should apply a clean patch without issues or mismatches."""
        assert apply_to_synthetic(delta()) == ([], 0)

    def test_conflicts_are_counted_not_failed(self):
        """Should count conflicting operations as mismatches, not issues."""
        patch = [
            {"op": "remove", "path": "/cards/999"},
            {"op": "test", "path": "/version", "value": "other"},
            {"op": "replace", "path": "/cards/1/name", "value": "ok"},
        ]
        issues, mismatches = apply_to_synthetic(delta(patch=patch))
        assert issues == []
        assert mismatches == 2

    def test_malformed_operation_is_an_issue(self):
        """Should report a malformed operation as an issue."""
        patch = [{"op": "frobnicate", "path": "/x"}, {"op": "replace", "path": "/version", "value": "v2"}]
        issues, mismatches = apply_to_synthetic(delta(patch=patch))
        assert len(issues) == 1
        assert issues[0].startswith("operation 0:")
        assert mismatches == 0


class TestDeltaValidator:
    """Tests for DeltaValidator.validate."""

    @pytest.mark.asyncio
    async def test_missing_manifest_is_a_warning(self, make_settings):
        """Should warn with no results when the manifest is absent."""
        async with mock_client(SiteSimulator()) as client:
            summary = await DeltaValidator().validate(make_context(make_settings(), client))

        assert summary.total == 0
        assert summary.warned == 1
        assert summary.details["issues"] == [f"Delta manifest not found at {MANIFEST_PATH}"]

    @pytest.mark.asyncio
    async def test_manifest_fetched_without_cache(self, make_settings):
        """Should request the manifest with a no-cache header."""
        site = delta_site()
        async with mock_client(site) as client:
            await DeltaValidator().validate(make_context(make_settings(), client))

        manifest_request = next(r for r in site.requests if r.url.path == MANIFEST_PATH)
        assert manifest_request.headers["cache-control"] == "no-cache"

    @pytest.mark.asyncio
    async def test_healthy_delta_system(self, make_settings):
        """Should pass all four checks on a healthy delta system."""
        async with mock_client(delta_site()) as client:
            summary = await DeltaValidator().validate(make_context(make_settings(), client))

        assert [r.url for r in summary.results] == [
            MANIFEST_PATH,
            f"{MANIFEST_PATH} (structure)",
            "/data/delta/ (files)",
            "/data/delta/v1_to_v2.json (application)",
        ]
        assert summary.passed == 4
        assert summary.details["current_version"] == "v2"
        assert summary.details["application_mismatches"] == 0

    @pytest.mark.asyncio
    async def test_bad_operation_fails_files_and_application(self, make_settings):
        """Should fail the files and application checks on a bad operation."""
        bad = dict(DELTA, patch=[{"op": "frobnicate", "path": "/x"}, DELTA["patch"][1]])
        async with mock_client(delta_site(delta_doc=bad)) as client:
            summary = await DeltaValidator().validate(make_context(make_settings(), client))

        statuses = {r.url: r.status for r in summary.results}
        assert statuses["/data/delta/ (files)"] == ResultStatus.FAIL
        assert statuses["/data/delta/v1_to_v2.json (application)"] == ResultStatus.FAIL
        assert summary.passed == 2

    @pytest.mark.asyncio
    async def test_missing_delta_file(self, make_settings):
        """Should fail the files check when a listed delta is missing."""
        site = SiteSimulator(overrides={MANIFEST_PATH: httpx.Response(200, json=MANIFEST)})
        async with mock_client(site) as client:
            summary = await DeltaValidator().validate(make_context(make_settings(), client))

        files = next(r for r in summary.results if r.url == "/data/delta/ (files)")
        assert files.status == ResultStatus.FAIL
        assert "Delta file not found: v1_to_v2.json (HTTP 404)" in summary.details["issues"]
        assert "application_mismatches" not in summary.details

    @pytest.mark.asyncio
    async def test_invalid_manifest_json_fails(self, make_settings):
        """Should fail when the manifest is not valid JSON."""
        site = SiteSimulator(overrides={
            MANIFEST_PATH: httpx.Response(200, content=b"{", headers={"content-type": "application/json"}),
        })
        async with mock_client(site) as client:
            summary = await DeltaValidator().validate(make_context(make_settings(), client))

        assert summary.total == 1
        assert summary.results[0].status == ResultStatus.FAIL
        assert summary.results[0].error.startswith("Invalid JSON in /data/delta/manifest.json")

    @pytest.mark.asyncio
    async def test_unreachable_manifest_is_error(self, make_settings):
        """Should record an error when the manifest cannot be fetched."""
        def refused(request):
            raise httpx.ConnectError("connection refused", request=request)

        site = SiteSimulator(overrides={MANIFEST_PATH: refused})
        async with mock_client(site) as client:
            summary = await DeltaValidator().validate(make_context(make_settings(), client))

        assert summary.results[0].status == ResultStatus.ERROR
