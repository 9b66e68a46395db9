"""Tests for the Cloudflare Pages deployment poller."""

import httpx
import pytest

from deploy_validator.models.deployment import Deployment, PollerResult
from deploy_validator.services.deployment_poller import (
    DeploymentPoller,
    commit_matches,
    find_by_commit,
    find_last_successful,
    find_latest_for_branch,
    format_elapsed,
    write_poller_outputs,
)

COMMIT = "0123456789abcdef"


def deployment(id, commit=COMMIT, stage="deploy", status="success", branch="dev", created="2026-10-18T10:00:00Z"):
    return {
        "id": id,
        "short_id": id[:8],
        "url": f"https://{id[:8]}.otogidb.pages.dev",
        "environment": "preview",
        "created_on": created,
        "latest_stage": {"name": stage, "status": status},
        "deployment_trigger": {
            "type": "github:push",
            "metadata": {"branch": branch, "commit_hash": commit, "commit_message": "update"},
        },
    }


def parse(*items):
    return [Deployment.model_validate(item) for item in items]


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.now += seconds


class CloudflareApi:
    """Serves a scripted sequence of deployment listings."""

    def __init__(self, *pages):
        self.pages = list(pages)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        page = self.pages.pop(0) if len(self.pages) > 1 else self.pages[0]
        if isinstance(page, httpx.Response):
            return page
        return httpx.Response(200, json={"success": True, "errors": [], "result": page})


@pytest.fixture
def poller_settings(make_settings):
    def factory(**overrides):
        values = dict(
            CLOUDFLARE_API_TOKEN="cf-token",
            CLOUDFLARE_ACCOUNT_ID="acc123",
            CLOUDFLARE_API_BASE="https://api.cloudflare.test/client/v4",
            TARGET_BRANCH="dev",
            POLL_INTERVAL_SECONDS=15,
            MAX_POLL_SECONDS=600,
            IDLE_TIMEOUT_SECONDS=45,
        )
        values.update(overrides)
        return make_settings(**values)
    return factory


async def wait(settings, api):
    clock = FakeClock()
    async with httpx.AsyncClient(transport=httpx.MockTransport(api)) as client:
        poller = DeploymentPoller(settings, client=client, sleep=clock.sleep, clock=clock)
        result = await poller.wait_for_deployment()
    return result, clock


class TestSelection:
    """Tests for deployment selection helpers."""

    def test_commit_matches_either_direction(self):
        """Should match short and full hashes in either order."""
        assert commit_matches("0123456789abcdef", "0123456")
        assert commit_matches("0123456", "0123456789abcdef")
        assert not commit_matches("fedcba9", "0123456")
        assert not commit_matches(None, "0123456")

    def test_find_by_commit_ignores_other_branches(self):
        """Should only match deployments on the target branch."""
        deployments = parse(deployment("a" * 10, branch="main"), deployment("b" * 10))
        assert find_by_commit(deployments, "0123456", "dev").id == "b" * 10

    def test_latest_failed_falls_back_to_last_success(self):
        """Should fall back to the last success when the latest failed."""
        deployments = parse(
            deployment("new", status="failure", created="2026-10-18T12:00:00Z"),
            deployment("old", status="success", created="2026-10-18T09:00:00Z"),
        )
        assert find_latest_for_branch(deployments, "dev").id == "old"

    def test_latest_in_progress_is_returned(self):
        """Should return the latest deployment while it is in progress."""
        deployments = parse(
            deployment("old", created="2026-10-18T09:00:00Z"),
            deployment("new", stage="build", status="active", created="2026-10-18T12:00:00Z"),
        )
        assert find_latest_for_branch(deployments, "dev").id == "new"

    def test_last_successful_requires_deploy_stage(self):
        """Should only count deployments that finished the deploy stage."""
        deployments = parse(
            deployment("built", stage="build", status="success", created="2026-10-18T12:00:00Z"),
            deployment("deployed", created="2026-10-18T09:00:00Z"),
        )
        assert find_last_successful(deployments, "dev").id == "deployed"

    def test_format_elapsed(self):
        """Should format seconds as seconds or minutes and seconds."""
        assert format_elapsed(42.7) == "42s"
        assert format_elapsed(125) == "2m 5s"


class TestWaitForDeployment:
    """Tests for DeploymentPoller.wait_for_deployment."""

    @pytest.mark.asyncio
    async def test_missing_credentials(self, poller_settings):
        """Should fail without calling the API when credentials are missing."""
        poller = DeploymentPoller(poller_settings(CLOUDFLARE_API_TOKEN=None))
        result = await poller.wait_for_deployment()

        assert not result.success
        assert result.error == "Missing CLOUDFLARE_API_TOKEN or CLOUDFLARE_ACCOUNT_ID"

    @pytest.mark.asyncio
    async def test_waits_until_deployed(self, poller_settings):
        """Should poll until the commit's deployment succeeds."""
        api = CloudflareApi(
            [],
            [deployment("d1", stage="build", status="active")],
            [deployment("d1", stage="deploy", status="success")],
        )
        result, clock = await wait(poller_settings(), api)

        assert result.success
        assert result.deployment.url == "https://d1.otogidb.pages.dev"
        assert result.short_hash == "0123456"
        assert clock.now == 30

        request = api.requests[0]
        assert request.url.path == "/client/v4/accounts/acc123/pages/projects/otogidb/deployments"
        assert request.url.params["env"] == "preview"
        assert request.headers["authorization"] == "Bearer cf-token"

    @pytest.mark.asyncio
    async def test_failed_deployment(self, poller_settings):
        """Should fail with the stage and status of a failed deployment."""
        api = CloudflareApi([deployment("d1", stage="build", status="failure")])
        result, _ = await wait(poller_settings(), api)

        assert not result.success
        assert result.error == 'Deployment failure at stage "build": d1 (0123456)'

    @pytest.mark.asyncio
    async def test_api_errors_are_retried(self, poller_settings):
        """Should keep polling through API errors."""
        api = CloudflareApi(
            httpx.Response(500),
            httpx.Response(200, json={"success": False, "errors": [{"code": 10000}], "result": []}),
            [deployment("d1")],
        )
        result, clock = await wait(poller_settings(), api)

        assert result.success
        assert clock.now == 30

    @pytest.mark.asyncio
    async def test_timeout(self, poller_settings):
        """Should give up after the maximum poll time."""
        api = CloudflareApi([deployment("d1", stage="build", status="active")])
        result, clock = await wait(poller_settings(MAX_POLL_SECONDS=60), api)

        assert not result.success
        assert result.error == "Timeout waiting for deployment of 0123456 after 1m 0s"
        assert clock.now == 60

    @pytest.mark.asyncio
    async def test_skipped_deployment_uses_last_success(self, poller_settings):
        """Should use the last success when the deployment stays queued."""
        listing = [
            deployment("queued1", stage="queued", status="idle", created="2026-10-18T12:00:00Z"),
            deployment("previous", commit="fedcba9876", created="2026-10-18T09:00:00Z"),
        ]
        result, clock = await wait(poller_settings(), CloudflareApi(listing))

        assert result.success
        assert result.deployment.id == "previous"
        assert result.short_hash == "fedcba9"
        assert clock.now == 60

    @pytest.mark.asyncio
    async def test_skipped_without_previous_success(self, poller_settings):
        """Should fail when a skipped deployment has no successful predecessor."""
        listing = [deployment("queued1", stage="queued", status="idle")]
        result, _ = await wait(poller_settings(), CloudflareApi(listing))

        assert not result.success
        assert "was skipped and no previous successful deployment found" in result.error

    @pytest.mark.asyncio
    async def test_unknown_commit_uses_latest_on_branch(self, poller_settings):
        """Should use the latest deployment on the branch for an unknown commit."""
        listing = [deployment("other", commit="fedcba9876")]
        result, _ = await wait(poller_settings(GITHUB_SHA="aaaaaaa"), CloudflareApi(listing))

        assert result.success
        assert result.deployment.id == "other"


class TestPollerOutputs:
    """Tests for write_poller_outputs."""

    def test_success_outputs(self, tmp_path):
        """Should write the deployment id, URL and hash on success."""
        path = tmp_path / "out"
        result = PollerResult(
            success=True,
            deployment=Deployment.model_validate(deployment("d1abcdefgh")),
            short_hash="0123456",
        )
        write_poller_outputs(result, path)

        assert path.read_text().splitlines() == [
            "deployment_success=true",
            "short_hash=0123456",
            "deployment_id=d1abcdef",
            "deployment_url=https://d1abcdef.otogidb.pages.dev",
        ]

    def test_failure_outputs(self, tmp_path):
        """Should write only the status and an unknown hash on failure."""
        path = tmp_path / "out"
        write_poller_outputs(PollerResult(success=False, error="boom"), path)

        assert path.read_text().splitlines() == ["deployment_success=false", "short_hash=unknown"]
