"""
Cloudflare Pages deployment poller.

Waits until the preview deployment for a commit has finished deploying
and reports its URL, so validation can target it.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Union

import httpx
from pydantic import ValidationError

from deploy_validator.models.deployment import Deployment, DeploymentsResponse, PollerResult
from deploy_validator.services.report import append_outputs
from deploy_validator.utils.config import Settings

logger = logging.getLogger(__name__)

PREVIEW = "preview"
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def short_hash(commit: Optional[str]) -> str:
    return commit[:7] if commit else "unknown"


def format_elapsed(seconds: float) -> str:
    seconds = int(seconds)
    minutes, remainder = divmod(seconds, 60)
    return f"{minutes}m {remainder}s" if minutes else f"{seconds}s"


def _newest_first(deployments: List[Deployment]) -> List[Deployment]:
    return sorted(deployments, key=lambda d: d.created_on or _EPOCH, reverse=True)


def _on_branch(deployments: List[Deployment], branch: str) -> List[Deployment]:
    return [d for d in deployments if d.environment == PREVIEW and d.branch == branch]


def commit_matches(deployed: Optional[str], wanted: str) -> bool:
    """Full or abbreviated hashes match in either direction."""
    if not deployed:
        return False
    return deployed == wanted or deployed.startswith(wanted) or wanted.startswith(deployed)


def find_by_commit(deployments: List[Deployment], commit: str, branch: str) -> Optional[Deployment]:
    for deployment in _on_branch(deployments, branch):
        if commit_matches(deployment.commit_hash, commit):
            return deployment
    return None


def find_latest_for_branch(deployments: List[Deployment], branch: str) -> Optional[Deployment]:
    """
    Latest deployment on the branch worth waiting for.

    In-progress, successful and idle deployments are returned as-is; if the
    latest one failed, fall back to the most recent success.
    """
    candidates = _newest_first(_on_branch(deployments, branch))
    if not candidates:
        return None

    latest = candidates[0]
    if latest.stage_status in ("active", "success", "idle"):
        return latest

    for deployment in candidates:
        if deployment.stage_status == "success":
            return deployment
    return None


def find_last_successful(deployments: List[Deployment], branch: str) -> Optional[Deployment]:
    for deployment in _newest_first(_on_branch(deployments, branch)):
        if deployment.stage_status == "success" and deployment.stage_name == "deploy":
            return deployment
    return None


class DeploymentPoller:
    """Polls the Pages deployments API until the target deployment settles."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        self.settings = settings
        self.client = client
        self.sleep = sleep
        self.clock = clock
        self.commit = settings.GITHUB_SHA
        self.branch = settings.TARGET_BRANCH

    @property
    def deployments_url(self) -> str:
        s = self.settings
        return (
            f"{s.CLOUDFLARE_API_BASE.rstrip('/')}/accounts/{s.CLOUDFLARE_ACCOUNT_ID}"
            f"/pages/projects/{s.CLOUDFLARE_PROJECT_NAME}/deployments"
        )

    async def fetch_deployments(self, client: httpx.AsyncClient) -> DeploymentsResponse:
        response = await client.get(
            self.deployments_url,
            params={"env": PREVIEW},
            headers={
                "Authorization": f"Bearer {self.settings.CLOUDFLARE_API_TOKEN}",
                "Content-Type": "application/json",
            },
        )
        if not response.is_success:
            raise RuntimeError(f"Cloudflare API error: {response.status_code} {response.reason_phrase}")
        return DeploymentsResponse.model_validate(response.json())

    def select(self, deployments: List[Deployment]) -> Optional[Deployment]:
        if not self.commit:
            return find_latest_for_branch(deployments, self.branch)

        deployment = find_by_commit(deployments, self.commit, self.branch)
        if deployment is None:
            deployment = find_latest_for_branch(deployments, self.branch)
            if deployment is not None:
                logger.info(
                    f"Commit {short_hash(self.commit)} not found, using latest: {deployment.short_hash}"
                )
        return deployment

    async def wait_for_deployment(self) -> PollerResult:
        s = self.settings
        if not s.CLOUDFLARE_API_TOKEN or not s.CLOUDFLARE_ACCOUNT_ID:
            return PollerResult(
                success=False,
                error="Missing CLOUDFLARE_API_TOKEN or CLOUDFLARE_ACCOUNT_ID",
            )

        logger.info(
            f"Waiting for {s.CLOUDFLARE_PROJECT_NAME} on {self.branch} "
            f"({'commit ' + short_hash(self.commit) if self.commit else 'latest on branch'}), "
            f"max {s.MAX_POLL_SECONDS:.0f}s, every {s.POLL_INTERVAL_SECONDS:.0f}s"
        )

        if self.client is not None:
            return await self._poll(self.client)
        async with httpx.AsyncClient(timeout=30.0) as client:
            return await self._poll(client)

    async def _poll(self, client: httpx.AsyncClient) -> PollerResult:
        s = self.settings
        started = self.clock()
        last_status = ""
        idle_since: Optional[float] = None

        while self.clock() - started < s.MAX_POLL_SECONDS:
            elapsed = format_elapsed(self.clock() - started)

            try:
                response = await self.fetch_deployments(client)
            except (httpx.HTTPError, RuntimeError, ValueError, ValidationError) as e:
                logger.warning(f"[{elapsed}] Error polling: {e}")
                await self.sleep(s.POLL_INTERVAL_SECONDS)
                continue

            if not response.success:
                logger.warning(f"[{elapsed}] API error {response.errors}, retrying...")
                await self.sleep(s.POLL_INTERVAL_SECONDS)
                continue

            deployment = self.select(response.result)
            if deployment is None:
                logger.info(f"[{elapsed}] Waiting for deployment of {short_hash(self.commit)}...")
                await self.sleep(s.POLL_INTERVAL_SECONDS)
                continue

            status_key = f"{deployment.stage_name}:{deployment.stage_status}"
            if status_key != last_status:
                logger.info(f"[{elapsed}] [{deployment.short_hash}] {deployment.stage_name}: {deployment.stage_status}")
                last_status = status_key

            if deployment.stage_status == "success" and deployment.stage_name == "deploy":
                logger.info(f"Deployment {deployment.short_id} ready at {deployment.url} after {elapsed}")
                return PollerResult(success=True, deployment=deployment, short_hash=deployment.short_hash)

            if deployment.stage_status in ("failure", "canceled"):
                return PollerResult(
                    success=False,
                    deployment=deployment,
                    short_hash=deployment.short_hash,
                    error=(
                        f"Deployment {deployment.stage_status} at stage \"{deployment.stage_name}\": "
                        f"{deployment.short_id} ({deployment.short_hash})"
                    ),
                )

            if deployment.stage_status == "idle" and deployment.stage_name == "queued":
                if idle_since is None:
                    idle_since = self.clock()
                elif self.clock() - idle_since > s.IDLE_TIMEOUT_SECONDS:
                    logger.warning(
                        f"[{elapsed}] Deployment {deployment.short_hash} appears to be skipped "
                        f"(idle for {format_elapsed(s.IDLE_TIMEOUT_SECONDS)})"
                    )
                    previous = find_last_successful(response.result, self.branch)
                    if previous is None:
                        return PollerResult(
                            success=False,
                            short_hash=deployment.short_hash,
                            error=(
                                f"Deployment {deployment.short_hash} was skipped and no "
                                f"previous successful deployment found"
                            ),
                        )
                    logger.info(f"Using last successful deployment {previous.short_id} at {previous.url}")
                    return PollerResult(success=True, deployment=previous, short_hash=previous.short_hash)
            else:
                idle_since = None

            await self.sleep(s.POLL_INTERVAL_SECONDS)

        return PollerResult(
            success=False,
            short_hash=short_hash(self.commit),
            error=(
                f"Timeout waiting for deployment of {short_hash(self.commit)} "
                f"after {format_elapsed(s.MAX_POLL_SECONDS)}"
            ),
        )


def write_poller_outputs(result: PollerResult, path: Union[str, Path]) -> None:
    outputs = {
        "deployment_success": "true" if result.success else "false",
        "short_hash": result.short_hash or "unknown",
    }
    if result.deployment is not None:
        outputs["deployment_id"] = result.deployment.short_id
        outputs["deployment_url"] = result.deployment.url
    append_outputs(outputs, path)
