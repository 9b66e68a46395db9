"""Cloudflare Pages deployment API models."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DeploymentStage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    status: Optional[str] = None
    started_on: Optional[datetime] = None
    ended_on: Optional[datetime] = None


class TriggerMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    branch: Optional[str] = None
    commit_hash: Optional[str] = None
    commit_message: Optional[str] = None


class DeploymentTrigger(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    metadata: Optional[TriggerMetadata] = None


class Deployment(BaseModel):
    """One Pages deployment as returned by the API."""
    model_config = ConfigDict(extra="ignore")

    id: str
    short_id: str = ""
    url: str = ""
    environment: Optional[str] = None
    created_on: Optional[datetime] = None
    latest_stage: Optional[DeploymentStage] = None
    deployment_trigger: Optional[DeploymentTrigger] = None

    @property
    def commit_hash(self) -> Optional[str]:
        trigger = self.deployment_trigger
        return trigger.metadata.commit_hash if trigger and trigger.metadata else None

    @property
    def branch(self) -> Optional[str]:
        trigger = self.deployment_trigger
        return trigger.metadata.branch if trigger and trigger.metadata else None

    @property
    def stage_name(self) -> Optional[str]:
        return self.latest_stage.name if self.latest_stage else None

    @property
    def stage_status(self) -> Optional[str]:
        return self.latest_stage.status if self.latest_stage else None

    @property
    def short_hash(self) -> str:
        return self.commit_hash[:7] if self.commit_hash else "unknown"


class DeploymentsResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool
    errors: List[dict] = Field(default_factory=list)
    result: List[Deployment] = Field(default_factory=list)


class PollerResult(BaseModel):
    """Outcome of waiting for a deployment."""
    success: bool
    deployment: Optional[Deployment] = None
    short_hash: str = "unknown"
    error: Optional[str] = None
