"""Threshold policy models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ThresholdConfig(BaseModel):
    """Pass/fail criteria for one validation category.

    When max_failures is set it is checked before min_pass_rate, so the
    stricter of the two decides.
    """
    model_config = ConfigDict(frozen=True)

    min_pass_rate: float = Field(1.0, ge=0.0, le=1.0)
    max_failures: Optional[int] = Field(None, ge=0)
    is_hard_failure: bool = True
    display_name: str


class ThresholdResult(BaseModel):
    """Verdict of one category against its threshold."""
    model_config = ConfigDict(frozen=True)

    category: str
    passed: bool
    is_hard_failure: bool
    pass_rate: float
    pass_count: int
    total_count: int
    failure_count: int
    threshold: ThresholdConfig
    message: str
