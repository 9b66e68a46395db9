"""
Validation result models.

A single validation run produces:
- UrlSample records (what to probe)
- ValidationResult records (one per probed item, per category)
- CategorySummary records (one per category, derived from its results)
- ValidationSummary (the run-level aggregate handed to report writers)
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny

from deploy_validator.models.thresholds import ThresholdResult


class SampleCategory(str, Enum):
    """Sampling strategy a URL was drawn with."""
    CARD = "card"
    LIST = "list"
    BLOG = "blog"
    STATIC = "static"
    IMAGE = "image"


class ResultStatus(str, Enum):
    """Outcome of a single validation.

    FAIL means the target answered but broke a checked condition;
    ERROR means no verdict could be obtained.
    """
    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"


class UrlSample(BaseModel):
    """A URL chosen for validation."""
    model_config = ConfigDict(frozen=True)

    url: str
    category: SampleCategory
    locale: Optional[str] = None

    @property
    def is_absolute(self) -> bool:
        return self.url.startswith(("http://", "https://"))


class ValidationResult(BaseModel):
    """Result of validating a single URL."""
    url: str
    status: ResultStatus
    status_code: Optional[int] = None
    error: Optional[str] = None
    response_time: Optional[int] = Field(None, description="Milliseconds")

    @property
    def passed(self) -> bool:
        return self.status == ResultStatus.PASS

    def describe_failure(self) -> str:
        """Short failure reason for reports."""
        if self.error:
            return self.error
        if self.status_code is not None:
            return f"HTTP {self.status_code}"
        return self.status.value


class SubCheck(BaseModel):
    """One named structural check against a page's markup."""
    name: str
    passed: bool
    count: Optional[int] = None
    detail: Optional[str] = None


class CheckedPageResult(ValidationResult):
    """Page result carrying the battery of markup sub-checks."""
    checks: List[SubCheck] = Field(default_factory=list)

    @property
    def failed_checks(self) -> List[SubCheck]:
        return [c for c in self.checks if not c.passed]

    def describe_failure(self) -> str:
        failed = self.failed_checks
        if failed and not self.error:
            return ", ".join(
                f"{c.name} ({c.detail})" if c.detail else c.name for c in failed
            )
        return super().describe_failure()


class LinkCheckResult(ValidationResult):
    """Internal link target resolution."""
    source: str
    resolved_from_sample: bool = False


class PerformanceResult(ValidationResult):
    """Response time and payload measurement."""
    payload_size: Optional[int] = None
    is_slow_but_passed: bool = False


class ErrorPageResult(ValidationResult):
    """Not-found handling for a deliberately invalid path."""
    has_proper_content: bool = False
    has_back_link: bool = False
    detection: Literal["server", "client", "none"] = "none"


class ApiResult(ValidationResult):
    """JSON data endpoint check."""
    description: str
    validation_errors: List[str] = Field(default_factory=list)


class BundleResult(ValidationResult):
    """JavaScript bundle availability."""
    content_type: Optional[str] = None
    size: Optional[int] = None


class CategorySummary(BaseModel):
    """Aggregated outcome of one validation category."""
    model_config = ConfigDict(frozen=True)

    category: str
    display_name: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    warned: int = 0
    results: List[SerializeAsAny[ValidationResult]] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_results(
        cls,
        category: str,
        display_name: str,
        results: Sequence[ValidationResult],
        warned: int = 0,
        details: Optional[Dict[str, Any]] = None
    ) -> "CategorySummary":
        passed = sum(1 for r in results if r.status == ResultStatus.PASS)
        return cls(
            category=category,
            display_name=display_name,
            total=len(results),
            passed=passed,
            failed=len(results) - passed,
            warned=warned,
            results=list(results),
            details=details or {},
        )

    @property
    def errored(self) -> int:
        return sum(1 for r in self.results if r.status == ResultStatus.ERROR)

    @property
    def pass_percent(self) -> float:
        return (self.passed / self.total * 100) if self.total else 100.0

    def failures(self) -> List[ValidationResult]:
        return [r for r in self.results if r.status != ResultStatus.PASS]


class ValidationSummary(BaseModel):
    """Run-level aggregate of a deployment validation."""
    model_config = ConfigDict(frozen=True)

    target: str
    commit: str = "unknown"
    started_at: datetime
    categories: Dict[str, CategorySummary] = Field(default_factory=dict)
    threshold_results: List[ThresholdResult] = Field(default_factory=list)
    success: bool
    hard_failures: int = 0
    soft_failures: int = 0
    duration_ms: int = 0
