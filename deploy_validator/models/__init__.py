"""Data models for the deployment validator."""

from deploy_validator.models.thresholds import (
    ThresholdConfig,
    ThresholdResult,
)
from deploy_validator.models.validation import (
    SampleCategory,
    ResultStatus,
    UrlSample,
    ValidationResult,
    SubCheck,
    CheckedPageResult,
    LinkCheckResult,
    PerformanceResult,
    ErrorPageResult,
    ApiResult,
    BundleResult,
    CategorySummary,
    ValidationSummary,
)
from deploy_validator.models.inventory import (
    Card,
    CardInventory,
)

__all__ = [
    'ThresholdConfig',
    'ThresholdResult',
    'SampleCategory',
    'ResultStatus',
    'UrlSample',
    'ValidationResult',
    'SubCheck',
    'CheckedPageResult',
    'LinkCheckResult',
    'PerformanceResult',
    'ErrorPageResult',
    'ApiResult',
    'BundleResult',
    'CategorySummary',
    'ValidationSummary',
    'Card',
    'CardInventory',
]
