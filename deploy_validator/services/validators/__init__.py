"""
Category validators.

REGISTRY fixes the order categories run and appear in the report. Each
entry carries its own display name, default threshold and remediation hint.
"""

from typing import List

from deploy_validator.services.validators.base import CategoryValidator, ValidationContext
from deploy_validator.services.validators.locale_redirects import LocaleRedirectValidator
from deploy_validator.services.validators.pages import PageValidator
from deploy_validator.services.validators.html_sanity import HtmlSanityValidator
from deploy_validator.services.validators.js_bundles import JsBundleValidator
from deploy_validator.services.validators.links import LinkValidator
from deploy_validator.services.validators.seo import SeoValidator
from deploy_validator.services.validators.accessibility import AccessibilityValidator
from deploy_validator.services.validators.api_endpoints import ApiEndpointValidator
from deploy_validator.services.validators.performance import PerformanceValidator
from deploy_validator.services.validators.error_pages import ErrorPageValidator
from deploy_validator.services.validators.delta import DeltaValidator
from deploy_validator.services.validators.images import ImageValidator


def default_registry() -> List[CategoryValidator]:
    return [
        LocaleRedirectValidator(),
        PageValidator(),
        HtmlSanityValidator(),
        JsBundleValidator(),
        LinkValidator(),
        SeoValidator(),
        AccessibilityValidator(),
        ApiEndpointValidator(),
        PerformanceValidator(),
        ErrorPageValidator(),
        DeltaValidator(),
        ImageValidator(),
    ]


REGISTRY = default_registry()


def get_validator(category: str) -> CategoryValidator:
    for validator in REGISTRY:
        if validator.category == category:
            return validator
    raise KeyError(f"Unknown validation category: {category}")


__all__ = [
    'CategoryValidator',
    'ValidationContext',
    'REGISTRY',
    'default_registry',
    'get_validator',
]
