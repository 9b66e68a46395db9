"""Utility modules for the deployment validator."""

from deploy_validator.utils.config import (
    Settings,
    ConfigurationError,
    load_settings,
    validate_settings,
)
from deploy_validator.utils.logging import setup_logging, redact_dict

__all__ = [
    'Settings',
    'ConfigurationError',
    'load_settings',
    'validate_settings',
    'setup_logging',
    'redact_dict',
]
