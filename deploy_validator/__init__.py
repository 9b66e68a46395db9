"""
Post-deployment validation for the localized card database site.

Samples the deployment, runs the category validators, applies the
threshold policy and reports a deploy/block verdict.
"""

__version__ = "1.0.0"
