"""Command line interface for deploy-validator."""

import asyncio
import logging
import sys
from typing import List, Optional

import typer
from pydantic import ValidationError
from pydantic_settings import SettingsError

from deploy_validator import __version__
from deploy_validator.services.deployment_poller import DeploymentPoller, write_poller_outputs
from deploy_validator.services.orchestrator import run_validation
from deploy_validator.services.report import render_report, write_ci_outputs, write_json_report
from deploy_validator.services.thresholds import default_thresholds, load_thresholds
from deploy_validator.services.validators import REGISTRY
from deploy_validator.utils.config import ConfigurationError, environ_with_dotenv, load_settings
from deploy_validator.utils.logging import redact_dict, setup_logging

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="deploy-validator",
    help="Post-deployment validation: sample the site, check it, block bad deploys",
    add_completion=False,
)


def _load(overrides: dict):
    try:
        settings = load_settings(**{k: v for k, v in overrides.items() if v is not None})
    except (ConfigurationError, SettingsError, ValidationError) as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error(f"Invalid configuration: {e}")
        raise typer.Exit(1)
    setup_logging(settings)
    logger.debug(f"Effective configuration: {redact_dict(settings.model_dump())}")
    return settings


@app.command()
def validate(
    url: Optional[str] = typer.Option(
        None,
        "--url",
        "-u",
        help="Deployment base URL (overrides VALIDATION_URL)"
    ),
    skip: Optional[List[str]] = typer.Option(
        None,
        "--skip",
        help="Category key to skip; may be repeated (overrides SKIP_CATEGORIES)"
    ),
    report_json: Optional[str] = typer.Option(
        None,
        "--report-json",
        help="Write the full run summary as JSON to this path"
    ),
):
    """
    Validate a deployment and exit 0 (deploy OK) or 1 (blocked).
    """
    settings = _load({
        "VALIDATION_URL": url,
        "SKIP_CATEGORIES": skip or None,
        "REPORT_JSON_PATH": report_json,
    })
    thresholds = load_thresholds(environ_with_dotenv(), default_thresholds(REGISTRY))

    try:
        summary = asyncio.run(run_validation(settings, thresholds))
    except Exception:
        logger.exception("Validation failed with error")
        raise typer.Exit(1)

    typer.echo(render_report(summary))

    if settings.GITHUB_OUTPUT:
        write_ci_outputs(summary, settings.GITHUB_OUTPUT)
    if settings.REPORT_JSON_PATH:
        write_json_report(summary, settings.REPORT_JSON_PATH)

    raise typer.Exit(0 if summary.success else 1)


@app.command("wait-for-deployment")
def wait_for_deployment(
    branch: Optional[str] = typer.Option(
        None,
        "--branch",
        "-b",
        help="Branch whose preview deployment to wait for (overrides TARGET_BRANCH)"
    ),
):
    """
    Wait for the Cloudflare Pages preview deployment of the current commit.
    """
    settings = _load({"TARGET_BRANCH": branch})

    try:
        result = asyncio.run(DeploymentPoller(settings).wait_for_deployment())
    except Exception:
        logger.exception("Deployment polling failed with error")
        raise typer.Exit(1)

    if settings.GITHUB_OUTPUT:
        write_poller_outputs(result, settings.GITHUB_OUTPUT)

    if not result.success:
        logger.error(f"Deployment polling failed: {result.error}")
        raise typer.Exit(1)

    typer.echo(result.deployment.url if result.deployment else "")


@app.command()
def version():
    """Show version information."""
    typer.echo(f"deploy-validator {__version__}")


def main():
    """Main CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Interrupted", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
