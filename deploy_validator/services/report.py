"""
Run report rendering and CI outputs.

render_report() produces the human-readable text report; the writers emit
the CI key/value file and the JSON artifact. All of them read only the
ValidationSummary.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
from urllib.parse import urlparse

from deploy_validator.models.validation import CategorySummary, ValidationSummary
from deploy_validator.services.thresholds import summarize_thresholds
from deploy_validator.services.validators import CategoryValidator, REGISTRY

logger = logging.getLogger(__name__)

MAX_LISTED_FAILURES = 5
RULE = "=" * 60


def shorten_url(url: str) -> str:
    """Keep only the tail of long absolute URLs (CDN image paths)."""
    parsed = urlparse(url)
    if not parsed.scheme:
        return url
    segments = [s for s in parsed.path.split("/") if s]
    if len(segments) <= 2:
        return url
    return ".../" + "/".join(segments[-2:])


def _failure_lines(summary: CategorySummary) -> List[str]:
    failures = summary.failures()
    if not failures:
        return []

    lines = ["", f"Failed {summary.display_name}:"]
    for result in failures[:MAX_LISTED_FAILURES]:
        reason = result.describe_failure()
        if result.status_code is not None and str(result.status_code) not in reason:
            reason = f"{reason} (HTTP {result.status_code})"
        lines.append(f"  x {shorten_url(result.url)} - {reason}")
    if len(failures) > MAX_LISTED_FAILURES:
        lines.append(f"  ... and {len(failures) - MAX_LISTED_FAILURES} more")
    return lines


def _remediation_hints(
    categories: Iterable[str],
    registry: Iterable[CategoryValidator]
) -> List[str]:
    by_category = {v.category: v for v in registry}
    hints = []
    for category in categories:
        validator = by_category.get(category)
        if validator is None or not validator.remediation:
            continue
        hint = f"{validator.display_name}: {validator.remediation}"
        if hint not in hints:
            hints.append(hint)
    return hints


def render_report(
    summary: ValidationSummary,
    registry: Optional[Iterable[CategoryValidator]] = None
) -> str:
    """Render the text report for a finished run."""
    registry = list(registry) if registry is not None else REGISTRY
    verdict = summarize_thresholds(summary.threshold_results)

    lines = [
        RULE,
        "Deployment Validation Report",
        RULE,
        f"Commit: {summary.commit}",
        f"Target: {summary.target}",
        "",
    ]

    for category in summary.categories.values():
        icon = "+" if category.passed == category.total else "x"
        line = f"{icon} {category.display_name}: {category.passed}/{category.total} ({category.pass_percent:.1f}%)"
        if category.warned:
            line += f", {category.warned} warnings"
        lines.append(line)

    for category in summary.categories.values():
        lines.extend(_failure_lines(category))

    lines += ["", f"Duration: {summary.duration_ms / 1000:.1f}s", ""]

    if summary.success:
        lines.append("Status: PASSED")
        if verdict.soft_failures:
            lines += ["", "Warnings (non-blocking):"]
            lines.extend(f"  ! {r.message}" for r in verdict.soft_failures)
    else:
        lines.append("Status: FAILED")
        if verdict.hard_failures:
            lines += ["", "Hard Failures (blocking):"]
            lines.extend(f"  x {r.message}" for r in verdict.hard_failures)
        if verdict.soft_failures:
            lines += ["", "Soft Failures (warnings):"]
            lines.extend(f"  ! {r.message}" for r in verdict.soft_failures)

    if verdict.warnings:
        lines += ["", "Below 100% but within threshold:"]
        lines.extend(f"  ~ {r.message}" for r in verdict.warnings)

    failing = [r.category for r in verdict.hard_failures + verdict.soft_failures]
    hints = _remediation_hints(failing, registry)
    if hints:
        lines += ["", "How to Fix:"]
        lines.extend(f"  -> {hint}" for hint in hints)

    lines.append(RULE)
    return "\n".join(lines)


def ci_outputs(summary: ValidationSummary) -> Dict[str, str]:
    outputs = {"validation_success": "true" if summary.success else "false"}
    for key, category in summary.categories.items():
        outputs[f"{key}_passed"] = str(category.passed)
        outputs[f"{key}_total"] = str(category.total)
    return outputs


def append_outputs(outputs: Dict[str, str], path: Union[str, Path]) -> None:
    """Append key=value lines to a CI output file."""
    with open(path, "a", encoding="utf-8") as f:
        for key, value in outputs.items():
            f.write(f"{key}={value}\n")


def write_ci_outputs(summary: ValidationSummary, path: Union[str, Path]) -> None:
    append_outputs(ci_outputs(summary), path)
    logger.info(f"CI outputs written to {path}")


def write_json_report(summary: ValidationSummary, path: Union[str, Path]) -> None:
    """Write the full run summary as JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(summary.model_dump_json(indent=2), encoding="utf-8")
    logger.info(f"JSON report written to {path}")
