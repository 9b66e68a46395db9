"""
Threshold policy engine.

Turns per-category pass/total counts into verdicts and splits failing
categories into hard (deployment-blocking) and soft (warning-only) ones.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping

from deploy_validator.models.thresholds import ThresholdConfig, ThresholdResult

logger = logging.getLogger(__name__)

TRUE_VALUES = ("true", "1")
FALSE_VALUES = ("false", "0")


@dataclass
class ThresholdSummary:
    """Aggregate verdict across categories."""
    overall_passed: bool
    hard_failures: List[ThresholdResult] = field(default_factory=list)
    soft_failures: List[ThresholdResult] = field(default_factory=list)
    warnings: List[ThresholdResult] = field(default_factory=list)


def default_thresholds(registry: Iterable) -> Dict[str, ThresholdConfig]:
    """Default threshold per category, as declared by each registered validator."""
    return {validator.category: validator.default_threshold for validator in registry}


def _env_key(category: str, suffix: str) -> str:
    return f"THRESHOLD_{category.upper()}_{suffix}"


def load_thresholds(
    environ: Mapping[str, str],
    defaults: Mapping[str, ThresholdConfig]
) -> Dict[str, ThresholdConfig]:
    """
    Apply THRESHOLD_<CATEGORY>_* overrides from an environment snapshot.

    Supported suffixes: MIN_PASS_RATE (float in [0, 1]), MAX_FAILURES
    (non-negative int), HARD_FAILURE (true/1 or false/0). Invalid values
    are ignored with a warning.
    """
    thresholds = {}

    for category, config in defaults.items():
        updates = {}

        key = _env_key(category, "MIN_PASS_RATE")
        raw = environ.get(key)
        if raw:
            try:
                rate = float(raw)
                if not 0.0 <= rate <= 1.0:
                    raise ValueError(raw)
                updates["min_pass_rate"] = rate
            except ValueError:
                logger.warning(f"Ignoring {key}={raw!r}: expected a number between 0 and 1")

        key = _env_key(category, "MAX_FAILURES")
        raw = environ.get(key)
        if raw:
            try:
                cap = int(raw)
                if cap < 0:
                    raise ValueError(raw)
                updates["max_failures"] = cap
            except ValueError:
                logger.warning(f"Ignoring {key}={raw!r}: expected a non-negative integer")

        key = _env_key(category, "HARD_FAILURE")
        raw = environ.get(key)
        if raw:
            value = raw.strip().lower()
            if value in TRUE_VALUES:
                updates["is_hard_failure"] = True
            elif value in FALSE_VALUES:
                updates["is_hard_failure"] = False
            else:
                logger.warning(f"Ignoring {key}={raw!r}: expected true/false")

        if updates:
            logger.info(f"Threshold override for {category}: {updates}")
            thresholds[category] = config.model_copy(update=updates)
        else:
            thresholds[category] = config

    return thresholds


def evaluate_threshold(
    category: str,
    passed: int,
    total: int,
    thresholds: Mapping[str, ThresholdConfig]
) -> ThresholdResult:
    """
    Evaluate one category's counts against its threshold.

    A category with nothing to validate passes. Otherwise the max_failures
    cap, when set, is checked before the minimum pass rate. Categories with
    no configured threshold get a strict hard-failure default.
    """
    threshold = thresholds.get(category) or ThresholdConfig(display_name=category)
    name = threshold.display_name

    if total == 0:
        return ThresholdResult(
            category=category,
            passed=True,
            is_hard_failure=threshold.is_hard_failure,
            pass_rate=1.0,
            pass_count=0,
            total_count=0,
            failure_count=0,
            threshold=threshold,
            message=f"{name}: No items to validate",
        )

    failure_count = total - passed
    pass_rate = passed / total

    if threshold.max_failures is not None and failure_count > threshold.max_failures:
        return ThresholdResult(
            category=category,
            passed=False,
            is_hard_failure=threshold.is_hard_failure,
            pass_rate=pass_rate,
            pass_count=passed,
            total_count=total,
            failure_count=failure_count,
            threshold=threshold,
            message=f"{name}: {failure_count} failures exceeds max {threshold.max_failures}",
        )

    meets_rate = pass_rate >= threshold.min_pass_rate
    if meets_rate:
        message = f"{name}: {passed}/{total} passed ({pass_rate * 100:.1f}%)"
    else:
        message = (
            f"{name}: {pass_rate * 100:.1f}% passed, "
            f"below {threshold.min_pass_rate * 100:.1f}% threshold"
        )

    return ThresholdResult(
        category=category,
        passed=meets_rate,
        is_hard_failure=threshold.is_hard_failure,
        pass_rate=pass_rate,
        pass_count=passed,
        total_count=total,
        failure_count=failure_count,
        threshold=threshold,
        message=message,
    )


def summarize_thresholds(results: Iterable[ThresholdResult]) -> ThresholdSummary:
    """Overall verdict: passes iff no hard failure."""
    results = list(results)
    hard = [r for r in results if not r.passed and r.is_hard_failure]
    soft = [r for r in results if not r.passed and not r.is_hard_failure]
    warnings = [r for r in results if r.passed and r.pass_rate < 1]
    return ThresholdSummary(
        overall_passed=not hard,
        hard_failures=hard,
        soft_failures=soft,
        warnings=warnings,
    )
