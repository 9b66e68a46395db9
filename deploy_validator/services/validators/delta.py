"""
Incremental update (delta) system.

Steps, each reported as one result:
1. the manifest is published
2. the manifest matches its schema and lists at least one delta
3. sampled delta files exist and agree with the manifest
4. the first delta's patch applies syntactically to a synthetic document

A missing manifest is only a warning: a fresh deployment has no deltas yet.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import jsonpatch
import jsonpointer

from deploy_validator.models.delta import (
    PATCH_OPERATION_KINDS,
    Delta,
    DeltaEntry,
    DeltaManifest,
    parse_delta,
    parse_manifest,
)
from deploy_validator.models.thresholds import ThresholdConfig
from deploy_validator.models.validation import CategorySummary, ResultStatus, ValidationResult
from deploy_validator.services.retry import timed_request
from deploy_validator.services.validators.base import (
    CategoryValidator,
    ValidationContext,
    elapsed_ms,
    error_result,
)

logger = logging.getLogger(__name__)

DELTA_DIR = "/data/delta/"
MANIFEST_PATH = DELTA_DIR + "manifest.json"

# Errors raised by a well-formed operation that does not fit the synthetic
# document; these are expected and only counted.
APPLY_MISMATCH_ERRORS = (
    jsonpatch.JsonPatchException,
    jsonpointer.JsonPointerException,
    KeyError,
    IndexError,
    TypeError,
)


def synthetic_document(from_version: str) -> Dict[str, Any]:
    return {
        "version": from_version,
        "cards": {
            "1": {"id": "1", "name": "Test Card", "stats": {"max_atk": 8000}},
        },
    }


def check_manifest_structure(data: Any) -> Tuple[Optional[DeltaManifest], List[str]]:
    parsed = parse_manifest(data)
    if not parsed.ok:
        return None, [f"Manifest {issue}" for issue in parsed.issues]
    manifest = parsed.value
    if not manifest.deltas:
        return manifest, ["Manifest has no deltas (expected at least 1 after first sync)"]
    return manifest, []


def check_delta_structure(delta: Delta, entry: DeltaEntry) -> List[str]:
    issues = []

    if delta.from_version != entry.from_version:
        issues.append(f"from_version mismatch: expected {entry.from_version}, got {delta.from_version}")
    if delta.to_version != entry.to_version:
        issues.append(f"to_version mismatch: expected {entry.to_version}, got {delta.to_version}")
    if not delta.generated_at:
        issues.append("missing generated_at timestamp")

    if delta.stats is None:
        issues.append("missing stats object")
    else:
        if delta.stats.total_operations != entry.total_operations:
            issues.append(
                f"stats.total_operations mismatch: manifest says {entry.total_operations}, "
                f"delta has {delta.stats.total_operations}"
            )
        if delta.stats.computed_total != delta.stats.total_operations:
            issues.append(
                f"stats inconsistent: operation counts sum to {delta.stats.computed_total}, "
                f"but total_operations={delta.stats.total_operations}"
            )

    for index, operation in enumerate(delta.patch):
        kind = operation.get("op")
        if not kind:
            issues.append(f"patch operation {index} missing 'op' field")
        elif kind not in PATCH_OPERATION_KINDS:
            issues.append(f"patch operation {index} has invalid op: {kind}")
        if "path" not in operation:
            issues.append(f"patch operation {index} missing 'path' field")

    return issues


def apply_to_synthetic(delta: Delta) -> Tuple[List[str], int]:
    """
    Apply a delta's patch, one operation at a time, to a synthetic document.

    Returns:
        (issues, mismatch count). Issues are malformed operations that
        cannot be applied to any document.
    """
    document = synthetic_document(delta.from_version)
    issues = []
    mismatches = 0

    for index, operation in enumerate(delta.patch):
        try:
            patch = jsonpatch.JsonPatch([operation])
        except (jsonpatch.InvalidJsonPatch, jsonpointer.JsonPointerException) as e:
            issues.append(f"operation {index}: {e}")
            continue

        try:
            document = patch.apply(document)
        except jsonpatch.InvalidJsonPatch as e:
            issues.append(f"operation {index}: {e}")
        except APPLY_MISMATCH_ERRORS:
            mismatches += 1

    return issues, mismatches


class DeltaValidator(CategoryValidator):
    category = "delta_system"
    display_name = "Delta System"
    default_threshold = ThresholdConfig(min_pass_rate=0.8, is_hard_failure=False, display_name="Delta System")
    remediation = "Re-run the delta generation step and publish the manifest with its delta files"

    async def fetch_json(self, path: str, ctx: ValidationContext) -> Tuple[Optional[int], Any]:
        """
        Returns:
            (status code, parsed JSON or None when the response is not 2xx)

        Raises:
            ValueError: If a 2xx body is not valid JSON
        """
        response = await timed_request(
            ctx.client, "GET", ctx.full_url(path), ctx.timeout_ms,
            headers={"Cache-Control": "no-cache"},
        )
        if not response.is_success:
            return response.status_code, None
        try:
            return response.status_code, response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e

    async def check_delta_files(
        self,
        entries: List[DeltaEntry],
        ctx: ValidationContext
    ) -> Tuple[ValidationResult, List[str], List[Tuple[DeltaEntry, Delta]]]:
        start = time.perf_counter()
        issues: List[str] = []
        loaded: List[Tuple[DeltaEntry, Delta]] = []
        bad_files = 0

        for entry in entries:
            path = DELTA_DIR + entry.filename
            label = f"Delta {entry.from_version}->{entry.to_version}"
            try:
                status_code, data = await self.fetch_json(path, ctx)
            except Exception as e:
                issues.append(f"{label}: {e}")
                bad_files += 1
                continue

            if data is None:
                issues.append(f"Delta file not found: {entry.filename} (HTTP {status_code})")
                bad_files += 1
                continue

            parsed = parse_delta(data)
            if not parsed.ok:
                issues.extend(f"{label}: {issue}" for issue in parsed.issues)
                bad_files += 1
                continue

            delta = parsed.value
            loaded.append((entry, delta))
            structure_issues = check_delta_structure(delta, entry)
            if structure_issues:
                issues.extend(f"{label}: {issue}" for issue in structure_issues)
                bad_files += 1

        result = ValidationResult(
            url=f"{DELTA_DIR} (files)",
            status=ResultStatus.FAIL if bad_files else ResultStatus.PASS,
            error=f"{bad_files}/{len(entries)} delta files invalid" if bad_files else None,
            response_time=elapsed_ms(start),
        )
        return result, issues, loaded

    async def validate(self, ctx: ValidationContext) -> CategorySummary:
        results: List[ValidationResult] = []
        issues: List[str] = []
        details: Dict[str, Any] = {"issues": issues}

        start = time.perf_counter()
        try:
            status_code, data = await self.fetch_json(MANIFEST_PATH, ctx)
        except ValueError as e:
            results.append(ValidationResult(
                url=MANIFEST_PATH,
                status=ResultStatus.FAIL,
                error=str(e),
                response_time=elapsed_ms(start),
            ))
            issues.append(str(e))
            return self.summarize(results, details=details)
        except Exception as e:
            results.append(error_result(ValidationResult, MANIFEST_PATH, e, start))
            return self.summarize(results, details=details)

        if data is None:
            logger.warning(f"Delta manifest not found at {MANIFEST_PATH} (HTTP {status_code}); OK for a first deployment")
            issues.append(f"Delta manifest not found at {MANIFEST_PATH}")
            return self.summarize(results, warned=1, details=details)

        results.append(ValidationResult(
            url=MANIFEST_PATH,
            status=ResultStatus.PASS,
            status_code=status_code,
            response_time=elapsed_ms(start),
        ))

        manifest, manifest_issues = check_manifest_structure(data)
        issues.extend(manifest_issues)
        results.append(ValidationResult(
            url=f"{MANIFEST_PATH} (structure)",
            status=ResultStatus.FAIL if manifest_issues else ResultStatus.PASS,
            error="; ".join(manifest_issues) if manifest_issues else None,
        ))

        if manifest is None or not manifest.deltas:
            return self.summarize(results, details=details)

        details["current_version"] = manifest.current_version
        sampled = manifest.deltas[:ctx.settings.DELTA_SAMPLE_SIZE]

        files_result, file_issues, loaded = await self.check_delta_files(sampled, ctx)
        results.append(files_result)
        issues.extend(file_issues)

        if loaded:
            entry, delta = loaded[0]
            application_issues, mismatches = apply_to_synthetic(delta)
            details["application_mismatches"] = mismatches
            issues.extend(f"Delta application failed: {issue}" for issue in application_issues)
            results.append(ValidationResult(
                url=f"{DELTA_DIR}{entry.filename} (application)",
                status=ResultStatus.FAIL if application_issues else ResultStatus.PASS,
                error="; ".join(application_issues) if application_issues else None,
            ))

        for issue in issues:
            logger.warning(f"  ! {issue}")

        return self.summarize(results, details=details)
