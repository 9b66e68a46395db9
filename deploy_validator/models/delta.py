"""
Incremental update (delta) file schemas.

Manifest and delta documents come from the deployment under test, so they
are parsed at the boundary into a tagged ParseResult instead of raising
inside the validator.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError


PATCH_OPERATION_KINDS = ("add", "remove", "replace", "move", "copy", "test")


class DeltaEntry(BaseModel):
    """Manifest entry describing one available delta file."""
    model_config = ConfigDict(extra="allow")

    from_version: str = Field(..., min_length=1)
    to_version: str = Field(..., min_length=1)
    patch_size: int
    total_operations: int

    @property
    def filename(self) -> str:
        return f"{self.from_version}_to_{self.to_version}.json"


class DeltaManifest(BaseModel):
    """Index of the current content version and its delta files."""
    model_config = ConfigDict(extra="allow")

    current_version: str = Field(..., min_length=1)
    oldest_supported_version: Optional[str] = None
    deltas: List[DeltaEntry]


class DeltaStats(BaseModel):
    model_config = ConfigDict(extra="allow")

    total_operations: int
    add_operations: int = 0
    remove_operations: int = 0
    replace_operations: int = 0
    move_operations: int = 0
    copy_operations: int = 0
    test_operations: int = 0

    @property
    def computed_total(self) -> int:
        return (
            self.add_operations + self.remove_operations + self.replace_operations
            + self.move_operations + self.copy_operations + self.test_operations
        )


class Delta(BaseModel):
    """One incremental update file.

    Patch operations are kept as published; their kind and path are checked
    by the validator so each bad operation is reported individually.
    """
    model_config = ConfigDict(extra="allow")

    from_version: str
    to_version: str
    generated_at: Optional[str] = None
    patch: List[Dict[str, Any]]
    stats: Optional[DeltaStats] = None


@dataclass
class ParseResult:
    """Tagged outcome of schema-checked parsing."""
    ok: bool
    value: Optional[BaseModel] = None
    issues: List[str] = field(default_factory=list)


def _format_errors(error: ValidationError) -> List[str]:
    issues = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "document"
        issues.append(f"{location}: {item['msg']}")
    return issues


def parse_document(model: Type[BaseModel], data: Any) -> ParseResult:
    """Validate raw JSON data against a schema model."""
    try:
        return ParseResult(ok=True, value=model.model_validate(data))
    except ValidationError as e:
        return ParseResult(ok=False, issues=_format_errors(e))


def parse_manifest(data: Any) -> ParseResult:
    return parse_document(DeltaManifest, data)


def parse_delta(data: Any) -> ParseResult:
    return parse_document(Delta, data)
