"""Output field validation against the field schema.

Every step output flagged ``show: true`` must use a field name the schema
knows for its step list. ``show: false`` marks auxiliary variables, which may
use any name. Validation is advisory: it reports, it never stops execution.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import structlog

from ..config import DEFAULT_FIELDS_SCHEMA
from ..exceptions import StepFailure
from ..observability import get_logger
from .models import Recipe, Step, StepType, resolve_step_type

# Loop suffixes such as $i or $idx
INDEX_SUFFIX = re.compile(r"\$[a-zA-Z]+")

SHOW_REQUIRED = '"show" is required'
UNKNOWN_OUTPUT_KEY = "unknown output key"


@dataclass(frozen=True)
class FieldSchema:
    """Permitted output field names per step list."""

    autocomplete_fields: dict[str, Any]
    url_fields: dict[str, Any]

    @classmethod
    def empty(cls) -> FieldSchema:
        return cls(autocomplete_fields={}, url_fields={})

    def fields_for(self, step_type: StepType) -> dict[str, Any]:
        if step_type is StepType.AUTOCOMPLETE:
            return self.autocomplete_fields
        return self.url_fields


def load_field_schema(path: str | Path, logger: structlog.stdlib.BoundLogger | None = None) -> FieldSchema:
    """Load the schema file; an unreadable schema degrades to an empty one."""
    log = logger or get_logger(__name__)
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return FieldSchema(
            autocomplete_fields=dict(data.get("autocomplete_fields") or {}),
            url_fields=dict(data.get("url_fields") or {}),
        )
    except (OSError, ValueError, AttributeError) as e:
        log.error("field_schema_load_failed", path=str(path), error=str(e))
        return FieldSchema.empty()


@lru_cache(maxsize=1)
def default_field_schema() -> FieldSchema:
    """Schema shipped with the package, loaded once per process."""
    return load_field_schema(DEFAULT_FIELDS_SCHEMA)


def strip_index_suffix(name: str) -> str:
    """``TITLE$i`` -> ``TITLE``."""
    return INDEX_SUFFIX.sub("", name)


@dataclass(frozen=True)
class FieldValidation:
    valid: bool
    reason: str | None = None
    failure: StepFailure | None = None


def validate_field(
    step: Step,
    step_type: StepType | str,
    schema: FieldSchema | None = None,
) -> FieldValidation:
    """Check a single step's output declaration."""
    if not step.output or not step.output.name:
        return FieldValidation(valid=True)

    name = step.output.name
    show = step.output.show

    if show is None:
        return FieldValidation(
            valid=False,
            reason=f'Field "{name}": {SHOW_REQUIRED} (must be true or false)',
            failure=StepFailure.SHOW_FLAG_MISSING,
        )

    if show is False:
        return FieldValidation(valid=True)

    if schema is None:
        schema = default_field_schema()
    resolved = resolve_step_type(step_type)
    field_name = strip_index_suffix(name)
    if resolved is None or field_name not in schema.fields_for(resolved):
        return FieldValidation(
            valid=False,
            reason=f'Field "{field_name}": {UNKNOWN_OUTPUT_KEY} for {resolved.value if resolved else step_type} (show: true). Ignoring value.',
            failure=StepFailure.SCHEMA_VIOLATION,
        )

    return FieldValidation(valid=True)


@dataclass
class RecipeFieldReport:
    """Outcome of validating every step of one step list."""

    ignored_fields: set[str]
    missing_show: list[str]

    @property
    def has_errors(self) -> bool:
        return bool(self.missing_show)


def validate_recipe_fields(
    recipe: Recipe,
    step_type: StepType | str,
    schema: FieldSchema | None = None,
    logger: structlog.stdlib.BoundLogger | None = None,
) -> RecipeFieldReport:
    """Validate all outputs of a step list.

    Missing ``show`` flags are logged as errors. Unknown ``show: true`` fields
    are logged as warnings and collected, stripped of loop suffixes, into the
    returned ``ignored_fields``.
    """
    log = logger or get_logger(__name__)
    report = RecipeFieldReport(ignored_fields=set(), missing_show=[])

    resolved = resolve_step_type(step_type)
    if resolved is None:
        return report

    for step in recipe.steps_for(resolved):
        result = validate_field(step, resolved, schema)
        if result.valid:
            continue
        if result.failure is StepFailure.SHOW_FLAG_MISSING:
            log.error("show_flag_missing", failure=result.failure.value, reason=result.reason)
            report.missing_show.append(step.output.name)
        else:
            log.warning("unknown_output_key", failure=result.failure.value, reason=result.reason)
            report.ignored_fields.add(strip_index_suffix(step.output.name))

    return report
