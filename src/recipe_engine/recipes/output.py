"""Shape a raw variable snapshot into the records callers consume.

Autocomplete runs produce numbered variables (``TITLE1``, ``URL1``, ...) that
are grouped into one record per index. Url runs are filtered down to the
outputs their steps mark ``show: true``.

Values of fields the schema does not know are kept in the raw snapshot, but
are left out of these presented views.
"""

from __future__ import annotations

import re
from collections.abc import Collection
from typing import Any

from .fields import INDEX_SUFFIX, strip_index_suffix
from .models import Recipe, StepType

_INDEXED_KEY = re.compile(r"^([A-Z]+)(\d+)$")


def group_indexed_results(
    result: dict[str, Any],
    ignored_fields: Collection[str] = (),
) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    """Split a snapshot into per-index records and everything else.

    Returns:
        ``(results, debug)``: records ordered by index, and the non-indexed
        variables
    """
    debug: dict[str, Any] = {}
    indexed: dict[int, dict[str, Any]] = {}

    for key, value in result.items():
        match = _INDEXED_KEY.match(key)
        if match is None:
            debug[key] = value
            continue
        prefix, index = match.group(1), int(match.group(2))
        if prefix in ignored_fields:
            continue
        indexed.setdefault(index, {})[prefix] = value

    return [indexed[i] for i in sorted(indexed)], debug


def _indexed_name_pattern(name: str) -> re.Pattern[str]:
    parts = INDEX_SUFFIX.split(name)
    return re.compile("^" + r"\d+".join(re.escape(p) for p in parts) + "$")


def filter_shown_fields(
    result: dict[str, Any],
    recipe: Recipe,
    step_type: StepType = StepType.URL,
    ignored_fields: Collection[str] = (),
) -> dict[str, Any]:
    """Keep only outputs of ``show: true`` steps (loop names expanded)."""
    shown: dict[str, Any] = {}

    for step in recipe.steps_for(step_type):
        if not step.output or not step.output.name or step.output.show is not True:
            continue
        name = step.output.name
        if strip_index_suffix(name) in ignored_fields:
            continue
        if name in result:
            shown[name] = result[name]
        elif "$" in name:
            pattern = _indexed_name_pattern(name)
            for key, value in result.items():
                if pattern.match(key):
                    shown[key] = value

    return shown


def shape_result(
    result: dict[str, Any],
    recipe: Recipe,
    step_type: StepType,
    ignored_fields: Collection[str] = (),
) -> dict[str, Any]:
    """Presented view of a run: a record list for autocomplete, a record for url."""
    if step_type is StepType.AUTOCOMPLETE:
        results, _ = group_indexed_results(result, ignored_fields)
        return {"results": results}
    return {"results": filter_shown_fields(result, recipe, step_type, ignored_fields)}
