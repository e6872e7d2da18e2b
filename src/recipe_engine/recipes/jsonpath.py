"""Dot/bracket path extraction from JSON values.

Recipes address API responses with paths such as ``product.brands``,
``results.[0].collectionName`` or ``[0].author.name``. Paths are compiled to
JMESPath expressions (quoted identifiers, bracket indices) and evaluated with
``jmespath``. Missing paths yield ``None``.
"""

from __future__ import annotations

import json
import re
from functools import lru_cache
from typing import Any

import jmespath
from jmespath.exceptions import JMESPathError

# A bare key, a numeric index in brackets, or a quoted key in brackets
_SEGMENT = re.compile(r"""[^.\[\]]+|\[(?:(\d+)|"([^"]*)"|'([^']*)')\]""")


def path_segments(locator: str) -> list[str | int]:
    """Split a locator into keys (str) and list indices (int)."""
    segments: list[str | int] = []
    for match in _SEGMENT.finditer(locator):
        index, double_quoted, single_quoted = match.groups()
        if index is not None:
            segments.append(int(index))
        elif double_quoted is not None:
            segments.append(double_quoted)
        elif single_quoted is not None:
            segments.append(single_quoted)
        else:
            token = match.group(0)
            segments.append(int(token) if token.isdigit() else token)
    return segments


@lru_cache(maxsize=256)
def compile_locator(locator: str) -> jmespath.parser.ParsedResult | None:
    segments = path_segments(locator)
    if not segments:
        return None
    parts: list[str] = []
    for segment in segments:
        if isinstance(segment, int):
            parts.append(f"[{segment}]")
        else:
            parts.append(("." if parts else "") + json.dumps(segment))
    return jmespath.compile("".join(parts))


def extract_path(data: Any, locator: str) -> Any:
    """Return the value at ``locator`` inside ``data``, or None."""
    if data is None or not locator:
        return None
    try:
        expression = compile_locator(locator)
    except JMESPathError:
        return None
    if expression is None:
        return data
    return expression.search(data)
