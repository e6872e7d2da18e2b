"""Variable store and template substitution for recipe execution.

Variables are referenced in step templates as ``$NAME``. Substitution is a
literal search-and-replace over every known name, longest names first, so
that ``$URL10`` is never consumed by ``$URL1`` followed by a stray ``0``.

The pass runs twice, which resolves one level of indirection built by loops:
``$YEAR$i`` becomes ``$YEAR0`` in the first pass and ``1991`` in the second.
Deeper chains are left unresolved.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

import structlog

from ..observability import get_logger

VARIABLE_START_CHAR = "$"
SUBSTITUTION_PASSES = 2

_CONTROL_WHITESPACE = re.compile(r"[\r\n\t]+")
_WHITESPACE_RUN = re.compile(r"\s+")


class ValueKind(str, Enum):
    """Shape of a stored variable."""

    TEXT = "text"
    LIST = "list"
    JSON = "json"


def clean_variable_value(value: Any) -> Any:
    """Normalize text written to the store; other values pass through."""
    if isinstance(value, str):
        value = _CONTROL_WHITESPACE.sub("", value)
        return _WHITESPACE_RUN.sub(" ", value).strip()
    return value


def kind_of(value: Any) -> ValueKind:
    if isinstance(value, str):
        return ValueKind.TEXT
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return ValueKind.LIST
    return ValueKind.JSON


def render_value(value: Any) -> str:
    """Render a stored value for insertion into a template."""
    if value is None:
        return ""
    match kind_of(value):
        case ValueKind.TEXT:
            return value
        case ValueKind.LIST:
            return ",".join(value)
        case ValueKind.JSON:
            if isinstance(value, bool):
                return "true" if value else "false"
            if isinstance(value, float) and value.is_integer():
                return str(int(value))
            if isinstance(value, (int, float)):
                return str(value)
            return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


class VariableStore:
    """Mutable environment shared by the steps of one recipe execution.

    Args:
        environment: Fallback values for names the store does not define
            (typically a snapshot of the process environment).
        logger: Logger used for substitution diagnostics.
    """

    def __init__(
        self,
        environment: Mapping[str, str] | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        self._variables: dict[str, Any] = {}
        self._environment: Mapping[str, str] = dict(environment or {})
        self.log = logger or get_logger(__name__)

    def __contains__(self, key: str) -> bool:
        return key in self._variables

    def __len__(self) -> int:
        return len(self._variables)

    def set(self, key: str, value: Any) -> None:
        self._variables[key] = clean_variable_value(value)

    def push(self, key: str, value: Any) -> None:
        # A key holding another shape is replaced by a fresh list
        current = self._variables.get(key)
        if not isinstance(current, list):
            current = []
            self._variables[key] = current
        current.append(clean_variable_value(value))

    def get(self, key: str, default: Any = "") -> Any:
        raw_key = key[1:] if key.startswith(VARIABLE_START_CHAR) else key
        value = self._variables.get(raw_key)
        if value is not None:
            return value
        env_value = self._environment.get(raw_key)
        if env_value is not None:
            return env_value
        return default

    def kind(self, key: str) -> ValueKind | None:
        if key not in self._variables:
            return None
        return kind_of(self._variables[key])

    def snapshot(self) -> dict[str, Any]:
        """Copy of every variable set so far (lists are copied too)."""
        return {k: list(v) if isinstance(v, list) else v for k, v in self._variables.items()}

    def _candidate_names(self, text: str) -> list[str]:
        names = set(self._variables)
        # Environment names only take part when the template mentions them
        names.update(name for name in self._environment if f"{VARIABLE_START_CHAR}{name}" in text)
        return sorted(names, key=len, reverse=True)

    def _replace_once(self, text: str) -> str:
        for name in self._candidate_names(text):
            token = f"{VARIABLE_START_CHAR}{name}"
            if token not in text:
                continue
            replacement = render_value(self.get(name))
            if name in self._variables:
                text = text.replace(token, replacement)
            else:
                # Environment names match whole identifiers only: $HOME must not eat $HOMEPAGE
                text = re.sub(rf"{re.escape(token)}(?!\w)", lambda _: replacement, text)
        return text

    def replace_variables_in_string(self, text: Any) -> Any:
        """Substitute ``$NAME`` references; non-strings are returned unchanged."""
        if not isinstance(text, str) or not text:
            return text

        result = text
        for _ in range(SUBSTITUTION_PASSES):
            if VARIABLE_START_CHAR not in result:
                break
            result = self._replace_once(result)

        if VARIABLE_START_CHAR in result and result != text:
            self.log.debug("unresolved_reference", template=text, result=result)
        return result
