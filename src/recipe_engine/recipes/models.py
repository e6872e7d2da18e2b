"""Data models for extraction recipes.

A recipe describes, for a single site, how to turn a search query into a list
of candidates (``autocomplete_steps``) and how to turn a detail URL into a
structured record (``url_steps``). Both lists are ordered sequences of typed
steps interpreted by :class:`~recipe_engine.recipes.engine.RecipeEngine`.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import RecipeLoadError


class StepType(str, Enum):
    AUTOCOMPLETE = "autocomplete_steps"
    URL = "url_steps"


_STEP_TYPE_ALIASES = {
    "autocomplete": StepType.AUTOCOMPLETE,
    "url": StepType.URL,
}


def resolve_step_type(name: str | StepType) -> StepType | None:
    """Map a short ('url') or full ('url_steps') step list name to a StepType."""
    if isinstance(name, StepType):
        return name
    if name in _STEP_TYPE_ALIASES:
        return _STEP_TYPE_ALIASES[name]
    try:
        return StepType(name)
    except ValueError:
        return None


class Command(str, Enum):
    """Closed set of step kinds understood by the executor."""

    LOAD = "load"
    STORE_ATTRIBUTE = "store_attribute"
    STORE_TEXT = "store_text"
    STORE_ARRAY = "store_array"
    STORE_COUNT = "store_count"
    REGEX = "regex"
    STORE = "store"
    API_REQUEST = "api_request"
    JSON_STORE_TEXT = "json_store_text"
    URL_ENCODE = "url_encode"
    STORE_URL = "store_url"
    REPLACE = "replace"


class LoopConfig(BaseModel):
    """Inclusive ascending range driving repeated execution of one step.

    Bounds may be integers or templates such as ``"$NUMBER_OF_SEASONS"``.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    index: str
    from_: int | str = Field(alias="from")
    to: int | str
    step: int | str = 1


class StepConfig(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    js: bool = False
    timeout: int | None = None
    headers: dict[str, str] | None = None
    loop: LoopConfig | None = None
    method: str | None = None
    body: str | None = None

    @field_validator("body", mode="before")
    @classmethod
    def _serialize_body(cls, v: Any) -> Any:
        # GraphQL recipes embed the body as an object
        if isinstance(v, (dict, list)):
            return json.dumps(v)
        return v


class StepOutput(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    name: str | None = None
    type: str | None = None
    show: bool | None = None


class Step(BaseModel):
    """One typed operation of a recipe."""

    model_config = ConfigDict(extra="allow", frozen=True)

    command: str
    description: str | None = None
    locator: str | None = None
    url: str | None = None
    input: str | None = None
    expression: str | None = None
    attribute_name: str | None = None
    find: str | None = None
    replace: str | None = None
    config: StepConfig | None = None
    output: StepOutput | None = None

    @property
    def kind(self) -> Command | None:
        try:
            return Command(self.command)
        except ValueError:
            return None

    @property
    def loop(self) -> LoopConfig | None:
        return self.config.loop if self.config else None

    @property
    def output_name(self) -> str | None:
        return self.output.name if self.output else None


class Recipe(BaseModel):
    """A site recipe with its two step lists."""

    model_config = ConfigDict(extra="allow", frozen=True)

    title: str = ""
    description: str = ""
    engine_version: str = ""
    url_available: list[str] = Field(default_factory=list)
    languages_available: list[str] | None = None
    language_default: str | None = None
    regions_available: list[str] | None = None
    region_default: str | None = None
    headers: dict[str, str] | None = None
    autocomplete_steps: list[Step] | None = None
    url_steps: list[Step] | None = None

    def steps_for(self, step_type: StepType) -> list[Step]:
        return list(getattr(self, step_type.value) or [])

    @classmethod
    def from_json(cls, text: str) -> Recipe:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RecipeLoadError(f"Recipe is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise RecipeLoadError(f"Recipe must be a JSON object, got {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise RecipeLoadError(f"Invalid recipe: {e}") from e

    @classmethod
    def from_file(cls, path: str | Path) -> Recipe:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise RecipeLoadError(f"Cannot read recipe {path}: {e}") from e
        return cls.from_json(text)
