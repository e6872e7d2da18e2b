"""Declarative recipe interpreter for structured web extraction."""

from .config import settings
from .exceptions import BrowserError, MissingStepFieldError, RecipeEngineError, RecipeLoadError, StepFailure
from .recipes import Recipe, RecipeEngine, StepType

__all__ = [
    "settings",
    "Recipe",
    "RecipeEngine",
    "StepType",
    "RecipeEngineError",
    "RecipeLoadError",
    "BrowserError",
    "MissingStepFieldError",
    "StepFailure",
]
