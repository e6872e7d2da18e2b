"""Custom exceptions for the recipe engine."""

from enum import Enum


class RecipeEngineError(Exception):
    """Base exception for recipe engine errors."""

    pass


class RecipeLoadError(RecipeEngineError):
    """Raised when a recipe file cannot be read or parsed."""

    pass


class BrowserError(RecipeEngineError):
    """Raised when page controller operations fail."""

    pass


class MissingStepFieldError(RecipeEngineError):
    """Raised by a step handler when the step lacks a required property."""

    def __init__(self, command: str, fields: tuple[str, ...]):
        self.command = command
        self.fields = fields
        super().__init__(f"{command}: missing required step properties {', '.join(fields)}")


class StepFailure(str, Enum):
    """Non-fatal diagnostic categories reported while validating or running steps."""

    MISSING_REQUIRED_FIELD = "missing_required_field"
    UNKNOWN_COMMAND = "unknown_command"
    REGEX_NO_MATCH = "regex_no_match"
    API_REQUEST_FAILURE = "api_request_failure"
    SCHEMA_VIOLATION = "schema_violation"
    SHOW_FLAG_MISSING = "show_flag_missing"
