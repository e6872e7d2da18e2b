"""Observability helpers: structured logging with recipe context."""

from .logging import bind_recipe_context, clear_recipe_context, get_logger, setup_structured_logging

__all__ = [
    "bind_recipe_context",
    "clear_recipe_context",
    "get_logger",
    "setup_structured_logging",
]
