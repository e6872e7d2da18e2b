"""Structured logging with per-recipe context using structlog and contextvars."""

import logging
from contextvars import ContextVar

import structlog

# Context variables for the recipe currently being executed
current_recipe: ContextVar[str | None] = ContextVar("current_recipe", default=None)
current_step_type: ContextVar[str | None] = ContextVar("current_step_type", default=None)

_configured = False


def setup_structured_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Render JSON lines instead of human readable console output
    """
    global _configured
    if _configured:
        return

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,  # Inject recipe context
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
    )

    _configured = True


def bind_recipe_context(recipe: str, step_type: str) -> None:
    """Bind recipe context for all subsequent logs in this async context.

    Args:
        recipe: Recipe title (or file name when untitled)
        step_type: Step list being executed
    """
    current_recipe.set(recipe)
    current_step_type.set(step_type)
    structlog.contextvars.bind_contextvars(recipe=recipe, step_type=step_type)


def clear_recipe_context() -> None:
    """Clear recipe context after an execution completes."""
    current_recipe.set(None)
    current_step_type.set(None)
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = "recipe_engine") -> structlog.stdlib.BoundLogger:
    """Get a structlog logger carrying the bound recipe context."""
    return structlog.get_logger(name)
