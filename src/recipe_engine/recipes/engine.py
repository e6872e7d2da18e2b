"""Recipe engine: runs one step list of a recipe and returns its variables."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from ..browser import BrowserManager, PageController
from ..config import AppSettings, settings as default_settings
from ..exceptions import BrowserError
from ..observability import bind_recipe_context, clear_recipe_context, get_logger
from .commands import StepExecutor
from .models import Recipe, Step, StepType, resolve_step_type
from .variables import VariableStore

INPUT = "INPUT"
SYSTEM_LANGUAGE = "SYSTEM_LANGUAGE"
SYSTEM_REGION = "SYSTEM_REGION"

_LANGUAGE_SUBTAG_SEPARATOR = re.compile(r"[_-]")


class RecipeEngine:
    """Interprets recipe step lists against a page controller.

    Each engine owns its variable store and page controller; create one
    engine per recipe execution.

    Usage:
        async with RecipeEngine() as engine:
            result = await engine.execute_recipe(recipe, "url_steps", "https://...")

    Args:
        page: Page controller; defaults to a browser-use backed BrowserManager
        app_settings: Settings (defaults to the process-wide settings)
        environment: Fallback values for variables the recipe does not set;
            defaults to a snapshot of the process environment
        http_client: Client used by ``api_request`` steps
        logger: Logger for engine diagnostics
    """

    def __init__(
        self,
        page: PageController | None = None,
        app_settings: AppSettings | None = None,
        environment: Mapping[str, str] | None = None,
        http_client: httpx.AsyncClient | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        self.settings = app_settings or default_settings
        self.log = logger or get_logger(__name__)
        self.page = page or BrowserManager(self.settings.browser, logger=self.log)
        self.variables = VariableStore(
            environment=dict(os.environ) if environment is None else environment,
            logger=self.log,
        )
        self.step_executor = StepExecutor(
            self.page,
            self.variables,
            settings=self.settings.engine,
            http_client=http_client,
            logger=self.log,
        )

        self.variables.set(SYSTEM_LANGUAGE, self.settings.engine.system_language)
        self.variables.set(SYSTEM_REGION, self.settings.engine.system_region)
        self.variables.set(INPUT, "")

    async def __aenter__(self) -> RecipeEngine:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def initialize(self) -> None:
        await self.page.initialize()

    async def close(self) -> None:
        await self.page.close()

    # Variable store passthroughs

    def set(self, key: str, value: Any) -> None:
        self.variables.set(key, value)

    def push(self, key: str, value: Any) -> None:
        self.variables.push(key, value)

    def get(self, key: str, default: Any = "") -> Any:
        return self.variables.get(key, default)

    def get_all_variables(self) -> dict[str, Any]:
        return self.variables.snapshot()

    def replace_variables_in_string(self, text: Any) -> Any:
        return self.variables.replace_variables_in_string(text)

    def set_input(self, value: str) -> None:
        self.variables.set(INPUT, value.replace("\\", ""))

    def match_language_and_region(self, recipe: Recipe) -> None:
        """Pick the recipe language/region matching the caller, else the recipe defaults."""
        if recipe.languages_available:
            system_language = str(self.get(SYSTEM_LANGUAGE))
            primary = _LANGUAGE_SUBTAG_SEPARATOR.split(system_language, maxsplit=1)[0].lower()
            matched = next((lang for lang in recipe.languages_available if lang.lower() == primary), None)
            if matched is not None:
                self.set(SYSTEM_LANGUAGE, matched)
            elif recipe.language_default:
                self.log.debug("language_not_matched", language=system_language, default=recipe.language_default)
                self.set(SYSTEM_LANGUAGE, recipe.language_default.lower())

        if recipe.regions_available:
            system_region = str(self.get(SYSTEM_REGION))
            matched = next((r for r in recipe.regions_available if r.upper() == system_region.upper()), None)
            if matched is not None:
                self.set(SYSTEM_REGION, matched)
            elif recipe.region_default:
                self.log.debug("region_not_matched", region=system_region, default=recipe.region_default)
                self.set(SYSTEM_REGION, recipe.region_default.upper())

    async def update_headers_from_recipe(self, recipe: Recipe) -> None:
        headers = recipe.headers or {}
        user_agent = headers.get("User-Agent")
        if user_agent:
            await self.page.set_user_agent(user_agent)
        accept_language = headers.get("Accept-Language")
        if accept_language:
            await self.page.set_extra_http_headers({"Accept-Language": accept_language})

    async def execute_recipe(
        self,
        recipe: Recipe,
        step_type: StepType | str,
        input: str = "",
    ) -> dict[str, Any]:
        """Execute one step list and return every variable it produced.

        Args:
            recipe: Loaded recipe
            step_type: ``autocomplete_steps`` or ``url_steps`` (short names accepted)
            input: Search query for autocomplete steps, detail URL for url steps

        Returns:
            Snapshot of the variable store; empty when nothing was executed
        """
        resolved = resolve_step_type(step_type)
        if resolved is None:
            self.log.warning("unknown_step_type", step_type=str(step_type))
            return {}

        steps = recipe.steps_for(resolved)
        if not steps:
            self.log.warning("no_steps", step_type=resolved.value)
            return {}

        bind_recipe_context(recipe.title or "untitled", resolved.value)
        try:
            self.log.debug("recipe_started", input=input, total_steps=len(steps))

            self.match_language_and_region(recipe)

            if recipe.headers:
                try:
                    await self.update_headers_from_recipe(recipe)
                except BrowserError as e:
                    self.log.error("recipe_headers_failed", error=str(e))

            self.set_input(input)

            await self.execute_steps(steps)
            return self.get_all_variables()
        finally:
            clear_recipe_context()

    async def execute_steps(self, steps: list[Step]) -> None:
        total = len(steps)
        for number, step in enumerate(steps, start=1):
            self.log.debug("step", number=number, total=total, command=step.command)
            await self.step_executor.execute(step)
        self.log.debug("recipe_completed", total_steps=total)
